"""Order resolution, exclusion and invoice reconciliation backend."""
