# Services module
from orderdesk.services.rule_store import RuleStore, ExclusionToggle
from orderdesk.services.exclusion_service import ExclusionService
from orderdesk.services.resolution_service import ResolutionService
from orderdesk.services.invoice_service import InvoiceReconciliationService
from orderdesk.services.order_service import OrderService

__all__ = [
    "RuleStore",
    "ExclusionToggle",
    "ExclusionService",
    "ResolutionService",
    "InvoiceReconciliationService",
    "OrderService",
]
