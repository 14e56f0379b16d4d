"""Error taxonomy shared by the resolution, exclusion and invoice services."""
from typing import Dict, Optional


class OrderDeskError(Exception):
    """Base exception for service errors."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidInputError(OrderDeskError):
    """Blank or malformed identifiers. Raised before any write."""
    pass


class NotFoundError(OrderDeskError):
    """Referenced manufacturer, mapping or order does not exist."""
    pass


class TransactionFailureError(OrderDeskError):
    """The store rejected an atomic mutation; nothing was applied."""
    pass
