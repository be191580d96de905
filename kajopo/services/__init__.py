"""Services module."""
from .accounts import AccountService
from .messaging import MessagingService
from .opportunities import OpportunityService

__all__ = [
    "AccountService",
    "MessagingService",
    "OpportunityService",
]
