"""
Marketplace processors.

Importing this package registers every built-in processor.
"""

from .base import FillReport, ListingResult, MarketplaceProcessor, ProcessorState
from .payload import ListingPayload
from .registry import available_marketplaces, get_processor_class, register_processor
from . import facebook, mercari  # noqa: F401  (registration side effect)

__all__ = [
    "FillReport",
    "ListingPayload",
    "ListingResult",
    "MarketplaceProcessor",
    "ProcessorState",
    "available_marketplaces",
    "get_processor_class",
    "register_processor",
]
