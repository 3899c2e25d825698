"""
Marketplace -> processor class registry.

Processor modules register themselves on import:

    @register_processor("mercari")
    class MercariProcessor(MarketplaceProcessor): ...
"""

from typing import Dict, List, Type

from core.errors import UnsupportedMarketplaceError

_PROCESSORS: Dict[str, Type] = {}


def register_processor(marketplace: str):
    def decorator(cls):
        key = marketplace.strip().lower()
        if key in _PROCESSORS and _PROCESSORS[key] is not cls:
            raise ValueError(f"Processor already registered for {key}: {_PROCESSORS[key].__name__}")
        cls.marketplace = key
        _PROCESSORS[key] = cls
        return cls
    return decorator


def get_processor_class(marketplace: str) -> Type:
    key = (marketplace or "").strip().lower()
    try:
        return _PROCESSORS[key]
    except KeyError:
        raise UnsupportedMarketplaceError(
            f"Unsupported marketplace: {marketplace!r} (available: {', '.join(available_marketplaces())})"
        ) from None


def available_marketplaces() -> List[str]:
    return sorted(_PROCESSORS)
