from .neos import neos_router
from .watchlist import watchlist_router

__all__ = ["neos_router", "watchlist_router"]
