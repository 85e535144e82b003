from fastapi import APIRouter, Depends

from ..auth import AuthUser, get_current_user
from ..dependencies import get_watchlist_store
from ..errors import ValidationError
from ..schemas import WatchlistCreate, WatchlistItemRead
from ..state import WatchlistStore

watchlist_router = APIRouter(prefix="/watchlist", tags=["watchlist"])


def _neo_id(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValidationError("neoId is required")
    return value


@watchlist_router.get("")
def get_watchlist(
    user: AuthUser = Depends(get_current_user),
    store: WatchlistStore = Depends(get_watchlist_store),
):
    items = [WatchlistItemRead.model_validate(row) for row in store.list_items(user.id)]
    return {"total": len(items), "items": items}


@watchlist_router.post("", status_code=201)
def add_to_watchlist(
    body: WatchlistCreate,
    user: AuthUser = Depends(get_current_user),
    store: WatchlistStore = Depends(get_watchlist_store),
):
    item = store.add(user.id, body.neo_id, body.neo_name)
    return {"success": True, "item": WatchlistItemRead.model_validate(item)}


@watchlist_router.delete("/{neo_id}")
def remove_from_watchlist(
    neo_id: str,
    user: AuthUser = Depends(get_current_user),
    store: WatchlistStore = Depends(get_watchlist_store),
):
    neo_id = _neo_id(neo_id)
    store.remove(user.id, neo_id)
    return {"success": True, "neo_id": neo_id, "removed": True}


@watchlist_router.patch("/{neo_id}/alert")
def toggle_watchlist_alert(
    neo_id: str,
    user: AuthUser = Depends(get_current_user),
    store: WatchlistStore = Depends(get_watchlist_store),
):
    neo_id = _neo_id(neo_id)
    enabled = store.toggle_alert(user.id, neo_id)
    return {"success": True, "neo_id": neo_id, "alert_enabled": enabled}
