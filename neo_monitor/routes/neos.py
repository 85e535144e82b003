import re
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from starlette.concurrency import run_in_threadpool

from ..alerts import generate_alerts
from ..auth import AuthUser, bearer_scheme, get_current_user, get_optional_user
from ..dependencies import get_alert_store, get_nasa_client
from ..errors import ValidationError
from ..feed import DEFAULT_LIMIT, paginate_feed, parse_date_range, summarize
from ..normalize import normalize_neo, normalize_neo_for_dashboard
from ..schemas import ReadAllRequest, parse_feed, parse_neo
from ..services import NasaClient
from ..state import AlertStateStore, load_alert_overlay, merge_alert_states

neos_router = APIRouter(prefix="/neos", tags=["neos"])

NEO_ID_RE = re.compile(r"^[A-Za-z0-9]+$")


@neos_router.get("/feed")
async def get_feed(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    page: int = 1,
    limit: int = DEFAULT_LIMIT,
    nasa: NasaClient = Depends(get_nasa_client),
):
    """Dashboard feed for a date range, one page at a time.

    ``stats`` always describes the whole range, whatever page is requested.
    """
    window = parse_date_range(start_date, end_date)
    payload = await nasa.fetch_feed(window.start_date, window.end_date)
    neos = [normalize_neo_for_dashboard(n) for n in parse_feed(payload)]
    result = paginate_feed(neos, page, limit)
    return {
        "fetched_at": datetime.now(timezone.utc).isoformat(),
        **window.as_dict(),
        "element_count": result.stats.total,
        **result.model_dump(),
    }


@neos_router.get("/summary")
async def get_summary(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    nasa: NasaClient = Depends(get_nasa_client),
):
    window = parse_date_range(start_date, end_date)
    payload = await nasa.fetch_feed(window.start_date, window.end_date)
    return {"range": window.as_dict(), **summarize(parse_feed(payload))}


@neos_router.get("/lookup/{neo_id}")
async def get_lookup(neo_id: str, nasa: NasaClient = Depends(get_nasa_client)):
    neo_id = neo_id.strip()
    if not NEO_ID_RE.match(neo_id):
        raise ValidationError("id must be alphanumeric")
    raw = await nasa.fetch_lookup(neo_id)
    return {"neo": normalize_neo(parse_neo(raw)).model_dump(), "raw": raw}


@neos_router.get("/alerts")
async def get_alerts(
    request: Request,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    nasa: NasaClient = Depends(get_nasa_client),
    store: AlertStateStore = Depends(get_alert_store),
):
    """Alerts for the range; signed-in users get their read/deleted state applied."""
    window = parse_date_range(start_date, end_date)
    user = await get_optional_user(request, credentials)

    payload = await nasa.fetch_feed(window.start_date, window.end_date)
    alerts = generate_alerts(parse_feed(payload))

    overlay = "anonymous"
    if user is not None:
        states = await run_in_threadpool(load_alert_overlay, store, user.id, [a.id for a in alerts])
        alerts = merge_alert_states(alerts, states.value)
        overlay = "applied" if states.ok else "degraded"

    return {
        "range": window.as_dict(),
        "total": len(alerts),
        "alerts": [a.model_dump() for a in alerts],
        "state_overlay": overlay,
    }


@neos_router.patch("/alerts/read-all")
def mark_all_alerts_read(
    body: ReadAllRequest,
    user: AuthUser = Depends(get_current_user),
    store: AlertStateStore = Depends(get_alert_store),
):
    updated = store.mark_all_read(user.id, body.alert_ids)
    return {"updated": updated, "read": True}


@neos_router.patch("/alerts/{alert_id}/read")
def mark_alert_read(
    alert_id: str,
    user: AuthUser = Depends(get_current_user),
    store: AlertStateStore = Depends(get_alert_store),
):
    return {"id": store.mark_read(user.id, alert_id), "read": True}


@neos_router.delete("/alerts/{alert_id}")
def delete_alert(
    alert_id: str,
    user: AuthUser = Depends(get_current_user),
    store: AlertStateStore = Depends(get_alert_store),
):
    return {"id": store.delete(user.id, alert_id), "deleted": True}
