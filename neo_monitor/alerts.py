"""Alert generation from the current feed window.

Alerts are rebuilt on every request. Their ids are content hashes so that the
per-user read/deleted flags stored against them keep matching across requests
and restarts. The id is the first 20 hex characters of
``sha1("{type}:{neo_id}:{approach_date or 'unknown'}")`` (UTF-8).
"""
import hashlib
from typing import Iterable, List, Optional

from .schemas import Alert, RawNeoRecord

ALERT_ID_LENGTH = 20
CLOSE_APPROACH_LD = 5.0
HIGH_PRIORITY_LD = 2.0

PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}


def build_alert_id(alert_type: str, neo_id: str, approach_date: Optional[str]) -> str:
    raw = f"{alert_type}:{neo_id}:{approach_date or 'unknown'}"
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:ALERT_ID_LENGTH]


def _approach_time(full: Optional[str]) -> str:
    # upstream format: "2025-Jan-01 12:34"
    if not full:
        return "Unknown"
    return f"{full.split(' ')[-1]} UTC"


def _alerts_for(neo: RawNeoRecord) -> List[Alert]:
    approach = neo.first_approach
    lunar = approach.miss_distance.lunar if approach else None
    approach_date = approach.close_approach_date if approach else None
    time = _approach_time(approach.close_approach_date_full if approach else None)

    alerts = []
    if lunar is not None and lunar < CLOSE_APPROACH_LD:
        alerts.append(
            Alert(
                id=build_alert_id("close_approach", neo.id, approach_date),
                type="close_approach",
                title="Close Approach Alert",
                message=f"Asteroid {neo.name} will pass within {lunar:.2f} LD of Earth",
                date=approach_date,
                time=time,
                priority="high" if lunar < HIGH_PRIORITY_LD else "medium",
                neo_id=neo.id,
            )
        )
    if neo.is_potentially_hazardous_asteroid:
        alerts.append(
            Alert(
                id=build_alert_id("hazardous", neo.id, approach_date),
                type="hazardous",
                title="Hazardous Object Detected",
                message=f"Potentially hazardous asteroid {neo.name} detected",
                date=approach_date,
                time=time,
                priority="high",
                neo_id=neo.id,
            )
        )
    return alerts


def generate_alerts(neos: Iterable[RawNeoRecord]) -> List[Alert]:
    """Build alerts for every record, highest priority first.

    Within a priority tier alerts stay in feed order; the feed is not
    guaranteed to be chronological, so no date ordering is implied.
    """
    alerts: List[Alert] = []
    for neo in neos:
        alerts.extend(_alerts_for(neo))
    return sorted(alerts, key=lambda a: PRIORITY_RANK.get(a.priority, len(PRIORITY_RANK)))
