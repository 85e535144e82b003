import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from .errors import ValidationError
from .risk import compute_risk_score
from .schemas import DashboardNeo, FeedPage, FeedStats, RawNeoRecord

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MAX_RANGE_DAYS = 7
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    @property
    def start_date(self) -> str:
        return self.start.isoformat()

    @property
    def end_date(self) -> str:
        return self.end.isoformat()

    def as_dict(self) -> dict:
        return {"start_date": self.start_date, "end_date": self.end_date}


def parse_date(value: str | None, name: str) -> date:
    if not value or not DATE_RE.match(value):
        raise ValidationError(f"{name} must be in YYYY-MM-DD format")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{name} is not a valid calendar date")


def parse_date_range(start_date: str | None, end_date: str | None) -> DateRange:
    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date")
    days = (end - start).days
    if days < 0:
        raise ValidationError("end_date must be on or after start_date")
    if days > MAX_RANGE_DAYS:
        raise ValidationError(f"Date range must be {MAX_RANGE_DAYS} days or less")
    return DateRange(start=start, end=end)


def clamp_pagination(page: int, limit: int) -> tuple[int, int]:
    return max(1, page), min(MAX_LIMIT, max(1, limit))


def compute_stats(neos: Sequence[DashboardNeo]) -> FeedStats:
    """Aggregate over the whole result set, never a page of it."""
    hazardous = 0
    closest = None
    closest_lunar = math.inf
    velocity_sum = 0.0

    for neo in neos:
        if neo.is_potentially_hazardous:
            hazardous += 1
        first = neo.close_approach_data[0] if neo.close_approach_data else None
        if first is None:
            continue
        lunar = first.miss_distance.lunar
        if lunar is not None and lunar < closest_lunar:
            closest, closest_lunar = neo, lunar
        velocity_sum += first.relative_velocity.km_per_sec or 0.0

    total = len(neos)
    return FeedStats(
        total=total,
        hazardous=hazardous,
        closest_lunar=round(closest_lunar, 2) if closest else None,
        closest_neo_id=closest.id if closest else None,
        closest_neo_name=closest.name if closest else None,
        avg_velocity_km_s=round(velocity_sum / total, 2) if total else 0.0,
    )


def paginate_feed(neos: Sequence[DashboardNeo], page: int, limit: int) -> FeedPage:
    page, limit = clamp_pagination(page, limit)
    stats = compute_stats(neos)
    total_pages = math.ceil(stats.total / limit)
    offset = (page - 1) * limit
    return FeedPage(
        page=page,
        limit=limit,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
        neo_objects=list(neos[offset:offset + limit]),
        stats=stats,
    )


def summarize(neos: Iterable[RawNeoRecord]) -> dict:
    breakdown = {"high": 0, "medium": 0, "low": 0}
    total = hazardous = 0
    for neo in neos:
        total += 1
        if neo.is_potentially_hazardous_asteroid:
            hazardous += 1
        breakdown[compute_risk_score(neo).label.lower()] += 1
    return {"total": total, "hazardous": hazardous, "risk_breakdown": breakdown}
