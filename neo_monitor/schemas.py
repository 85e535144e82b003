import logging
import math
from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_bool(value: Any) -> bool:
    return value is True or (isinstance(value, str) and value.lower() == "true")


def _to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _to_text(value: Any) -> str:
    return "" if value is None else str(value)


def _dict_list(value: Any) -> list:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def _dict_or_empty(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


LenientFloat = Annotated[Optional[float], BeforeValidator(_to_float)]
LenientBool = Annotated[bool, BeforeValidator(_to_bool)]
LenientStr = Annotated[Optional[str], BeforeValidator(_to_str)]
LenientText = Annotated[str, BeforeValidator(_to_text)]


# ---------------------------------------------------------------------------
# Upstream (NeoWs) records. Every field is optional with a default so missing
# or malformed upstream data is absorbed here and nowhere else.
# ---------------------------------------------------------------------------

class RelativeVelocity(BaseModel):
    kilometers_per_second: LenientFloat = None
    kilometers_per_hour: LenientFloat = None


class MissDistance(BaseModel):
    astronomical: LenientFloat = None
    lunar: LenientFloat = None
    kilometers: LenientFloat = None


class CloseApproach(BaseModel):
    close_approach_date: LenientStr = None
    close_approach_date_full: LenientStr = None
    epoch_date_close_approach: Optional[int] = None
    relative_velocity: Annotated[RelativeVelocity, BeforeValidator(_dict_or_empty)] = Field(default_factory=RelativeVelocity)
    miss_distance: Annotated[MissDistance, BeforeValidator(_dict_or_empty)] = Field(default_factory=MissDistance)
    orbiting_body: LenientStr = None

    @field_validator("epoch_date_close_approach", mode="before")
    @classmethod
    def _epoch(cls, value):
        number = _to_float(value)
        return int(number) if number is not None else None


class DiameterRange(BaseModel):
    estimated_diameter_min: LenientFloat = None
    estimated_diameter_max: LenientFloat = None


class EstimatedDiameter(BaseModel):
    kilometers: Annotated[DiameterRange, BeforeValidator(_dict_or_empty)] = Field(default_factory=DiameterRange)
    meters: Annotated[DiameterRange, BeforeValidator(_dict_or_empty)] = Field(default_factory=DiameterRange)


class RawNeoRecord(BaseModel):
    id: LenientText = ""
    name: LenientText = ""
    nasa_jpl_url: LenientStr = None
    absolute_magnitude_h: LenientFloat = None
    is_potentially_hazardous_asteroid: LenientBool = False
    is_sentry_object: LenientBool = False
    estimated_diameter: Annotated[EstimatedDiameter, BeforeValidator(_dict_or_empty)] = Field(default_factory=EstimatedDiameter)
    close_approach_data: Annotated[List[CloseApproach], BeforeValidator(_dict_list)] = Field(default_factory=list)

    @property
    def first_approach(self) -> Optional[CloseApproach]:
        return self.close_approach_data[0] if self.close_approach_data else None


def parse_neo(item: Any) -> RawNeoRecord:
    return RawNeoRecord.model_validate(item if isinstance(item, dict) else {})


def parse_feed(payload: Any) -> List[RawNeoRecord]:
    """Flatten a NeoWs feed payload into records, keeping upstream date-key order."""
    if not isinstance(payload, dict):
        return []
    by_date = payload.get("near_earth_objects")
    if not isinstance(by_date, dict):
        return []

    records: List[RawNeoRecord] = []
    for day, items in by_date.items():
        for item in items if isinstance(items, list) else []:
            if not isinstance(item, dict):
                logger.warning("Skipping malformed feed entry for %s", day)
                continue
            records.append(parse_neo(item))
    return records


# ---------------------------------------------------------------------------
# Derived shapes returned to clients
# ---------------------------------------------------------------------------

RiskLabel = Literal["Low", "Medium", "High"]


class RiskScore(BaseModel):
    score: int = Field(ge=0, le=100)
    label: RiskLabel


class DiameterSummary(BaseModel):
    min_km: float = 0.0
    max_km: float = 0.0
    min_m: float = 0.0
    max_m: float = 0.0


class VelocitySummary(BaseModel):
    km_per_sec: Optional[float] = None
    km_per_hour: Optional[float] = None


class MissDistanceSummary(BaseModel):
    astronomical: Optional[float] = None
    lunar: Optional[float] = None
    kilometers: Optional[float] = None


class ApproachSummary(BaseModel):
    close_approach_date: Optional[str] = None
    close_approach_date_full: Optional[str] = None
    epoch_date_close_approach: Optional[int] = None
    relative_velocity: VelocitySummary
    miss_distance: MissDistanceSummary
    orbiting_body: str = "Earth"


class DashboardNeo(BaseModel):
    id: str
    name: str
    nasa_jpl_url: str
    absolute_magnitude_h: Optional[float] = None
    is_potentially_hazardous: bool
    is_sentry_object: bool
    estimated_diameter: DiameterSummary
    close_approach_data: List[ApproachSummary]
    risk: RiskScore


class FlatNeo(BaseModel):
    id: str
    name: str
    nasa_jpl_url: str
    absolute_magnitude_h: Optional[float] = None
    is_potentially_hazardous: bool
    is_sentry_object: bool
    diameter_m: float
    close_approach_date: Optional[str] = None
    miss_distance_km: Optional[float] = None
    relative_velocity_km_s: Optional[float] = None
    orbiting_body: Optional[str] = None
    risk: RiskScore


class FeedStats(BaseModel):
    total: int
    hazardous: int
    closest_lunar: Optional[float] = None
    closest_neo_id: Optional[str] = None
    closest_neo_name: Optional[str] = None
    avg_velocity_km_s: float


class FeedPage(BaseModel):
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool
    neo_objects: List[DashboardNeo]
    stats: FeedStats


AlertType = Literal["close_approach", "hazardous"]
AlertPriority = Literal["high", "medium", "low"]


class Alert(BaseModel):
    id: str
    type: AlertType
    title: str
    message: str
    date: Optional[str] = None
    time: str
    read: bool = False
    priority: AlertPriority
    neo_id: str


class AlertStateView(BaseModel):
    is_read: bool = False
    is_deleted: bool = False

    model_config = ConfigDict(from_attributes=True)


class ReadAllRequest(BaseModel):
    alert_ids: List[str | int] = Field(min_length=1)


class WatchlistCreate(BaseModel):
    neo_id: str
    neo_name: str

    @field_validator("neo_id", "neo_name", mode="before")
    @classmethod
    def _required_text(cls, value, info):
        text = "" if value is None else str(value).strip()
        if not text:
            raise ValueError(f"{info.field_name} is required")
        return text


class WatchlistItemRead(BaseModel):
    id: int
    neo_id: str
    neo_name: str
    added_at: datetime
    alert_enabled: bool

    model_config = ConfigDict(from_attributes=True)
