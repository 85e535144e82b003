"""Risk scoring for upstream NEO records.

The score is a weighted sum of three proximity/size/speed terms, each scaled to
[0, 1], plus a bump and a floor for upstream-flagged hazardous objects:

    distance  50 pts  linear from 0 LD (50) down to DISTANCE_WINDOW_LD (0)
    size      30 pts  linear up to SIZE_REFERENCE_M
    velocity  20 pts  linear up to VELOCITY_REFERENCE_KM_S
    hazardous +10 pts, and never below HAZARDOUS_FLOOR

Distance uses the closest approach and velocity the fastest one, each taken
over all approaches independently. Missing inputs contribute nothing.
``risk_label`` is the only place the label thresholds live; both per-record
annotation and summary bucketing go through it.
"""
from typing import Optional

from .schemas import CloseApproach, RawNeoRecord, RiskScore

LUNAR_DISTANCE_KM = 384_400.0
ASTRONOMICAL_UNIT_KM = 149_597_870.7

DISTANCE_WINDOW_LD = 20.0
SIZE_REFERENCE_M = 1000.0
VELOCITY_REFERENCE_KM_S = 30.0

DISTANCE_WEIGHT = 50.0
SIZE_WEIGHT = 30.0
VELOCITY_WEIGHT = 20.0
HAZARDOUS_BONUS = 10.0
HAZARDOUS_FLOOR = 40

MEDIUM_THRESHOLD = 40
HIGH_THRESHOLD = 70


def approach_miss_km(approach: CloseApproach) -> Optional[float]:
    miss = approach.miss_distance
    if miss.kilometers is not None:
        return miss.kilometers
    if miss.lunar is not None:
        return miss.lunar * LUNAR_DISTANCE_KM
    if miss.astronomical is not None:
        return miss.astronomical * ASTRONOMICAL_UNIT_KM
    return None


def _closest_approach(neo: RawNeoRecord) -> Optional[CloseApproach]:
    closest = None
    closest_km = float("inf")
    for approach in neo.close_approach_data:
        km = approach_miss_km(approach)
        if km is not None and km < closest_km:
            closest, closest_km = approach, km
    return closest


def get_min_miss_distance_km(neo: RawNeoRecord) -> Optional[float]:
    """Smallest miss distance across every approach event, or None."""
    closest = _closest_approach(neo)
    return approach_miss_km(closest) if closest else None


def get_max_velocity_km_s(neo: RawNeoRecord) -> Optional[float]:
    """Fastest relative velocity across every approach event, or None."""
    speeds = [
        a.relative_velocity.kilometers_per_second
        for a in neo.close_approach_data
        if a.relative_velocity.kilometers_per_second is not None
    ]
    return max(speeds) if speeds else None


def get_diameter_meters(neo: RawNeoRecord) -> float:
    """Minimum estimated diameter in meters, 0 when unknown."""
    diameter = neo.estimated_diameter
    if diameter.meters.estimated_diameter_min is not None:
        return max(diameter.meters.estimated_diameter_min, 0.0)
    if diameter.kilometers.estimated_diameter_min is not None:
        return max(diameter.kilometers.estimated_diameter_min * 1000.0, 0.0)
    return 0.0


def risk_label(score: int) -> str:
    if score >= HIGH_THRESHOLD:
        return "High"
    if score >= MEDIUM_THRESHOLD:
        return "Medium"
    return "Low"


def _unit(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def compute_risk_score(neo: RawNeoRecord) -> RiskScore:
    points = 0.0

    miss_km = get_min_miss_distance_km(neo)
    if miss_km is not None:
        lunar = miss_km / LUNAR_DISTANCE_KM
        points += DISTANCE_WEIGHT * _unit(1.0 - lunar / DISTANCE_WINDOW_LD)

    velocity = get_max_velocity_km_s(neo)
    if velocity is not None:
        points += VELOCITY_WEIGHT * _unit(velocity / VELOCITY_REFERENCE_KM_S)

    points += SIZE_WEIGHT * _unit(get_diameter_meters(neo) / SIZE_REFERENCE_M)

    score = int(round(points))
    if neo.is_potentially_hazardous_asteroid:
        score = max(score + int(HAZARDOUS_BONUS), HAZARDOUS_FLOOR)
    score = min(max(score, 0), 100)
    return RiskScore(score=score, label=risk_label(score))
