from .risk import compute_risk_score, get_diameter_meters, get_min_miss_distance_km
from .schemas import (
    ApproachSummary,
    CloseApproach,
    DashboardNeo,
    DiameterSummary,
    FlatNeo,
    MissDistanceSummary,
    RawNeoRecord,
    VelocitySummary,
)

JPL_LOOKUP_URL = "https://ssd.jpl.nasa.gov/tools/sbdb_lookup.html#/?sstr={id}"


def jpl_url(neo: RawNeoRecord) -> str:
    return neo.nasa_jpl_url or JPL_LOOKUP_URL.format(id=neo.id)


def normalize_neo(neo: RawNeoRecord) -> FlatNeo:
    """Flat shape used by lookup and summary views."""
    approach = neo.first_approach
    return FlatNeo(
        id=neo.id,
        name=neo.name,
        nasa_jpl_url=jpl_url(neo),
        absolute_magnitude_h=neo.absolute_magnitude_h,
        is_potentially_hazardous=neo.is_potentially_hazardous_asteroid,
        is_sentry_object=neo.is_sentry_object,
        diameter_m=get_diameter_meters(neo),
        close_approach_date=approach.close_approach_date if approach else None,
        miss_distance_km=get_min_miss_distance_km(neo),
        relative_velocity_km_s=approach.relative_velocity.kilometers_per_second if approach else None,
        orbiting_body=approach.orbiting_body if approach else None,
        risk=compute_risk_score(neo),
    )


def _approach_summary(approach: CloseApproach) -> ApproachSummary:
    return ApproachSummary(
        close_approach_date=approach.close_approach_date,
        close_approach_date_full=approach.close_approach_date_full,
        epoch_date_close_approach=approach.epoch_date_close_approach,
        relative_velocity=VelocitySummary(
            km_per_sec=approach.relative_velocity.kilometers_per_second,
            km_per_hour=approach.relative_velocity.kilometers_per_hour,
        ),
        miss_distance=MissDistanceSummary(
            astronomical=approach.miss_distance.astronomical,
            lunar=approach.miss_distance.lunar,
            kilometers=approach.miss_distance.kilometers,
        ),
        orbiting_body=approach.orbiting_body or "Earth",
    )


def normalize_neo_for_dashboard(neo: RawNeoRecord) -> DashboardNeo:
    """Nested shape for the dashboard feed; keeps every approach event in order."""
    km = neo.estimated_diameter.kilometers
    m = neo.estimated_diameter.meters
    return DashboardNeo(
        id=neo.id,
        name=neo.name,
        nasa_jpl_url=jpl_url(neo),
        absolute_magnitude_h=neo.absolute_magnitude_h,
        is_potentially_hazardous=neo.is_potentially_hazardous_asteroid,
        is_sentry_object=neo.is_sentry_object,
        estimated_diameter=DiameterSummary(
            min_km=km.estimated_diameter_min or 0.0,
            max_km=km.estimated_diameter_max or 0.0,
            min_m=m.estimated_diameter_min or 0.0,
            max_m=m.estimated_diameter_max or 0.0,
        ),
        close_approach_data=[_approach_summary(a) for a in neo.close_approach_data],
        risk=compute_risk_score(neo),
    )
