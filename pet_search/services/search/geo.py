"""
Geo radius filtering for place results.

Pure functions: inputs are never mutated, annotated copies are returned.
"""

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional


EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometers."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Clamp against floating point drift just above 1
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def _coordinate(candidate: Mapping[str, Any], key: str) -> Optional[float]:
    value = candidate.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def filter_within_radius(
    candidates: Iterable[Mapping[str, Any]],
    center_lat: float,
    center_lng: float,
    radius_km: float
) -> List[Dict[str, Any]]:
    """
    Keep candidates within radius_km of the center.

    Candidates need 'latitude' and 'longitude'; those missing either are
    dropped. Each kept candidate is copied with a 'distance_km' key. Input
    order is preserved.

    Args:
        candidates: Mappings with latitude/longitude
        center_lat: Latitude of the center point
        center_lng: Longitude of the center point
        radius_km: Inclusive radius in kilometers

    Returns:
        Annotated copies of the candidates inside the radius
    """
    kept: List[Dict[str, Any]] = []

    for candidate in candidates:
        lat = _coordinate(candidate, "latitude")
        lng = _coordinate(candidate, "longitude")
        if lat is None or lng is None:
            continue

        distance = haversine_km(center_lat, center_lng, lat, lng)
        if distance > radius_km:
            continue

        annotated = dict(candidate)
        annotated["distance_km"] = distance
        kept.append(annotated)

    return kept
