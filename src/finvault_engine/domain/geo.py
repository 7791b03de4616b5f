import math

EARTH_RADIUS_KM = 6371.0

# Two decimal places is roughly 1.1 km of latitude.
GRID_DECIMALS = 2


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def grid_cell(latitude: float, longitude: float, decimals: int = GRID_DECIMALS) -> tuple[float, float]:
    """
    Snap a coordinate to a fixed-resolution grid cell.

    This is plain rounding, not a clustering algorithm: two points a few metres
    apart can still fall into neighbouring cells.
    """
    return round(latitude, decimals), round(longitude, decimals)
