"""Geographic primitives and pure numeric helpers.

No side effects, no imports from other project modules. Polyline encoding is
delegated to the ``polyline`` package.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import polyline


EARTH_RADIUS_M = 6_371_000.0
POLYLINE_PRECISION = 5


@dataclass(frozen=True)
class Coordinate:
    """Immutable WGS84 coordinate in decimal degrees."""

    latitude: float
    longitude: float


def round_half_away(value: float) -> int | float:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3).

    NaN and infinities come back unchanged; the serializer rejects them.
    """
    if not math.isfinite(value):
        return value
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def truncate(value: float) -> int | float:
    """``int(value)`` for finite values; NaN and infinities pass through."""
    if not math.isfinite(value):
        return value
    return int(value)


def haversine_distance(origin: Coordinate, destination: Coordinate) -> float:
    """
    Great-circle distance between two coordinates in metres.

    Args:
        origin:      Start point.
        destination: End point.

    Returns:
        Distance in metres, NaN when either point is not finite.
    """
    values = (origin.latitude, origin.longitude, destination.latitude, destination.longitude)
    if not all(math.isfinite(v) for v in values):
        return math.nan
    d_lat = math.radians(destination.latitude - origin.latitude)
    d_lon = math.radians(destination.longitude - origin.longitude)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(origin.latitude))
        * math.cos(math.radians(destination.latitude))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def encode_polyline(coordinates: tuple[Coordinate, ...] | list[Coordinate], precision: int = POLYLINE_PRECISION) -> str:
    """Encode coordinates with the encoded-polyline algorithm (lat, lng order)."""
    return polyline.encode([(c.latitude, c.longitude) for c in coordinates], precision)


def decode_polyline(encoded: str, precision: int = POLYLINE_PRECISION) -> list[Coordinate]:
    """Inverse of :func:`encode_polyline`. Raises ValueError on truncated input."""
    try:
        pairs = polyline.decode(encoded, precision)
    except IndexError:
        raise ValueError("Truncated polyline.") from None
    return [Coordinate(lat, lng) for lat, lng in pairs]


@dataclass(frozen=True)
class Polyline:
    """Ordered coordinate sequence with its encoded string form."""

    coordinates: tuple[Coordinate, ...]
    precision: int = POLYLINE_PRECISION

    @property
    def encoded(self) -> str:
        return encode_polyline(self.coordinates, self.precision)

    def __len__(self) -> int:
        return len(self.coordinates)
