"""Great-circle distance and grid-cell addressing helpers."""

from __future__ import annotations

import math
import random
from typing import List, Tuple

from .config import BoundingBox

EARTH_RADIUS_KM = 6371.0
# Rough length of one degree of latitude; used to size cell search blocks.
KM_PER_DEGREE = 111.0

Coordinates = Tuple[float, float]  # (latitude, longitude) in degrees
Cell = Tuple[int, int]


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """Return the great-circle distance between two coordinates in kilometers."""
    lat1, lng1 = a
    lat2, lng2 = b
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)
    h = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    )
    h = min(h, 1.0)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def cell_of(coords: Coordinates, cell_size_deg: float) -> Cell:
    lat, lng = coords
    return (math.floor(lat / cell_size_deg), math.floor(lng / cell_size_deg))


def cells_in_radius(cell: Cell, radius_cells: int) -> List[Cell]:
    """Return the square block of cells within Chebyshev distance ``radius_cells``."""
    row, col = cell
    return [
        (row + d_row, col + d_col)
        for d_row in range(-radius_cells, radius_cells + 1)
        for d_col in range(-radius_cells, radius_cells + 1)
    ]


def random_coordinates(bounds: BoundingBox, rng: random.Random) -> Coordinates:
    lat = bounds.lat_min + rng.random() * (bounds.lat_max - bounds.lat_min)
    lng = bounds.lng_min + rng.random() * (bounds.lng_max - bounds.lng_min)
    return (lat, lng)


__all__ = [
    "Cell",
    "Coordinates",
    "EARTH_RADIUS_KM",
    "KM_PER_DEGREE",
    "cell_of",
    "cells_in_radius",
    "haversine_km",
    "random_coordinates",
]
