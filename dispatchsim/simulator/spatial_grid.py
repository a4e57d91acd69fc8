"""Cell-bucket index used to narrow proximity queries."""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Set

from .config import BoundingBox, ConfigurationError
from .entities import Responder
from .geometry import (
    KM_PER_DEGREE,
    Cell,
    Coordinates,
    cell_of,
    cells_in_radius,
    haversine_km,
)

# Keep the longitude correction finite near the poles.
_MAX_LATITUDE = 89.0


class SpatialGrid:
    """Maps grid cells to the ids of the items located inside them.

    The grid is only a coarse pre-filter: a square block of cells is a
    superset of the circular neighborhood, so callers must still apply an
    exact distance check to the candidates.
    """

    def __init__(self, cell_size_deg: float, bounds: BoundingBox | None = None) -> None:
        if cell_size_deg <= 0:
            raise ConfigurationError("cell_size_deg must be positive.")
        self.cell_size_deg = cell_size_deg
        self.bounds = bounds
        self.cells: Dict[Cell, Set[int]] = defaultdict(set)
        self._membership: Dict[int, Cell] = {}

    @classmethod
    def from_responders(
        cls,
        responders: Iterable[Responder],
        cell_size_deg: float,
        bounds: BoundingBox | None = None,
    ) -> "SpatialGrid":
        grid = cls(cell_size_deg, bounds)
        for responder in responders:
            grid.insert(responder.id, responder.coordinates)
        return grid

    def __len__(self) -> int:
        return len(self._membership)

    def __contains__(self, item_id: int) -> bool:
        return item_id in self._membership

    def cell_for(self, coords: Coordinates) -> Cell:
        self._check_bounds(coords)
        return cell_of(coords, self.cell_size_deg)

    def cell_of_item(self, item_id: int) -> Cell | None:
        return self._membership.get(item_id)

    def insert(self, item_id: int, coords: Coordinates) -> Cell:
        if item_id in self._membership:
            self.remove(item_id)
        cell = self.cell_for(coords)
        self.cells[cell].add(item_id)
        self._membership[item_id] = cell
        return cell

    def remove(self, item_id: int) -> None:
        cell = self._membership.pop(item_id, None)
        if cell is None:
            return
        members = self.cells.get(cell)
        if members is not None:
            members.discard(item_id)
            if not members:
                del self.cells[cell]

    def radius_in_cells(self, max_distance_km: float, latitude: float = 0.0) -> int:
        """Number of cells to search in each direction to cover ``max_distance_km``.

        One degree of longitude shrinks with cos(latitude), so the block is
        widened accordingly to stay a superset of the true neighborhood.
        """
        span_deg = max_distance_km / KM_PER_DEGREE
        widest = min(abs(latitude) + span_deg, _MAX_LATITUDE)
        km_per_cell = self.cell_size_deg * KM_PER_DEGREE * math.cos(math.radians(widest))
        return max(int(math.ceil(max_distance_km / km_per_cell)), 0)

    def candidates(self, coords: Coordinates, max_distance_km: float) -> List[int]:
        """Return ids in the cell block around ``coords``, in ascending order."""
        if not self._membership:
            return []
        center = cell_of(coords, self.cell_size_deg)
        radius = self.radius_in_cells(max_distance_km, coords[0])
        found: List[int] = []
        for cell in cells_in_radius(center, radius):
            members = self.cells.get(cell)
            if members:
                found.extend(members)
        found.sort()
        return found

    def _check_bounds(self, coords: Coordinates) -> None:
        lat, lng = coords
        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise ConfigurationError(f"Coordinates {coords!r} are not finite.")
        if self.bounds is not None and not self.bounds.contains(lat, lng):
            raise ConfigurationError(
                f"Coordinates ({lat:.5f}, {lng:.5f}) fall outside the configured bounds."
            )


def nearby_responders(
    coords: Coordinates,
    responders: Mapping[int, Responder],
    grid: SpatialGrid,
    max_distance_km: float,
    now: float,
) -> List[Responder]:
    """Return free responders within ``max_distance_km`` of ``coords``, by id."""
    nearby: List[Responder] = []
    for responder_id in grid.candidates(coords, max_distance_km):
        responder = responders[responder_id]
        if not responder.is_free(now):
            continue
        if haversine_km(coords, responder.coordinates) <= max_distance_km:
            nearby.append(responder)
    return nearby


__all__ = ["SpatialGrid", "nearby_responders"]
