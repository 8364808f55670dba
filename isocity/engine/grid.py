"""Diamond grid generation and point location.

The map is tiled with 2:1 isometric diamonds. Rows are ``cell_h / 2``
apart and odd rows are shifted right by half a cell, so each diamond's
four neighbours share an edge with it and the tiling has no gaps. Cells
are numbered from 1 in row-major order (top row first, each row left to
right); the numbering is only meaningful for one set of grid parameters
and one map size.

Iteration runs ``GRID_PADDING`` rows/columns past every edge of the map
so that offsets never leave an uncovered strip, then drops any cell whose
center lies more than a full cell outside the map.

``GridEngine`` owns the current ``GridParams`` and caches the last
generated ``CellGrid``. The cache is keyed by an equality check over the
parameters plus map size and is also cleared whenever the parameters are
replaced, so a read after a mutation never sees stale geometry.
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np

from .types import GridParams

GRID_PADDING = 2


@dataclass(frozen=True)
class Cell:
    """One diamond. ``(x, y)`` is the top-left of its bounding box."""

    id: int
    x: float
    y: float
    w: float
    h: float
    cx: float
    cy: float

    def corners(self) -> list[tuple[float, float]]:
        """Diamond vertices: top, right, bottom, left."""
        return [
            (self.cx, self.y),
            (self.x + self.w, self.cy),
            (self.cx, self.y + self.h),
            (self.x, self.cy),
        ]


def hit_test(px: float, py: float, cell: Cell) -> bool:
    """True if ``(px, py)`` lies inside or on the edge of the diamond."""
    if cell.w <= 0 or cell.h <= 0:
        return False
    dx = abs(px - cell.cx) / (cell.w / 2)
    dy = abs(py - cell.cy) / (cell.h / 2)
    return dx + dy <= 1


class CellGrid(Sequence):
    """Immutable ordered cell list with id lookup and vectorized hit testing."""

    def __init__(self, cells: Iterable[Cell]):
        self._cells = tuple(cells)
        self._by_id = {c.id: c for c in self._cells}
        self._arrays: tuple[np.ndarray, ...] | None = None

    def __len__(self) -> int:
        return len(self._cells)

    def __getitem__(self, index):
        return self._cells[index]

    def __iter__(self):
        return iter(self._cells)

    def __repr__(self) -> str:
        return f"CellGrid({len(self._cells)} cells)"

    def by_id(self, cell_id: int) -> Cell | None:
        return self._by_id.get(cell_id)

    @property
    def ids(self) -> list[int]:
        return [c.id for c in self._cells]

    def _center_arrays(self) -> tuple[np.ndarray, ...]:
        if self._arrays is None:
            data = np.array(
                [(c.cx, c.cy, c.w / 2, c.h / 2) for c in self._cells],
                dtype=np.float64,
            ).reshape(-1, 4)
            self._arrays = (data[:, 0], data[:, 1], data[:, 2], data[:, 3])
        return self._arrays

    def locate(self, mx: float, my: float) -> Cell | None:
        """First cell (in grid order) whose diamond contains the point."""
        if not self._cells:
            return None
        cx, cy, hw, hh = self._center_arrays()
        # Zero-size cells produce inf/nan here and never match.
        with np.errstate(divide="ignore", invalid="ignore"):
            dist = np.abs(mx - cx) / hw + np.abs(my - cy) / hh
        hits = np.flatnonzero(dist <= 1)
        if hits.size == 0:
            return None
        return self._cells[int(hits[0])]


def generate(map_w: float, map_h: float, params: GridParams) -> CellGrid:
    """Generate the diamond cells covering a ``map_w`` x ``map_h`` map."""
    cell_w = params.cell_w
    cell_h = params.cell_h
    row_h = cell_h / 2
    pad = GRID_PADDING

    cells = []
    next_id = 1
    num_cols = math.ceil(map_w / cell_w) + pad * 2
    for row in range(-pad, math.ceil(map_h / row_h) + pad):
        stagger = cell_w / 2 if row % 2 == 1 else 0.0
        y = row * row_h + params.off_y
        cy = y + cell_h / 2
        if not (-cell_h < cy < map_h + cell_h):
            continue
        for col in range(-pad, num_cols):
            x = col * cell_w + stagger + params.off_x
            cx = x + cell_w / 2
            if -cell_w < cx < map_w + cell_w:
                cells.append(Cell(next_id, x, y, cell_w, cell_h, cx, cy))
                next_id += 1
    return CellGrid(cells)


def find_cell_at(mx: float, my: float, cells: Iterable[Cell]) -> Cell | None:
    """Return the first cell in ``cells`` containing the point, or None."""
    if isinstance(cells, CellGrid):
        return cells.locate(mx, my)
    for cell in cells:
        if hit_test(mx, my, cell):
            return cell
    return None


class GridEngine:
    """Current grid parameters plus a one-entry cache of generated cells."""

    def __init__(self, params: GridParams | None = None):
        self._params = params or GridParams()
        self._cache_key: tuple[GridParams, float, float] | None = None
        self._cache: CellGrid | None = None

    @property
    def params(self) -> GridParams:
        return self._params

    def set_params(self, params: GridParams) -> None:
        self._params = params
        self.invalidate()

    def update(self, **changes) -> GridParams:
        """Replace individual fields (``cell_w=..., off_x=...``) and invalidate."""
        self.set_params(dataclasses.replace(self._params, **changes))
        return self._params

    def invalidate(self) -> None:
        self._cache_key = None
        self._cache = None

    def cells(self, map_w: float, map_h: float) -> CellGrid:
        key = (self._params, map_w, map_h)
        if self._cache is not None and self._cache_key == key:
            return self._cache
        self._cache = generate(map_w, map_h, self._params)
        self._cache_key = key
        return self._cache
