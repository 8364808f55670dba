"""Geometry and state core: diamond grid, zone assignments, viewport."""

from .assignments import (
    Assignment,
    AssignmentStore,
    CellConflictError,
    MalformedAssignmentsError,
)
from .grid import Cell, CellGrid, GridEngine, find_cell_at, generate, hit_test
from .types import GridParams, Group, Layer, Project, Zone
from .viewport import FitTransform, fit_transform, map_to_pixel, pixel_to_map

__all__ = [
    "Assignment",
    "AssignmentStore",
    "Cell",
    "CellConflictError",
    "CellGrid",
    "FitTransform",
    "GridEngine",
    "GridParams",
    "Group",
    "Layer",
    "MalformedAssignmentsError",
    "Project",
    "Zone",
    "find_cell_at",
    "fit_transform",
    "generate",
    "hit_test",
    "map_to_pixel",
    "pixel_to_map",
]
