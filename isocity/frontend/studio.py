"""Application controller tying the grid, assignments and renderer together.

``Studio`` owns one ``GridEngine``, one ``AssignmentStore`` and the
current ``ViewState`` (selection, hover, display options) for a loaded
project. The desktop front end (``app.py``) translates widget events into
the ``on_*`` methods below and redraws by calling ``render`` afterwards;
the studio never redraws by itself. Each ``on_*`` method returns whether
anything visible changed, so callers can skip redundant redraws.

User-facing feedback goes through a ``StatusSink`` the consumer supplies
(the app shows it in a status bar).

Pointer input goes canvas pixel -> ``fit_transform`` -> map point ->
``find_cell_at``; ``render`` uses the same ``fit_transform`` so hit
testing always matches what was drawn.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

import structlog

from ..engine.assignments import AssignmentStore, CellConflictError
from ..engine.grid import Cell, CellGrid, GridEngine, find_cell_at
from ..engine.types import Group, Project, Zone
from ..engine.viewport import FitTransform, fit_transform
from .renderer import Frame, SceneRenderer, ViewState
from .session_io import SessionData, build_session, parse_session

logger = structlog.get_logger(__name__)


class StatusSink(Protocol):
    def show_status(self, message: str) -> None: ...


class _NullStatus:
    def show_status(self, message: str) -> None:
        pass


@dataclass(frozen=True)
class StudioStats:
    assigned_zones: int
    total_zones: int
    used_cells: int
    total_cells: int
    selected_cells: int


@dataclass(frozen=True)
class GroupListing:
    """One group in the zone list, restricted to zones matching the filter."""

    group: Group
    zones: tuple[Zone, ...]
    assigned: int


def filter_zones(
    project: Project, store: AssignmentStore, text: str = ""
) -> list[GroupListing]:
    """Case-insensitive match on zone name, zone id or group name."""
    needle = text.strip().lower()
    listings = []
    for group in project.groups:
        if not needle or needle in group.name.lower():
            zones = group.zones
        else:
            zones = tuple(
                z
                for z in group.zones
                if needle in z.name.lower() or needle in z.id.lower()
            )
        if not zones:
            continue
        assigned = sum(1 for z in zones if store.is_assigned(z.id))
        listings.append(GroupListing(group, zones, assigned))
    return listings


class Studio:
    def __init__(
        self,
        project: Project,
        grid: GridEngine | None = None,
        store: AssignmentStore | None = None,
        status: StatusSink | None = None,
    ):
        self.project = project
        self.grid = grid or GridEngine(project.grid_defaults)
        self.store = store or AssignmentStore()
        self.status = status or _NullStatus()
        self.view = ViewState()
        self.focused_zone: str | None = None

    # -- geometry --

    def cells(self) -> CellGrid:
        return self.grid.cells(self.project.map_w, self.project.map_h)

    def transform(self, canvas_w: float, canvas_h: float) -> FitTransform:
        return fit_transform(
            canvas_w, canvas_h, self.project.map_w, self.project.map_h
        )

    def cell_at_pixel(
        self, px: float, py: float, canvas_w: float, canvas_h: float
    ) -> Cell | None:
        mx, my = self.transform(canvas_w, canvas_h).pixel_to_map(px, py)
        return find_cell_at(mx, my, self.cells())

    def render(
        self, canvas_w: int, canvas_h: int, supersample: int = 1
    ) -> Frame:
        renderer = SceneRenderer(self.project, supersample=supersample)
        return renderer.render(
            canvas_w, canvas_h, self.grid, self.store, self.view
        )

    def stats(self) -> StudioStats:
        return StudioStats(
            assigned_zones=self.store.assigned_count,
            total_zones=self.project.total_zones,
            used_cells=self.store.used_cell_count,
            total_cells=len(self.cells()),
            selected_cells=len(self.view.selected_cells),
        )

    def zone_listing(self, text: str = "") -> list[GroupListing]:
        return filter_zones(self.project, self.store, text)

    # -- selection --

    def on_cell_click(
        self, cell_id: int | None, keep_selection: bool = False
    ) -> bool:
        """Toggle an unassigned cell in the selection.

        Clicking an assigned cell only reports its owner. Clicking empty
        space clears the selection unless ``keep_selection`` is set.
        """
        view = self.view
        if cell_id is None:
            if keep_selection:
                return False
            view.selected_cells.clear()
            self.focused_zone = None
            self.status.show_status("Selection cleared")
            return True

        zone_id = self.store.get_zone_for_cell(cell_id)
        if zone_id is not None:
            self.status.show_status(
                f'Cell #{cell_id} -> "{self.project.zone_name(zone_id)}"'
            )
            return False

        if cell_id in view.selected_cells:
            view.selected_cells.discard(cell_id)
        else:
            view.selected_cells.add(cell_id)
        self.focused_zone = None
        self.status.show_status(f"Selected: {len(view.selected_cells)} cells")
        return True

    def on_cell_hover(self, cell_id: int | None) -> bool:
        if cell_id == self.view.hovered_cell:
            return False
        self.view.hovered_cell = cell_id
        return True

    def clear_selection(self) -> bool:
        changed = bool(self.view.selected_cells or self.focused_zone)
        self.view.selected_cells.clear()
        self.focused_zone = None
        self.status.show_status("Selection cleared")
        return changed

    def on_zone_highlight(self, zone_id: str) -> bool:
        """Select an assigned zone's cells and focus it for deletion."""
        assignment = self.store.get_assignment(zone_id)
        if assignment is None:
            return False
        self.view.selected_cells = set(assignment.cell_ids)
        self.focused_zone = zone_id
        self.status.show_status(
            f'"{self.project.zone_name(zone_id)}" - '
            f"{len(assignment.cell_ids)} cells. Del to unassign."
        )
        return True

    # -- assignment --

    def on_assign_request(
        self,
        zone_id: str,
        group_id: str,
        cell_ids: Iterable[int] | None = None,
    ) -> bool:
        """Assign ``cell_ids`` (default: the current selection) to a zone."""
        from_selection = cell_ids is None
        cells = set(self.view.selected_cells if from_selection else cell_ids)
        name = self.project.zone_name(zone_id)
        try:
            assigned = self.store.assign(zone_id, group_id, cells)
        except CellConflictError as e:
            logger.info(
                "assignment rejected",
                zone=zone_id,
                conflicts=sorted(e.conflicts),
            )
            self.status.show_status(
                f'Cannot assign "{name}": {len(e.conflicts)} cells belong '
                "to other zones"
            )
            return False
        if not assigned:
            return False
        if from_selection:
            self.view.selected_cells = set()
        logger.info(
            "zone assigned", zone=zone_id, group=group_id, cells=len(cells)
        )
        self.status.show_status(f'"{name}" assigned ({len(cells)} cells)')
        return True

    def on_unassign_request(self, zone_id: str) -> bool:
        if not self.store.unassign(zone_id):
            return False
        if self.focused_zone == zone_id:
            self.focused_zone = None
        logger.info("zone unassigned", zone=zone_id)
        self.status.show_status(
            f'"{self.project.zone_name(zone_id)}" unassigned'
        )
        return True

    def on_delete_focused(self) -> bool:
        """Unassign the focused zone and clear the selection."""
        zone_id = self.focused_zone
        if zone_id is None:
            return False
        self.on_unassign_request(zone_id)
        self.view.selected_cells.clear()
        self.focused_zone = None
        return True

    def on_undo_request(self) -> str | None:
        zone_id = self.store.undo_last()
        if zone_id is None:
            return None
        logger.info("assignment undone", zone=zone_id)
        self.status.show_status(
            f'Undo: "{self.project.zone_name(zone_id)}" unassigned'
        )
        return zone_id

    def on_reset_request(self) -> None:
        self.store.reset_all()
        self.view.selected_cells.clear()
        self.focused_zone = None
        logger.info("assignments reset")
        self.status.show_status("All assignments reset")

    # -- display options --

    def set_grid_params(self, **changes) -> None:
        """Update grid fields (``cell_w``, ``cell_h``, ``off_x``, ``off_y``).

        Cell ids are renumbered, so the selection and hover are dropped.
        """
        self.grid.update(**changes)
        self.view.selected_cells.clear()
        self.view.hovered_cell = None
        self.focused_zone = None

    def set_grid_opacity(self, opacity: float) -> None:
        self.view.grid_opacity = max(0.0, min(1.0, opacity))

    def set_show_numbers(self, show: bool) -> None:
        self.view.show_numbers = show

    def set_layer_visible(self, layer_id: str, visible: bool) -> bool:
        for layer in self.project.layers:
            if layer.id == layer_id:
                layer.visible = visible
                return True
        return False

    def set_layer_opacity(self, layer_id: str, opacity: float) -> bool:
        for layer in self.project.layers:
            if layer.id == layer_id:
                layer.opacity = max(0.0, min(1.0, opacity))
                return True
        return False

    # -- sessions --

    def export_session(self) -> dict:
        session = build_session(self.project.name, self.grid.params, self.store)
        logger.info("session exported", zones=self.store.assigned_count)
        self.status.show_status(
            f"Exported {self.store.assigned_count} zone assignments"
        )
        return session

    def import_session(self, data: dict | SessionData) -> None:
        """Apply a session. Raises SessionParseError before changing anything."""
        session = data if isinstance(data, SessionData) else parse_session(data)
        if session.grid_params:
            self.grid.set_params(session.apply_grid(self.grid.params))
            self.view.hovered_cell = None
        if session.assignments is not None:
            self.store.load(session.assignments)
        self.view.selected_cells.clear()
        self.focused_zone = None
        unknown = [
            zid
            for zid, _ in self.store.items()
            if self.project.zone(zid) is None
        ]
        if unknown:
            logger.warning("imported zones not in project", zones=unknown)
        logger.info(
            "session imported",
            project=session.project_name,
            zones=self.store.assigned_count,
        )
        self.status.show_status(
            f"Imported {self.store.assigned_count} zone assignments"
        )
