"""Tests for the studio controller."""

import pytest

from ..engine.types import Project
from .session_io import SessionParseError, parse_session
from .studio import Studio, filter_zones


class RecordingStatus:
    def __init__(self):
        self.messages = []

    def show_status(self, message):
        self.messages.append(message)

    @property
    def last(self):
        return self.messages[-1] if self.messages else None


def _project():
    return Project.from_dict(
        {
            "name": "Harbor",
            "mapW": 140,
            "mapH": 70,
            "layers": [
                {"id": "bg", "name": "Background", "src": "bg.png"},
            ],
            "groups": [
                {
                    "id": "docks",
                    "name": "Docks",
                    "color": "#4FC3F7",
                    "zones": [
                        {"id": "pier_1", "name": "Pier One"},
                        {"id": "pier_2", "name": "Pier Two"},
                    ],
                },
                {
                    "id": "market",
                    "name": "Market",
                    "color": "#E57373",
                    "zones": [{"id": "fish", "name": "Fish Hall"}],
                },
            ],
        }
    )


@pytest.fixture
def status():
    return RecordingStatus()


@pytest.fixture
def studio(status):
    return Studio(_project(), status=status)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


class TestSelection:
    def test_click_toggles_unassigned_cell(self, studio, status):
        assert studio.on_cell_click(9)
        assert studio.view.selected_cells == {9}
        assert status.last == "Selected: 1 cells"
        assert studio.on_cell_click(9)
        assert studio.view.selected_cells == set()
        assert status.last == "Selected: 0 cells"

    def test_click_assigned_cell_reports_owner(self, studio, status):
        studio.store.assign("pier_1", "docks", {9})
        assert not studio.on_cell_click(9)
        assert studio.view.selected_cells == set()
        assert status.last == 'Cell #9 -> "Pier One"'

    def test_click_cell_of_unknown_zone_reports_id(self, studio, status):
        studio.store.assign("ghost", "docks", {4})
        studio.on_cell_click(4)
        assert status.last == 'Cell #4 -> "ghost"'

    def test_click_empty_space_clears(self, studio, status):
        studio.on_cell_click(9)
        studio.on_cell_click(10)
        assert studio.on_cell_click(None)
        assert studio.view.selected_cells == set()
        assert status.last == "Selection cleared"

    def test_click_empty_space_can_keep_selection(self, studio):
        studio.on_cell_click(9)
        assert not studio.on_cell_click(None, keep_selection=True)
        assert studio.view.selected_cells == {9}

    def test_hover_reports_changes_only(self, studio):
        assert studio.on_cell_hover(3)
        assert not studio.on_cell_hover(3)
        assert studio.on_cell_hover(None)
        assert studio.view.hovered_cell is None

    def test_clear_selection(self, studio, status):
        assert not studio.clear_selection()
        studio.on_cell_click(2)
        assert studio.clear_selection()
        assert status.last == "Selection cleared"

    def test_cell_at_pixel_matches_render_transform(self, studio):
        frame = studio.render(280, 140)
        px, py = frame.transform.map_to_pixel(35, 17.5)
        assert studio.cell_at_pixel(px, py, 280, 140).id == 9
        assert studio.transform(280, 140) == frame.transform


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------


class TestAssignment:
    def test_assign_from_selection(self, studio, status):
        studio.on_cell_click(8)
        studio.on_cell_click(9)
        assert studio.on_assign_request("pier_1", "docks")
        assert studio.store.get_assignment("pier_1").cell_ids == {8, 9}
        assert studio.view.selected_cells == set()
        assert status.last == '"Pier One" assigned (2 cells)'

    def test_assign_explicit_cells_keeps_selection(self, studio):
        studio.on_cell_click(3)
        assert studio.on_assign_request("fish", "market", [11, 12])
        assert studio.view.selected_cells == {3}

    def test_assign_with_empty_selection_is_noop(self, studio):
        assert not studio.on_assign_request("pier_1", "docks")
        assert not studio.store.is_assigned("pier_1")

    def test_conflict_reported_not_raised(self, studio, status):
        studio.on_assign_request("pier_1", "docks", {8, 9})
        studio.view.selected_cells = {9, 10}
        assert not studio.on_assign_request("pier_2", "docks")
        assert not studio.store.is_assigned("pier_2")
        assert studio.view.selected_cells == {9, 10}
        assert status.last.startswith('Cannot assign "Pier Two"')

    def test_unassign(self, studio, status):
        studio.on_assign_request("fish", "market", {1})
        assert studio.on_unassign_request("fish")
        assert not studio.store.is_assigned("fish")
        assert status.last == '"Fish Hall" unassigned'
        assert not studio.on_unassign_request("fish")

    def test_highlight_then_delete(self, studio, status):
        studio.on_assign_request("pier_2", "docks", {5, 6})
        assert studio.on_zone_highlight("pier_2")
        assert studio.view.selected_cells == {5, 6}
        assert studio.focused_zone == "pier_2"
        assert "Pier Two" in status.last
        assert studio.on_delete_focused()
        assert not studio.store.is_assigned("pier_2")
        assert studio.view.selected_cells == set()
        assert studio.focused_zone is None
        assert not studio.on_delete_focused()

    def test_highlight_unassigned_zone_is_noop(self, studio):
        assert not studio.on_zone_highlight("pier_1")
        assert studio.focused_zone is None

    def test_undo(self, studio, status):
        studio.on_assign_request("pier_1", "docks", {1})
        studio.on_assign_request("fish", "market", {2})
        assert studio.on_undo_request() == "fish"
        assert status.last == 'Undo: "Fish Hall" unassigned'
        assert studio.on_undo_request() == "pier_1"
        assert studio.on_undo_request() is None

    def test_reset(self, studio, status):
        studio.on_assign_request("pier_1", "docks", {1})
        studio.on_cell_click(7)
        studio.on_reset_request()
        assert studio.store.assigned_count == 0
        assert studio.store.undo_depth == 0
        assert studio.view.selected_cells == set()
        assert status.last == "All assignments reset"


# ---------------------------------------------------------------------------
# Display options and stats
# ---------------------------------------------------------------------------


class TestDisplay:
    def test_grid_change_drops_selection_and_hover(self, studio):
        before = len(studio.cells())
        studio.store.assign("pier_1", "docks", {9})
        studio.on_cell_click(3)
        studio.on_cell_hover(4)
        studio.set_grid_params(cell_w=35, cell_h=17.5)
        assert studio.grid.params.cell_w == 35
        assert len(studio.cells()) > before
        assert studio.view.selected_cells == set()
        assert studio.view.hovered_cell is None
        # Assignments keep their raw ids.
        assert studio.store.get_assignment("pier_1").cell_ids == {9}

    def test_invalid_grid_change_rejected(self, studio):
        with pytest.raises(ValueError):
            studio.set_grid_params(cell_w=0)
        assert studio.grid.params.cell_w == 70

    def test_grid_opacity_clamped(self, studio):
        studio.set_grid_opacity(1.7)
        assert studio.view.grid_opacity == 1.0
        studio.set_grid_opacity(-1)
        assert studio.view.grid_opacity == 0.0

    def test_layer_controls(self, studio):
        assert studio.set_layer_visible("bg", False)
        assert studio.set_layer_opacity("bg", 0.25)
        layer = studio.project.layers[0]
        assert (layer.visible, layer.opacity) == (False, 0.25)
        assert not studio.set_layer_visible("missing", True)
        assert not studio.set_layer_opacity("missing", 0.5)

    def test_show_numbers(self, studio):
        studio.set_show_numbers(False)
        assert studio.view.show_numbers is False

    def test_stats(self, studio):
        studio.on_assign_request("pier_1", "docks", {1, 2, 3})
        studio.on_cell_click(9)
        stats = studio.stats()
        assert stats.assigned_zones == 1
        assert stats.total_zones == 3
        assert stats.used_cells == 3
        assert stats.total_cells == 25
        assert stats.selected_cells == 1


class TestFilterZones:
    def test_no_filter_lists_everything(self, studio):
        studio.store.assign("pier_2", "docks", {1})
        listing = filter_zones(studio.project, studio.store)
        assert [g.group.id for g in listing] == ["docks", "market"]
        assert listing[0].assigned == 1
        assert len(listing[0].zones) == 2

    def test_matches_zone_name_case_insensitive(self, studio):
        listing = studio.zone_listing("pier TWO")
        assert [z.id for g in listing for z in g.zones] == ["pier_2"]

    def test_matches_zone_id(self, studio):
        listing = studio.zone_listing("fish")
        assert [z.id for g in listing for z in g.zones] == ["fish"]

    def test_group_name_match_lists_whole_group(self, studio):
        listing = studio.zone_listing("docks")
        assert [g.group.id for g in listing] == ["docks"]
        assert len(listing[0].zones) == 2

    def test_no_match(self, studio):
        assert studio.zone_listing("zzz") == []


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class TestSessions:
    def test_export_shape(self, studio, status):
        studio.on_assign_request("pier_1", "docks", {3, 1})
        session = studio.export_session()
        assert session == {
            "projectName": "Harbor",
            "gridParams": {"cellW": 70, "cellH": 35, "offX": 0, "offY": 0},
            "assignments": {"pier_1": {"groupId": "docks", "cellIds": [1, 3]}},
        }
        assert status.last == "Exported 1 zone assignments"

    def test_import_replaces_assignments(self, studio, status):
        studio.on_assign_request("pier_1", "docks", {1})
        studio.on_cell_click(9)
        studio.import_session(
            {"assignments": {"fish": {"groupId": "market", "cellIds": [4, 5]}}}
        )
        assert not studio.store.is_assigned("pier_1")
        assert studio.store.get_assignment("fish").cell_ids == {4, 5}
        assert studio.store.undo_depth == 0
        assert studio.view.selected_cells == set()
        assert status.last == "Imported 1 zone assignments"

    def test_partial_grid_import_keeps_other_fields(self, studio):
        studio.set_grid_params(off_x=5)
        studio.on_assign_request("pier_1", "docks", {1})
        studio.import_session({"gridParams": {"cellW": 50}})
        params = studio.grid.params
        assert (params.cell_w, params.cell_h, params.off_x) == (50, 35, 5)
        # No assignments key: existing assignments stay.
        assert studio.store.is_assigned("pier_1")

    def test_import_accepts_parsed_session(self, studio):
        session = parse_session({"gridParams": {"offY": 3}})
        studio.import_session(session)
        assert studio.grid.params.off_y == 3

    def test_unknown_zones_are_kept(self, studio):
        studio.import_session(
            {"assignments": {"elsewhere": {"groupId": "x", "cellIds": [2]}}}
        )
        assert studio.store.is_assigned("elsewhere")

    @pytest.mark.parametrize(
        "data",
        [
            {"gridParams": {"cellW": -1}},
            {
                "gridParams": {"cellW": 40},
                "assignments": {"fish": {"cellIds": [1]}},
            },
            "not a session",
        ],
    )
    def test_failed_import_changes_nothing(self, studio, status, data):
        studio.on_assign_request("pier_1", "docks", {1, 2})
        before = studio.export_session()
        studio.on_cell_click(9)
        with pytest.raises(SessionParseError):
            studio.import_session(data)
        assert studio.export_session() == before
        assert studio.view.selected_cells == {9}
