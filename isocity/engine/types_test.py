"""Tests for project and grid parameter types."""

import math

import pytest
from PIL import Image

from .types import GridParams, Group, Layer, Project

SAMPLE_PROJECT = {
    "name": "Mapo",
    "mapW": 1400,
    "mapH": 1000,
    "layers": [
        {
            "id": "bg",
            "name": "Background",
            "type": "image",
            "src": "bg.png",
            "visible": True,
            "opacity": 1,
        },
        {"id": "svg", "name": "SVG Map", "src": "map.svg", "visible": False},
    ],
    "groups": [
        {
            "id": "sangam",
            "name": "Sangam",
            "color": "#E57373",
            "zones": [
                {"id": "sangam_B1", "name": "DMC Media City"},
                {"id": "sangam_B2", "name": "World Cup Park"},
            ],
        },
        {
            "id": "hapjeong",
            "name": "Hapjeong",
            "color": "#64B5F6",
            "zones": [{"id": "hap_1", "name": "Cafe Street"}],
        },
    ],
    "gridDefaults": {"cellW": 60, "cellH": 30, "offX": 5, "offY": -5},
}


class TestGridParams:
    def test_defaults(self):
        p = GridParams()
        assert (p.cell_w, p.cell_h, p.off_x, p.off_y) == (70, 35, 0, 0)

    def test_from_dict_partial_keeps_base(self):
        base = GridParams(cell_w=50, cell_h=20, off_x=1, off_y=2)
        p = GridParams.from_dict({"offX": 9}, base=base)
        assert p == GridParams(cell_w=50, cell_h=20, off_x=9, off_y=2)

    def test_from_dict_none_returns_base(self):
        assert GridParams.from_dict(None) == GridParams()

    def test_to_dict_uses_wire_keys(self):
        assert GridParams(10, 5, 1, 2).to_dict() == {
            "cellW": 10,
            "cellH": 5,
            "offX": 1,
            "offY": 2,
        }

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"cell_w": 0},
            {"cell_h": -3},
            {"cell_w": math.inf},
            {"off_x": math.nan},
            {"off_y": "3"},
            {"cell_w": True},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            GridParams(**kwargs)

    def test_params_are_hashable_and_compare_by_value(self):
        assert GridParams(60, 30) == GridParams(60.0, 30.0)
        assert hash(GridParams(60, 30)) == hash(GridParams(60.0, 30.0))


class TestProject:
    def test_from_dict(self):
        project = Project.from_dict(SAMPLE_PROJECT)
        assert project.name == "Mapo"
        assert (project.map_w, project.map_h) == (1400, 1000)
        assert [layer.id for layer in project.layers] == ["bg", "svg"]
        assert project.grid_defaults == GridParams(60, 30, 5, -5)
        assert project.total_zones == 3

    def test_zone_lookup_carries_group(self):
        project = Project.from_dict(SAMPLE_PROJECT)
        zone = project.zone("hap_1")
        assert zone.name == "Cafe Street"
        assert zone.group_id == "hapjeong"
        assert project.group("hapjeong").color == "#64B5F6"
        assert project.zone("missing") is None
        assert project.group("missing") is None

    def test_zone_name_falls_back_to_id(self):
        project = Project.from_dict(SAMPLE_PROJECT)
        assert project.zone_name("sangam_B2") == "World Cup Park"
        assert project.zone_name("ghost_zone") == "ghost_zone"

    def test_all_zones_in_group_order(self):
        project = Project.from_dict(SAMPLE_PROJECT)
        assert [z.id for z in project.all_zones] == [
            "sangam_B1",
            "sangam_B2",
            "hap_1",
        ]

    def test_to_dict_round_trip(self):
        project = Project.from_dict(SAMPLE_PROJECT)
        again = Project.from_dict(project.to_dict())
        assert again.to_dict() == project.to_dict()

    def test_missing_grid_defaults_uses_defaults(self):
        data = {k: v for k, v in SAMPLE_PROJECT.items() if k != "gridDefaults"}
        assert Project.from_dict(data).grid_defaults == GridParams()

    def test_non_positive_map_rejected(self):
        with pytest.raises(ValueError):
            Project(name="x", map_w=0, map_h=10)


class TestLayer:
    def test_defaults_for_missing_fields(self):
        layer = Layer.from_dict({"id": "l"})
        assert layer.name == "l"
        assert layer.type == "image"
        assert layer.visible is True
        assert layer.opacity == 1.0
        assert layer.image is None

    def test_null_opacity_means_opaque(self):
        assert Layer.from_dict({"id": "l", "opacity": None}).opacity == 1.0

    def test_drawable_needs_decoded_image(self):
        layer = Layer(id="l", name="l")
        assert not layer.is_drawable
        layer.image = Image.new("RGBA", (4, 4))
        assert layer.is_drawable


class TestGroup:
    def test_zones_inherit_group_id(self):
        group = Group.from_dict(
            {"id": "g", "name": "G", "color": "#000000", "zones": [{"id": "z"}]}
        )
        assert group.zones[0].group_id == "g"
        assert group.zones[0].name == "z"
