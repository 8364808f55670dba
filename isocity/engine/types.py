"""Data types matching the IsoCity project and session JSON schema.

Keys on the wire are camelCase (``mapW``, ``cellW``, ``groupId``); the
dataclasses use snake_case attributes and convert in ``from_dict`` /
``to_dict``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

DEFAULT_CELL_W = 70.0
DEFAULT_CELL_H = 35.0


@dataclass(frozen=True)
class GridParams:
    """Diamond bounding-box size and global offset, in map units."""

    cell_w: float = DEFAULT_CELL_W
    cell_h: float = DEFAULT_CELL_H
    off_x: float = 0.0
    off_y: float = 0.0

    def __post_init__(self) -> None:
        for name in ("cell_w", "cell_h", "off_x", "off_y"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value!r}")
        if self.cell_w <= 0 or self.cell_h <= 0:
            raise ValueError(
                f"cell size must be positive, got {self.cell_w}x{self.cell_h}"
            )

    @staticmethod
    def from_dict(d: dict | None, base: GridParams | None = None) -> GridParams:
        """Build params from a ``{cellW, cellH, offX, offY}`` dict.

        Missing keys keep the value from ``base`` (or the defaults).
        """
        base = base or GridParams()
        if not d:
            return base
        return GridParams(
            cell_w=d.get("cellW", base.cell_w),
            cell_h=d.get("cellH", base.cell_h),
            off_x=d.get("offX", base.off_x),
            off_y=d.get("offY", base.off_y),
        )

    def to_dict(self) -> dict:
        return {
            "cellW": self.cell_w,
            "cellH": self.cell_h,
            "offX": self.off_x,
            "offY": self.off_y,
        }


@dataclass(frozen=True)
class Zone:
    id: str
    name: str
    group_id: str


@dataclass(frozen=True)
class Group:
    id: str
    name: str
    color: str
    zones: tuple[Zone, ...] = ()

    @staticmethod
    def from_dict(d: dict) -> Group:
        gid = d["id"]
        return Group(
            id=gid,
            name=d.get("name", gid),
            color=d.get("color", "#888888"),
            zones=tuple(
                Zone(id=z["id"], name=z.get("name", z["id"]), group_id=gid)
                for z in d.get("zones", [])
            ),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "zones": [{"id": z.id, "name": z.name} for z in self.zones],
        }


@dataclass
class Layer:
    """A map layer. ``image`` is the decoded drawable, filled in by a loader."""

    id: str
    name: str
    type: str = "image"
    src: str = ""
    visible: bool = True
    opacity: float = 1.0
    image: Any = field(default=None, repr=False, compare=False)

    @staticmethod
    def from_dict(d: dict) -> Layer:
        opacity = d.get("opacity")
        return Layer(
            id=d["id"],
            name=d.get("name", d["id"]),
            type=d.get("type", "image"),
            src=d.get("src", ""),
            visible=d.get("visible", True),
            opacity=1.0 if opacity is None else opacity,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "src": self.src,
            "visible": self.visible,
            "opacity": self.opacity,
        }

    @property
    def is_drawable(self) -> bool:
        """True when a decoded image with a non-zero size is attached."""
        img = self.image
        if img is None:
            return False
        width, height = img.size
        return width > 0 and height > 0


@dataclass
class Project:
    name: str
    map_w: float
    map_h: float
    layers: list[Layer] = field(default_factory=list)
    groups: list[Group] = field(default_factory=list)
    grid_defaults: GridParams = field(default_factory=GridParams)

    def __post_init__(self) -> None:
        if self.map_w <= 0 or self.map_h <= 0:
            raise ValueError(
                f"map size must be positive, got {self.map_w}x{self.map_h}"
            )
        self._groups_by_id = {g.id: g for g in self.groups}
        self._zones_by_id = {z.id: z for g in self.groups for z in g.zones}

    @staticmethod
    def from_dict(d: dict) -> Project:
        return Project(
            name=d.get("name", ""),
            map_w=d["mapW"],
            map_h=d["mapH"],
            layers=[Layer.from_dict(layer) for layer in d.get("layers", [])],
            groups=[Group.from_dict(g) for g in d.get("groups", [])],
            grid_defaults=GridParams.from_dict(d.get("gridDefaults")),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "mapW": self.map_w,
            "mapH": self.map_h,
            "layers": [layer.to_dict() for layer in self.layers],
            "groups": [g.to_dict() for g in self.groups],
            "gridDefaults": self.grid_defaults.to_dict(),
        }

    def group(self, group_id: str) -> Group | None:
        return self._groups_by_id.get(group_id)

    def zone(self, zone_id: str) -> Zone | None:
        return self._zones_by_id.get(zone_id)

    def zone_name(self, zone_id: str) -> str:
        """Display name for a zone, falling back to the raw id."""
        zone = self._zones_by_id.get(zone_id)
        return zone.name if zone and zone.name else zone_id

    @property
    def all_zones(self) -> list[Zone]:
        return [z for g in self.groups for z in g.zones]

    @property
    def total_zones(self) -> int:
        return len(self._zones_by_id)
