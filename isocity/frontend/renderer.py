"""Render a project, its diamond grid and the zone assignments to a Pillow image.

Frame composition, back to front:

  1. Solid background over the whole canvas.
  2. Visible image layers in project order, each scaled to the map rect of
     the fit transform and blended at the layer's opacity.
  3. One diamond per grid cell. Style is picked by priority
     selected > assigned > hovered > plain (see ``classify_cell``).
  4. Cell ids, drawn only in unassigned cells when numbers are enabled.
  5. Zone names, one per assigned zone, on the cell whose id is the median
     of the zone's sorted cell ids.

Text gets a blurred drop shadow from a separate layer. All sizes are in
map units and scaled with the view, like the grid itself. ``supersample``
renders at a multiple of the canvas size and downsamples with LANCZOS to
smooth PIL's aliased polygon edges; the returned transform is always in
canvas pixels.
"""

from __future__ import annotations

import enum
import functools
import math
from dataclasses import dataclass, field

from PIL import Image, ImageColor, ImageDraw, ImageFilter, ImageFont

from ..engine.assignments import AssignmentStore
from ..engine.grid import Cell, GridEngine
from ..engine.types import Project
from ..engine.viewport import FitTransform, fit_transform

# -- Visual constants --

BACKGROUND = "#0f0f1a"
UNKNOWN_GROUP_COLOR = "#888888"

SELECTED_FILL = (0, 229, 255, 102)  # rgba(0, 229, 255, 0.4)
SELECTED_STROKE = (0, 229, 255, 255)
SELECTED_TEXT = (0, 229, 255, 255)
HOVER_FILL = (255, 255, 255, 31)  # rgba(255, 255, 255, 0.12)
ASSIGNED_FILL_ALPHA = 0.4
ASSIGNED_STROKE_ALPHA = 0.6
PLAIN_STROKE_ALPHA = 0.4  # multiplied by grid opacity
NUMBER_ALPHA = 0.6  # multiplied by grid opacity
LABEL_TEXT = (255, 255, 255, 255)

# Stroke widths in map units
SELECTED_STROKE_WIDTH = 2.0
ASSIGNED_STROKE_WIDTH = 1.0
HOVER_STROKE_WIDTH = 1.0
PLAIN_STROKE_WIDTH = 0.3

# Font size = clamp(cell_h * factor, lo, hi), in map units
NUMBER_FONT = (0.28, 5.0, 13.0)
LABEL_FONT = (0.24, 5.0, 10.0)
LABEL_CHAR_WIDTH = 0.6  # average glyph width as a fraction of font size
LABEL_MIN_CHARS = 4

NUMBER_SHADOW = (0, 0, 0, 204)  # rgba(0, 0, 0, 0.8)
LABEL_SHADOW = (0, 0, 0, 230)  # rgba(0, 0, 0, 0.9)
SHADOW_BLUR = 2.0  # map units
ELLIPSIS = "…"


class CellState(enum.Enum):
    SELECTED = "selected"
    ASSIGNED = "assigned"
    HOVERED = "hovered"
    PLAIN = "plain"


@dataclass
class ViewState:
    """UI selection and display options that affect a frame."""

    selected_cells: set[int] = field(default_factory=set)
    hovered_cell: int | None = None
    show_numbers: bool = True
    grid_opacity: float = 0.45


@dataclass
class Frame:
    image: Image.Image
    transform: FitTransform


@dataclass(frozen=True)
class CellStyle:
    fill: tuple[int, int, int, int] | None
    outline: tuple[int, int, int, int]
    width: float


# ---------------------------------------------------------------------------
# Styling helpers
# ---------------------------------------------------------------------------


def hex_to_rgba(color: str, alpha: float) -> tuple[int, int, int, int]:
    """A CSS color string plus an alpha in 0..1 -> an RGBA tuple.

    Accepts whatever Pillow parses (``#rgb``, ``#rrggbb``, color names).
    Anything else is drawn in ``UNKNOWN_GROUP_COLOR``.
    """
    try:
        rgb = ImageColor.getrgb(color)
    except (ValueError, TypeError):
        rgb = ImageColor.getrgb(UNKNOWN_GROUP_COLOR)
    r, g, b = rgb[:3]
    return r, g, b, _alpha(alpha)


def _alpha(a: float) -> int:
    return max(0, min(255, round(a * 255)))


def classify_cell(
    cell_id: int, store: AssignmentStore, view: ViewState
) -> CellState:
    if cell_id in view.selected_cells:
        return CellState.SELECTED
    if store.is_cell_assigned(cell_id):
        return CellState.ASSIGNED
    if cell_id == view.hovered_cell:
        return CellState.HOVERED
    return CellState.PLAIN


def cell_style(
    state: CellState, group_color: str | None, grid_opacity: float
) -> CellStyle:
    if state is CellState.SELECTED:
        return CellStyle(
            SELECTED_FILL, SELECTED_STROKE, SELECTED_STROKE_WIDTH
        )
    if state is CellState.ASSIGNED:
        color = group_color or UNKNOWN_GROUP_COLOR
        return CellStyle(
            hex_to_rgba(color, ASSIGNED_FILL_ALPHA),
            hex_to_rgba(color, ASSIGNED_STROKE_ALPHA),
            ASSIGNED_STROKE_WIDTH,
        )
    plain = (255, 255, 255, _alpha(grid_opacity * PLAIN_STROKE_ALPHA))
    if state is CellState.HOVERED:
        return CellStyle(HOVER_FILL, plain, HOVER_STROKE_WIDTH)
    return CellStyle(None, plain, PLAIN_STROKE_WIDTH)


def _clamped_font_size(cell_h: float, sizing: tuple[float, float, float]):
    factor, lo, hi = sizing
    return max(lo, min(hi, cell_h * factor))


def number_font_size(cell_h: float) -> float:
    return _clamped_font_size(cell_h, NUMBER_FONT)


def label_font_size(cell_h: float) -> float:
    return _clamped_font_size(cell_h, LABEL_FONT)


def label_char_budget(cell_w: float, font_size: float) -> int:
    return max(LABEL_MIN_CHARS, math.floor(cell_w / (font_size * LABEL_CHAR_WIDTH)))


def truncate_label(label: str, max_chars: int) -> str:
    if len(label) <= max_chars:
        return label
    return label[: max_chars - 1] + ELLIPSIS


@functools.lru_cache(maxsize=64)
def _font(px_size: int):
    return ImageFont.load_default(size=px_size)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class SceneRenderer:
    """Draws frames for one project."""

    def __init__(self, project: Project, supersample: int = 1):
        if supersample < 1:
            raise ValueError(f"supersample must be >= 1, got {supersample}")
        self.project = project
        self.supersample = supersample

    def render(
        self,
        canvas_w: int,
        canvas_h: int,
        grid: GridEngine,
        store: AssignmentStore,
        view: ViewState,
    ) -> Frame:
        project = self.project
        transform = fit_transform(canvas_w, canvas_h, project.map_w, project.map_h)
        ss = self.supersample
        w, h = int(canvas_w) * ss, int(canvas_h) * ss

        # 1. Background
        img = Image.new("RGBA", (w, h), BACKGROUND)

        # 2. Layers
        self._draw_layers(img, transform)

        # 3. Cells
        cells = grid.cells(project.map_w, project.map_h)
        overlay = Image.new("RGBA", (w, h), (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        for cell in cells:
            state = classify_cell(cell.id, store, view)
            group_color = None
            if state is CellState.ASSIGNED:
                group_color = self._group_color_for_cell(cell.id, store)
            style = cell_style(state, group_color, view.grid_opacity)
            draw.polygon(
                self._px_corners(cell, transform),
                fill=style.fill,
                outline=style.outline,
                width=self._lw(style.width, transform),
            )
        img.alpha_composite(overlay)

        # 4-5. Text with shadows
        shadow = Image.new("RGBA", (w, h), (0, 0, 0, 0))
        text = Image.new("RGBA", (w, h), (0, 0, 0, 0))
        shadow_draw = ImageDraw.Draw(shadow)
        text_draw = ImageDraw.Draw(text)
        if view.show_numbers:
            for cell in cells:
                if store.is_cell_assigned(cell.id):
                    continue
                if cell.id in view.selected_cells:
                    fill = SELECTED_TEXT
                else:
                    fill = (255, 255, 255, _alpha(view.grid_opacity * NUMBER_ALPHA))
                self._draw_text(
                    text_draw,
                    shadow_draw,
                    str(cell.id),
                    cell,
                    number_font_size(cell.h),
                    fill,
                    NUMBER_SHADOW,
                    transform,
                )
        for zone_id, assignment in store.items():
            anchor = cells.by_id(assignment.anchor_cell_id)
            if anchor is None:
                continue
            size = label_font_size(anchor.h)
            label = truncate_label(
                project.zone_name(zone_id), label_char_budget(anchor.w, size)
            )
            self._draw_text(
                text_draw,
                shadow_draw,
                label,
                anchor,
                size,
                LABEL_TEXT,
                LABEL_SHADOW,
                transform,
            )
        blur = SHADOW_BLUR * transform.scale * ss
        img.alpha_composite(shadow.filter(ImageFilter.GaussianBlur(blur)))
        img.alpha_composite(text)

        if ss > 1:
            img = img.resize(
                (int(canvas_w), int(canvas_h)), Image.Resampling.LANCZOS
            )
        return Frame(image=img, transform=transform)

    def _lw(self, base_width: float, transform: FitTransform) -> int:
        """Map-unit stroke width -> pixel width at the render resolution."""
        return max(1, round(base_width * transform.scale * self.supersample))

    def _to_px(self, mx: float, my: float, transform: FitTransform):
        px, py = transform.map_to_pixel(mx, my)
        return px * self.supersample, py * self.supersample

    def _px_corners(self, cell: Cell, transform: FitTransform):
        return [self._to_px(x, y, transform) for x, y in cell.corners()]

    def _group_color_for_cell(self, cell_id: int, store: AssignmentStore):
        zone_id = store.get_zone_for_cell(cell_id)
        assignment = store.get_assignment(zone_id) if zone_id else None
        group = self.project.group(assignment.group_id) if assignment else None
        return group.color if group else UNKNOWN_GROUP_COLOR

    def _draw_layers(self, img: Image.Image, transform: FitTransform) -> None:
        project = self.project
        ss = self.supersample
        size = (
            max(1, round(project.map_w * transform.scale * ss)),
            max(1, round(project.map_h * transform.scale * ss)),
        )
        dest = (round(transform.pan_x * ss), round(transform.pan_y * ss))
        for layer in project.layers:
            if not layer.visible or layer.type != "image":
                continue
            if not layer.is_drawable:
                continue
            opacity = max(0.0, min(1.0, layer.opacity))
            if opacity == 0.0:
                continue
            scaled = layer.image.convert("RGBA").resize(
                size, Image.Resampling.LANCZOS
            )
            if opacity < 1.0:
                alpha = scaled.getchannel("A").point(
                    lambda a: round(a * opacity)
                )
                scaled.putalpha(alpha)
            img.alpha_composite(scaled, dest=dest)

    def _draw_text(
        self,
        text_draw,
        shadow_draw,
        text,
        cell: Cell,
        font_size: float,
        fill,
        shadow_fill,
        transform: FitTransform,
    ) -> None:
        px_size = max(1, round(font_size * transform.scale * self.supersample))
        font = _font(px_size)
        xy = self._to_px(cell.cx, cell.cy, transform)
        shadow_draw.text(xy, text, font=font, fill=shadow_fill, anchor="mm")
        text_draw.text(xy, text, font=font, fill=fill, anchor="mm")
