"""Fit-to-window transform between canvas pixels and map space.

The map is scaled uniformly to fit the canvas with a 3% margin and
centered. The renderer and the pointer handlers must both go through
``fit_transform`` so that what is drawn and what is clicked agree.
"""

from __future__ import annotations

from dataclasses import dataclass

FIT_MARGIN = 0.97


@dataclass(frozen=True)
class FitTransform:
    scale: float
    pan_x: float
    pan_y: float

    def pixel_to_map(self, px: float, py: float) -> tuple[float, float]:
        return (px - self.pan_x) / self.scale, (py - self.pan_y) / self.scale

    def map_to_pixel(self, mx: float, my: float) -> tuple[float, float]:
        return mx * self.scale + self.pan_x, my * self.scale + self.pan_y

    def to_dict(self) -> dict:
        return {"scale": self.scale, "panX": self.pan_x, "panY": self.pan_y}


def fit_transform(
    canvas_w: float, canvas_h: float, map_w: float, map_h: float
) -> FitTransform:
    if map_w <= 0 or map_h <= 0:
        raise ValueError(f"map size must be positive, got {map_w}x{map_h}")
    if canvas_w <= 0 or canvas_h <= 0:
        raise ValueError(
            f"canvas size must be positive, got {canvas_w}x{canvas_h}"
        )
    scale = min(canvas_w / map_w, canvas_h / map_h) * FIT_MARGIN
    return FitTransform(
        scale=scale,
        pan_x=(canvas_w - map_w * scale) / 2,
        pan_y=(canvas_h - map_h * scale) / 2,
    )


def pixel_to_map(
    px: float,
    py: float,
    canvas_w: float,
    canvas_h: float,
    map_w: float,
    map_h: float,
) -> tuple[float, float]:
    """Canvas pixel -> map coordinates for the given canvas and map size."""
    return fit_transform(canvas_w, canvas_h, map_w, map_h).pixel_to_map(px, py)


def map_to_pixel(
    mx: float,
    my: float,
    canvas_w: float,
    canvas_h: float,
    map_w: float,
    map_h: float,
) -> tuple[float, float]:
    """Map coordinates -> canvas pixel for the given canvas and map size."""
    return fit_transform(canvas_w, canvas_h, map_w, map_h).map_to_pixel(mx, my)
