"""Save and load zone-assignment sessions as JSON or PNG (with embedded JSON).

A session file has the shape::

    {
      "projectName": "...",
      "gridParams": {"cellW": 70, "cellH": 35, "offX": 0, "offY": 0},
      "assignments": {"<zoneId>": {"groupId": "...", "cellIds": [1, 2, 3]}}
    }

On import ``gridParams`` and ``assignments`` are both optional and unknown
keys are ignored. ``gridParams`` may be partial; only the keys present are
applied.

JSON is the primary format. A PNG snapshot of the current frame can also
carry the session in a tEXt chunk (key: ``isocity_session``), so a saved
picture of the map loads back into the app.

Parsing is separate from applying: ``parse_session`` fully validates the
data and raises ``SessionParseError`` before the caller touches any state.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from PIL import Image
from PIL.PngImagePlugin import PngInfo

from ..engine.assignments import (
    Assignment,
    AssignmentStore,
    MalformedAssignmentsError,
    parse_assignments,
)
from ..engine.types import GridParams

METADATA_KEY = "isocity_session"
_GRID_KEYS = ("cellW", "cellH", "offX", "offY")


class SessionParseError(ValueError):
    """Import data is not valid JSON or not a session structure."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass
class SessionData:
    project_name: str | None = None
    grid_params: dict = field(default_factory=dict)
    assignments: dict[str, Assignment] | None = None

    def apply_grid(self, current: GridParams) -> GridParams:
        """Merge the partial ``grid_params`` onto ``current``."""
        return GridParams.from_dict(self.grid_params, base=current)


def build_session(
    project_name: str, grid_params: GridParams, store: AssignmentStore
) -> dict:
    return {
        "projectName": project_name,
        "gridParams": grid_params.to_dict(),
        "assignments": store.export_assignments(),
    }


def parse_session(data) -> SessionData:
    """Validate a decoded session dict."""
    if not isinstance(data, dict):
        raise SessionParseError(
            f"session must be a JSON object, got {type(data).__name__}"
        )

    grid = data.get("gridParams")
    grid_params = {}
    if grid is not None:
        if not isinstance(grid, dict):
            raise SessionParseError("gridParams must be an object")
        grid_params = {k: grid[k] for k in _GRID_KEYS if k in grid}
        try:
            # Validate against defaults; the real merge happens on apply.
            GridParams.from_dict(grid_params)
        except ValueError as e:
            raise SessionParseError(f"invalid gridParams: {e}") from e

    assignments = None
    if data.get("assignments") is not None:
        try:
            assignments = parse_assignments(data["assignments"])
        except MalformedAssignmentsError as e:
            raise SessionParseError(f"invalid assignments: {e}") from e

    name = data.get("projectName")
    return SessionData(
        project_name=name if isinstance(name, str) else None,
        grid_params=grid_params,
        assignments=assignments,
    )


def parse_session_text(text: str) -> SessionData:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SessionParseError(f"Invalid JSON: {e}") from e
    return parse_session(data)


def dumps_session(session: dict) -> str:
    return json.dumps(session, indent=2, ensure_ascii=False)


def save_session_json(session: dict, path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(dumps_session(session))
        f.write("\n")


def save_session_png(img: Image.Image, session: dict, path: str) -> None:
    """Save a rendered frame with the session JSON embedded as a PNG tEXt chunk."""
    info = PngInfo()
    info.add_text(METADATA_KEY, json.dumps(session, ensure_ascii=False))
    img.save(path, pnginfo=info)


def load_session_png(path: str) -> SessionData:
    """Load a session from a PNG file's tEXt metadata.

    Raises SessionParseError if the PNG does not contain session metadata.
    """
    with Image.open(path) as img:
        text_data = getattr(img, "text", None)
        if not text_data or METADATA_KEY not in text_data:
            raise SessionParseError(
                "PNG file does not contain session metadata "
                f"(missing '{METADATA_KEY}' chunk)"
            )
        return parse_session_text(text_data[METADATA_KEY])


def load_session_json(path: str) -> SessionData:
    with open(path, encoding="utf-8") as f:
        return parse_session_text(f.read())


def load_session(path: str) -> SessionData:
    """Load a session from a file, dispatching by extension.

    Supports .png (reads embedded metadata) and .json (reads raw JSON).
    Raises ValueError for unsupported extensions.
    """
    lower = path.lower()
    if lower.endswith(".png"):
        return load_session_png(path)
    elif lower.endswith(".json"):
        return load_session_json(path)
    else:
        raise ValueError(f"Unsupported file extension: {path}")
