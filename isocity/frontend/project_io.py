"""Load a project directory: ``project.json`` plus its layer images.

A project directory looks like::

    projects/mapo-gu/
        project.json
        bg-blank.jpeg
        map.png

Each ``image`` layer's ``src`` is resolved relative to the directory and
decoded with Pillow. A layer whose image is missing or undecodable is
logged and kept without an image; the renderer skips it.

Also provides ``sample_project_path`` for the small project bundled with
the package.
"""

from __future__ import annotations

import json
from pathlib import Path

import structlog
from PIL import Image

from ..engine.types import Layer, Project

logger = structlog.get_logger(__name__)

MANIFEST_NAME = "project.json"

# isocity/projects/ is one level up from isocity/frontend/project_io.py
_PROJECTS_DIR = Path(__file__).parent.parent / "projects"


def sample_project_path(name: str = "sample") -> Path:
    """Return the directory of a project bundled under ``isocity/projects/``."""
    return _PROJECTS_DIR / name


def load_manifest(project_dir: Path) -> dict:
    """Read the raw ``project.json`` dict."""
    with open(Path(project_dir) / MANIFEST_NAME, encoding="utf-8") as f:
        return json.load(f)


def load_layer_image(layer: Layer, project_dir: Path) -> Image.Image | None:
    if layer.type != "image" or not layer.src:
        return None
    path = Path(project_dir) / layer.src
    try:
        with Image.open(path) as img:
            return img.convert("RGBA")
    except (OSError, ValueError) as e:
        logger.warning(
            "layer image not loaded", layer=layer.id, path=str(path), error=str(e)
        )
        return None


def load_project(project_dir: Path | str) -> Project:
    """Load a project and decode all of its layer images.

    Raises FileNotFoundError if the manifest is missing and ValueError if
    it is not a valid project.
    """
    project_dir = Path(project_dir)
    try:
        data = load_manifest(project_dir)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid project manifest: {e}") from e
    try:
        project = Project.from_dict(data)
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid project manifest: missing {e}") from e

    for layer in project.layers:
        layer.image = load_layer_image(layer, project_dir)

    logger.info(
        "project loaded",
        name=project.name,
        zones=project.total_zones,
        layers=len(project.layers),
        path=str(project_dir),
    )
    return project
