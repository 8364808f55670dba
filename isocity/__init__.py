"""IsoCity Studio: isometric diamond-grid zone builder."""

__version__ = "0.1.0"
