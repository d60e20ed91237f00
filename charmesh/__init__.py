"""Procedural character mesh synthesis and GLB export."""

__version__ = "0.1.0"
