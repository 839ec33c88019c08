"""Jackettio: Stremio addon resolving Jackett releases through debrid services."""

__version__ = "1.4.0"
