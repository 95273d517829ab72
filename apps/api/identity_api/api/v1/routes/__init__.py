"""Route package marker.

Keep this module import-light so services can import a single route module
without pulling in the whole API surface.
"""

__all__ = [
    "health",
    "identify",
]
