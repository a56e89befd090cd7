"""
API route modules.
"""

from .scenarios import router as scenarios_router


__all__ = [
    "scenarios_router",
]
