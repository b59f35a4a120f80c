"""
API routes package.
"""

from backoffice.api import (
    selection,
    template_sync,
    trip_conditions,
)

__all__ = [
    "selection",
    "template_sync",
    "trip_conditions",
]
