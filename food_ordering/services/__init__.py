"""
                        Services Module

Store-facing helpers shared by the routers.

Services:
    - partial_update: parameterized UPDATE builder for sparse payloads
"""

from food_ordering.services.partial_update import PartialUpdate, build_partial_update

__all__ = ["PartialUpdate", "build_partial_update"]
