"""Repository layer for modelsmith.

Provides data access abstractions for stored entities.
"""

from modelsmith.repositories.saved_model import SavedModelRepository

__all__ = [
    "SavedModelRepository",
]
