"""Saved model repository.

Keeps saved model metadata in process memory. Contents are lost on restart.
"""

from uuid import UUID

from modelsmith.models.saved_model import SavedModel


class SavedModelRepository:
    """Repository for SavedModel entities.

    Methods:
    - add: Persist new saved model
    - get_by_id: Retrieve saved model by UUID
    - list_all: Paginated list, newest first
    - delete: Remove saved model by UUID
    """

    def __init__(self) -> None:
        self._models: dict[UUID, SavedModel] = {}

    async def add(self, model: SavedModel) -> SavedModel:
        """Persist new saved model.

        Args:
            model: SavedModel entity to persist

        Returns:
            Persisted model
        """
        self._models[model.id] = model
        return model

    async def get_by_id(self, model_id: UUID) -> SavedModel | None:
        """Retrieve saved model by UUID.

        Returns:
            SavedModel if found, None otherwise
        """
        return self._models.get(model_id)

    async def list_all(self, limit: int = 100, offset: int = 0) -> list[SavedModel]:
        """Retrieve paginated list of saved models ordered by created_at DESC."""
        ordered = sorted(self._models.values(), key=lambda m: m.created_at, reverse=True)
        return ordered[offset : offset + limit]

    async def delete(self, model_id: UUID) -> bool:
        """Remove saved model.

        Returns:
            True if a model was removed, False if it did not exist
        """
        return self._models.pop(model_id, None) is not None
