from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from softdelete.entities import BaseEntity

T = TypeVar("T", bound=BaseModel)


class EntityMapper(Generic[T]):
    """Composition class for entity mapping operations"""

    def __init__(self, entity_class: type[T]):
        self.entity_class = entity_class

    def map_row_to_entity(self, row: Any) -> T:
        """Map a database row to an entity loaded from storage"""
        entity = self.entity_class(**dict(row))
        if isinstance(entity, BaseEntity):
            entity.mark_persisted()
        return entity

    def map_rows_to_entities(self, rows: list[Any]) -> list[T]:
        return [self.map_row_to_entity(row) for row in rows]
