"""Associations between repositories, limited to dependent cascades"""

from collections.abc import Iterator
from typing import TYPE_CHECKING

import structlog

from softdelete.entities import BaseEntity
from softdelete.options import DeleteOptions

if TYPE_CHECKING:
    from softdelete.repository import Repository

logger = structlog.get_logger(__name__)


class HasMany:
    """
    One-to-many association from a source repository to a target.

    Args:
        name: Association name
        target: Repository holding the associated rows
        foreign_key: Column on the target pointing at the source
        binding_key: Column on the source the foreign key refers to
        dependent: Delete associated rows when the source row is deleted
        cascade_callbacks: Delete associated rows one by one through
            target.delete() (rules and events run) instead of one
            target.delete_all() statement
    """

    def __init__(
        self,
        name: str,
        target: "Repository",
        foreign_key: str,
        binding_key: str = "id",
        dependent: bool = True,
        cascade_callbacks: bool = True,
    ):
        self.name = name
        self.target = target
        self.foreign_key = foreign_key
        self.binding_key = binding_key
        self.dependent = dependent
        self.cascade_callbacks = cascade_callbacks

    async def cascade_delete(self, entity: BaseEntity, options: DeleteOptions) -> bool:
        if not self.dependent:
            return True

        key_value = getattr(entity, self.binding_key)
        if not self.cascade_callbacks:
            count = await self.target.delete_all({self.foreign_key: key_value})
            logger.debug("Cascaded delete_all", association=self.name, count=count)
            return True

        related = await self.target.find().where(self.foreign_key, key_value).all()
        success = True
        for row in related:
            success = bool(await self.target.delete(row, options)) and success
        logger.debug("Cascaded delete", association=self.name, count=len(related))
        return success


class AssociationCollection:
    """The associations of one repository"""

    def __init__(self):
        self._items: dict[str, HasMany] = {}

    def add(self, association: HasMany) -> HasMany:
        self._items[association.name] = association
        return association

    def __iter__(self) -> Iterator[HasMany]:
        return iter(self._items.values())

    async def cascade_delete(self, entity: BaseEntity, options: DeleteOptions) -> bool:
        """Delete the dependent rows of every association"""
        success = True
        for association in self:
            success = await association.cascade_delete(entity, options) and success
        return success
