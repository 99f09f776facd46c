"""Base feature interface for repository features"""

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from softdelete.entities import BaseEntity
from softdelete.options import DeleteOptions

if TYPE_CHECKING:
    from softdelete.query_builder import QueryBuilder
    from softdelete.repository import Repository


class RepositoryFeature:
    """
    Base class for repository features.

    Features hook into repository lifecycle events to add functionality
    like soft deletes or audit columns. A feature instance belongs to one
    repository; the repository calls bind() when it is constructed.
    """

    def __init__(self):
        self._repository: "Repository | None" = None

    def bind(self, repository: "Repository") -> None:
        if self._repository is not None and self._repository is not repository:
            raise ValueError(
                f"{type(self).__name__} is already bound to `{self._repository.table_name}`"
            )
        self._repository = repository

    @property
    def repository(self) -> "Repository":
        if self._repository is None:
            raise ValueError(f"{type(self).__name__} is not bound to a repository")
        return self._repository

    def before_create(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Hook called before inserting an entity.

        Args:
            data: Column values about to be inserted

        Returns:
            Modified data dictionary
        """
        return data

    def before_update(self, data: dict[str, Any]) -> dict[str, Any]:
        """Hook called before updating an entity; returns the modified data"""
        return data

    def apply_query_filters(self, builder: "QueryBuilder") -> "QueryBuilder":
        """
        Hook to attach automatic filtering to select queries.

        Args:
            builder: Select query builder created by the repository

        Returns:
            The builder to use, usually a clone with an interceptor installed
        """
        return builder

    def should_intercept_delete(self) -> bool:
        """Whether delete() and delete_all() are handled by this feature"""
        return False

    async def handle_delete(self, entity: BaseEntity, options: DeleteOptions) -> bool:
        """Delete a single entity instead of the repository (see should_intercept_delete)"""
        raise NotImplementedError

    async def handle_delete_all(
        self, conditions: Mapping[str, Any] | Iterable[tuple[str, str, Any]]
    ) -> int:
        """Delete all rows matching `conditions` instead of the repository"""
        raise NotImplementedError
