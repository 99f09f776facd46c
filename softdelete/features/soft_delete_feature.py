"""Soft Delete feature for automatic soft delete management"""

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

import structlog

from softdelete.db_context import DatabaseManager
from softdelete.entities import BaseEntity
from softdelete.errors import InvalidArgumentError, MissingColumnError
from softdelete.events import RepositoryEvent, Stopped
from softdelete.features.base_feature import RepositoryFeature
from softdelete.interceptor import QueryInterceptor
from softdelete.options import DeleteOptions
from softdelete.query_builder import QueryBuilder
from softdelete.rules import RuleMode

logger = structlog.get_logger(__name__)


class SoftDeleteFeature(RepositoryFeature):
    """
    Feature that adds soft delete functionality to repositories.

    Soft delete means records are marked as deleted (a timestamp in the
    deleted field) instead of being physically removed from the database.

    This feature automatically:
    - Intercepts delete() and delete_all() to set the deleted field
    - Filters out soft-deleted records in select queries by default
    - Adds hard_delete(), hard_delete_all() and restore() to the repository

    Usage:
        config = RepositoryConfig(features=[SoftDeleteFeature(field="deleted_at")])
        articles = Repository(Article, table_name="articles", config=config)

        await articles.delete(article)            # sets deleted_at
        await articles.find().all()               # excludes soft-deleted rows
        await articles.find().with_deleted().all()
        await articles.restore(article)           # deleted_at back to NULL
        await articles.hard_delete(article)       # removes the row
        await articles.hard_delete_all(cutoff)    # purges old soft-deleted rows
    """

    def __init__(self, field: str = "deleted"):
        super().__init__()
        self.field = field

    @staticmethod
    def _get_current_timestamp() -> datetime:
        return datetime.now(UTC)

    def get_soft_delete_field(self) -> str:
        """
        Return the configured deleted field.

        The table schema is checked on every call.

        Raises:
            MissingColumnError: if the table has no such column
        """
        repository = self.repository
        if not repository.schema.has_column(self.field):
            raise MissingColumnError(self.field, repository.alias)
        return self.field

    def before_create(self, data: dict[str, Any]) -> dict[str, Any]:
        """New rows start active"""
        if self.repository.schema.has_column(self.field):
            data.setdefault(self.field, None)
        return data

    def apply_query_filters(self, builder: QueryBuilder) -> QueryBuilder:
        repository = self.repository
        return builder.intercepted_by(
            QueryInterceptor(self.get_soft_delete_field, repository.alias_field)
        )

    def should_intercept_delete(self) -> bool:
        return True

    async def handle_delete(self, entity: BaseEntity, options: DeleteOptions) -> bool:
        return await self.soft_delete(entity, options)

    async def handle_delete_all(
        self, conditions: Mapping[str, Any] | Iterable[tuple[str, str, Any]]
    ) -> int:
        return await self.soft_delete_all(conditions)

    async def soft_delete(
        self, entity: BaseEntity, options: DeleteOptions | None = None
    ) -> bool:
        """
        Soft delete a single entity.

        Runs the delete rules and the before/after delete events, cascades
        to dependent associations and stamps the deleted field.

        Returns:
            True when the row was updated. False for unsaved entities,
            failed rules and missing rows; a before_delete listener that
            stops the event decides the result itself.

        Raises:
            InvalidArgumentError: if a primary key value is missing
        """
        repository = self.repository
        options = options or DeleteOptions()

        if entity.is_new():
            return False

        primary_key = list(repository.primary_key)
        if not entity.has(primary_key):
            raise InvalidArgumentError("Deleting requires all primary key values.")

        if options.check_rules and not repository.check_rules(
            entity, RuleMode.DELETE, options.as_dict()
        ):
            logger.info("Delete rejected by rules", table=repository.table_name)
            return False

        event = await repository.dispatch_event(
            RepositoryEvent.BEFORE_DELETE, {"entity": entity, "options": options}
        )
        if isinstance(event, Stopped):
            return event.result

        await repository.associations.cascade_delete(entity, options.for_cascade())

        field = self.get_soft_delete_field()
        deleted_at = self._get_current_timestamp()
        statement = (
            await repository.update_query()
            .set({field: deleted_at})
            .where_multiple(entity.extract(primary_key))
            .execute()
        )

        success = statement.row_count() > 0
        if not success:
            return success

        setattr(entity, field, deleted_at)
        await repository.dispatch_event(
            RepositoryEvent.AFTER_DELETE, {"entity": entity, "options": options}
        )
        logger.info(
            "Soft deleted row",
            table=repository.table_name,
            key=entity.extract(primary_key),
        )
        return success

    async def soft_delete_all(
        self, conditions: Mapping[str, Any] | Iterable[tuple[str, str, Any]]
    ) -> int:
        """Soft delete every row matching `conditions`, without rules or events.

        Returns:
            Number of affected rows
        """
        repository = self.repository
        statement = (
            await repository.update_query()
            .set({self.get_soft_delete_field(): self._get_current_timestamp()})
            .where_multiple(conditions)
            .execute()
        )
        statement.close_cursor()
        count = statement.row_count()
        logger.info("Soft deleted rows", table=repository.table_name, count=count)
        return count

    async def hard_delete(
        self, entity: BaseEntity, options: DeleteOptions | None = None
    ) -> bool:
        """
        Soft delete the entity, then remove its row.

        Both statements run in one (nested) transaction.

        Returns:
            True in case of success, False otherwise.
        """
        repository = self.repository
        async with DatabaseManager.transaction(repository.config.db_name):
            if not await repository.delete(entity, options):
                return False

            conditions = entity.extract(repository.primary_key)
            statement = await repository.delete_query().where_multiple(conditions).execute()

        success = statement.row_count() > 0
        if success:
            logger.info("Hard deleted row", table=repository.table_name, key=conditions)
        return success

    async def hard_delete_all(self, until: datetime) -> int:
        """
        Remove all rows that were soft deleted at or before `until`.

        Returns:
            Number of affected rows
        """
        repository = self.repository
        field = self.get_soft_delete_field()
        statement = (
            await repository.delete_query()
            .where(field, "!=", None)
            .where(field, "<=", until)
            .execute()
        )
        statement.close_cursor()
        count = statement.row_count()
        logger.info(
            "Purged soft deleted rows",
            table=repository.table_name,
            until=until.isoformat(),
            count=count,
        )
        return count

    async def restore(self, entity: BaseEntity) -> bool:
        """
        Restore a soft deleted entity into an active state.

        Goes through the regular save() path, so save rules and events run.

        Returns:
            True in case of success, False otherwise.
        """
        setattr(entity, self.get_soft_delete_field(), None)
        success = await self.repository.save(entity)
        if success:
            logger.info("Restored row", table=self.repository.table_name)
        return success
