"""Repository class"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel, Field

from softdelete.associations import AssociationCollection, HasMany
from softdelete.database_operations import DatabaseOperations
from softdelete.db_context import DatabaseManager
from softdelete.entities import BaseEntity
from softdelete.entity_mapper import EntityMapper
from softdelete.errors import InvalidArgumentError, SoftDeleteNotEnabledError
from softdelete.events import EventManager, EventResult, RepositoryEvent, Stopped
from softdelete.features import RepositoryFeature, SoftDeleteFeature
from softdelete.options import DeleteOptions, SaveOptions
from softdelete.query_builder import QueryBuilder, QueryKind, QueryOptions
from softdelete.rules import RuleMode, RulesChecker

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=BaseEntity)
O = TypeVar("O", bound=BaseModel)

Conditions = Mapping[str, Any] | Iterable[tuple[str, str, Any]]


class RepositoryConfig(BaseModel):
    """Configuration options for Repository"""

    model_config = {"arbitrary_types_allowed": True}

    db_schema: str | None = Field(default=None, description="Database schema name")
    db_name: str = Field(default="default", description="Pool used for transactions")
    alias: str | None = Field(
        default=None, description="Alias used to qualify columns; the table name if unset"
    )
    primary_key: tuple[str, ...] = Field(default=("id",))
    columns: list[str] | None = Field(
        default=None, description="Table columns; the entity fields if unset"
    )
    features: list[RepositoryFeature] = Field(default_factory=list)


class TableSchema:
    """Column names of a table"""

    def __init__(self, columns: Iterable[str]):
        self.columns = set(columns)

    @classmethod
    def from_model(cls, model: type[BaseModel]) -> "TableSchema":
        return cls(model.model_fields.keys())

    def has_column(self, name: str) -> bool:
        return name in self.columns

    def add_column(self, name: str) -> None:
        self.columns.add(name)

    def remove_column(self, name: str) -> None:
        self.columns.discard(name)


class Repository(Generic[T]):
    """Table gateway for one entity class.

    Reads go through select queries built by select_query()/find(); writes
    through save(), delete() and delete_all(). Features listed in the
    config are bound to the repository and may take over query filtering
    and deletes (see SoftDeleteFeature).
    """

    def __init__(
        self,
        entity_class: type[T],
        table_name: str | None = None,
        config: RepositoryConfig | None = None,
    ):
        if entity_class is None:
            raise ValueError("entity_class is required")
        if table_name is None:
            raise ValueError("table_name is required")

        self.entity_class = entity_class
        self.table_name = table_name
        self.config = config or RepositoryConfig()
        self._qualified_table_name = (
            f"{self.config.db_schema}.{table_name}"
            if self.config.db_schema
            else table_name
        )
        self.schema = (
            TableSchema(self.config.columns)
            if self.config.columns is not None
            else TableSchema.from_model(entity_class)
        )
        self.primary_key = tuple(self.config.primary_key)

        self.events = EventManager()
        self.rules = RulesChecker()
        self.associations = AssociationCollection()

        # Composition: Inject dependencies
        self.db_ops = DatabaseOperations()
        self.entity_mapper = EntityMapper(entity_class)

        self.features = list(self.config.features)
        for feature in self.features:
            feature.bind(self)

    @property
    def alias(self) -> str:
        return self.config.alias or self.table_name

    def alias_field(self, field: str) -> str:
        return f"{self.alias}.{field}"

    def has_many(self, name: str, target: "Repository", foreign_key: str, **kwargs: Any) -> HasMany:
        return self.associations.add(HasMany(name, target, foreign_key, **kwargs))

    # Query factories

    def select_query(self) -> QueryBuilder:
        """Select query bound to this repository, with feature filters installed"""
        builder = QueryBuilder(
            self._qualified_table_name,
            QueryKind.SELECT,
            alias=self.alias,
            repository=self,
        )
        for feature in self.features:
            builder = feature.apply_query_filters(builder)
        return builder

    def update_query(self) -> QueryBuilder:
        return QueryBuilder(self._qualified_table_name, QueryKind.UPDATE, repository=self)

    def delete_query(self) -> QueryBuilder:
        return QueryBuilder(self._qualified_table_name, QueryKind.DELETE, repository=self)

    def find(self, options: QueryOptions = None) -> QueryBuilder:
        """Start a select query.

        Pass {"withDeleted": True} (or ["withDeleted"]) to include soft
        deleted rows.
        """
        return self.select_query().apply_options(options)

    async def find_by_id(self, entity_id: Any, options: QueryOptions = None) -> T | None:
        if len(self.primary_key) != 1:
            raise InvalidArgumentError(
                f"find_by_id() needs a single column primary key, `{self.table_name}` has {len(self.primary_key)}"
            )
        return await self.find(options).where(self.primary_key[0], entity_id).first()

    @staticmethod
    def get_query_tracker():
        """Get the current query tracker, None unless tracking is enabled"""
        return DatabaseManager.get_query_tracker()

    # Hooks used by queries and features

    async def before_find(self, query: QueryBuilder) -> None:
        await self.dispatch_event(
            RepositoryEvent.BEFORE_FIND,
            {"query": query, "options": query.query_options},
        )

    def check_rules(
        self, entity: BaseEntity, mode: RuleMode, options: dict[str, Any] | None = None
    ) -> bool:
        return self.rules.check(entity, mode, options)

    async def dispatch_event(
        self, event: RepositoryEvent, payload: dict[str, Any]
    ) -> EventResult:
        return await self.events.dispatch(event, {"repository": self, **payload})

    # Writes

    async def save(self, entity: T, options: SaveOptions | Mapping[str, Any] | None = None) -> bool:
        """Insert a new entity or update a persisted one.

        Returns:
            True in case of success, False when rules or a before_save
            listener reject the entity or no row was updated.
        """
        options = _coerce(SaveOptions, options)
        if options.atomic:
            async with DatabaseManager.transaction(self.config.db_name):
                return await self._process_save(entity, options)
        return await self._process_save(entity, options)

    async def _process_save(self, entity: T, options: SaveOptions) -> bool:
        is_new = entity.is_new()
        mode = RuleMode.CREATE if is_new else RuleMode.UPDATE
        if options.check_rules and not self.check_rules(entity, mode, options.model_dump()):
            return False

        event = await self.dispatch_event(
            RepositoryEvent.BEFORE_SAVE, {"entity": entity, "options": options}
        )
        if isinstance(event, Stopped):
            return bool(event.result)

        data = {
            key: value
            for key, value in entity.model_dump().items()
            if self.schema.has_column(key)
        }

        if is_new:
            for feature in self.features:
                data = feature.before_create(data)
            success = await self._insert(data)
            for key, value in data.items():
                if getattr(entity, key, None) != value:
                    setattr(entity, key, value)
            entity.mark_persisted()
        else:
            if not entity.has(self.primary_key):
                raise InvalidArgumentError("Updating requires all primary key values.")
            values = {k: v for k, v in data.items() if k not in self.primary_key}
            for feature in self.features:
                values = feature.before_update(values)
            if not values:
                return True
            statement = (
                await self.update_query()
                .set(values)
                .where_multiple(entity.extract(self.primary_key))
                .execute()
            )
            success = statement.row_count() > 0

        if success:
            await self.dispatch_event(
                RepositoryEvent.AFTER_SAVE, {"entity": entity, "options": options}
            )
        return success

    async def _insert(self, data: dict[str, Any]) -> bool:
        columns = ", ".join(data.keys())
        placeholders = ", ".join([f"${i + 1}" for i in range(len(data))])
        statement = await self.db_ops.execute_query(
            f"INSERT INTO {self._qualified_table_name} ({columns}) VALUES ({placeholders})",
            list(data.values()),
        )
        return statement.row_count() > 0

    async def delete(
        self, entity: T, options: DeleteOptions | Mapping[str, Any] | None = None
    ) -> bool:
        """Delete a single entity.

        Performs a soft delete if the feature is enabled, a hard delete
        otherwise.
        """
        options = _coerce(DeleteOptions, options)
        if options.atomic:
            async with DatabaseManager.transaction(self.config.db_name):
                return await self._process_delete(entity, options)
        return await self._process_delete(entity, options)

    async def _process_delete(self, entity: T, options: DeleteOptions) -> bool:
        for feature in self.features:
            if feature.should_intercept_delete():
                return await feature.handle_delete(entity, options)

        if entity.is_new():
            return False
        if not entity.has(self.primary_key):
            raise InvalidArgumentError("Deleting requires all primary key values.")
        if options.check_rules and not self.check_rules(
            entity, RuleMode.DELETE, options.as_dict()
        ):
            return False

        event = await self.dispatch_event(
            RepositoryEvent.BEFORE_DELETE, {"entity": entity, "options": options}
        )
        if isinstance(event, Stopped):
            return event.result

        await self.associations.cascade_delete(entity, options.for_cascade())

        statement = (
            await self.delete_query()
            .where_multiple(entity.extract(self.primary_key))
            .execute()
        )
        success = statement.row_count() > 0
        if success:
            await self.dispatch_event(
                RepositoryEvent.AFTER_DELETE, {"entity": entity, "options": options}
            )
            logger.info("Deleted row", table=self.table_name)
        return success

    async def delete_all(self, conditions: Conditions) -> int:
        """Delete every row matching `conditions`; no rules or events run.

        Soft deletes when the feature is enabled.

        Returns:
            Number of affected rows
        """
        for feature in self.features:
            if feature.should_intercept_delete():
                return await feature.handle_delete_all(conditions)

        statement = await self.delete_query().where_multiple(conditions).execute()
        statement.close_cursor()
        return statement.row_count()

    # Soft delete operations

    def _soft_delete_feature(self) -> SoftDeleteFeature:
        for feature in self.features:
            if isinstance(feature, SoftDeleteFeature):
                return feature
        raise SoftDeleteNotEnabledError(self.table_name)

    def get_soft_delete_field(self) -> str:
        return self._soft_delete_feature().get_soft_delete_field()

    async def hard_delete(
        self, entity: T, options: DeleteOptions | Mapping[str, Any] | None = None
    ) -> bool:
        return await self._soft_delete_feature().hard_delete(
            entity, _coerce(DeleteOptions, options)
        )

    async def hard_delete_all(self, until: datetime) -> int:
        return await self._soft_delete_feature().hard_delete_all(until)

    async def restore(self, entity: T) -> bool:
        return await self._soft_delete_feature().restore(entity)


def _coerce(model: type[O], options: O | Mapping[str, Any] | None) -> O:
    if isinstance(options, model):
        return options
    return model.model_validate(dict(options or {}))
