"""
QueryBuilder for SELECT, UPDATE and DELETE statements.

A builder produces SQL and parameters on its own. Bound to a repository it
can also execute itself; select queries then go through the before-find
step and, when one is installed, the repository's query interceptor.
"""

import re
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from softdelete.database_operations import StatementResult

if TYPE_CHECKING:
    from softdelete.repository import Repository


class QueryKind(str, Enum):
    SELECT = "select"
    UPDATE = "update"
    DELETE = "delete"


class QueryInterceptorProtocol(Protocol):
    async def prepare_for_execution(self, query: "QueryBuilder") -> None: ...


QueryOptions = Mapping[str, Any] | list[Any] | tuple[Any, ...] | None


class QueryBuilder:
    """
    Query builder with an immutable fluent interface.

    Usage:
        builder = QueryBuilder("articles")
        query, params = builder.where("id", article_id).build()

        update = QueryBuilder("articles", QueryKind.UPDATE)
        query, params = update.set({"title": "New"}).where("id", article_id).build()
    """

    def __init__(
        self,
        table_name: str,
        kind: QueryKind = QueryKind.SELECT,
        *,
        alias: str | None = None,
        repository: "Repository | None" = None,
    ):
        self.table_name = table_name
        self.kind = kind
        self.alias = alias
        self.repository = repository
        self.select_fields = "*"
        self.where_conditions: list[str] = []
        self.or_where_conditions: list[str] = []
        self.params: list[Any] = []
        self.set_values: dict[str, Any] = {}
        self.order_by_parts: list[str] = []
        self.limit_count: int | None = None
        self.query_options: QueryOptions = None
        self.interceptor: QueryInterceptorProtocol | None = None
        self.before_find_fired = False

    def _clone(self) -> "QueryBuilder":
        """Create a copy of the current QueryBuilder instance"""
        new_builder = QueryBuilder(
            self.table_name, self.kind, alias=self.alias, repository=self.repository
        )
        new_builder.select_fields = self.select_fields
        new_builder.where_conditions = self.where_conditions.copy()
        new_builder.or_where_conditions = self.or_where_conditions.copy()
        new_builder.params = self.params.copy()
        new_builder.set_values = self.set_values.copy()
        new_builder.order_by_parts = self.order_by_parts.copy()
        new_builder.limit_count = self.limit_count
        new_builder.query_options = _copy_options(self.query_options)
        new_builder.interceptor = self.interceptor
        new_builder.before_find_fired = self.before_find_fired
        return new_builder

    def _add_condition(
        self, field: str, value: Any, operator: str, is_or: bool = False
    ) -> "QueryBuilder":
        """Add a condition to either WHERE or OR WHERE clauses"""
        new_builder = self._clone()

        if value is None and operator == "=":
            condition = f"{field} IS NULL"
        elif value is None and operator in ("!=", "<>"):
            condition = f"{field} IS NOT NULL"
        else:
            param_index = len(new_builder.params) + 1
            condition = f"{field} {operator} ${param_index}"
            new_builder.params.append(value)

        if is_or:
            new_builder.or_where_conditions.append(condition)
        else:
            new_builder.where_conditions.append(condition)

        return new_builder

    def _add_group_condition(
        self,
        group_function: Callable[["QueryBuilder"], "QueryBuilder"],
        is_or: bool = False,
    ) -> "QueryBuilder":
        """Add a grouped condition to either WHERE or OR WHERE clauses"""
        group_builder = QueryBuilder("")
        result = group_function(group_builder)
        if result is not None:
            group_builder = result

        group_condition = group_builder._filter_expression()
        if not group_condition:
            return self

        # Group placeholders start at $1; shift them past our own parameters
        offset = len(self.params)
        group_condition = re.sub(
            r"\$(\d+)", lambda m: f"${int(m.group(1)) + offset}", group_condition
        )

        new_builder = self._clone()
        if is_or:
            new_builder.or_where_conditions.append(f"({group_condition})")
        else:
            new_builder.where_conditions.append(f"({group_condition})")
        new_builder.params.extend(group_builder.params)
        return new_builder

    def select(self, *fields: str) -> "QueryBuilder":
        """Set the SELECT fields; defaults to * when none is provided."""
        new_builder = self._clone()
        new_builder.select_fields = ", ".join(fields) if fields else "*"
        return new_builder

    def where(
        self,
        field_or_function: str | Callable[["QueryBuilder"], "QueryBuilder"],
        *args: Any,
    ) -> "QueryBuilder":
        """Add a WHERE condition or grouped WHERE clause.

        Supports both of the following call styles:
        - where(field, value) -> operator defaults to '='
        - where(field, operator, value) -> explicit operator in the second place

        Grouped conditions are built with a function: where(lambda qb: ...)
        """
        if callable(field_or_function):
            return self._add_group_condition(field_or_function, is_or=False)

        field = str(field_or_function)
        if len(args) == 2:
            operator, value = args
            return self._add_condition(field, value, operator, is_or=False)
        if len(args) == 1:
            return self._add_condition(field, args[0], "=", is_or=False)
        raise TypeError("where() expects (field, value) or (field, operator, value)")

    def or_where(
        self,
        field_or_function: str | Callable[["QueryBuilder"], "QueryBuilder"],
        *args: Any,
    ) -> "QueryBuilder":
        """Add an OR WHERE condition or grouped OR WHERE clause."""
        if callable(field_or_function):
            return self._add_group_condition(field_or_function, is_or=True)

        field = str(field_or_function)
        if len(args) == 2:
            operator, value = args
            return self._add_condition(field, value, operator, is_or=True)
        if len(args) == 1:
            return self._add_condition(field, args[0], "=", is_or=True)
        raise TypeError("or_where() expects (field, value) or (field, operator, value)")

    def where_multiple(
        self,
        conditions: Mapping[str, Any] | Iterable[tuple[str, str, Any]],
    ) -> "QueryBuilder":
        """Add several AND conditions.

        Accepts a mapping of field -> value (equality) or an iterable of
        (field, operator, value) tuples.
        """
        if isinstance(conditions, Mapping):
            conditions = [(field, "=", value) for field, value in conditions.items()]

        new_builder = self._clone()
        for field, operator, value in conditions:
            new_builder = new_builder._add_condition(field, value, operator)
        return new_builder

    def and_where(self, predicate: str) -> "QueryBuilder":
        """AND-combine a raw predicate with the whole current filter.

        Unlike the fluent methods this modifies the builder in place. An
        existing OR filter is wrapped in parentheses first so the predicate
        applies to every branch.
        """
        if self.or_where_conditions:
            self.where_conditions = [f"({self._filter_expression()})"]
            self.or_where_conditions = []
        self.where_conditions.append(predicate)
        return self

    def set(self, values: Mapping[str, Any]) -> "QueryBuilder":
        """Set column values for an UPDATE query"""
        new_builder = self._clone()
        new_builder.set_values.update(values)
        return new_builder

    def order_by(self, field: str) -> "QueryBuilder":
        new_builder = self._clone()
        new_builder.order_by_parts.append(f"{field}")
        return new_builder

    def limit(self, count: int) -> "QueryBuilder":
        new_builder = self._clone()
        new_builder.limit_count = count
        return new_builder

    def apply_options(self, options: QueryOptions) -> "QueryBuilder":
        """Merge finder options into the query.

        Options may be a mapping or a list of flags; a list merged into a
        mapping becomes {flag: True} entries.
        """
        new_builder = self._clone()
        if options is None:
            return new_builder

        current = new_builder.query_options
        if current is None:
            new_builder.query_options = _copy_options(options)
        elif not isinstance(current, Mapping) and not isinstance(options, Mapping):
            new_builder.query_options = [*current, *options]
        else:
            merged = _as_mapping(current)
            merged.update(_as_mapping(options))
            new_builder.query_options = merged
        return new_builder

    def with_deleted(self) -> "QueryBuilder":
        """Include soft deleted rows in the result"""
        return self.apply_options({"withDeleted": True})

    def intercepted_by(self, interceptor: QueryInterceptorProtocol) -> "QueryBuilder":
        new_builder = self._clone()
        new_builder.interceptor = interceptor
        return new_builder

    async def trigger_before_find(self) -> None:
        """Run the before-find step once, for select queries only."""
        if self.before_find_fired or self.kind is not QueryKind.SELECT:
            return
        self.before_find_fired = True
        if self.repository is not None:
            await self.repository.before_find(self)

    async def prepare_for_execution(self) -> None:
        if self.interceptor is not None:
            await self.interceptor.prepare_for_execution(self)
        else:
            await self.trigger_before_find()

    def _filter_expression(self) -> str:
        """The combined WHERE expression, without the WHERE keyword"""
        where_parts = []

        if self.where_conditions:
            if not self.or_where_conditions or len(self.where_conditions) == 1:
                where_parts.append(" AND ".join(self.where_conditions))
            else:
                where_parts.append(f"({' AND '.join(self.where_conditions)})")

        if self.or_where_conditions:
            if len(self.or_where_conditions) == 1:
                where_parts.append(self.or_where_conditions[0])
            else:
                where_parts.append(f"({' OR '.join(self.or_where_conditions)})")

        return " OR ".join(where_parts)

    def _from_clause(self) -> str:
        if self.alias and self.alias != self.table_name.rsplit(".", 1)[-1]:
            return f"{self.table_name} AS {self.alias}"
        return self.table_name

    def build(self) -> tuple[str, list[Any]]:
        """Build the final SQL statement and parameters"""
        filter_expression = self._filter_expression()
        where_clause = f" WHERE {filter_expression}" if filter_expression else ""

        if self.kind is QueryKind.UPDATE:
            if not self.set_values:
                raise ValueError("UPDATE query requires values to set")
            # SET placeholders follow the WHERE placeholders
            offset = len(self.params)
            set_clause = ", ".join(
                f"{column} = ${offset + i + 1}"
                for i, column in enumerate(self.set_values)
            )
            query = f"UPDATE {self.table_name} SET {set_clause}{where_clause}"
            return query, self.params + list(self.set_values.values())

        if self.kind is QueryKind.DELETE:
            return f"DELETE FROM {self.table_name}{where_clause}", self.params

        query_parts = [f"SELECT {self.select_fields} FROM {self._from_clause()}"]
        if filter_expression:
            query_parts.append(f"WHERE {filter_expression}")
        if self.order_by_parts:
            query_parts.append(f"ORDER BY {', '.join(self.order_by_parts)}")
        if self.limit_count is not None:
            query_parts.append(f"LIMIT {self.limit_count}")

        return " ".join(query_parts), self.params

    def to_sql(self) -> str:
        query, _ = self.build()
        return query

    # Execution, available when the builder is bound to a repository

    def _require_repository(self) -> "Repository":
        if self.repository is None:
            raise ValueError("Query is not bound to a repository")
        return self.repository

    async def execute(self) -> StatementResult:
        """Prepare and run the statement"""
        repository = self._require_repository()
        await self.prepare_for_execution()
        query, params = self.build()
        if self.kind is QueryKind.SELECT:
            rows = await repository.db_ops.fetch_all(query, params)
            return StatementResult(rows=list(rows))
        return await repository.db_ops.execute_query(query, params)

    async def all(self) -> list[Any]:
        """Run a select query and map the rows to entities"""
        repository = self._require_repository()
        result = await self.execute()
        if self.select_fields.strip() != "*":
            return [dict(row) for row in result.rows]
        return repository.entity_mapper.map_rows_to_entities(result.rows)

    async def first(self) -> Any | None:
        rows = await self.limit(1).all()
        return rows[0] if rows else None

    async def count(self) -> int:
        repository = self._require_repository()
        count_builder = self.select("COUNT(*)")
        count_builder.order_by_parts = []
        count_builder.limit_count = None
        await count_builder.prepare_for_execution()
        query, params = count_builder.build()
        return await repository.db_ops.fetch_value(query, params) or 0


def _copy_options(options: QueryOptions) -> QueryOptions:
    if options is None:
        return None
    if isinstance(options, Mapping):
        return dict(options)
    return list(options)


def _as_mapping(options: QueryOptions) -> dict[str, Any]:
    if isinstance(options, Mapping):
        return dict(options)
    return {flag: True for flag in options or []}
