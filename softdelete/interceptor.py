"""Select query interception for soft delete tables"""

from collections.abc import Callable, Iterable, Mapping
from typing import Any

import structlog
from pydantic import BaseModel, Field, model_validator

from softdelete.query_builder import QueryBuilder, QueryKind

logger = structlog.get_logger(__name__)

WITH_DELETED_KEYS = ("withDeleted", "with_deleted")


class FindOptions(BaseModel):
    """Finder options that control soft delete interception.

    `include_deleted` is the typed switch for direct construction. Raw
    options carried by a query go through from_raw(), which accepts both
    historical shapes: a list of flags (["withDeleted"]) and a mapping.
    In a mapping the presence of the key is enough ({"withDeleted": False}
    still includes deleted rows), and a "withDeleted" string value counts
    too ({"flags": "withDeleted"}). Other keys, `include_deleted` among
    them, are ignored.
    """

    include_deleted: bool = False
    raw: Any = Field(default=None, exclude=True, repr=False)

    @model_validator(mode="after")
    def _apply_raw(self) -> "FindOptions":
        if not self.include_deleted and _requests_deleted(self.raw):
            self.include_deleted = True
        return self

    @classmethod
    def from_raw(cls, options: Any) -> "FindOptions":
        if isinstance(options, FindOptions):
            return options
        return cls(raw=options)


def _requests_deleted(options: Any) -> bool:
    if not options:
        return False
    if isinstance(options, Mapping):
        return any(key in options for key in WITH_DELETED_KEYS) or any(
            isinstance(value, str) and value in WITH_DELETED_KEYS
            for value in options.values()
        )
    if isinstance(options, str):
        return False
    if isinstance(options, Iterable):
        return any(flag in WITH_DELETED_KEYS for flag in options)
    return False


class QueryInterceptor:
    """Adds `<alias>.<deleted field> IS NULL` to queries right before they run.

    The interceptor decorates the builder's own before-find step: that step
    runs first (other listeners see the query untouched), then the
    exclusion predicate is added unless the query asked for deleted rows.
    The builder's fired flag makes repeated preparation a no-op.

    Args:
        resolve_field: returns the deleted field name, checked against the
            table schema on every call
        alias_field: qualifies a column with the table alias
        kinds: query kinds the interceptor applies to
    """

    def __init__(
        self,
        resolve_field: Callable[[], str],
        alias_field: Callable[[str], str],
        kinds: Iterable[QueryKind] = (QueryKind.SELECT,),
    ):
        self.resolve_field = resolve_field
        self.alias_field = alias_field
        self.kinds = frozenset(kinds)

    async def prepare_for_execution(self, query: QueryBuilder) -> None:
        if query.before_find_fired or query.kind not in self.kinds:
            return

        await query.trigger_before_find()
        query.before_find_fired = True

        options = FindOptions.from_raw(query.query_options)
        if options.include_deleted:
            return

        aliased_field = self.alias_field(self.resolve_field())
        query.and_where(f"{aliased_field} IS NULL")
        logger.debug(
            "Excluding soft deleted rows", table=query.table_name, field=aliased_field
        )
