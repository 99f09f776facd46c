"""Repositories with transparent soft delete"""

from softdelete.db_context import DatabaseManager, transactional
from softdelete.entities import BaseEntity
from softdelete.errors import (
    InvalidArgumentError,
    MissingColumnError,
    RepositoryError,
    SoftDeleteNotEnabledError,
)
from softdelete.events import Continue, RepositoryEvent, Stopped
from softdelete.features import RepositoryFeature, SoftDeleteFeature
from softdelete.interceptor import FindOptions, QueryInterceptor
from softdelete.options import DeleteOptions, SaveOptions
from softdelete.query_builder import QueryBuilder, QueryKind
from softdelete.repository import Repository, RepositoryConfig, TableSchema

__all__ = [
    "BaseEntity",
    "Continue",
    "DatabaseManager",
    "DeleteOptions",
    "FindOptions",
    "InvalidArgumentError",
    "MissingColumnError",
    "QueryBuilder",
    "QueryInterceptor",
    "QueryKind",
    "Repository",
    "RepositoryConfig",
    "RepositoryError",
    "RepositoryEvent",
    "RepositoryFeature",
    "SaveOptions",
    "SoftDeleteFeature",
    "SoftDeleteNotEnabledError",
    "Stopped",
    "TableSchema",
    "transactional",
]
