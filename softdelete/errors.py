"""Exceptions raised by repositories and their features"""


class RepositoryError(Exception):
    """Base class for repository errors"""


class MissingColumnError(RepositoryError):
    """The configured soft delete field does not exist in the table schema."""

    def __init__(self, field: str, table: str):
        self.field = field
        self.table = table
        super().__init__(
            f"Configured field `{field}` is missing from the table `{table}`."
        )


class InvalidArgumentError(RepositoryError, ValueError):
    """An argument cannot be used for the requested operation."""


class SoftDeleteNotEnabledError(RepositoryError):
    """A soft delete operation was called on a repository without the feature."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Soft delete is not enabled for the table `{table}`.")
