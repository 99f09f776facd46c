from collections.abc import Iterable
from typing import Any, ClassVar
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, PrivateAttr
from pydantic.config import ConfigDict


class BaseEntity(BaseModel):
    """Base entity class for all database models.

    Besides its fields an entity remembers whether it has been persisted
    and which rules rejected it the last time it was checked.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(
        use_enum_values=True, extra="allow", validate_assignment=True
    )
    id: UUID | None = Field(default_factory=uuid4)

    _new: bool = PrivateAttr(default=True)
    _errors: dict[str, list[str]] = PrivateAttr(default_factory=dict)

    def is_new(self) -> bool:
        """True until the entity is inserted or loaded from the database"""
        return self._new

    def mark_persisted(self) -> None:
        self._new = False

    def has(self, fields: str | Iterable[str]) -> bool:
        """Whether every field in `fields` is set to a non-None value"""
        if isinstance(fields, str):
            fields = [fields]
        return all(getattr(self, name, None) is not None for name in fields)

    def extract(self, fields: Iterable[str]) -> dict[str, Any]:
        return {name: getattr(self, name, None) for name in fields}

    def get_errors(self) -> dict[str, list[str]]:
        return {key: list(value) for key, value in self._errors.items()}

    def set_error(self, field: str, message: str) -> None:
        self._errors.setdefault(field, []).append(message)
