"""Options accepted by repository write operations"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SaveOptions(BaseModel):
    """Options for Repository.save()"""

    model_config = ConfigDict(extra="allow")

    check_rules: bool = Field(default=True, description="Run create/update rules")
    atomic: bool = Field(default=True, description="Run inside a transaction")


class DeleteOptions(BaseModel):
    """Options for Repository.delete()

    Unknown keys are kept and handed to listeners and cascaded deletes.
    """

    model_config = ConfigDict(extra="allow")

    check_rules: bool = Field(default=True, description="Run delete rules")
    atomic: bool = Field(default=True, description="Run inside a transaction")
    primary: bool = Field(
        default=True,
        description="False when the delete is cascaded from another entity",
    )

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump()

    def for_cascade(self) -> "DeleteOptions":
        return self.model_copy(update={"primary": False})
