"""Base models for the package"""

import abc
from typing import Any
from uuid import UUID, uuid4

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_serializer


def make_model_config(**kwargs: Any) -> ConfigDict:
    """Return a Pydantic config"""
    return ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        validate_default=True,
        extra="forbid",
        use_enum_values=False,
        arbitrary_types_allowed=True,
        populate_by_name=True,
        **kwargs,  # type: ignore
    )


class InfraSeriesBaseModel(BaseModel):
    """Base class for all infraseries models"""

    model_config = make_model_config()


class InfraSeriesBaseModelWithIdentifiers(InfraSeriesBaseModel, abc.ABC):
    """Base class for all infraseries types with UUIDs"""

    uuid: UUID = Field(default_factory=uuid4, repr=False)

    @field_serializer("uuid")
    def _serialize_uuid(self, _) -> str:
        return str(self.uuid)

    def assign_new_uuid(self) -> None:
        """Generate a new UUID."""
        self.uuid = uuid4()
        logger.debug("Assigned new UUID for {}: {}", self.summary, self.uuid)

    @property
    def summary(self) -> str:
        """Provides a description of an instance."""
        class_name = self.__class__.__name__
        name = getattr(self, "name", "") or str(self.uuid)
        return make_summary(class_name, name)


def make_summary(class_name: str, name: str) -> str:
    """Make a string summarizing an instance."""
    return f"{class_name}.{name}"
