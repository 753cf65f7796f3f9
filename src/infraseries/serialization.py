import importlib
from typing import Any, Type

from infraseries.models import InfraSeriesBaseModel


TYPE_METADATA = "__metadata__"


class SerializedTypeMetadata(InfraSeriesBaseModel):
    """Serializes information about a type so that it can be de-serialized."""

    module: str
    type: str

    @classmethod
    def from_type(cls, obj_type: Type) -> "SerializedTypeMetadata":
        return cls(module=obj_type.__module__, type=obj_type.__name__)


class CachedTypeHelper:
    """Helper class to deserialize types."""

    def __init__(self) -> None:
        self._observed_types: dict[tuple[str, str], Type] = {}

    def get_type(self, metadata: SerializedTypeMetadata) -> Type:
        """Return the type contained in metadata, dynamically importing as necessary."""
        type_key = (metadata.module, metadata.type)
        obj_type = self._observed_types.get(type_key)
        if obj_type is None:
            obj_type = deserialize_type(metadata)
            self._observed_types[type_key] = obj_type
        return obj_type


def serialize_value(obj: InfraSeriesBaseModel, *args, **kwargs) -> dict[str, Any]:
    """Serialize an infraseries object to a dictionary."""
    data = obj.model_dump(*args, mode="json", **kwargs)
    data[TYPE_METADATA] = SerializedTypeMetadata.from_type(type(obj)).model_dump()
    return data


def deserialize_type(metadata: SerializedTypeMetadata) -> Type:
    """Dynamically import the type and return it."""
    mod = importlib.import_module(metadata.module)
    return getattr(mod, metadata.type)
