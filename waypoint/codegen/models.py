"""
Declarative model definitions (``models/<Name>.py``).

::

    fields = {
        "name": {"type": "string", "required": True, "trim": True},
        "email": {"type": "string", "required": True, "unique": True, "trim": True},
        "age": {"type": "number", "default": 18},
    }
    timestamps = True        # optional, adds createdAt/updatedAt
    name = "User"            # optional, defaults to the file stem
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..discovery import iter_capability_files, load_module
from ..faults import InvalidCapabilityFault

FIELD_TYPES = ("string", "number", "boolean", "date", "array", "object", "objectid")
TIMESTAMP_FIELDS = ("createdAt", "updatedAt")

_MISSING = object()


@dataclass(frozen=True)
class FieldDefinition:
    name: str
    type: str = "string"
    required: bool = False
    unique: bool = False
    trim: bool = False
    default: Any = None

    @property
    def has_default(self) -> bool:
        return self.default is not None

    @classmethod
    def from_value(cls, model: str, name: str, value: Any) -> "FieldDefinition":
        if isinstance(value, str):
            value = {"type": value}
        if not isinstance(value, dict):
            raise InvalidCapabilityFault("model", model, f"field '{name}' must be a dict or a type name")
        field_type = str(value.get("type", "string")).lower()
        if field_type not in FIELD_TYPES:
            raise InvalidCapabilityFault("model", model, f"field '{name}' has unknown type '{field_type}'")
        return cls(
            name=name,
            type=field_type,
            required=bool(value.get("required", False)),
            unique=bool(value.get("unique", False)),
            trim=bool(value.get("trim", False)),
            default=value.get("default"),
        )


@dataclass(frozen=True)
class ModelDefinition:
    name: str
    fields: List[FieldDefinition] = field(default_factory=list)
    timestamps: bool = True
    source: Optional[str] = None

    @property
    def lower_name(self) -> str:
        return self.name.lower()

    @property
    def unique_fields(self) -> List[str]:
        return [f.name for f in self.fields if f.unique]

    @property
    def required_fields(self) -> List[str]:
        return [f.name for f in self.fields if f.required]

    @property
    def field_names(self) -> List[str]:
        """Declared fields plus the timestamp fields (sortable)."""
        names = [f.name for f in self.fields]
        if self.timestamps:
            names.extend(TIMESTAMP_FIELDS)
        return names

    @classmethod
    def from_mapping(cls, name: str, fields: Dict[str, Any], timestamps: bool = True,
                     source: Optional[str] = None) -> "ModelDefinition":
        if not isinstance(fields, dict) or not fields:
            raise InvalidCapabilityFault("model", name, "'fields' must be a non-empty dict")
        parsed = [
            FieldDefinition.from_value(name, field_name, value)
            for field_name, value in fields.items()
            if field_name not in TIMESTAMP_FIELDS
        ]
        return cls(name=name, fields=parsed, timestamps=timestamps, source=source)


def load_model(path: Union[str, Path]) -> ModelDefinition:
    path = Path(path)
    module = load_module(path, fresh=True)
    fields = getattr(module, "fields", _MISSING)
    if fields is _MISSING:
        raise InvalidCapabilityFault("model", path.stem, "module must define 'fields'")
    return ModelDefinition.from_mapping(
        name=getattr(module, "name", None) or path.stem,
        fields=fields,
        timestamps=bool(getattr(module, "timestamps", True)),
        source=str(path),
    )


def load_models(directory: Union[str, Path]) -> List[ModelDefinition]:
    """Every model definition of ``directory``, in file name order."""
    return [load_model(path) for path in iter_capability_files(directory)]
