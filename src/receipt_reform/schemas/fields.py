"""Field descriptors derived from the canonical record models.

The request builder, the prompt builder and the normalizer all read the
schema through :func:`field_specs`, so the list of fields only exists once,
in :mod:`receipt_reform.schemas.receipt`.
"""

import types
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Union, get_args, get_origin

from pydantic import BaseModel, Field, create_model
from pydantic.fields import FieldInfo

from receipt_reform.schemas.receipt import ReceiptRecord


class FieldKind(str, Enum):
    """Semantic type of a field."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


@dataclass(frozen=True)
class FieldSpec:
    """Declarative description of one field."""

    name: str
    alias: str
    kind: FieldKind
    required: bool
    nullable: bool
    description: str | None = None
    hint: str | None = None
    model: type[BaseModel] | None = None
    children: tuple["FieldSpec", ...] = ()


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0], True
    return annotation, False


def _nested_model(annotation: Any) -> type[BaseModel] | None:
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation
    if get_origin(annotation) is list:
        args = get_args(annotation)
        if args and isinstance(args[0], type) and issubclass(args[0], BaseModel):
            return args[0]
    return None


def _kind_of(annotation: Any) -> FieldKind:
    if get_origin(annotation) is list:
        return FieldKind.ARRAY
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return FieldKind.OBJECT
    if annotation is bool:
        return FieldKind.BOOLEAN
    if annotation in (int, float):
        return FieldKind.NUMBER
    return FieldKind.STRING


def _hint_of(field_info: FieldInfo) -> str | None:
    extra = field_info.json_schema_extra
    if isinstance(extra, dict):
        hint = extra.get("hint")
        return str(hint) if hint is not None else None
    return None


@lru_cache(maxsize=None)
def field_specs(model: type[BaseModel] = ReceiptRecord) -> tuple[FieldSpec, ...]:
    """Describe every field of a record model, recursing into nested models."""
    specs: list[FieldSpec] = []
    for name, field_info in model.model_fields.items():
        annotation, nullable = _unwrap_optional(field_info.annotation)
        nested = _nested_model(annotation)
        specs.append(
            FieldSpec(
                name=name,
                alias=field_info.alias or name,
                kind=_kind_of(annotation),
                required=field_info.is_required(),
                nullable=nullable,
                description=field_info.description,
                hint=_hint_of(field_info),
                model=nested,
                children=field_specs(nested) if nested is not None else (),
            )
        )
    return tuple(specs)


def required_fields(model: type[BaseModel] = ReceiptRecord) -> list[str]:
    """Wire names of the fields a record cannot be rendered without."""
    return [spec.alias for spec in field_specs(model) if spec.required]


def optional_fields(model: type[BaseModel] = ReceiptRecord) -> list[str]:
    """Wire names of the fields that default to the absent marker."""
    return [spec.alias for spec in field_specs(model) if not spec.required]


@lru_cache(maxsize=None)
def build_candidate_model(model: type[BaseModel] = ReceiptRecord) -> type[BaseModel]:
    """Build the structured-output model sent with the request.

    Same shape and wire names as ``model`` but every field is nullable, so
    a partial answer still parses and reaches the normalizer, which decides
    what is fatal.
    """
    field_annotations: dict[str, Any] = {}
    for spec in field_specs(model):
        field_info = model.model_fields[spec.name]
        annotation, _ = _unwrap_optional(field_info.annotation)
        if spec.model is not None:
            candidate = build_candidate_model(spec.model)
            annotation = list[candidate] if spec.kind is FieldKind.ARRAY else candidate  # type: ignore[valid-type]
        field_annotations[spec.alias] = (
            annotation | None,
            Field(default=None, description=spec.description),
        )

    candidate_model: type[BaseModel] = create_model(
        f"{model.__name__}Candidate",
        __doc__=model.__doc__,
        **field_annotations,
    )
    return candidate_model
