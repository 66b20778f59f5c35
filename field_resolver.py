"""
FieldSpec Resolver
==================

Turns schema objects into FieldSpec instances. Supported inputs:

  - pydantic models (``BaseModel`` subclasses) and their ``FieldInfo`` entries
  - bare annotations: str, int, float, bool, Literal[...], Enum subclasses,
    SecretStr, Optional[...] and Annotated[...] with pydantic constraints
  - JSON-schema documents and property dicts (what ``model_json_schema()``
    emits, or a hand-written ``env.schema.json``)

Validation always goes through a pydantic TypeAdapter so constraints behave
the same whichever form the schema was written in.

Usage:
    from field_resolver import resolve_fields
    fields = resolve_fields(AppSettings)
"""

from __future__ import annotations

import dataclasses
import enum
import types
from typing import Annotated, Any, Iterable, Literal, Mapping, Union, get_args, get_origin

from pydantic import BaseModel, Field, SecretStr, TypeAdapter, ValidationError
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined

from env_fields import (
    DEFAULT_SECRET_PATTERNS,
    FieldSpec,
    FieldType,
    SecretPattern,
    Validator,
    is_secret_key,
)

# JSON-schema keyword -> pydantic Field() keyword
JSON_CONSTRAINTS: dict[str, str] = {
    "minimum": "ge",
    "maximum": "le",
    "exclusiveMinimum": "gt",
    "exclusiveMaximum": "lt",
    "minLength": "min_length",
    "maxLength": "max_length",
    "pattern": "pattern",
}

JSON_TYPES: dict[str, type] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
}


class SchemaResolutionError(ValueError):
    """Raised when a schema object cannot be classified into a FieldSpec."""


def adapter_validator(adapter: TypeAdapter) -> Validator:
    """Wrap a TypeAdapter as a validate() predicate returning the first error message."""

    def validate(value: Any) -> str | None:
        try:
            adapter.validate_python(value)
        except ValidationError as exc:
            errors = exc.errors()
            if errors:
                return str(errors[0].get("msg", exc))
            return str(exc)
        return None

    return validate


def _annotated(base: Any, metadata: Iterable[Any]) -> Any:
    extras = tuple(metadata)
    if not extras:
        return base
    return Annotated[(base, *extras)]


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """Return (inner annotation, nullable)."""
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        nullable = len(args) != len(get_args(annotation))
        if len(args) == 1:
            return args[0], nullable
        raise SchemaResolutionError(f"Unsupported union annotation: {annotation!r}")
    return annotation, False


def _classify_annotation(annotation: Any) -> tuple[FieldType, tuple[str, ...], bool]:
    """Return (field type, enum values, explicit secret) for a bare annotation."""
    if get_origin(annotation) is Annotated:
        annotation = get_args(annotation)[0]
    if annotation is SecretStr:
        return FieldType.STRING, (), True
    if annotation is bool:
        return FieldType.BOOLEAN, (), False
    if annotation in (int, float):
        return FieldType.NUMBER, (), False
    if annotation is str:
        return FieldType.STRING, (), False
    if get_origin(annotation) is Literal:
        values = get_args(annotation)
        if not values or not all(isinstance(value, str) for value in values):
            raise SchemaResolutionError(f"Only string literals are supported: {annotation!r}")
        return FieldType.ENUM, tuple(values), False
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return FieldType.ENUM, tuple(str(member.value) for member in annotation), False
    raise SchemaResolutionError(f"Unsupported annotation: {annotation!r}")


def _native_default(value: Any) -> Any:
    if value is PydanticUndefined or value is None:
        return None
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    if isinstance(value, enum.Enum):
        return str(value.value)
    return value


def _explicit_secret(extra: Any) -> bool | None:
    if isinstance(extra, Mapping):
        secret = extra.get("secret")
        if isinstance(secret, bool):
            return secret
    return None


def _resolve_secret(
    key: str,
    field_type: FieldType,
    description: str | None,
    explicit: bool | None,
    secret_patterns: Iterable[SecretPattern],
) -> bool:
    if explicit is not None:
        if explicit and field_type != FieldType.STRING:
            raise SchemaResolutionError(f"{key}: only string fields can be secret")
        return explicit
    if field_type != FieldType.STRING:
        return False
    return is_secret_key(key, description, secret_patterns)


def from_field_info(
    key: str,
    info: FieldInfo,
    secret_patterns: Iterable[SecretPattern] = DEFAULT_SECRET_PATTERNS,
) -> FieldSpec:
    """Resolve a pydantic FieldInfo (a model field or an annotation)."""
    inner, nullable = _unwrap_optional(info.annotation)
    field_type, values, annotated_secret = _classify_annotation(inner)
    description = info.description or info.title

    explicit = _explicit_secret(info.json_schema_extra)
    if explicit is None and annotated_secret:
        explicit = True

    default = None
    if not info.is_required():
        default = _native_default(info.get_default(call_default_factory=True))

    adapter = TypeAdapter(_annotated(info.annotation, info.metadata))
    return FieldSpec(
        key=key,
        type=field_type,
        required=not nullable,
        default=default,
        description=description,
        secret=_resolve_secret(key, field_type, description, explicit, secret_patterns),
        values=values,
        validate=adapter_validator(adapter),
    )


def _deref(prop: Mapping[str, Any], defs: Mapping[str, Any]) -> dict[str, Any]:
    """Inline $ref / allOf / anyOf wrappers the way pydantic emits them."""
    resolved = dict(prop)
    ref = resolved.pop("$ref", None)
    if ref is None and isinstance(resolved.get("allOf"), list) and len(resolved["allOf"]) == 1:
        ref = resolved.pop("allOf")[0].get("$ref")
    if ref is not None:
        name = str(ref).rsplit("/", 1)[-1]
        if name not in defs:
            raise SchemaResolutionError(f"Unresolvable reference: {ref}")
        resolved = {**_deref(defs[name], defs), **resolved}

    variants = resolved.pop("anyOf", None)
    if isinstance(variants, list):
        non_null = [variant for variant in variants if variant.get("type") != "null"]
        if len(non_null) != 1:
            raise SchemaResolutionError(f"Unsupported anyOf schema: {variants!r}")
        resolved = {**_deref(non_null[0], defs), **resolved}
        resolved["nullable"] = len(non_null) != len(variants)
    return resolved


def _json_type(prop: Mapping[str, Any]) -> tuple[str | None, bool]:
    declared = prop.get("type")
    if isinstance(declared, list):
        names = [name for name in declared if name != "null"]
        if len(names) != 1:
            raise SchemaResolutionError(f"Unsupported JSON-schema type: {declared!r}")
        return names[0], len(names) != len(declared)
    return declared, bool(prop.get("nullable", False))


def from_json_property(
    key: str,
    prop: Mapping[str, Any],
    required: bool | None = None,
    secret_patterns: Iterable[SecretPattern] = DEFAULT_SECRET_PATTERNS,
    defs: Mapping[str, Any] | None = None,
) -> FieldSpec:
    """Resolve one JSON-schema property dict."""
    resolved = _deref(prop, defs or {})
    type_name, nullable = _json_type(resolved)
    description = resolved.get("description") or resolved.get("title")
    default = resolved.get("default")

    if "enum" in resolved:
        values = tuple(str(value) for value in resolved["enum"])
        if not values:
            raise SchemaResolutionError(f"{key}: enum without values")
        field_type = FieldType.ENUM
        base: Any = Literal[values]
        if default is not None:
            default = str(default)
    else:
        if type_name is None:
            type_name = "string"
        if type_name not in JSON_TYPES:
            raise SchemaResolutionError(f"{key}: unsupported JSON-schema type {type_name!r}")
        values = ()
        base = JSON_TYPES[type_name]
        field_type, _, _ = _classify_annotation(base)

    constraints = {
        JSON_CONSTRAINTS[name]: value
        for name, value in resolved.items()
        if name in JSON_CONSTRAINTS
    }
    annotation = Annotated[base, Field(**constraints)] if constraints else base

    explicit = resolved.get("secret") if isinstance(resolved.get("secret"), bool) else None
    if explicit is None and (resolved.get("writeOnly") is True or resolved.get("format") == "password"):
        explicit = True

    if isinstance(resolved.get("required"), bool):
        is_required = resolved["required"]
    elif required is not None:
        is_required = required or default is not None
    else:
        is_required = not nullable

    return FieldSpec(
        key=key,
        type=field_type,
        required=is_required and not nullable,
        default=default,
        description=description,
        secret=_resolve_secret(key, field_type, description, explicit, secret_patterns),
        values=values,
        validate=adapter_validator(TypeAdapter(annotation)),
    )


def resolve_field(
    key: str,
    schema: Any,
    secret_patterns: Iterable[SecretPattern] = DEFAULT_SECRET_PATTERNS,
) -> FieldSpec:
    """Resolve any supported schema object into a FieldSpec for ``key``."""
    if isinstance(schema, FieldSpec):
        return schema if schema.key == key else dataclasses.replace(schema, key=key)
    if isinstance(schema, FieldInfo):
        return from_field_info(key, schema, secret_patterns)
    if isinstance(schema, Mapping):
        return from_json_property(key, schema, secret_patterns=secret_patterns)
    try:
        info = FieldInfo.from_annotation(schema)
    except Exception as exc:
        raise SchemaResolutionError(f"{key}: unsupported schema {schema!r}") from exc
    return from_field_info(key, info, secret_patterns)


def resolve_fields(
    schemas: Any,
    secret_patterns: Iterable[SecretPattern] = DEFAULT_SECRET_PATTERNS,
) -> list[FieldSpec]:
    """
    Resolve a whole schema into an ordered list of FieldSpec.

    Accepts a pydantic model class, a JSON-schema object (``properties`` +
    ``required``), or a mapping of key -> schema object.
    """
    patterns = tuple(secret_patterns)

    if isinstance(schemas, type) and issubclass(schemas, BaseModel):
        return [
            from_field_info(info.alias or name, info, patterns)
            for name, info in schemas.model_fields.items()
        ]

    if isinstance(schemas, Mapping) and isinstance(schemas.get("properties"), Mapping):
        required_names = set(schemas.get("required", []))
        defs = schemas.get("$defs") or schemas.get("definitions") or {}
        return [
            from_json_property(
                key,
                prop,
                required=key in required_names,
                secret_patterns=patterns,
                defs=defs,
            )
            for key, prop in schemas["properties"].items()
        ]

    if isinstance(schemas, Mapping):
        return [resolve_field(key, schema, patterns) for key, schema in schemas.items()]

    raise SchemaResolutionError(f"Unsupported schema container: {type(schemas).__name__}")
