"""Declarative structural validator for loose document trees.

A schema is plain data built from a closed set of node types:

    string()                      any str
    "literal"                     exactly that str
    number(min, max)              int or float (bools rejected), bounds inclusive
    any_value()                   anything
    array(items, min_length, max_length)
    obj({"key": schema}, extra_key=predicate)
    optional(schema)              field may be absent (only meaningful inside obj)
    one_of(a, b, ...)             at least one alternative matches
    custom(check, message)        check(value) returns violations or a bool

``validate(value, schema)`` returns every violation as ``path: message``
strings. It never mutates, never coerces and never raises: an exception inside
a custom check is reported as a violation. Running time is linear in the size
of the tree (times the number of union alternatives tried).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class StringSchema:
    pass


@dataclass(frozen=True)
class NumberSchema:
    min: float | None = None
    max: float | None = None


@dataclass(frozen=True)
class AnySchema:
    pass


@dataclass(frozen=True)
class ArraySchema:
    items: Schema
    min_length: int | None = None
    max_length: int | None = None


@dataclass(frozen=True)
class ObjectSchema:
    fields: Mapping[str, Schema]
    extra_key: Callable[[str], bool] | None = None


@dataclass(frozen=True)
class OptionalSchema:
    schema: Schema


@dataclass(frozen=True)
class OneOfSchema:
    alternatives: tuple[Schema, ...]


@dataclass(frozen=True)
class CustomSchema:
    check: Callable[[Any], bool | Iterable[str]]
    message: str | None = None
    description: str = "custom"


# A bare str is a literal
Schema = Union[
    str,
    StringSchema,
    NumberSchema,
    AnySchema,
    ArraySchema,
    ObjectSchema,
    OptionalSchema,
    OneOfSchema,
    CustomSchema,
]


def string() -> StringSchema:
    return StringSchema()


def number(min: float | None = None, max: float | None = None) -> NumberSchema:
    return NumberSchema(min=min, max=max)


def any_value() -> AnySchema:
    return AnySchema()


def array(
    items: Schema, min_length: int | None = None, max_length: int | None = None
) -> ArraySchema:
    return ArraySchema(items=items, min_length=min_length, max_length=max_length)


def obj(
    fields: Mapping[str, Schema], extra_key: Callable[[str], bool] | None = None
) -> ObjectSchema:
    return ObjectSchema(fields=dict(fields), extra_key=extra_key)


def optional(schema: Schema) -> OptionalSchema:
    return OptionalSchema(schema=schema)


def one_of(*alternatives: Schema) -> OneOfSchema:
    return OneOfSchema(alternatives=tuple(alternatives))


def custom(
    check: Callable[[Any], bool | Iterable[str]],
    message: str | None = None,
    description: str = "custom",
) -> CustomSchema:
    """Wrap a predicate or rule function.

    ``check`` may return a bool (False is a violation reported with
    ``message``) or an iterable of violation messages (empty means valid).
    """
    return CustomSchema(check=check, message=message, description=description)


@dataclass
class _Violations:
    messages: list[str] = field(default_factory=list)

    def add(self, path: str, message: str) -> None:
        if not path:
            self.messages.append(message)
        elif message.startswith("["):
            # nested validation results already carry an index path
            self.messages.append(f"{path}{message}")
        else:
            self.messages.append(f"{path}: {message}")


def validate(value: Any, schema: Schema) -> list[str]:
    """Return every way ``value`` fails to match ``schema``."""
    out = _Violations()
    _check(value, schema, "", out)
    return out.messages


def is_valid(value: Any, schema: Schema) -> bool:
    return not validate(value, schema)


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _check(value: Any, schema: Schema, path: str, out: _Violations) -> None:
    if isinstance(schema, str):
        if value != schema:
            out.add(path, f"expected {describe(schema)} but got {_show(value)}")

    elif isinstance(schema, StringSchema):
        if not isinstance(value, str):
            out.add(path, f"expected string but got {_show(value)}")

    elif isinstance(schema, NumberSchema):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            out.add(path, f"expected number but got {_show(value)}")
        elif schema.min is not None and value < schema.min:
            out.add(path, f"expected number >= {schema.min} but got {value}")
        elif schema.max is not None and value > schema.max:
            out.add(path, f"expected number <= {schema.max} but got {value}")

    elif isinstance(schema, AnySchema):
        pass

    elif isinstance(schema, OptionalSchema):
        if value is not None:
            _check(value, schema.schema, path, out)

    elif isinstance(schema, ArraySchema):
        _check_array(value, schema, path, out)

    elif isinstance(schema, ObjectSchema):
        _check_object(value, schema, path, out)

    elif isinstance(schema, OneOfSchema):
        for alternative in schema.alternatives:
            if is_valid(value, alternative):
                return
        out.add(path, f"expected {describe(schema)} but got {_show(value)}")

    elif isinstance(schema, CustomSchema):
        _check_custom(value, schema, path, out)

    else:
        raise TypeError(f"unknown schema node: {schema!r}")


def _check_array(value: Any, schema: ArraySchema, path: str, out: _Violations) -> None:
    if not isinstance(value, list):
        out.add(path, f"expected array but got {_show(value)}")
        return
    if schema.min_length is not None and len(value) < schema.min_length:
        out.add(path, f"expected at least {schema.min_length} items but got {len(value)}")
        return
    if schema.max_length is not None and len(value) > schema.max_length:
        out.add(path, f"expected at most {schema.max_length} items but got {len(value)}")
        return
    for index, item in enumerate(value):
        _check(item, schema.items, f"{path}[{index}]", out)


def _check_object(value: Any, schema: ObjectSchema, path: str, out: _Violations) -> None:
    if not isinstance(value, dict):
        out.add(path, f"expected object but got {_show(value)}")
        return

    for key in value:
        if key in schema.fields:
            continue
        if schema.extra_key is not None:
            try:
                if schema.extra_key(key):
                    continue
            except Exception as exc:
                out.add(path, f"extra key check raised {type(exc).__name__}: {exc}")
                continue
        out.add(path, f"unexpected key {key}")

    for key, field_schema in schema.fields.items():
        if key not in value:
            if not isinstance(field_schema, OptionalSchema):
                out.add(path, f"missing key {key}")
            continue
        _check(value[key], field_schema, _join(path, key), out)


def _check_custom(value: Any, schema: CustomSchema, path: str, out: _Violations) -> None:
    try:
        result = schema.check(value)
        if isinstance(result, bool):
            messages = [] if result else [schema.message or f"failed {schema.description} check"]
        else:
            messages = list(result)
    except Exception as exc:
        messages = [f"{schema.description} check raised {type(exc).__name__}: {exc}"]
    for message in messages:
        out.add(path, message)


def describe(schema: Schema) -> str:
    """Render the expectation ``schema`` expresses."""
    if isinstance(schema, str):
        return f"'{schema}'"
    if isinstance(schema, StringSchema):
        return "string"
    if isinstance(schema, NumberSchema):
        if schema.min is None and schema.max is None:
            return "number"
        low = "-inf" if schema.min is None else schema.min
        high = "inf" if schema.max is None else schema.max
        return f"number in [{low}, {high}]"
    if isinstance(schema, AnySchema):
        return "any"
    if isinstance(schema, OptionalSchema):
        return f"optional {describe(schema.schema)}"
    if isinstance(schema, ArraySchema):
        return f"array of {describe(schema.items)}"
    if isinstance(schema, ObjectSchema):
        keys = ", ".join(
            f"{key}?" if isinstance(s, OptionalSchema) else key for key, s in schema.fields.items()
        )
        return f"object {{{keys}}}"
    if isinstance(schema, OneOfSchema):
        return "one of " + " | ".join(describe(s) for s in schema.alternatives)
    if isinstance(schema, CustomSchema):
        return schema.description
    return repr(schema)


def _show(value: Any) -> str:
    if isinstance(value, str):
        return f"'{value}'"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if value is None:
        return "nothing"
    return repr(value)
