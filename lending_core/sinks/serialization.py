"""Shared serialization utilities for sinks."""

from dataclasses import fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from lending_core.models.money import Money


def to_dict(obj: Any) -> dict:
    """Convert object to dictionary."""
    if is_dataclass(obj):
        return dataclass_to_dict(obj)
    elif isinstance(obj, dict):
        return {serialize_key(k): serialize_value(v) for k, v in obj.items()}
    else:
        return {"value": str(obj)}


def dataclass_to_dict(obj: Any) -> dict:
    """Convert dataclass to dict with proper serialization.

    Walks ``dataclasses.fields()`` rather than ``asdict()`` so that nested
    ``Money`` values are rendered as amounts instead of being flattened into
    their minor-unit fields. Private fields (leading underscore) are skipped.
    """
    return {
        f.name: serialize_value(getattr(obj, f.name))
        for f in fields(obj)
        if not f.name.startswith("_")
    }


def serialize_key(key: Any) -> Any:
    """Serialize a mapping key; enum and date keys become strings."""
    if isinstance(key, Enum):
        return key.value
    if isinstance(key, (date, datetime)):
        return key.isoformat()
    return key


def serialize_value(value: Any) -> Any:
    """Serialize a value for JSON output.

    ``Money`` becomes a decimal string in major units (``"9168.00"``) so no
    precision is lost; the currency is carried by the owning record.
    """
    if isinstance(value, Money):
        return str(value.to_decimal())
    elif isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, date):
        return value.isoformat()
    elif is_dataclass(value) and not isinstance(value, type):
        return dataclass_to_dict(value)
    elif isinstance(value, dict):
        return {serialize_key(k): serialize_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return value
