"""
Serialization Utilities

Helpers for turning steps, attempts and usages into plain dictionaries and
JSON, for logging, debugging dumps and API layers built on top of the engine.
"""

import json
import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from dataclasses import is_dataclass, asdict


def serialize(obj: Any, exclude_none: bool = False, exclude_fields: Optional[List[str]] = None) -> Any:
    """
    Convert an object into JSON-compatible Python data.

    Args:
        obj: The object to serialize
        exclude_none: Whether to drop dictionary entries whose value is None
        exclude_fields: Dictionary keys to leave out

    Returns:
        Plain data made of dicts, lists, strings, numbers, booleans and None
    """
    exclude_fields = exclude_fields or []

    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, (list, tuple)):
        return [serialize(item, exclude_none, exclude_fields) for item in obj]

    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            if key in exclude_fields:
                continue
            if exclude_none and value is None:
                continue
            result[str(key)] = serialize(value, exclude_none, exclude_fields)
        return result

    if is_dataclass(obj) and not isinstance(obj, type):
        return serialize(asdict(obj), exclude_none, exclude_fields)

    if callable(getattr(obj, 'to_dict', None)):
        return serialize(obj.to_dict(), exclude_none, exclude_fields)

    return str(obj)


def to_json(obj: Any, pretty: bool = False, exclude_none: bool = False) -> str:
    """
    Serialize an object to a JSON string.

    Args:
        obj: The object to serialize
        pretty: Whether to format the JSON with indentation
        exclude_none: Whether to exclude None values

    Returns:
        JSON string representation
    """
    indent = 2 if pretty else None
    return json.dumps(serialize(obj, exclude_none), indent=indent, ensure_ascii=False, default=str)


class SerializableMixin:
    """
    Mixin that provides ``to_dict``/``to_json`` to a class.

    Classes using this mixin list the attribute (or property) names to export
    in ``__serializable_fields__``.
    """

    __serializable_fields__: List[str] = []

    def to_dict(self) -> Dict[str, Any]:
        """Convert the object to a dictionary."""
        result = {}
        for field in self.__serializable_fields__:
            if hasattr(self, field):
                result[field] = serialize(getattr(self, field))
        return result

    def to_json(self, pretty: bool = False) -> str:
        """Convert the object to a JSON string."""
        return to_json(self.to_dict(), pretty)
