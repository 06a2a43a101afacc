"""
cpcli - Query Filter Normalization

This module rewrites filter values whose format depends on the target resource
(e.g. MAC addresses are lowercase for endpoints but hyphenated for guests), and
lowers command-line style filter arguments into the structured filter form.
"""

import json
import logging
from typing import Any, Callable, Dict, Iterable, Optional

from ..shared.constants import (
    API_RESOURCE_ENDPOINT,
    API_RESOURCE_GUEST,
    API_RESOURCE_INSIGHT,
)
from .exceptions import ValidationError
from .mac import MAC

logger = logging.getLogger("cpcli")

Normalizer = Callable[[str], str]


def endpoint_mac(value: str) -> str:
    """MAC format for endpoints: lower, no separators."""
    return str(MAC(value)).lower()


def guest_mac(value: str) -> str:
    """MAC format for guests: upper, hyphenated."""
    return MAC(value).hyphen()


# resource -> field -> normalizer
NORMALIZERS: Dict[str, Dict[str, Normalizer]] = {
    API_RESOURCE_ENDPOINT: {"mac_address": endpoint_mac},
    API_RESOURCE_GUEST: {"mac": guest_mac},
    API_RESOURCE_INSIGHT: {"mac": endpoint_mac},
}


def resource_of(path: str) -> str:
    """First segment of an API path, e.g. 'endpoint' for 'endpoint/mac/...'."""
    return path.lstrip("/").split("/", 1)[0]


def normalize(filter: Optional[Dict[str, Any]], path: str) -> Dict[str, Any]:
    """Normalize the known fields of a filter for the resource at ``path``.

    Args:
        filter: Mapping of field name to value (string or structured JSON value)
        path: API path relative to the API root, e.g. "endpoint" or "guest/123"

    Returns:
        A new filter dictionary; the input is not modified

    Raises:
        ValidationError: If a normalized field holds a scalar that is not a string
    """
    result = dict(filter or {})
    rules = NORMALIZERS.get(resource_of(path))
    if not rules:
        return result

    for key, value in result.items():
        normalizer = rules.get(key)
        if normalizer is None:
            continue
        if isinstance(value, str):
            result[key] = normalizer(value)
        elif isinstance(value, (dict, list)):
            # Operators like {"$exists": true} or {"$in": [...]} go through as they are
            continue
        else:
            raise ValidationError(
                f"Filter field '{key}' must be a string, got {type(value).__name__}",
                context={"path": path, "field": key, "value": value},
            )
    return result


def _parse_json(text: str, what: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Wrong filter format in {what}: {e}",
                              context={"filter": text})


def parse_filter_args(args: Optional[Iterable[str]]) -> Dict[str, Any]:
    """Build a structured filter from command-line style arguments.

    Each argument is one of:
      - a JSON object, merged into the filter
      - "key=value"; values starting with '{' or '[' are parsed as JSON
      - "key" alone, meaning the field must exist
    """
    result: Dict[str, Any] = {}
    for current in args or []:
        current = current.strip()
        if not current:
            continue
        if current.startswith("{"):
            partial = _parse_json(current, "filter object")
            if not isinstance(partial, dict):
                raise ValidationError("Filter object must be a JSON object",
                                      context={"filter": current})
            result.update(partial)
            continue
        key, sep, value = current.partition("=")
        key = key.strip()
        if not sep:
            result[key] = {"$exists": True}
            continue
        value = value.strip()
        if value.startswith(("{", "[")):
            result[key] = _parse_json(value, f"field '{key}'")
        else:
            result[key] = value
    logger.debug(f"Parsed filter: {json.dumps(result)}")
    return result
