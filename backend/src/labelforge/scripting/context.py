"""Resolution of dotted property paths against an execution context.

A context maps names (flat dotted keys such as "Shipment.Status", nested
mappings, or a mix of both) to context values:

    ContextValue = Scalar | Mapping[str, ContextValue] | LookupFunction

A LookupFunction wraps a zero-argument callable returning a further mapping
(an "attribute bag"); it is invoked on demand when a path drills into it.

Lookups never mutate the context. A path that cannot be resolved yields
None, which scripts see as an empty value.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Union

logger = logging.getLogger(__name__)

Scalar = Union[str, int, float, bool, None, datetime, date]


@dataclass(frozen=True)
class LookupFunction:
    """An attribute bag: a zero-argument callable producing a mapping."""

    function: Callable[[], Mapping[str, Any]]

    def __call__(self) -> Mapping[str, Any]:
        return self.function()


ContextValue = Union[Scalar, Mapping[str, Any], LookupFunction]


def lookup_key(mapping: Mapping[str, Any], key: str) -> tuple[bool, Any]:
    """Exact then case-insensitive key lookup."""
    if key in mapping:
        return True, mapping[key]

    lowered = key.lower()
    for candidate, value in mapping.items():
        if isinstance(candidate, str) and candidate.lower() == lowered:
            return True, value
    return False, None


def drill(value: Any, segments: list[str]) -> Any:
    """Follow path segments into a value.

    Mappings are searched by key (exact, then case-insensitive), lookup
    functions are invoked to obtain their mapping, and any other object
    exposes its public data attributes (e.g. datetime.year). A missing
    segment yields None.
    """
    for segment in segments:
        if isinstance(value, LookupFunction):
            value = value()

        if value is None:
            return None

        if isinstance(value, Mapping):
            found, value = lookup_key(value, segment)
            if not found:
                return None
        elif not segment.startswith("_"):
            value = getattr(value, segment, None)
            if callable(value) and not isinstance(value, LookupFunction):
                return None
        else:
            return None

    return value


class ContextResolver:
    """Resolves dotted paths against a read-only execution context.

    Resolution order:
    1. Exact key match
    2. Case-insensitive key match
    3. Case-insensitive longest proper-prefix key match, then drill into the
       found value with the remaining segments
    4. Local variable named by the first segment, then drill
    5. Unresolved: None
    """

    def __init__(self, context: Mapping[str, Any] | None = None):
        self.context: Mapping[str, Any] = context if context is not None else {}
        self._keys_by_lower: dict[str, str] = {}
        for key in self.context:
            if isinstance(key, str):
                self._keys_by_lower.setdefault(key.lower(), key)

    def _find_key(self, name: str) -> str | None:
        if name in self.context:
            return name
        return self._keys_by_lower.get(name.lower())

    def has(self, name: str) -> bool:
        """Return True if name is a key of the context (any case)."""
        return self._find_key(name) is not None

    def resolve(self, path: str, local_variables: Mapping[str, Any] | None = None) -> Any:
        """Resolve a dotted path.

        Args:
            path: Dotted path such as "Shipment.Receiver.City"
            local_variables: The script block's local variables

        Returns:
            The resolved value, or None when nothing matches
        """
        key = self._find_key(path)
        if key is not None:
            logger.debug("Resolved %s by key %s", path, key)
            return self.context[key]

        segments = path.split(".")

        for split in range(len(segments) - 1, 0, -1):
            key = self._find_key(".".join(segments[:split]))
            if key is not None:
                logger.debug("Resolved %s by prefix %s", path, key)
                return drill(self.context[key], segments[split:])

        if local_variables is not None:
            found, value = lookup_key(local_variables, segments[0])
            if found:
                return drill(value, segments[1:])

        logger.debug("Unresolved context path %s", path)
        return None


def freeze_context(value: Any) -> Any:
    """Return a read-only snapshot of a context.

    Mappings become read-only proxies and lists become tuples, recursively.
    Lookup functions and scalars are returned unchanged.
    """
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze_context(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze_context(item) for item in value)
    return value
