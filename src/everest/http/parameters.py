"""Immutable parameter collections.

Used for query parameters, parsed bodies, uploaded files, cookies,
server parameters, and request attributes.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any


class ParameterCollection(Mapping[str, Any]):
    """An immutable string-keyed mapping with chainable ``with_*()`` updates.

    Every transformation returns a new collection, or the same instance
    when nothing changes.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        object.__setattr__(self, "_data", dict(data or {}))

    def __setattr__(self, name: str, value: object) -> None:
        msg = "ParameterCollection is immutable"
        raise AttributeError(msg)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"ParameterCollection({self._data!r})"

    def with_item(self, key: str, value: Any) -> ParameterCollection:
        """Return a collection where *key* holds *value*."""
        if key in self._data:
            current = self._data[key]
            if current is value or (type(current) is type(value) and current == value):
                return self
        return ParameterCollection({**self._data, key: value})

    def with_added(self, key: str, value: Any) -> ParameterCollection:
        """Return a collection with *value* added to *key*.

        A missing key is set; an existing key becomes a list of values.
        """
        if key not in self._data:
            return self.with_item(key, value)
        existing = self._data[key]
        values = [*existing, value] if isinstance(existing, list) else [existing, value]
        return ParameterCollection({**self._data, key: values})

    def without(self, key: str) -> ParameterCollection:
        if key not in self._data:
            return self
        return ParameterCollection({k: v for k, v in self._data.items() if k != key})

    def to_dict(self) -> dict[str, Any]:
        """A shallow copy of the underlying data."""
        return dict(self._data)
