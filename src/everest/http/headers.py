"""Immutable, case-insensitive HTTP headers.

Implements ``Mapping[str, str]`` where ``__getitem__`` returns the first
value. Each name holds an ordered list of values; the first spelling of
a name is preserved for output.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from typing import TypeAlias

_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")

HeaderValue: TypeAlias = str | Iterable[str]
HeaderInput: TypeAlias = Mapping[str, HeaderValue] | Iterable[tuple[str, str]]


def _validate_name(name: str) -> str:
    if not isinstance(name, str) or not _TOKEN.match(name):
        msg = f"Invalid header name {name!r}"
        raise ValueError(msg)
    return name


def _values(value: HeaderValue) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


class Headers(Mapping[str, str]):
    """Immutable, case-insensitive HTTP headers.

    ``__getitem__`` returns the first value for a name.
    ``get_list`` returns all values, ``get_line`` joins them with ``", "``.
    Values are never split on commas.
    """

    __slots__ = ("_index", "_items")

    def __init__(self, headers: HeaderInput | None = None) -> None:
        if isinstance(headers, Headers):
            object.__setattr__(self, "_items", headers._items)
            object.__setattr__(self, "_index", headers._index)
            return
        items: list[tuple[str, tuple[str, ...]]] = []
        index: dict[str, int] = {}
        pairs = headers.items() if isinstance(headers, Mapping) else (headers or ())
        for name, value in pairs:
            key = _validate_name(name).lower()
            if key in index:
                position = index[key]
                first, existing = items[position]
                items[position] = (first, existing + _values(value))
            else:
                index[key] = len(items)
                items.append((name, _values(value)))
        object.__setattr__(self, "_items", tuple(items))
        object.__setattr__(self, "_index", index)

    @classmethod
    def from_raw(cls, raw: Iterable[tuple[bytes, bytes]]) -> Headers:
        """Build Headers from ASGI byte pairs."""
        return cls((name.decode("latin-1"), value.decode("latin-1")) for name, value in raw)

    def __setattr__(self, name: str, value: object) -> None:
        msg = "Headers is immutable"
        raise AttributeError(msg)

    def __getitem__(self, key: str) -> str:
        values = self.get_list(key)
        if not values:
            raise KeyError(key)
        return values[0]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._index

    def __iter__(self) -> Iterator[str]:
        for name, _ in self._items:
            yield name

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        items = ", ".join(f"{name!r}: {list(values)!r}" for name, values in self._items)
        return f"Headers({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        values = self.get_list(key)
        return values[0] if values else default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key* (e.g. multiple ``Set-Cookie``)."""
        position = self._index.get(key.lower())
        if position is None:
            return []
        return list(self._items[position][1])

    def get_line(self, key: str) -> str:
        """Return all values for *key* joined with ``", "``; empty if missing."""
        return ", ".join(self.get_list(key))

    # -- Chainable transformations --

    def with_header(self, name: str, value: HeaderValue) -> Headers:
        """Return Headers where *name* holds exactly *value*."""
        values = _values(value)
        key = _validate_name(name).lower()
        position = self._index.get(key)
        if position is None:
            return Headers((*self._pairs(), *((name, v) for v in values)))
        if self._items[position][1] == values:
            return self
        items = list(self._items)
        items[position] = (items[position][0], values)
        return self._from_items(items)

    def with_added(self, name: str, value: HeaderValue) -> Headers:
        """Return Headers with *value* appended to the values of *name*."""
        values = _values(value)
        if not values:
            return self
        _validate_name(name)
        return Headers((*self._pairs(), *((name, v) for v in values)))

    def without(self, name: str) -> Headers:
        """Return Headers without *name*."""
        key = name.lower()
        if key not in self._index:
            return self
        return self._from_items([item for item in self._items if item[0].lower() != key])

    def to_dict(self) -> dict[str, list[str]]:
        """Names (first spelling) mapped to lists of values."""
        return {name: list(values) for name, values in self._items}

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        """Header byte pairs for ASGI, with lower-cased names."""
        return tuple(
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in self._pairs()
        )

    def _pairs(self) -> Iterator[tuple[str, str]]:
        for name, values in self._items:
            for value in values:
                yield name, value

    @classmethod
    def _from_items(cls, items: list[tuple[str, tuple[str, ...]]]) -> Headers:
        headers = cls.__new__(cls)
        object.__setattr__(headers, "_items", tuple(items))
        object.__setattr__(headers, "_index", {name.lower(): i for i, (name, _) in enumerate(items)})
        return headers
