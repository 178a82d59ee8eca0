"""HTTP request methods as a combinable bitmask.

Routes accept a set of methods; a request matches when its method's
flag is contained in the route's mask::

    Method.GET | Method.HEAD
"""

from enum import IntFlag


class Method(IntFlag):
    """HTTP methods. Combine with ``|``, test with ``in`` or ``&``."""

    GET = 0x01
    POST = 0x02
    HEAD = 0x04
    PUT = 0x08
    DELETE = 0x10
    TRACE = 0x20
    OPTIONS = 0x40
    CONNECT = 0x80
    PATCH = 0x100

    ALL = GET | POST | HEAD | PUT | DELETE | TRACE | OPTIONS | CONNECT | PATCH


def parse_method(value: "str | int | Method") -> Method:
    """Convert a method name, flag, or integer mask into a ``Method``.

    Names are case-insensitive. Raises ``ValueError`` for unknown names
    and for integers with bits outside ``Method.ALL``.
    """
    if isinstance(value, Method):
        return value
    if isinstance(value, str):
        try:
            return Method[value.strip().upper()]
        except KeyError:
            msg = f"Unknown HTTP method {value!r}"
            raise ValueError(msg) from None
    if isinstance(value, int) and not isinstance(value, bool):
        if value <= 0 or value & ~int(Method.ALL):
            msg = f"Invalid HTTP method mask {value:#x}"
            raise ValueError(msg)
        return Method(value)
    msg = f"Can't resolve HTTP method from {type(value).__name__}"
    raise ValueError(msg)
