"""Handler results: the no-match sentinel and coercion to Response."""

import dataclasses
from collections.abc import Mapping
from enum import Enum
from typing import Any, Final, Literal, TypeAlias

from everest.errors import ConfigurationError
from everest.http.response import JsonResponse, RedirectResponse, Response
from everest.http.uri import Uri


class _NoMatch(Enum):
    NO_MATCH = "NO_MATCH"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_MATCH"


# Returned by context dispatch when nothing in the subtree matched.
# Distinct from ``None`` (a handler declining) and from exceptions.
NO_MATCH: Final = _NoMatch.NO_MATCH

NoMatch: TypeAlias = Literal[_NoMatch.NO_MATCH]


def result_to_response(result: Any) -> Response:
    """Convert a handler return value to a Response.

    - ``Response``: returned unchanged
    - ``str`` / ``bytes``: body of a 200 response
    - ``int`` / ``float``: rendered as text
    - ``Uri``: 302 redirect to that URI
    - mapping, list, tuple, dataclass instance: JSON response

    Anything else (including ``bool`` and ``None``) raises
    ``ConfigurationError``.
    """
    if isinstance(result, Response):
        return result
    if isinstance(result, (str, bytes)):
        return Response(body=result)
    if isinstance(result, (int, float)) and not isinstance(result, bool):
        return Response(body=str(result))
    if isinstance(result, Uri):
        return RedirectResponse(target=result)
    if isinstance(result, Mapping):
        return JsonResponse(data=dict(result))
    if isinstance(result, (list, tuple)):
        return JsonResponse(data=list(result))
    if dataclasses.is_dataclass(result) and not isinstance(result, type):
        return JsonResponse(data=dataclasses.asdict(result))
    msg = (
        f"Invalid route handler return value of type {type(result).__name__}. "
        "Return a Response, str, bytes, number, Uri, mapping, list or dataclass."
    )
    raise ConfigurationError(msg)
