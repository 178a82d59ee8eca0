"""Request body parsing: URL-encoded, JSON, and multipart.

Parsers are looked up by media type in a registry, so applications can
plug in their own codecs with ``register_body_parser()``. A parser takes
``(body, content_type)`` and returns a ``ParsedBody``.

``python-multipart`` is an optional dependency (``pip install everest-http[forms]``).
URL-encoded forms and JSON use the standard library, no extra dependency.
"""

import json as json_module
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from everest.http.files import UploadedFile
from everest.http.uri import parse_query


@dataclass(frozen=True, slots=True)
class ParsedBody:
    """The result of parsing a request body.

    ``fields`` maps names to values (a list for repeated names),
    ``files`` maps names to ``UploadedFile`` instances. ``data`` keeps the
    decoded document for codecs whose payload is not a name-value mapping
    (a JSON array, for example).
    """

    fields: Mapping[str, Any] = field(default_factory=dict)
    files: Mapping[str, UploadedFile | list[UploadedFile]] = field(default_factory=dict)
    data: Any = None


BodyParser: TypeAlias = Callable[[bytes, str], ParsedBody]


def media_type(content_type: str) -> str:
    """Lower-cased media type without parameters (``text/html; charset=...`` -> ``text/html``)."""
    return content_type.split(";", 1)[0].strip().lower()


def parse_urlencoded(body: bytes, content_type: str) -> ParsedBody:
    """Parse URL-encoded form data using stdlib."""
    return ParsedBody(fields=parse_query(body.decode("utf-8")))


def parse_json(body: bytes, content_type: str) -> ParsedBody:
    """Parse a JSON document. Raises ``ValueError`` for invalid JSON."""
    try:
        data = json_module.loads(body)
    except (json_module.JSONDecodeError, UnicodeDecodeError) as exc:
        msg = f"Invalid JSON body: {exc}"
        raise ValueError(msg) from exc
    fields = data if isinstance(data, dict) else {}
    return ParsedBody(fields=fields, data=data)


def parse_multipart(body: bytes, content_type: str) -> ParsedBody:
    """Parse multipart form data using python-multipart.

    Raises ``ConfigurationError`` if ``python-multipart`` is not installed,
    and ``ValueError`` if the boundary is missing.
    """
    from everest.errors import ConfigurationError

    try:
        from python_multipart.multipart import MultipartParser, parse_options_header
    except ImportError:
        msg = (
            "Multipart form parsing requires the 'python-multipart' package. "
            "Install it with: pip install everest-http[forms]"
        )
        raise ConfigurationError(msg) from None

    _, options = parse_options_header(content_type.encode("latin-1"))
    boundary = options.get(b"boundary")
    if boundary is None:
        msg = "Multipart form data missing boundary parameter"
        raise ValueError(msg)

    fields: dict[str, Any] = {}
    files: dict[str, Any] = {}

    # Track current part state
    current_headers: dict[str, str] = {}
    current_data = bytearray()
    current_field_name: str | None = None
    current_filename: str | None = None
    pending_header = ""

    def _collect(target: dict[str, Any], name: str, value: Any) -> None:
        if name not in target:
            target[name] = value
        elif isinstance(target[name], list):
            target[name].append(value)
        else:
            target[name] = [target[name], value]

    def on_part_begin() -> None:
        nonlocal current_headers, current_data, current_field_name, current_filename
        current_headers = {}
        current_data = bytearray()
        current_field_name = None
        current_filename = None

    def on_part_data(data_chunk: bytes, start: int, end: int) -> None:
        current_data.extend(data_chunk[start:end])

    def on_part_end() -> None:
        if current_field_name is None:
            return
        if current_filename is not None:
            upload = UploadedFile(
                content=bytes(current_data),
                filename=current_filename,
                media_type=current_headers.get("content-type", "application/octet-stream"),
            )
            _collect(files, current_field_name, upload)
        else:
            _collect(fields, current_field_name, current_data.decode("utf-8", errors="replace"))

    def on_header_field(hdata: bytes, start: int, end: int) -> None:
        nonlocal pending_header
        pending_header = hdata[start:end].decode("latin-1").lower()

    def on_header_value(hdata: bytes, start: int, end: int) -> None:
        nonlocal current_field_name, current_filename
        value = hdata[start:end].decode("latin-1")
        current_headers[pending_header] = value

        # Extract field name and filename from Content-Disposition
        if pending_header == "content-disposition":
            _, params = parse_options_header(value.encode("latin-1"))
            name = params.get(b"name")
            if name is not None:
                current_field_name = name.decode("utf-8")
            fname = params.get(b"filename")
            if fname is not None:
                current_filename = fname.decode("utf-8")

    callbacks: dict[str, Any] = {
        "on_part_begin": on_part_begin,
        "on_part_data": on_part_data,
        "on_part_end": on_part_end,
        "on_header_field": on_header_field,
        "on_header_value": on_header_value,
    }

    parser = MultipartParser(boundary, callbacks)
    parser.write(body)
    parser.finalize()

    return ParsedBody(fields=fields, files=files)


_PARSERS: dict[str, BodyParser] = {
    "application/x-www-form-urlencoded": parse_urlencoded,
    "application/json": parse_json,
    "multipart/form-data": parse_multipart,
}


def register_body_parser(media: str, parser: BodyParser) -> None:
    """Register (or replace) the parser used for a media type."""
    if not callable(parser):
        from everest.errors import ConfigurationError

        msg = f"Body parser for {media!r} must be callable, got {type(parser).__name__}"
        raise ConfigurationError(msg)
    _PARSERS[media_type(media)] = parser


def parse_body(
    body: bytes,
    content_type: str | None,
    parsers: Mapping[str, BodyParser] | None = None,
) -> ParsedBody:
    """Parse *body* with the parser registered for its media type.

    *parsers* overrides the global registry. Empty bodies and unknown
    media types parse to an empty ``ParsedBody``.
    """
    if not body or not content_type:
        return ParsedBody()
    registry = _PARSERS if parsers is None else parsers
    parser = registry.get(media_type(content_type))
    if parser is None:
        return ParsedBody()
    return parser(body, content_type)
