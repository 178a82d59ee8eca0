"""Router configuration.

RouterConfig is a frozen dataclass: immutable after creation,
IDE-autocompletable, no string-key dict lookups.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RouterConfig:
    """Router configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = RouterConfig(debug=True, case_sensitive=True)
    """

    debug: bool = False

    # Matching
    case_sensitive: bool = False
    parameter_pattern: str = "[^/]+"  # Default pattern for {name} placeholders

    # Transport (ASGIAdapter)
    trust_forwarded_headers: bool = False  # Honour X-Forwarded-Proto/Host/Port
    max_content_length: int = 16 * 1024 * 1024  # 16 MB
