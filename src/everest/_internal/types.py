"""Shared type aliases used across everest modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route handler: receives the enriched ServerRequest, returns a result value
Handler: TypeAlias = Callable[..., Any]

# Default handler: receives (processed_request, original_request)
DefaultHandler: TypeAlias = Callable[..., Any]

# Error handler: receives (exception, request) and returns a result value
ErrorHandler: TypeAlias = Callable[..., Any]

# Middleware: receives (next, request_or_response)
Middleware: TypeAlias = Callable[..., Any]

# Deferred context configuration: receives the ContextBuilder
Configurator: TypeAlias = Callable[..., Any]
