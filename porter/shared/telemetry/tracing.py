"""Span helpers for engine operations.

Spans go through the global tracer provider; without telemetry setup the
OpenTelemetry API hands out non-recording spans, so the helpers cost
next to nothing.
"""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

P = ParamSpec("P")
T = TypeVar("T")

TRACER_NAME = "porter"


def _entity_attributes(prefix: str, entity: Any) -> dict[str, str]:
    return {
        f"porter.{prefix}.type": str(getattr(entity, "entity_type", "")),
        f"porter.{prefix}.id": str(getattr(entity, "entity_id", "")),
    }


def traced_mutation(
    operation: str,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Wrap an engine mutation (self, assignable, roleable, ...) in a span.

    The span carries the pair as attributes; a raised exception is recorded
    and the span status set to ERROR before it propagates.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        span_name = f"porter.{operation}"

        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            tracer = trace.get_tracer(TRACER_NAME)
            with tracer.start_as_current_span(span_name, record_exception=False) as span:
                if span.is_recording() and len(args) >= 3:
                    attributes = {
                        **_entity_attributes("assignable", args[1]),
                        **_entity_attributes("roleable", args[2]),
                    }
                    span.set_attributes(attributes)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    raise
                span.set_status(Status(StatusCode.OK))
                return result

        return wrapper

    return decorator


def add_span_attributes(**attributes: str | int | float | bool) -> None:
    """Add attributes to the current span (no-op when not recording)."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attributes(attributes)
