"""OpenTelemetry tracing decorators."""

import asyncio
import functools
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span

F = TypeVar("F", bound=Callable[..., Any])

# Keyword arguments copied onto the span when a traced call receives them
SPAN_ARGUMENTS = ("user_id", "menu_item_id", "line_item_id", "transaction_id")


@contextmanager
def _span(tracer: trace.Tracer, name: str, func_name: str, kwargs: dict[str, Any]) -> Iterator[Span]:
    with tracer.start_as_current_span(name) as span:
        span.set_attribute("function.name", func_name)
        for key in SPAN_ARGUMENTS:
            if key in kwargs and kwargs[key] is not None:
                span.set_attribute(f"pos.{key}", str(kwargs[key]))

        try:
            yield span
            span.set_attribute("success", True)
        except Exception as e:
            span.set_attribute("success", False)
            span.set_attribute("error.type", type(e).__name__)
            span.record_exception(e)
            raise


def traced(span_name: str | None = None, service_name: str = "cafe-pos") -> Callable[[F], F]:
    """Decorator that wraps a function call in an OpenTelemetry span.

    Sync and async functions are supported. Known identifiers passed as
    keyword arguments (user_id, menu_item_id, ...) become span attributes.

    Args:
        span_name: Name for the span (defaults to the function name)
        service_name: Instrumentation scope name for the tracer

    Example:
        @traced("cart.add_to_cart")
        async def add_to_cart(self, user_id: str, menu_item_id: str, ...) -> Transaction:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        tracer = trace.get_tracer(service_name)

        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with _span(tracer, name, func.__name__, kwargs):
                    return await func(*args, **kwargs)

            return async_wrapper  # type: ignore

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with _span(tracer, name, func.__name__, kwargs):
                return func(*args, **kwargs)

        return sync_wrapper  # type: ignore

    return decorator
