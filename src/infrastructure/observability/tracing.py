"""Tracing helpers for registry builds and handler invocations."""

import inspect
from collections.abc import Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar, overload

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode, Tracer

P = ParamSpec("P")
R = TypeVar("R")


def get_tracer(name: str) -> Tracer:
    """Get a tracer for the given module name, typically __name__."""
    return trace.get_tracer(name)


def add_span_attributes(attributes: dict[str, str | int | float | bool]) -> None:
    """Add attributes to the current span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        for key, value in attributes.items():
            span.set_attribute(key, value)


def get_current_trace_id() -> str | None:
    """Get the current trace ID as a 32-character hex string, or None."""
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        return format(span_context.trace_id, "032x")
    return None


def _start(span: Span, attributes: dict[str, str | int | float | bool] | None) -> None:
    if attributes:
        for key, value in attributes.items():
            span.set_attribute(key, value)


def _fail(span: Span, error: Exception, record_exception: bool) -> None:
    if record_exception:
        span.record_exception(error)
    span.set_status(Status(StatusCode.ERROR, str(error)))


@overload
def traced(  # noqa: UP047
    func: Callable[P, R],
) -> Callable[P, R]: ...


@overload
def traced(
    func: None = None,
    *,
    span_name: str | None = None,
    attributes: dict[str, str | int | float | bool] | None = None,
    record_exception: bool = True,
) -> Callable[[Callable[P, R]], Callable[P, R]]: ...


def traced(  # noqa: UP047
    func: Callable[P, R] | None = None,
    *,
    span_name: str | None = None,
    attributes: dict[str, str | int | float | bool] | None = None,
    record_exception: bool = True,
) -> Callable[P, R] | Callable[[Callable[P, R]], Callable[P, R]]:
    """Run a sync or async function inside an OpenTelemetry span.

    Usable with or without parentheses. The tracer is looked up on every
    call, so spans follow whichever tracer provider is installed at the time.

    Args:
        func: The function to trace (when used without parentheses).
        span_name: Name for the span (defaults to function name).
        attributes: Static attributes to add to the span.
        record_exception: Whether to record exceptions on the span.

    Examples:
        @traced
        def build():
            ...

        @traced(span_name="handlers.invoke")
        async def invoke(ctx):
            ...
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        name = span_name or fn.__name__
        module = fn.__module__

        if inspect.iscoroutinefunction(fn):

            @wraps(fn)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
                with get_tracer(module).start_as_current_span(name) as span:
                    _start(span, attributes)
                    try:
                        result = await fn(*args, **kwargs)
                    except Exception as e:
                        _fail(span, e, record_exception)
                        raise
                    span.set_status(Status(StatusCode.OK))
                    return result

            return async_wrapper  # type: ignore[return-value]

        @wraps(fn)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with get_tracer(module).start_as_current_span(name) as span:
                _start(span, attributes)
                try:
                    result = fn(*args, **kwargs)
                except Exception as e:
                    _fail(span, e, record_exception)
                    raise
                span.set_status(Status(StatusCode.OK))
                return result

        return sync_wrapper

    if func is not None:
        return decorator(func)
    return decorator
