"""Validated invocation of compiled handlers."""

import inspect
from typing import Any

import pydantic
import structlog

from src.infrastructure.observability import add_span_attributes, traced
from src.modules.handlers.body_schema import validate_body, validation_failure
from src.modules.handlers.schemas import CompiledBehavior, Invoker, RequestContext

logger = structlog.get_logger()

INVALID_BODY_STATUS = 400


def build_invoker(
    behavior: CompiledBehavior | None, *, module_name: str = ""
) -> Invoker | None:
    """Wrap compiled behavior in an asynchronous, validating invoker.

    The invoker validates `ctx["rawBody"]` against the body schema (when the
    module declares one) and then calls the handler with the context. On a
    validation failure the handler is not called; the context is returned
    with `status` 400 and an error payload in `body`.

    Args:
        behavior: Compiled behavior for one module, or None if it failed.
        module_name: Module name, used for logging and span attributes.

    Returns:
        The invoker, or None when there is no handler to call.
    """
    if behavior is None or behavior.handler is None:
        return None

    body_schema = behavior.body_schema
    handler = behavior.handler

    @traced(span_name="handlers.invoke")
    async def invoke(ctx: RequestContext | None = None) -> Any:
        if ctx is None:
            ctx = {}
        add_span_attributes({"handler.module": module_name})

        if body_schema is not None:
            try:
                ctx["body"] = await validate_body(body_schema, ctx.get("rawBody"))
            except pydantic.ValidationError as e:
                failure = validation_failure(e)
                logger.info(
                    "body_validation_failed",
                    module=module_name,
                    error_count=len(failure["details"]),
                )
                ctx["status"] = INVALID_BODY_STATUS
                ctx["body"] = failure
                return ctx

        result = handler(ctx)
        if inspect.isawaitable(result):
            result = await result
        return result

    return invoke
