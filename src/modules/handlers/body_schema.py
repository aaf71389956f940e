"""Request body schemas built with pydantic.

Handler modules describe their body as a plain mapping of field name to
field definition, for example::

    body = {"email": pydantic.EmailStr, "age": (int, pydantic.Field(ge=0))}

A bare type marks a required field; a `(type, default)` tuple follows the
`pydantic.create_model` convention.
"""

from collections.abc import Mapping
from types import SimpleNamespace
from typing import Any, Literal

import pydantic
import structlog
from pydantic import BaseModel, PydanticUserError, create_model

from src.modules.handlers.exceptions import SchemaDefinitionError

logger = structlog.get_logger()

INVALID_BODY_MESSAGE = "Invalid request body"

# Names a handler module may reach through the `pydantic` binding.
_EXPOSED_NAMES = (
    "AnyUrl",
    "EmailStr",
    "Field",
    "HttpUrl",
    "NegativeFloat",
    "NegativeInt",
    "NonNegativeFloat",
    "NonNegativeInt",
    "PositiveFloat",
    "PositiveInt",
    "StrictBool",
    "StrictFloat",
    "StrictInt",
    "StrictStr",
    "conint",
    "confloat",
    "conlist",
    "constr",
)


def schema_namespace() -> SimpleNamespace:
    """Create a fresh, curated view of pydantic for one sandbox scope."""
    exposed: dict[str, Any] = {name: getattr(pydantic, name) for name in _EXPOSED_NAMES}
    exposed["Literal"] = Literal
    return SimpleNamespace(**exposed)


def build_body_model(body: Any, *, module_name: str) -> type[BaseModel]:
    """Turn an evaluated `body` mapping into a pydantic model.

    Args:
        body: Value bound to `body` by the handler module.
        module_name: Name of the module, used for the model name and errors.

    Returns:
        A pydantic model class validating the request body.

    Raises:
        SchemaDefinitionError: If the mapping or one of its fields is invalid.
    """
    if not isinstance(body, Mapping):
        raise SchemaDefinitionError(
            f"body must be a mapping of field definitions, got {type(body).__name__}",
            module_name=module_name,
        )

    fields: dict[str, Any] = {}
    for field_name, definition in body.items():
        if (
            not isinstance(field_name, str)
            or not field_name.isidentifier()
            or field_name.startswith("_")
        ):
            raise SchemaDefinitionError(
                f"Invalid body field name: {field_name!r}", module_name=module_name
            )
        if not isinstance(definition, tuple):
            definition = (definition, ...)
        fields[field_name] = definition

    try:
        return create_model(f"{module_name}_body", **fields)
    except (PydanticUserError, TypeError, ValueError) as e:
        raise SchemaDefinitionError(
            f"Invalid body schema: {e}", module_name=module_name
        ) from e


async def validate_body(schema: type[BaseModel], raw_body: Any) -> dict[str, Any]:
    """Validate a raw request body and return the coerced payload.

    Raises:
        pydantic.ValidationError: If the body does not match the schema.
    """
    return schema.model_validate(raw_body).model_dump()


def validation_failure(error: pydantic.ValidationError) -> dict[str, Any]:
    """Build the structured payload returned for an invalid body."""
    details = [
        {"loc": list(item["loc"]), "msg": item["msg"], "type": item["type"]}
        for item in error.errors(include_url=False)
    ]
    return {"error": INVALID_BODY_MESSAGE, "details": details}
