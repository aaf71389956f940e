"""Handler loading exceptions."""


class HandlerLoadError(Exception):
    """Base exception for handler module loading."""

    def __init__(self, message: str, *, module_name: str = "unknown") -> None:
        self.module_name = module_name
        super().__init__(message)


class SandboxViolationError(HandlerLoadError):
    """Raised when a fragment uses a construct the sandbox does not allow."""

    def __init__(
        self, construct: str, *, module_name: str = "unknown", lineno: int | None = None
    ) -> None:
        self.construct = construct
        self.lineno = lineno
        location = f" (line {lineno})" if lineno is not None else ""
        super().__init__(
            f"Forbidden construct in sandbox: {construct}{location}",
            module_name=module_name,
        )


class SchemaDefinitionError(HandlerLoadError):
    """Raised when `body` does not evaluate to a usable field mapping."""


class HandlerDefinitionError(HandlerLoadError):
    """Raised when `handler` is bound to something that cannot be called."""
