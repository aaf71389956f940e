"""Data types shared by the handler loading pipeline."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel

RequestContext = dict[str, Any]
Invoker = Callable[[RequestContext | None], Awaitable[Any]]


@dataclass(frozen=True)
class ExtractedFragments:
    """Raw text fragments pulled out of a handler module.

    Attributes:
        body_text: Right-hand side of the first `body` declaration, or None.
        handler_lines: Every line from the `handler` declaration to end of file.
    """

    body_text: str | None = None
    handler_lines: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CompiledBehavior:
    """Values evaluated from a module's fragments in an isolated scope."""

    body_schema: type[BaseModel] | None
    handler: Callable[..., Any] | None


@dataclass(frozen=True)
class RegisteredModule:
    """Registry entry for one handler module."""

    name: str
    path: Path
    source: str
    invoker: Invoker | None

    @property
    def callable(self) -> bool:
        """Whether the module produced an invoker that can be called."""
        return self.invoker is not None
