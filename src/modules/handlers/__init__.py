"""Handler modules: convention extraction, sandboxed compilation and
validated invocation."""

from src.modules.handlers.exceptions import (
    HandlerDefinitionError,
    HandlerLoadError,
    SandboxViolationError,
    SchemaDefinitionError,
)
from src.modules.handlers.extractor import extract_fragments, render_program
from src.modules.handlers.invoker import build_invoker
from src.modules.handlers.registry import (
    HandlerRegistry,
    build_registry,
    discover_modules,
    load_module,
)
from src.modules.handlers.sandbox import compile_fragments
from src.modules.handlers.schemas import (
    CompiledBehavior,
    ExtractedFragments,
    Invoker,
    RegisteredModule,
    RequestContext,
)

__all__ = [
    "CompiledBehavior",
    "ExtractedFragments",
    "HandlerDefinitionError",
    "HandlerLoadError",
    "HandlerRegistry",
    "Invoker",
    "RegisteredModule",
    "RequestContext",
    "SandboxViolationError",
    "SchemaDefinitionError",
    "build_invoker",
    "build_registry",
    "compile_fragments",
    "discover_modules",
    "extract_fragments",
    "load_module",
    "render_program",
]
