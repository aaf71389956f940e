"""Isolated recompilation of extracted handler fragments.

Each compilation executes the restated fragments in a brand-new scope that
exposes only:

- a whitelisted copy of pure builtins (no imports, file access or eval)
- a curated `pydantic` namespace for schema definitions
- `body` and `handler`, pre-bound to None
- `logger`, a structlog logger bound to the module name

Before execution the program is checked with `ast` for imports, private or
dunder attribute access, attribute assignment and frame/format
introspection. This narrows what a fragment can reach; it is not a
process-level sandbox.
"""

import ast
import builtins
from typing import Any

import structlog

from src.modules.handlers.body_schema import build_body_model, schema_namespace
from src.modules.handlers.exceptions import (
    HandlerDefinitionError,
    SandboxViolationError,
)
from src.modules.handlers.extractor import render_program
from src.modules.handlers.schemas import CompiledBehavior, ExtractedFragments

logger = structlog.get_logger()

_SAFE_BUILTINS = (
    "abs",
    "all",
    "any",
    "bool",
    "bytes",
    "callable",
    "chr",
    "dict",
    "divmod",
    "enumerate",
    "filter",
    "float",
    "frozenset",
    "hash",
    "int",
    "isinstance",
    "iter",
    "len",
    "list",
    "map",
    "max",
    "min",
    "next",
    "ord",
    "pow",
    "range",
    "repr",
    "reversed",
    "round",
    "set",
    "slice",
    "sorted",
    "str",
    "sum",
    "tuple",
    "zip",
    # Exceptions handlers may raise or catch
    "ArithmeticError",
    "AssertionError",
    "Exception",
    "IndexError",
    "KeyError",
    "LookupError",
    "RuntimeError",
    "StopIteration",
    "TypeError",
    "ValueError",
    "ZeroDivisionError",
)

# Attributes that expose frames or reach object internals without underscores
_FORBIDDEN_ATTRIBUTES = frozenset(
    {
        "ag_frame",
        "cr_frame",
        "f_back",
        "f_builtins",
        "f_globals",
        "f_locals",
        "format",
        "format_map",
        "gi_frame",
        "mro",
        "tb_frame",
    }
)

_EXPORTS_NAME = "_exports"
_EXPORT_STATEMENT = f'{_EXPORTS_NAME} = {{"body": body, "handler": handler}}'


class _SandboxGuard(ast.NodeVisitor):
    """Reject syntax that would let a fragment escape its scope."""

    def __init__(self, module_name: str) -> None:
        self._module_name = module_name

    def _reject(self, construct: str, node: ast.AST) -> None:
        raise SandboxViolationError(
            construct,
            module_name=self._module_name,
            lineno=getattr(node, "lineno", None),
        )

    def visit_Import(self, node: ast.Import) -> None:
        self._reject("import statement", node)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self._reject("import statement", node)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_") or node.attr in _FORBIDDEN_ATTRIBUTES:
            self._reject(f"attribute access .{node.attr}", node)
        # Exposed objects are shared with the host and every other scope
        if isinstance(node.ctx, (ast.Store, ast.Del)):
            self._reject(f"attribute assignment .{node.attr}", node)
        self.generic_visit(node)

    def visit_AugAssign(self, node: ast.AugAssign) -> None:
        if isinstance(node.target, ast.Attribute):
            self._reject(f"attribute assignment .{node.target.attr}", node)
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("__"):
            self._reject(f"name {node.id}", node)


def create_scope(module_name: str) -> dict[str, Any]:
    """Create a fresh evaluation scope for one module.

    Nothing in the returned dict is shared with any other scope.
    """
    return {
        "__builtins__": {name: getattr(builtins, name) for name in _SAFE_BUILTINS},
        "pydantic": schema_namespace(),
        "body": None,
        "handler": None,
        "logger": structlog.get_logger("handlers.module").bind(module=module_name),
    }


def build_program(fragments: ExtractedFragments) -> str:
    """Restated fragments followed by the export of `body` and `handler`."""
    restated = render_program(fragments)
    if restated:
        return f"{restated}\n{_EXPORT_STATEMENT}\n"
    return f"{_EXPORT_STATEMENT}\n"


def evaluate_program(program: str, *, module_name: str) -> tuple[Any, Any]:
    """Check and execute a program in a new scope.

    Args:
        program: Program text produced by `build_program`.
        module_name: Name of the module, used in filenames and errors.

    Returns:
        The `(body, handler)` values exported by the program.

    Raises:
        SyntaxError: If the program does not parse.
        SandboxViolationError: If the program uses a forbidden construct.
        Exception: Anything raised while the program runs.
    """
    filename = f"<handler-module {module_name}>"
    tree = ast.parse(program, filename=filename, mode="exec")
    _SandboxGuard(module_name).visit(tree)

    scope = create_scope(module_name)
    exec(compile(tree, filename, "exec"), scope)  # noqa: S102

    exports = scope[_EXPORTS_NAME]
    return exports["body"], exports["handler"]


def compile_fragments(
    fragments: ExtractedFragments, *, module_name: str
) -> CompiledBehavior | None:
    """Compile a module's fragments into evaluated behavior.

    Any failure is logged and reported as None so that one malformed module
    never aborts processing of the others.

    Args:
        fragments: Fragments pulled from the module source.
        module_name: Name of the module.

    Returns:
        CompiledBehavior with the body schema and handler, or None on failure.
    """
    log = logger.bind(module=module_name)

    try:
        program = build_program(fragments)
        body, handler = evaluate_program(program, module_name=module_name)

        body_schema = None
        if body is not None:
            body_schema = build_body_model(body, module_name=module_name)

        if handler is not None and not callable(handler):
            raise HandlerDefinitionError(
                f"handler must be callable, got {type(handler).__name__}",
                module_name=module_name,
            )
    except Exception as e:  # noqa: BLE001
        log.error(
            "module_compile_failed",
            error=str(e),
            error_type=type(e).__name__,
            body_text=fragments.body_text,
            handler_line_count=len(fragments.handler_lines),
        )
        return None

    log.debug(
        "module_compiled",
        has_body_schema=body_schema is not None,
        has_handler=handler is not None,
    )
    return CompiledBehavior(body_schema=body_schema, handler=handler)
