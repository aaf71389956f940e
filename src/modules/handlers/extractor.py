"""Convention-based extraction of `body` and `handler` fragments.

Handler modules are not parsed as Python. Instead each line is matched
against a small set of declaration prefixes:

1. The first line starting with `body =` provides the schema expression.
2. The first line starting with a handler declaration opens the handler
   block, which then runs verbatim to end of file.

The convention assumes `body` fits on one line and that `handler` is the
last declaration in the module. Anything else yields whatever the line scan
happens to produce.
"""

import re

from src.modules.handlers.schemas import ExtractedFragments

BODY_PREFIX = "body ="
HANDLER_PREFIXES = ("handler =", "def handler(", "async def handler(")

_STATEMENT_TERMINATOR = ";"
_LINE_BREAK_PATTERN = re.compile(r"\r\n|\r|\n")


def extract_fragments(source: str) -> ExtractedFragments:
    """Extract the `body` expression and `handler` block from module source.

    Args:
        source: Full text of the handler module.

    Returns:
        ExtractedFragments with the body expression (or None) and the
        handler lines (empty when no handler is declared).
    """
    body_text: str | None = None
    handler_lines: list[str] = []
    in_handler = False

    for line in _split_lines(source):
        if in_handler:
            handler_lines.append(line)
            continue

        stripped = line.strip()
        if stripped.startswith(HANDLER_PREFIXES):
            in_handler = True
            handler_lines.append(line)
        elif body_text is None and stripped.startswith(BODY_PREFIX):
            body_text = _parse_body_expression(stripped)

    return ExtractedFragments(body_text=body_text, handler_lines=tuple(handler_lines))


def _split_lines(source: str) -> list[str]:
    """Split on the line breaks Python itself recognizes.

    Only `\\r\\n`, `\\r` and `\\n` end a line; characters such as U+2028 may
    appear inside string literals and are kept in place.
    """
    lines = _LINE_BREAK_PATTERN.split(source)
    if lines[-1] == "":
        lines.pop()
    return lines


def _parse_body_expression(line: str) -> str:
    """Return everything after the first `=`, without a trailing terminator."""
    _, _, expression = line.partition("=")
    expression = expression.strip()
    if expression.endswith(_STATEMENT_TERMINATOR):
        expression = expression[:-1].rstrip()
    return expression


def render_program(fragments: ExtractedFragments) -> str:
    """Restate extracted fragments as a standalone program.

    The `body` assignment comes first (when present and non-empty), followed
    by the handler block exactly as it appeared in the module.
    """
    lines: list[str] = []
    if fragments.body_text:
        lines.append(f"body = {fragments.body_text}")
    lines.extend(fragments.handler_lines)
    return "\n".join(lines)
