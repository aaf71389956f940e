"""Registry of handler modules discovered in a directory tree."""

from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

import structlog

from src.infrastructure.observability import add_span_attributes, traced
from src.modules.handlers.extractor import extract_fragments, render_program
from src.modules.handlers.invoker import build_invoker
from src.modules.handlers.sandbox import compile_fragments
from src.modules.handlers.schemas import Invoker, RegisteredModule

logger = structlog.get_logger()

DEFAULT_EXTENSION = ".py"


class HandlerRegistry(Mapping[str, RegisteredModule]):
    """Read-only mapping of module name to registered module.

    Built once by `build_registry` and never modified afterwards.
    """

    def __init__(self, modules: dict[str, RegisteredModule]) -> None:
        self._modules = MappingProxyType(dict(modules))

    def __getitem__(self, name: str) -> RegisteredModule:
        return self._modules[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._modules)

    def __len__(self) -> int:
        return len(self._modules)

    def contents(self) -> dict[str, str]:
        """Reprocessed source text keyed by module name."""
        return {name: module.source for name, module in self._modules.items()}

    def invokers(self) -> dict[str, Invoker | None]:
        """Invoker (or None for unusable modules) keyed by module name."""
        return {name: module.invoker for name, module in self._modules.items()}


def discover_modules(directory: Path, extension: str = DEFAULT_EXTENSION) -> list[Path]:
    """List handler modules under a directory, at any depth.

    Entries are visited in name order within each directory, with files and
    subdirectories interleaved as they sort.

    Args:
        directory: Root of the directory tree.
        extension: File extension of handler modules, including the dot.

    Returns:
        Paths of matching files, or an empty list if the directory is missing.
    """
    if not directory.is_dir():
        return []

    modules: list[Path] = []
    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        if entry.is_dir():
            modules.extend(discover_modules(entry, extension))
        elif entry.is_file() and entry.suffix == extension:
            modules.append(entry)
    return modules


def process_source(name: str, source: str) -> tuple[str, Invoker | None]:
    """Run extraction, compilation and invoker construction for one module.

    Returns:
        The reprocessed source text and the invoker (None if unusable).
    """
    fragments = extract_fragments(source)
    logger.debug(
        "module_fragments_extracted",
        module=name,
        body_text=fragments.body_text,
        handler=" ".join(fragments.handler_lines),
    )

    behavior = compile_fragments(fragments, module_name=name)
    return render_program(fragments), build_invoker(behavior, module_name=name)


def load_module(path: Path) -> RegisteredModule:
    """Load a single handler module from disk.

    Unreadable files are logged and registered without an invoker.
    """
    name = path.stem
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("module_read_failed", module=name, path=str(path), error=str(e))
        return RegisteredModule(name=name, path=path, source="", invoker=None)

    processed, invoker = process_source(name, source)
    return RegisteredModule(name=name, path=path, source=processed, invoker=invoker)


@traced(span_name="handlers.build_registry")
def build_registry(
    directory: Path | str, *, extension: str = DEFAULT_EXTENSION
) -> HandlerRegistry:
    """Build the registry for every handler module in a directory tree.

    Modules are processed one at a time in traversal order. When two modules
    share a name, the later one replaces the earlier one.

    Args:
        directory: Root of the directory tree to scan.
        extension: File extension of handler modules, including the dot.

    Returns:
        A read-only HandlerRegistry.
    """
    directory = Path(directory)
    modules: dict[str, RegisteredModule] = {}

    for path in discover_modules(directory, extension):
        module = load_module(path)
        previous = modules.get(module.name)
        if previous is not None:
            logger.warning(
                "duplicate_module_name",
                module=module.name,
                replaced=str(previous.path),
                path=str(path),
            )
        modules[module.name] = module

    usable = sum(1 for module in modules.values() if module.callable)
    add_span_attributes({"handlers.modules": len(modules), "handlers.usable": usable})
    logger.info(
        "registry_built",
        directory=str(directory),
        modules=len(modules),
        usable=usable,
    )
    return HandlerRegistry(modules)
