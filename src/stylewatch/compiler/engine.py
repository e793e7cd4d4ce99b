"""Sass compilation engine.

Wraps libsass and records every file pulled in through ``@import`` so that a
session knows which files to watch. libsass does not report the files it
loaded, so imports are resolved here with a custom importer that follows the
same lookup rules (partials, ``index`` files, include paths) and hands the
resolved path back for libsass to load.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Any

import sass

from stylewatch.config.models import CompileResult
from stylewatch.errors import CompileError

logger = logging.getLogger(__name__)

# Extensions tried, in order, for an import written without one
IMPORT_EXTENSIONS = (".scss", ".sass", ".css")

# Options consumed here rather than passed to sass.compile()
_LOCAL_OPTIONS = ("filename",)

# libsass reports locations as "on line 3:14 of path/to/file.scss", with the
# path relative to the working directory
_LOCATION_RE = re.compile(r"on line (\d+)(?::(\d+))? of (.+?)\s*$", re.MULTILINE)

# Imports libsass leaves as plain CSS @import rules
_PASSTHROUGH_RE = re.compile(r"^(?:[a-z]+:)?//|^url\(", re.IGNORECASE)


def _candidates(target: str) -> list[str]:
    """List file names an import target may refer to."""
    stem = Path(target)
    if not stem.name:
        return [target]
    if stem.suffix in IMPORT_EXTENSIONS:
        names = [target, str(stem.with_name(f"_{stem.name}"))]
    else:
        names = []
        for ext in IMPORT_EXTENSIONS:
            names.append(f"{target}{ext}")
            names.append(str(stem.with_name(f"_{stem.name}{ext}")))
        for ext in IMPORT_EXTENSIONS[:2]:
            names.append(str(stem / f"index{ext}"))
            names.append(str(stem / f"_index{ext}"))
    return names


def resolve_import(target: str, search_dirs: list[Path]) -> Path | None:
    """
    Resolve an @import target to an absolute file path.

    Args:
        target: Import target as written in the source
        search_dirs: Directories to search, in priority order

    Returns:
        Resolved absolute path, or None if no candidate exists
    """
    for directory in search_dirs:
        for name in _candidates(target):
            candidate = directory / name
            if candidate.is_file():
                return candidate.resolve()
    return None


def _error_message(text: str) -> str | None:
    """First non-empty line of a libsass message, without its "Error:" prefix."""
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("Error:"):
            line = line[len("Error:"):].strip()
        if line:
            return line
    return None


def _error_source(reported: str, base_dir: Path | None) -> Path:
    path = Path(reported)
    if path.is_absolute():
        return path
    candidate = Path.cwd() / path
    if not candidate.exists() and base_dir is not None:
        candidate = base_dir / path
    return candidate.resolve()


def parse_error(exc: Exception, filename: str, base_dir: Path | None = None) -> CompileError:
    """
    Convert a libsass failure into a CompileError with its location.

    Args:
        exc: Exception raised by ``sass.compile()``
        filename: File reported in place of libsass's "stdin"
        base_dir: Fallback directory for relative paths in the message

    Returns:
        CompileError with an absolute filename where one is known
    """
    text = str(exc)
    message = _error_message(text) or exc.__class__.__name__

    line = column = None
    source = filename
    match = _LOCATION_RE.search(text)
    if match:
        line = int(match.group(1))
        column = int(match.group(2)) if match.group(2) else None
        if match.group(3) != "stdin":
            source = str(_error_source(match.group(3), base_dir))
    return CompileError(message, filename=source, line=line, column=column)


class SassCompiler:
    """Compiles Sass/SCSS source text with libsass and tracks its imports."""

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        """Initialize compiler with default options."""
        self.options = dict(options or {})

    def compile(self, source: str, options: dict[str, Any] | None = None) -> CompileResult:
        """
        Compile stylesheet source.

        Args:
            source: Raw Sass/SCSS source
            options: Compiler options; ``filename`` locates relative imports,
                everything else is passed to ``sass.compile()``

        Returns:
            Compiled CSS and the imports resolved while compiling

        Raises:
            CompileError: If libsass rejects the source
        """
        merged = {**self.options, **(options or {})}
        filename = merged.get("filename")
        root = Path(filename).resolve() if filename else None
        base_dir = root.parent if root else Path.cwd()

        include_paths = [Path(p) for p in merged.get("include_paths", [])]
        search_tail = [base_dir, *include_paths]
        imports: list[Path] = []

        def importer(path: str, prev: str) -> list[tuple[str]] | None:
            if path.endswith(".css") or _PASSTHROUGH_RE.search(path):
                return None
            prev_path = Path(prev) if prev and prev != "stdin" else None
            if prev_path is not None and prev_path.is_absolute():
                search_dirs = [prev_path.parent, *search_tail]
            else:
                search_dirs = search_tail
            resolved = resolve_import(path, search_dirs)
            if resolved is None:
                return None
            if resolved not in imports:
                imports.append(resolved)
            # Path only: libsass loads the file and picks its syntax by extension
            return [(str(resolved),)]

        kwargs = {k: v for k, v in merged.items() if k not in _LOCAL_OPTIONS}
        kwargs["include_paths"] = [str(p) for p in search_tail]
        if root is not None and root.suffix == ".sass":
            kwargs.setdefault("indented", True)

        try:
            css = sass.compile(string=source, importers=[(0, importer)], **kwargs)
        except sass.CompileError as e:
            raise parse_error(e, str(root) if root else "stdin", base_dir) from e
        except (TypeError, ValueError) as e:
            raise CompileError(f"Invalid compiler options: {e}", filename=root) from e

        logger.debug(f"Compiled {root or 'stdin'} with {len(imports)} import(s)")
        return CompileResult(css=css, imports=imports)


_default_compiler = SassCompiler()


async def compile_source(source: str, options: dict[str, Any]) -> CompileResult:
    """Compile source text off the event loop with the default compiler."""
    return await asyncio.to_thread(_default_compiler.compile, source, options)


async def compile_file(path: Path, options: dict[str, Any] | None = None) -> CompileResult:
    """Read and compile a stylesheet once."""
    path = path.resolve()
    source = await asyncio.to_thread(path.read_text, encoding="utf-8")
    return await compile_source(source, {"filename": str(path), **(options or {})})
