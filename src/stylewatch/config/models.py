"""Core data models for stylewatch."""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Output styles understood by libsass
VALID_OUTPUT_STYLES = ["nested", "expanded", "compact", "compressed"]

# Stylesheet sources stylewatch knows how to compile
STYLESHEET_SUFFIXES = (".scss", ".sass", ".css")


@dataclass
class CompileResult:
    """Output of one successful compile."""

    css: str  # Compiled stylesheet text
    imports: list[Path] = field(default_factory=list)  # Resolved imports, in resolution order

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "css": self.css,
            "imports": [str(path) for path in self.imports],
        }


@dataclass
class WatchConfig:
    """Configuration for a watch or build run."""

    entry_path: Path  # Root stylesheet to compile
    output_path: Path | None = None  # Where to write CSS; None prints to stdout
    output_style: str = "expanded"  # libsass output style
    include_paths: list[Path] = field(default_factory=list)  # Extra import search paths
    precision: int | None = None  # Numeric precision for libsass
    source_comments: bool = False  # Emit line-number comments

    def validate(self) -> None:
        """Validate configuration values."""
        if not self.entry_path.is_file():
            raise ValueError(f"Entry file does not exist: {self.entry_path}")
        if self.entry_path.suffix.lower() not in STYLESHEET_SUFFIXES:
            raise ValueError(f"Not a stylesheet: {self.entry_path}")
        if self.output_style not in VALID_OUTPUT_STYLES:
            raise ValueError(f"Invalid output style: {self.output_style}")
        if self.output_path is not None and self.output_path.resolve() == self.entry_path.resolve():
            raise ValueError("Output path must differ from the entry file")
        for include_path in self.include_paths:
            if not include_path.is_dir():
                raise ValueError(f"Include path is not a directory: {include_path}")

    def to_compile_options(self) -> dict[str, Any]:
        """Build the options dict handed to the compiler."""
        options: dict[str, Any] = {"output_style": self.output_style}
        if self.include_paths:
            options["include_paths"] = [str(p.absolute()) for p in self.include_paths]
        if self.precision is not None:
            options["precision"] = self.precision
        if self.source_comments:
            options["source_comments"] = True
        return options


@dataclass
class ServerConfig:
    """Configuration for the live-reload server."""

    entry_path: Path = Path("style.scss")  # Root stylesheet to compile and serve
    host: str = "127.0.0.1"  # Bind address
    port: int = 8000  # Port number
    output_style: str = "expanded"  # libsass output style
    open_browser: bool = False  # Open the status page on start
    log_level: str = "INFO"  # Logging level

    def validate(self) -> None:
        """Validate configuration values."""
        if not (1024 <= self.port <= 65535):
            raise ValueError("Port must be 1024-65535")
        if not self.entry_path.is_file():
            raise ValueError(f"Entry file does not exist: {self.entry_path}")
        if self.output_style not in VALID_OUTPUT_STYLES:
            raise ValueError(f"Invalid output style: {self.output_style}")


@dataclass
class WatcherEvent:
    """Represents a file system event from the watcher."""

    event_type: str  # created, modified, deleted, moved
    file_path: Path  # Absolute path to affected file
    timestamp: float = field(default_factory=time.time)  # Event timestamp

    def triggers_compile(self) -> bool:
        """Determine if the event describes a content change."""
        return self.event_type in ("created", "modified", "deleted", "moved")


@dataclass
class BuildState:
    """Latest known outcome of a session, as served over HTTP."""

    css: str | None = None  # Last successfully compiled CSS
    imports: list[Path] = field(default_factory=list)  # Imports of that compile
    error: str | None = None  # Message of the most recent failure, if unresolved
    compile_count: int = 0  # Successful compiles so far
    last_compiled: float | None = None  # Timestamp of last successful compile

    def record_compile(self, result: CompileResult) -> None:
        self.css = result.css
        self.imports = list(result.imports)
        self.error = None
        self.compile_count += 1
        self.last_compiled = time.time()

    def record_error(self, error: Exception) -> None:
        self.error = str(error)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "ready": self.css is not None,
            "imports": [str(path) for path in self.imports],
            "error": self.error,
            "compile_count": self.compile_count,
            "last_compiled": self.last_compiled,
        }
