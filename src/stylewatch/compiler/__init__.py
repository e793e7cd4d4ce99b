"""Stylesheet compilation for stylewatch."""

from stylewatch.compiler.engine import SassCompiler, compile_file, compile_source, resolve_import

__all__ = ["SassCompiler", "compile_file", "compile_source", "resolve_import"]
