#!/usr/bin/env python3
"""
Build directive protocol.

The downstream build orchestrator reads one directive per stdout line:

    cargo:rerun-if-changed=<path>
    cargo:rustc-link-search=native=<path>
    cargo:rustc-link-lib=<kind>=<name>

Lines must be written byte for byte, so they bypass the rich console.
"""

import os
from pathlib import Path
from typing import Callable, List, Optional

import typer

DIRECTIVE_PREFIX = "cargo:"


def rerun_if_changed(path) -> str:
    return f"{DIRECTIVE_PREFIX}rerun-if-changed={path}"


def link_search(path, kind: str = "native") -> str:
    return f"{DIRECTIVE_PREFIX}rustc-link-search={kind}={path}"


def link_lib(name: str, kind: str) -> str:
    return f"{DIRECTIVE_PREFIX}rustc-link-lib={kind}={name}"


class DirectiveWriter:
    """Writes directive lines to stdout and keeps a record of them."""

    def __init__(self, echo: Optional[Callable[[str], None]] = typer.echo):
        self._echo = echo
        self.lines: List[str] = []

    def emit(self, line: str) -> None:
        self.lines.append(line)
        if self._echo is not None:
            self._echo(line)


class RerunWatchSet:
    """
    Paths whose modification must invalidate the cached build.

    A path is emitted the first time it is declared; declaring it again is
    a no-op, so the emitted set stays ordered and duplicate free.
    """

    def __init__(self, writer: DirectiveWriter):
        self._writer = writer
        self._paths: List[Path] = []
        self._seen = set()

    @property
    def paths(self) -> List[Path]:
        return list(self._paths)

    def declare(self, path: Path) -> bool:
        key = str(path)
        if key in self._seen:
            return False
        self._seen.add(key)
        self._paths.append(Path(path))
        self._writer.emit(rerun_if_changed(key))
        return True

    def declare_tree(self, root: Path) -> int:
        """Declare every regular file below root; returns how many were new."""
        added = 0
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            for name in sorted(filenames):
                path = Path(dirpath) / name
                if path.is_file() and self.declare(path):
                    added += 1
        return added
