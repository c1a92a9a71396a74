#!/usr/bin/env python3
"""
Link directives for the backend library and the shim archive.
"""

from pathlib import Path
from typing import List

from .config import BACKEND_LIB_NAME, SHIM_LIB_NAME, LinkMode
from .directives import DirectiveWriter, link_lib, link_search


def link_directives(lib_dir: Path, link_mode: LinkMode, out_dir: Path) -> List[str]:
    """
    Directive lines linking the backend and the shim, in emission order.

    The backend is linked with the requested mode; the shim archive built
    in out_dir is always linked statically.
    """
    return [
        link_search(lib_dir),
        link_lib(BACKEND_LIB_NAME, link_mode.kind),
        link_search(out_dir),
        link_lib(SHIM_LIB_NAME, LinkMode.STATIC.kind),
    ]


def emit_link_directives(
    lib_dir: Path,
    link_mode: LinkMode,
    out_dir: Path,
    writer: DirectiveWriter,
) -> List[str]:
    lines = link_directives(lib_dir, link_mode, out_dir)
    for line in lines:
        writer.emit(line)
    return lines
