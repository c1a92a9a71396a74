#!/usr/bin/env python3
"""
Shim compilation: src/c/shim.c -> <out>/libshim.a

The shim narrows the backend's public API down to the symbols the
generated bindings expose.
"""

from pathlib import Path
from typing import List, Optional

from .config import (
    CFLAGS_OPTIMIZE,
    CFLAGS_PIC,
    CFLAGS_WALL,
    CFLAGS_WERROR,
    CFLAGS_WEXTRA,
    SHIM_LIB_NAME,
    BuildConfig,
    config_file_define,
)
from .directives import RerunWatchSet
from .errors import ShimCompileFailed
from .utils import console, run_command


def include_flags(out_dir: Path, include_dir: Path, config_header: Optional[Path]) -> List[str]:
    """
    Include path and defines shared by the shim compile and the preprocessor.

    The MBEDTLS_CONFIG_FILE define is only set when config.h was generated
    for a vendored build; a prebuilt backend uses its installed configuration.
    """
    flags = [f"-I{out_dir}", f"-I{include_dir}"]
    if config_header is not None:
        flags.append(config_file_define())
    return flags


class ShimCompiler:
    """Compiles the shim translation unit into a static archive"""

    def __init__(self, config: BuildConfig, include_dir: Path, config_header: Optional[Path] = None):
        self.config = config
        self.cc = config.cc
        self.ar = config.ar
        self.source = config.shim_source
        self.out_dir = config.out_dir

        self.cflags = include_flags(self.out_dir, include_dir, config_header) + [
            CFLAGS_WALL, CFLAGS_WEXTRA, CFLAGS_WERROR, CFLAGS_OPTIMIZE, CFLAGS_PIC,
        ]

        self.obj_path = self.out_dir / f"{SHIM_LIB_NAME}.o"
        self.lib_name = f"lib{SHIM_LIB_NAME}.a"
        self.lib_path = self.out_dir / self.lib_name

    def compile_source(self) -> Path:
        cmd = [self.cc] + self.cflags + ["-c", str(self.source), "-o", str(self.obj_path)]
        run_command(cmd, ShimCompileFailed, f"Compiling {self.source.name}")
        return self.obj_path

    def create_static_lib(self, object_files: List[Path]) -> Path:
        cmd = [self.ar, "rcs", str(self.lib_path)] + [str(obj) for obj in object_files]
        run_command(cmd, ShimCompileFailed, f"Creating static library {self.lib_name}")
        return self.lib_path

    def build(self) -> Path:
        self.out_dir.mkdir(parents=True, exist_ok=True)
        obj = self.compile_source()
        lib = self.create_static_lib([obj])
        console.print(f"[green]Shim library: {lib}[/]")
        return lib


def compile_shim(
    config: BuildConfig,
    include_dir: Path,
    watch: RerunWatchSet,
    config_header: Optional[Path] = None,
) -> Path:
    """Compile and package the shim library; returns the archive path."""
    watch.declare(config.shim_source)
    watch.declare(config.shim_header)
    return ShimCompiler(config, include_dir, config_header).build()
