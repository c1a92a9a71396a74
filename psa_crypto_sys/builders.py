#!/usr/bin/env python3
"""
Builder functions for the vendored MbedTLS backend.

Two steps, both run once and fatal on failure:
- config.py writes a config.h selecting only the "crypto" feature subset
- CMake builds and installs the library into the output directory

Used only when no prebuilt backend was supplied through the environment.
"""

import multiprocessing
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List

from .config import (
    CONFIG_HEADER_NAME,
    CONFIG_PRESET,
    CONFIG_SCRIPT,
    VENDOR_DIR,
    BackendLocation,
    BuildConfig,
)
from .directives import RerunWatchSet
from .errors import ConfigurationScriptFailed, MissingVendoredSource, NativeBuildFailed
from .utils import console, run_command, run_streaming_cmd


CMAKE_BUILD_TYPE = "Release"
CMAKE_BUILD_SUBDIR = "build"


@dataclass(frozen=True)
class BackendBuild:
    location: BackendLocation
    config_header: Path


# =============================================================================
# Source Verification
# =============================================================================


def check_vendored_sources(config: BuildConfig) -> None:
    """Fail before touching anything if the vendored tree is incomplete."""
    if not config.vendor_dir.is_dir():
        raise MissingVendoredSource(f"source tree ({VENDOR_DIR})")
    if not config.config_script.is_file():
        raise MissingVendoredSource(str(CONFIG_SCRIPT.name))


# =============================================================================
# Configuration
# =============================================================================


def configure_backend(config: BuildConfig) -> Path:
    """
    Generate config.h for Mbed Crypto in the output directory.

    Returns:
        Path to the generated configuration header
    """
    header = config.out_dir / CONFIG_HEADER_NAME
    run_command(
        [config.config_script, "--write", header, CONFIG_PRESET],
        ConfigurationScriptFailed,
        "Configuring the MbedTLS build for Mbed Crypto",
        cwd=config.project_root,
    )
    return header


# =============================================================================
# CMake Build
# =============================================================================


def cmake_configure_args(config: BuildConfig) -> List[str]:
    """Arguments for the CMake configure step of the vendored tree."""
    # Generators pass CMAKE_C_FLAGS through a shell, so quote the <...>
    cflags = f"-I{config.out_dir} -DMBEDTLS_CONFIG_FILE='<{CONFIG_HEADER_NAME}>'"
    args = [
        "cmake",
        str(config.vendor_dir),
        f"-DCMAKE_INSTALL_PREFIX={config.out_dir}",
        f"-DCMAKE_BUILD_TYPE={CMAKE_BUILD_TYPE}",
        f"-DCMAKE_C_COMPILER={config.cc}",
        f"-DCMAKE_C_FLAGS={cflags}",
        "-DENABLE_PROGRAMS=OFF",
        "-DENABLE_TESTING=OFF",
    ]
    if shutil.which("ninja") is not None:
        args.extend(["-G", "Ninja"])
    return args


def compile_backend(config: BuildConfig) -> Path:
    """
    Configure, build and install the vendored library with CMake.

    Returns:
        Install prefix of the built library (the output directory)
    """
    build_dir = config.out_dir / CMAKE_BUILD_SUBDIR
    build_dir.mkdir(parents=True, exist_ok=True)

    run_command(
        cmake_configure_args(config),
        NativeBuildFailed,
        "Configuring MbedTLS with CMake",
        cwd=build_dir,
    )

    jobs = multiprocessing.cpu_count()
    run_streaming_cmd(
        [
            "cmake", "--build", ".",
            "--target", "install",
            "--config", CMAKE_BUILD_TYPE,
            "--parallel", str(jobs),
        ],
        NativeBuildFailed,
        cwd=build_dir,
        title="Building MbedTLS",
    )
    return config.out_dir


# =============================================================================
# Backend Builder
# =============================================================================


def build_backend(config: BuildConfig, watch: RerunWatchSet) -> BackendBuild:
    """
    Build the backend from the vendored sources.

    Every file of the vendored tree joins the rerun watch set, since the
    compiled library depends on all of them.
    """
    check_vendored_sources(config)
    console.print("[yellow]Did not find environment variables, building MbedTLS![/]")

    config.out_dir.mkdir(parents=True, exist_ok=True)
    header = configure_backend(config)

    watched = watch.declare_tree(config.vendor_dir)
    console.print(f"   Watching {watched} vendored file(s)")

    prefix = compile_backend(config)
    location = BackendLocation.from_prefix(prefix)
    console.print(f"[green]MbedTLS installed to {prefix}[/]")
    return BackendBuild(location=location, config_header=header)
