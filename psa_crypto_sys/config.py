#!/usr/bin/env python3
"""
Configuration module for the psa-crypto-sys build pipeline
Manages paths, environment variables, compiler settings and build options
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from .errors import InvalidEnvironmentPairing, MissingEnvironmentVariable


########################################################################
# Environment Variables
########################################################################

LIB_DIR_ENV = "MBEDTLS_LIB_DIR"
INCLUDE_DIR_ENV = "MBEDTLS_INCLUDE_DIR"
STATIC_ENV = "MBEDCRYPTO_STATIC"
OUT_DIR_ENV = "OUT_DIR"
TARGET_ENV = "TARGET"
CC_ENV = "CC"
AR_ENV = "AR"


########################################################################
# Path Configuration
########################################################################

VENDOR_DIR = Path("vendor")
CONFIG_SCRIPT = VENDOR_DIR / "scripts" / "config.py"
SHIM_SOURCE = Path("src/c/shim.c")
SHIM_HEADER = Path("src/c/shim.h")

# Relative to the backend include directory
PUBLIC_HEADER = Path("psa/crypto.h")

CONFIG_HEADER_NAME = "config.h"
BINDINGS_FILE_NAME = "shim_bindings.py"
SHIM_LIB_NAME = "shim"
BACKEND_LIB_NAME = "mbedcrypto"

# Feature subset passed to the configuration script
CONFIG_PRESET = "crypto"


def find_project_root(start_path: Path) -> Path:
    """
    Find project root directory by looking for the shim sources.

    Falls back to start_path when no parent carries src/c/shim.h, so a
    missing shim surfaces later as a compile error naming the full path.
    """
    current = start_path.resolve()
    for parent in [current] + list(current.parents):
        if (parent / SHIM_HEADER).exists():
            return parent
    return current


########################################################################
# Native Compiler Configuration
########################################################################

NATIVE_C = "cc"
NATIVE_AR = "ar"

CFLAGS_WALL = "-Wall"
CFLAGS_WEXTRA = "-Wextra"
CFLAGS_WERROR = "-Werror"
CFLAGS_OPTIMIZE = "-O2"
CFLAGS_PIC = "-fPIC"


def config_file_define() -> str:
    """Preprocessor definition pointing the backend at the generated header."""
    return f"-DMBEDTLS_CONFIG_FILE=<{CONFIG_HEADER_NAME}>"


########################################################################
# Build Model
########################################################################

class Profile(Enum):
    """Orchestration profile; exactly one runs per invocation."""

    BINDINGS_ONLY = "bindings-only"
    BINDINGS_PLUS_BUILD = "bindings-plus-build"


class LinkMode(Enum):
    STATIC = "static"
    DYNAMIC = "dylib"

    @property
    def kind(self) -> str:
        return self.value


@dataclass(frozen=True)
class BackendLocation:
    lib_dir: Path
    include_dir: Path

    @classmethod
    def from_prefix(cls, prefix: Path) -> "BackendLocation":
        """Location of an installed backend rooted at prefix."""
        return cls(lib_dir=prefix / "lib", include_dir=prefix / "include")


@dataclass(frozen=True)
class BuildConfig:
    """
    Everything the pipeline needs, resolved once at start.

    location is None when the backend has to be built from vendored
    sources, and always None for BINDINGS_ONLY, which only carries the
    backend include_dir.
    """

    profile: Profile
    project_root: Path
    out_dir: Path
    location: Optional[BackendLocation]
    link_mode: LinkMode
    include_dir: Optional[Path] = None
    cc: str = NATIVE_C
    ar: str = NATIVE_AR

    @property
    def vendor_dir(self) -> Path:
        return self.project_root / VENDOR_DIR

    @property
    def config_script(self) -> Path:
        return self.project_root / CONFIG_SCRIPT

    @property
    def shim_source(self) -> Path:
        return self.project_root / SHIM_SOURCE

    @property
    def shim_header(self) -> Path:
        return self.project_root / SHIM_HEADER


def _get(environ: Mapping[str, str], name: str) -> Optional[str]:
    """Value of name; an empty value counts as unset."""
    value = environ.get(name)
    return value if value else None


def resolve_build_config(
    profile: Profile,
    environ: Optional[Mapping[str, str]] = None,
    out_dir: Optional[Path] = None,
    static_feature: bool = False,
    project_root: Optional[Path] = None,
) -> BuildConfig:
    """
    Resolve the backend location, link mode and output directory.

    Args:
        profile: Active build profile
        environ: Environment mapping (default: os.environ)
        out_dir: Explicit output directory, overrides OUT_DIR
        static_feature: Build-time request for static linking
        project_root: Directory holding vendor/ and src/c/ (default: cwd)

    Raises:
        InvalidEnvironmentPairing: only one of the location variables is set
            for the bindings-plus-build profile
        MissingEnvironmentVariable: the include directory is missing for the
            bindings-only profile, or no output directory is known
    """
    if environ is None:
        environ = os.environ

    lib_dir = _get(environ, LIB_DIR_ENV)
    include_dir = _get(environ, INCLUDE_DIR_ENV)

    if profile is Profile.BINDINGS_PLUS_BUILD:
        if (lib_dir is None) != (include_dir is None):
            raise InvalidEnvironmentPairing(LIB_DIR_ENV, INCLUDE_DIR_ENV)
        location = None
        if lib_dir is not None and include_dir is not None:
            location = BackendLocation(Path(lib_dir), Path(include_dir))
        headers = None
    else:
        if include_dir is None:
            raise MissingEnvironmentVariable(
                INCLUDE_DIR_ENV,
                f"the {profile.value} profile does not build the backend and needs its headers",
            )
        # Only the headers are needed; MBEDTLS_LIB_DIR is not consulted
        location = None
        headers = Path(include_dir)

    if out_dir is None:
        raw_out = _get(environ, OUT_DIR_ENV)
        if raw_out is None:
            raise MissingEnvironmentVariable(OUT_DIR_ENV, "no output directory was given")
        out_dir = Path(raw_out)

    statically = static_feature or STATIC_ENV in environ
    link_mode = LinkMode.STATIC if statically else LinkMode.DYNAMIC

    return BuildConfig(
        profile=profile,
        project_root=(project_root or Path.cwd()).resolve(),
        out_dir=out_dir,
        location=location,
        link_mode=link_mode,
        include_dir=headers,
        cc=_get(environ, CC_ENV) or NATIVE_C,
        ar=_get(environ, AR_ENV) or NATIVE_AR,
    )
