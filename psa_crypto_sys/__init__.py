#!/usr/bin/env python3
"""
Build pipeline for the psa-crypto-sys MbedTLS backend.

Modules:
- config: Environment resolution, paths and compiler settings
- directives: Build directive protocol and rerun watch set
- builders: Vendored MbedTLS configure and CMake build
- shim: Shim compilation into libshim.a
- bindings: cffi binding generation from the shim header
- link: Link directives for the backend and the shim
- profiles: bindings-only and bindings-plus-build orchestration
- discovery: Experimental reuse of sibling MbedTLS builds
- cli: Command line entry point
"""

from .config import (
    find_project_root,
    resolve_build_config,
    BackendLocation,
    BuildConfig,
    LinkMode,
    Profile,
    LIB_DIR_ENV,
    INCLUDE_DIR_ENV,
    STATIC_ENV,
    OUT_DIR_ENV,
)

from .errors import (
    BuildError,
    ConfigurationError,
    InvalidEnvironmentPairing,
    MissingEnvironmentVariable,
    MissingVendoredSource,
    ConfigurationScriptFailed,
    NativeBuildFailed,
    ShimCompileFailed,
    BindingGenerationFailed,
    EmptyArtifactCandidateList,
    ArtifactDiscoveryHalted,
)

from .directives import (
    DirectiveWriter,
    RerunWatchSet,
)

from .builders import (
    build_backend,
    configure_backend,
    compile_backend,
)

from .shim import (
    ShimCompiler,
    compile_shim,
)

from .bindings import (
    BindgenOptions,
    generate_bindings,
    write_bindings,
)

from .link import (
    link_directives,
    emit_link_directives,
)

from .profiles import (
    PipelineResult,
    run_pipeline,
)

from .discovery import discover_backend

__all__ = [
    # config
    "find_project_root",
    "resolve_build_config",
    "BackendLocation",
    "BuildConfig",
    "LinkMode",
    "Profile",
    "LIB_DIR_ENV",
    "INCLUDE_DIR_ENV",
    "STATIC_ENV",
    "OUT_DIR_ENV",
    # errors
    "BuildError",
    "ConfigurationError",
    "InvalidEnvironmentPairing",
    "MissingEnvironmentVariable",
    "MissingVendoredSource",
    "ConfigurationScriptFailed",
    "NativeBuildFailed",
    "ShimCompileFailed",
    "BindingGenerationFailed",
    "EmptyArtifactCandidateList",
    "ArtifactDiscoveryHalted",
    # directives
    "DirectiveWriter",
    "RerunWatchSet",
    # builders
    "build_backend",
    "configure_backend",
    "compile_backend",
    # shim
    "ShimCompiler",
    "compile_shim",
    # bindings
    "BindgenOptions",
    "generate_bindings",
    "write_bindings",
    # link
    "link_directives",
    "emit_link_directives",
    # profiles
    "PipelineResult",
    "run_pipeline",
    # discovery
    "discover_backend",
]
