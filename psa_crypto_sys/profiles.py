#!/usr/bin/env python3
"""
Build profiles.

bindings-only        resolve headers -> generate bindings -> compile shim
bindings-plus-build  resolve location -> (build backend) -> compile shim
                     -> generate bindings -> emit link directives

Exactly one profile runs per invocation; each is a plain function over an
already resolved BuildConfig.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .bindings import BindgenOptions, generate_bindings
from .builders import build_backend
from .config import BackendLocation, BuildConfig, LinkMode, Profile
from .directives import DirectiveWriter, RerunWatchSet
from .link import emit_link_directives
from .shim import compile_shim
from .utils import console


@dataclass
class PipelineResult:
    profile: Profile
    include_dir: Path
    shim_library: Path
    bindings: Path
    location: Optional[BackendLocation] = None
    link_mode: Optional[LinkMode] = None
    config_header: Optional[Path] = None
    link_directives: List[str] = field(default_factory=list)
    watched: List[Path] = field(default_factory=list)


def run_bindings_only(config: BuildConfig, watch: RerunWatchSet, writer: DirectiveWriter,
                      options: Optional[BindgenOptions] = None) -> PipelineResult:
    """Bindings and shim against an externally provided backend; links nothing."""
    include_dir = config.include_dir
    console.print(f"[bold cyan]Generating bindings for headers in {include_dir}[/]")

    bindings = generate_bindings(config, include_dir, watch, options=options)
    shim_library = compile_shim(config, include_dir, watch)

    return PipelineResult(
        profile=config.profile,
        include_dir=include_dir,
        shim_library=shim_library,
        bindings=bindings,
        watched=watch.paths,
    )


def run_bindings_plus_build(config: BuildConfig, watch: RerunWatchSet, writer: DirectiveWriter,
                            options: Optional[BindgenOptions] = None) -> PipelineResult:
    """Full chain; builds the vendored backend when no location was supplied."""
    config_header = None
    if config.location is None:
        built = build_backend(config, watch)
        location = built.location
        config_header = built.config_header
        # A backend built here only produces the static library
        link_mode = LinkMode.STATIC
    else:
        location = config.location
        link_mode = config.link_mode
        console.print(f"[bold cyan]Using MbedTLS from {location.lib_dir}[/]")

    shim_library = compile_shim(config, location.include_dir, watch, config_header)
    bindings = generate_bindings(config, location.include_dir, watch, config_header, options)
    lines = emit_link_directives(location.lib_dir, link_mode, config.out_dir, writer)

    return PipelineResult(
        profile=config.profile,
        include_dir=location.include_dir,
        shim_library=shim_library,
        bindings=bindings,
        location=location,
        link_mode=link_mode,
        config_header=config_header,
        link_directives=lines,
        watched=watch.paths,
    )


PROFILE_RUNNERS: Dict[Profile, Callable[..., PipelineResult]] = {
    Profile.BINDINGS_ONLY: run_bindings_only,
    Profile.BINDINGS_PLUS_BUILD: run_bindings_plus_build,
}


def run_pipeline(config: BuildConfig, writer: Optional[DirectiveWriter] = None,
                 options: Optional[BindgenOptions] = None) -> PipelineResult:
    """Run the profile selected in config. Any BuildError propagates."""
    if writer is None:
        writer = DirectiveWriter()
    watch = RerunWatchSet(writer)
    return PROFILE_RUNNERS[config.profile](config, watch, writer, options)
