#!/usr/bin/env python3
"""
Build script - prepares the MbedTLS backend for the PSA Crypto API
Resolves or builds the library, generates bindings, emits link directives
"""

import os
from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel

from .bindings import BindgenOptions
from .config import (
    INCLUDE_DIR_ENV,
    LIB_DIR_ENV,
    OUT_DIR_ENV,
    STATIC_ENV,
    TARGET_ENV,
    BuildConfig,
    Profile,
    find_project_root,
    resolve_build_config,
)
from .discovery import discover_backend
from .errors import BuildError, MissingEnvironmentVariable
from .profiles import run_pipeline
from .utils import console


app = typer.Typer(add_completion=False, help="psa-crypto-sys build tool")


def show_info(config: BuildConfig, options: BindgenOptions) -> None:
    """Show build configuration"""
    console.print("[bold]Build configuration information:[/]")
    console.print(f"  Profile: {config.profile.value}")
    console.print(f"  Project root: {config.project_root}")
    console.print(f"  Output directory: {config.out_dir}")
    console.print(f"  Compiler: {config.cc}")
    console.print(f"  Archiver: {config.ar}")
    console.print(f"  Link mode: {config.link_mode.kind}")
    if config.location is not None:
        console.print(f"  {LIB_DIR_ENV}: {config.location.lib_dir}")
        console.print(f"  {INCLUDE_DIR_ENV}: {config.location.include_dir}")
    elif config.include_dir is not None:
        console.print(f"  {INCLUDE_DIR_ENV}: {config.include_dir}")
    else:
        console.print("  Backend: [yellow]built from vendored sources[/]")
        status = "[green]OK[/]" if config.config_script.exists() else "[red]Missing[/]"
        console.print(f"    {status} {config.config_script}")

    console.print("\n  Adapter sources:")
    for src in (config.shim_header, config.shim_source):
        status = "[green]OK[/]" if src.exists() else "[red]Missing[/]"
        console.print(f"    {status} {src}")

    console.print("\n  Bindings:")
    console.print(f"    shared types module: {options.types_module or '-'}")
    console.print(f"    comments: {options.generate_comments}")
    console.print(f"    size_t as word-sized: {options.size_t_is_usize}")
    console.print(f"    excluded types: {', '.join(options.blocklist_types)}")


def report_failure(error: BuildError) -> None:
    console.print(Panel.fit(f"[bold red]{error.stage} failed[/]", border_style="red"))
    console.print(error.message, markup=False)
    if error.hint:
        console.print(f"[yellow]Hint:[/] {error.hint}")
    if error.output:
        console.print(error.output.rstrip("\n"), markup=False, soft_wrap=True)


def _discover(out_dir: Optional[Path], environ) -> None:
    target = environ.get(TARGET_ENV)
    if not target:
        raise MissingEnvironmentVariable(TARGET_ENV, "artifact discovery needs the target triple")
    if out_dir is None:
        if not environ.get(OUT_DIR_ENV):
            raise MissingEnvironmentVariable(OUT_DIR_ENV, "no output directory was given")
        out_dir = Path(environ[OUT_DIR_ENV])
    discover_backend(out_dir, target)


@app.command(context_settings={"help_option_names": ["-h", "--help"]})
def run(
    profile: Profile = typer.Option(
        Profile.BINDINGS_PLUS_BUILD,
        "--profile",
        "-p",
        case_sensitive=False,
        help="bindings-only: bindings and shim against MBEDTLS_INCLUDE_DIR; "
             "bindings-plus-build: also build or locate the library and emit link directives",
    ),
    static: bool = typer.Option(
        False,
        "--static",
        "-s",
        help=f"Link the backend statically (same as setting {STATIC_ENV})",
    ),
    out_dir: Optional[Path] = typer.Option(
        None,
        "--out-dir",
        "-o",
        help=f"Output directory (default: ${OUT_DIR_ENV})",
    ),
    project_root: Optional[Path] = typer.Option(
        None,
        "--project-root",
        help="Directory holding vendor/ and src/c/ (default: searched from the current directory)",
    ),
    types_module: Optional[str] = typer.Option(
        None,
        "--types-module",
        help="Module whose cffi 'ffi' provides shared type definitions for the bindings",
    ),
    comments: bool = typer.Option(
        False,
        "--comments/--no-comments",
        help="Annotate generated bindings with the C prototypes",
    ),
    info: bool = typer.Option(
        False,
        "--info",
        "-i",
        help="Show the resolved build configuration and exit",
    ),
    discover_artifacts: bool = typer.Option(
        False,
        "--discover-artifacts",
        hidden=True,
    ),
):
    """
    Prepare the MbedTLS backend: resolve or build it, generate bindings, emit link directives.
    """
    environ = dict(os.environ)
    options = BindgenOptions(generate_comments=comments, types_module=types_module)

    try:
        if discover_artifacts:
            _discover(out_dir, environ)

        config = resolve_build_config(
            profile,
            environ,
            out_dir=out_dir,
            static_feature=static,
            project_root=project_root or find_project_root(Path.cwd()),
        )
        if info:
            show_info(config, options)
            raise typer.Exit(code=0)

        result = run_pipeline(config, options=options)
    except BuildError as error:
        report_failure(error)
        raise typer.Exit(code=1)

    console.print(f"\n[green]Build successful ({result.profile.value})[/]")
    console.print(f"  Bindings: {result.bindings}")
    console.print(f"  Shim library: {result.shim_library}")


if __name__ == "__main__":
    app()
