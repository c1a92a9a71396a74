#!/usr/bin/env python3
"""
Utility functions for the psa-crypto-sys build pipeline
Command execution and console output helpers
"""

import os
import shutil
import subprocess
from collections import deque
from pathlib import Path
from typing import Optional, Sequence, Type

import sh
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from .errors import BuildError

# stdout is reserved for build directives
console = Console(stderr=True, highlight=False)


def command_exists(cmd: str) -> bool:
    """Check whether a command/binary is available on the system."""
    if "/" in cmd or "\\" in cmd:
        cmd_path = Path(cmd)
        return cmd_path.exists() and os.access(cmd_path, os.X_OK)
    return shutil.which(cmd) is not None


def _decode(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return str(data)


def run_command(
    cmd: Sequence,
    error_cls: Type[BuildError],
    description: str = "",
    cwd: Optional[Path] = None,
) -> str:
    """
    Execute a command once and return its standard output.

    Args:
        cmd: Command to execute (program followed by arguments)
        error_cls: BuildError subclass raised on failure
        description: Description of the command for output
        cwd: Working directory for command execution

    Raises:
        error_cls: if the program cannot be started or exits non-zero; the
            tool's own diagnostics are attached unchanged as ``output``
    """
    program = str(cmd[0])
    args = [str(arg) for arg in cmd[1:]]
    console.print(f"[bold]{description or program}[/]")
    console.print(f"   {' '.join([program] + args)}", markup=False)

    kwargs = {"_tty_out": False}
    if cwd:
        kwargs["_cwd"] = str(cwd)

    try:
        cmd_func = sh.Command(program)
        return str(cmd_func(*args, **kwargs))
    except sh.ErrorReturnCode as e:
        stderr = _decode(e.stderr)
        stdout = _decode(e.stdout)
        raise error_cls(
            f"{program} failed with exit code {e.exit_code}",
            output=stderr or stdout,
        ) from e
    except sh.CommandNotFound as e:
        raise error_cls(
            f"command not found: {program}",
            hint="ensure the corresponding tool is installed and on PATH",
        ) from e
    except OSError as e:
        raise error_cls(f"could not start {program}: {e}") from e


def run_streaming_cmd(
    cmd: Sequence,
    error_cls: Type[BuildError],
    cwd: Optional[Path] = None,
    title: str = "Processing...",
    max_lines: int = 4,
) -> str:
    """
    Executes a long-running command using rich's Live display to show the last few lines of output.

    The complete transcript is kept and attached to the raised error when
    the command fails, so nothing the tool printed is lost.

    Returns:
        str: Complete combined stdout/stderr of the command
    """
    program = str(cmd[0])
    args = [str(a) for a in cmd[1:]]
    if not command_exists(program):
        raise error_cls(
            f"command not found: {program}",
            hint="ensure the corresponding tool is installed and on PATH",
        )

    transcript = []
    buffer = deque(maxlen=max_lines)

    try:
        proc = subprocess.Popen(
            [program, *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
            cwd=cwd,
        )
    except OSError as e:
        raise error_cls(f"could not start {program}: {e}") from e

    with Live(console=console, refresh_per_second=10, transient=True) as live:
        live.update(Panel("\n" * max_lines, title=title))

        for line in proc.stdout:
            transcript.append(line)
            buffer.append(line.rstrip())
            live.update(Panel(Text("\n".join(buffer)), title=f"{title} (last {max_lines} lines)"))

        proc.wait()

    output = "".join(transcript)
    if proc.returncode != 0:
        raise error_cls(f"{program} failed with exit code {proc.returncode}", output=output)

    console.print(f"[green]{title}: done[/]")
    return output
