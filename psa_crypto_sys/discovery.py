#!/usr/bin/env python3
"""
Experimental: reuse an MbedTLS build produced by a sibling package.

Looks next to the current package's build directory for
minerva-mbedtls-*/out/mbedtls-v3-<target> and picks the newest one.
Disabled unless --discover-artifacts is passed, and it stops the build
after reporting the selection instead of publishing it.
"""

import os
from pathlib import Path
from typing import List, MutableMapping, Optional

from .config import INCLUDE_DIR_ENV, LIB_DIR_ENV, STATIC_ENV
from .errors import ArtifactDiscoveryHalted, EmptyArtifactCandidateList
from .utils import console

CANDIDATE_PREFIX = "minerva-mbedtls-"


def build_root(out_dir: Path) -> Path:
    """<build>/<package>-<hash>/out -> <build>"""
    return out_dir.parent.parent


def backend_dir(candidate: Path, target: str) -> Path:
    return candidate / "out" / f"mbedtls-v3-{target}"


def _created_at(path: Path) -> float:
    """
    Creation time where the platform reports one (st_birthtime on macOS
    and the BSDs). Linux os.stat() has no birth time, so there the inode
    change time (st_ctime) is used: a directory whose metadata changed
    after creation sorts as newer than it is.
    """
    stat = path.stat()
    return getattr(stat, "st_birthtime", stat.st_ctime)


def find_candidates(out_dir: Path, target: str) -> List[Path]:
    """
    Sibling build directories holding an MbedTLS build for target, newest first.

    Raises:
        EmptyArtifactCandidateList: no sibling matched
    """
    root = build_root(out_dir)
    entries = sorted(root.iterdir()) if root.is_dir() else []
    candidates = [
        entry for entry in entries
        if entry.name.startswith(CANDIDATE_PREFIX) and backend_dir(entry, target).is_dir()
    ]
    if not candidates:
        raise EmptyArtifactCandidateList(
            f"no {CANDIDATE_PREFIX}* build for {target} under {root}"
        )
    candidates.sort(key=lambda entry: _created_at(backend_dir(entry, target)), reverse=True)
    return candidates


def select_backend_dir(out_dir: Path, target: str) -> Path:
    return backend_dir(find_candidates(out_dir, target)[0], target)


def publish_backend_env(mbedtls_dir: Path, environ: Optional[MutableMapping[str, str]] = None) -> None:
    """Point the location variables at a discovered build, linked statically."""
    if environ is None:
        environ = os.environ
    environ[LIB_DIR_ENV] = str(mbedtls_dir / "library")
    environ[INCLUDE_DIR_ENV] = str(mbedtls_dir / "include")
    environ[STATIC_ENV] = "1"


def discover_backend(out_dir: Path, target: str) -> Path:
    """
    Resolve the newest sibling MbedTLS build, then halt.

    Raises:
        EmptyArtifactCandidateList: nothing to choose from
        ArtifactDiscoveryHalted: always, once a directory was selected
    """
    mbedtls_dir = select_backend_dir(out_dir, target)
    console.print(f"resolved `mbedtls_dir`: {mbedtls_dir}", markup=False)
    # TODO: call publish_backend_env here once sibling builds are produced with a
    # layout this pipeline can link against.
    raise ArtifactDiscoveryHalted(
        f"stopping after resolving {mbedtls_dir}; discovered builds are not published yet"
    )
