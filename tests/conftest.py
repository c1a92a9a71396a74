"""Shared pytest fixtures for the psa-crypto-sys build pipeline tests."""

from __future__ import annotations

import pathlib
from typing import Dict, List, Optional

import pytest

from psa_crypto_sys.config import LIB_DIR_ENV, INCLUDE_DIR_ENV, STATIC_ENV, OUT_DIR_ENV, TARGET_ENV, CC_ENV, AR_ENV
from psa_crypto_sys.directives import DirectiveWriter, RerunWatchSet


# Stand-in for the preprocessed shim header
PREPROCESSED_SHIM = """
typedef unsigned long size_t;
typedef int int32_t;
typedef unsigned char uint8_t;
typedef int32_t psa_status_t;
typedef unsigned int psa_key_id_t;
typedef struct psa_key_attributes_s psa_key_attributes_t;
struct psa_key_attributes_s {
    psa_key_id_t id;
    size_t bits;
};
typedef struct {
    long long ll;
    long double ld;
} max_align_t;
psa_status_t psa_crypto_init(void);
psa_status_t psa_generate_random(uint8_t *output, size_t output_size);
"""

MACRO_DUMP = """#define __GNUC__ 4
#define PSA_BITS (256)
#define PSA_KEY_ID_USER_MIN 0x00000001
#define PSA_SUCCESS ((psa_status_t)0)
#define PSA_NAME "psa"
"""


class FakeRunner:
    """Records tool invocations instead of running them."""

    def __init__(self):
        self.calls: List[List[str]] = []
        self.cwds: List[Optional[str]] = []
        self.failures: Dict[str, str] = {}
        self.preprocessed = PREPROCESSED_SHIM
        self.macros = MACRO_DUMP

    def fail_on(self, token: str, output: str = "") -> None:
        """Fail every invocation that has token among its arguments."""
        self.failures[token] = output

    def _run(self, cmd, error_cls, cwd):
        args = [str(part) for part in cmd]
        self.calls.append(args)
        self.cwds.append(str(cwd) if cwd else None)
        for token, output in self.failures.items():
            if any(token == arg or arg.endswith("/" + token) for arg in args):
                raise error_cls(f"{args[0]} failed with exit code 1", output=output)
        if "-dM" in args:
            return self.macros
        if "-E" in args:
            return self.preprocessed
        return ""

    def run_command(self, cmd, error_cls, description="", cwd=None):
        return self._run(cmd, error_cls, cwd)

    def run_streaming_cmd(self, cmd, error_cls, cwd=None, title="Processing...", max_lines=4):
        return self._run(cmd, error_cls, cwd)

    def programs(self) -> List[str]:
        return [pathlib.Path(call[0]).name for call in self.calls]

    def find(self, token: str) -> List[List[str]]:
        return [call for call in self.calls if token in call]


@pytest.fixture
def fake_runner(monkeypatch) -> FakeRunner:
    """Patch every stage so no external tool is started."""
    runner = FakeRunner()
    monkeypatch.setattr("psa_crypto_sys.builders.run_command", runner.run_command)
    monkeypatch.setattr("psa_crypto_sys.builders.run_streaming_cmd", runner.run_streaming_cmd)
    monkeypatch.setattr("psa_crypto_sys.shim.run_command", runner.run_command)
    monkeypatch.setattr("psa_crypto_sys.bindings.run_command", runner.run_command)
    return runner


@pytest.fixture
def clean_env(monkeypatch) -> None:
    """Remove every variable the pipeline reads from the process environment."""
    for name in (LIB_DIR_ENV, INCLUDE_DIR_ENV, STATIC_ENV, OUT_DIR_ENV, TARGET_ENV, CC_ENV, AR_ENV):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def project_root(tmp_path: pathlib.Path) -> pathlib.Path:
    """Minimal crate checkout: vendored MbedTLS tree and shim sources."""
    root = tmp_path / "project"
    scripts = root / "vendor" / "scripts"
    scripts.mkdir(parents=True)
    (scripts / "config.py").write_text("#!/usr/bin/env python3\n")
    (root / "vendor" / "CMakeLists.txt").write_text("project(mbedtls C)\n")
    library = root / "vendor" / "library"
    library.mkdir()
    (library / "aes.c").write_text("")
    (library / "sha256.c").write_text("")

    shim_dir = root / "src" / "c"
    shim_dir.mkdir(parents=True)
    (shim_dir / "shim.h").write_text("#include <psa/crypto.h>\n")
    (shim_dir / "shim.c").write_text('#include "shim.h"\n')
    return root


@pytest.fixture
def out_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    """Output directory laid out like a per-package build directory."""
    return tmp_path / "build" / "psa-crypto-sys-0123abcd" / "out"


@pytest.fixture
def prebuilt(tmp_path: pathlib.Path) -> Dict[str, pathlib.Path]:
    """Directories of an externally installed backend."""
    prefix = tmp_path / "mbedtls"
    lib_dir = prefix / "lib"
    include_dir = prefix / "include"
    (include_dir / "psa").mkdir(parents=True)
    (include_dir / "psa" / "crypto.h").write_text("")
    lib_dir.mkdir()
    return {"lib": lib_dir, "include": include_dir}


@pytest.fixture
def writer() -> DirectiveWriter:
    """Directive writer that only records."""
    return DirectiveWriter(echo=None)


@pytest.fixture
def watch(writer: DirectiveWriter) -> RerunWatchSet:
    return RerunWatchSet(writer)
