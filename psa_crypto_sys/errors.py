#!/usr/bin/env python3
"""
Error types for the psa-crypto-sys build pipeline.

Every stage raises a subclass of BuildError and nothing in the pipeline
recovers from one; the CLI reports it once and exits non-zero.
"""

from typing import Optional


class BuildError(Exception):
    """Base class: a failed pipeline stage, with the tool output if any."""

    stage = "build"

    def __init__(self, message: str, output: Optional[str] = None, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.output = output
        self.hint = hint

    def __str__(self) -> str:
        parts = [f"{self.stage}: {self.message}"]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        return "\n".join(parts)


class ConfigurationError(BuildError):
    stage = "configuration"


class InvalidEnvironmentPairing(ConfigurationError):
    """Exactly one of two variables that must be set together is present."""

    def __init__(self, first: str, second: str):
        super().__init__(
            f"both environment variables {first} and {second} need to be set, or neither",
            hint=f"export both {first} and {second} to use a prebuilt backend, "
                 f"or unset both to build the vendored sources",
        )
        self.variables = (first, second)


class MissingEnvironmentVariable(ConfigurationError):
    def __init__(self, name: str, reason: str):
        super().__init__(f"{name} is not set: {reason}")
        self.variable = name


class MissingVendoredSource(ConfigurationError):
    def __init__(self, missing):
        super().__init__(
            f"MbedTLS {missing} is missing",
            hint="Have you run 'git submodule update --init'?",
        )
        self.missing = missing


class ConfigurationScriptFailed(BuildError):
    stage = "configure"


class NativeBuildFailed(BuildError):
    stage = "native build"


class ShimCompileFailed(BuildError):
    stage = "shim compile"


class BindingGenerationFailed(BuildError):
    stage = "binding generation"


class EmptyArtifactCandidateList(BuildError):
    stage = "artifact discovery"


class ArtifactDiscoveryHalted(BuildError):
    stage = "artifact discovery"
