"""
Error taxonomy for the spec-forge pipeline.

  InputError         : malformed / missing source data (fatal for that item)
  GenerationError    : model output problems
      RetryableOutputError : truncated, unparseable or schema-invalid output
      IncompleteSpec       : well-formed output missing mandatory sections
  TransportError     : model service unreachable / misconfigured (fatal)

Validation problems are never raised: they travel as ValidationIssue
records on the result (see models/schemas.py).
"""

from __future__ import annotations


class SpecForgeError(Exception):
    """Root of every error raised by spec_forge."""

    def __init__(self, details: str = "") -> None:
        super().__init__(details)
        self.details = details


# ── Input ────────────────────────────────────────────────


class InputError(SpecForgeError):
    pass


class SourceFileNotFound(InputError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Source file not found: {path}")
        self.path = path


class InvalidSourceFormat(InputError):
    pass


class NoSourceRequirements(InputError):
    def __init__(self, details: str = "No source requirement found in input") -> None:
        super().__init__(details)


# ── Generation (model output) ────────────────────────────


class GenerationError(SpecForgeError):
    pass


class RetryableOutputError(GenerationError):
    """Malformed or incomplete model output, worth another model call."""

    #: number of attempts consumed when the retry policy gave up
    attempts: int = 0


class OutputTruncated(RetryableOutputError):
    pass


class OutputParseFailed(RetryableOutputError):
    pass


class OutputSchemaMismatch(RetryableOutputError):
    pass


class IncompleteSpec(GenerationError):
    def __init__(self, missing_sections: list[str]) -> None:
        super().__init__(
            f"Incomplete specification, missing sections: {', '.join(missing_sections)}"
        )
        self.missing_sections = list(missing_sections)


# ── Transport (model service) ────────────────────────────


class TransportError(SpecForgeError):
    """Any transport-level failure talking to the model service."""


class ConnectionFailed(TransportError):
    pass


class ModelNotFound(TransportError):
    pass


# ── Control flow ─────────────────────────────────────────


class PipelineCancelled(SpecForgeError):
    pass
