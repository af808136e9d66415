"""Exception hierarchy shared by every stage of the texture pipeline."""
from __future__ import annotations


class TexturePipelineError(Exception):
    """Base class for all errors raised by the texture pipeline."""


class InvalidInput(TexturePipelineError, ValueError):
    """Raised when a stage receives a missing or zero-dimension buffer."""


class InvalidParameter(TexturePipelineError, ValueError):
    """Raised for out-of-range sigmas, kernel sizes or unknown methods."""


class PipelineCancelled(TexturePipelineError, RuntimeError):
    """Raised when a cancel event is observed between row chunks."""


__all__ = [
    "TexturePipelineError",
    "InvalidInput",
    "InvalidParameter",
    "PipelineCancelled",
]
