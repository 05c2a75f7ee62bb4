from __future__ import annotations


class ChapterAnalysisError(RuntimeError):
    """Base class for errors raised by the analysis engine."""


class InputError(ChapterAnalysisError, ValueError):
    """Raised when the chapter text handed to the engine is not usable."""


class ExternalCapabilityFailure(ChapterAnalysisError):
    """Raised when the external correction service errors, times out, or is missing."""


class MalformedResponseError(ExternalCapabilityFailure):
    """Raised when an external response cannot be parsed into the expected shape."""


class RegistryUnavailableError(ChapterAnalysisError):
    """Raised when the author name registry cannot be read or written."""
