from __future__ import annotations


class DocfieldError(Exception):
    """Base class for all errors raised by docfield_hitl."""


class ExtractionError(DocfieldError):
    """Structurally invalid extraction request. Always fatal for the invocation."""


class UnknownFieldError(ExtractionError):
    def __init__(self, fields: list[str]):
        self.fields = fields
        super().__init__(f"Unsupported field(s): {', '.join(fields)}")


class FallbackError(DocfieldError):
    """The fallback backend could not produce a response (transport, auth, rate limit)."""


class CostLimitExceeded(FallbackError):
    pass


class DocumentError(DocfieldError):
    """A document could not be turned into text."""
