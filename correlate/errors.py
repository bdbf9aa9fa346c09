"""Exception types raised by correlate."""


class CorrelateError(Exception):
    """Base class for all correlate errors."""
    pass


class ParseError(CorrelateError):
    """Raised when schema or document content is syntactically invalid."""
    pass


class CorrelationError(CorrelateError):
    """Raised when no configured correlation backend produced a result."""
    pass


class NoFallbackConfiguredError(CorrelationError):
    """Raised when the primary client failed and there is no secondary."""
    pass


class AllClientsFailedError(CorrelationError):
    """Raised when both the primary and the secondary client failed."""
    pass


class TransformError(CorrelateError):
    """Raised when a mapping's transform function fails on a value."""
    pass


class EmbeddingError(CorrelateError):
    """Raised when the embedding backend could not embed a document."""
    pass


class DocumentProcessingError(CorrelateError):
    """Raised when a single document could not be processed."""
    pass
