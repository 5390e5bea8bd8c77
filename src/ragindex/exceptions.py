"""
Custom exceptions for the ragindex package.
"""


class RagIndexError(Exception):
    """Base exception for ragindex errors."""
    pass


class ExtractionError(RagIndexError):
    """Source could not be read or parsed."""
    pass


class ChunkingError(RagIndexError):
    """Error during chunking."""
    pass


class ProviderError(RagIndexError):
    """Error from an embedding provider."""
    def __init__(self, message: str, status_code: int = None, retry_after: float = None):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


class ProviderRateLimitError(ProviderError):
    """Rate limit exceeded."""
    pass


class ProviderAuthError(ProviderError):
    """Authentication error."""
    pass


class StoreError(RagIndexError):
    """Error in vector store operations."""
    pass


class ConfigurationError(RagIndexError):
    """No usable provider or store is configured."""
    pass


class StatusError(RagIndexError):
    """Error in status store operations."""
    pass


class InvalidStatusTransition(StatusError):
    """Requested status change is not allowed by the state machine."""
    def __init__(self, message: str, current: str = None, requested: str = None):
        super().__init__(message)
        self.current = current
        self.requested = requested


class SchedulerError(RagIndexError):
    """Error in scheduler operations."""
    pass


class RegistrationError(RagIndexError, TypeError):
    """Component does not implement the expected interface."""
    pass
