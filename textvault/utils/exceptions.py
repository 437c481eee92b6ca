"""
Custom exception hierarchy for TextVault.

Provides structured error types for better error handling and debugging.
All exceptions inherit from TextVaultError for easy catching.
"""


class TextVaultError(Exception):
    """
    Base exception for all TextVault errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize TextVault error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class InvalidArgumentError(TextVaultError):
    """
    Invalid caller input.
    Raised when input validation fails; never retried.
    """

    pass


class DimensionMismatchError(InvalidArgumentError):
    """
    Embedding dimension does not match the store's vector width.
    Raised before any write that would mix vector spaces.
    """

    pass


class NotFoundError(TextVaultError):
    """
    Resource not found errors.
    Raised when a requested document doesn't exist.
    """

    pass


class NotConfiguredError(TextVaultError):
    """
    Configuration errors.
    Raised when a provider or store is missing a required setting.
    The message names the missing setting.
    """

    pass


class ExternalServiceError(TextVaultError):
    """
    Upstream service or transport failure.

    Retryable at the caller's discretion. ``unreachable`` is set when the
    endpoint refused the connection, ``timed_out`` when the call exceeded
    its deadline.
    """

    def __init__(
        self,
        message: str,
        context: dict | None = None,
        status_code: int | None = None,
        body: str | None = None,
        unreachable: bool = False,
        timed_out: bool = False,
    ):
        super().__init__(message, context)
        self.status_code = status_code
        self.body = body
        self.unreachable = unreachable
        self.timed_out = timed_out


class EmbeddingError(ExternalServiceError):
    """
    Embedding generation errors.
    Raised when the embedding provider fails.
    """

    pass


class StoreError(ExternalServiceError):
    """
    Document store operation errors.
    Raised when storage operations fail.
    """

    pass
