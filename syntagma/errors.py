from __future__ import annotations


class ValidationError(ValueError):
    """Malformed caller input."""


class StorageError(RuntimeError):
    """A storage transaction failed and was rolled back."""


class ExternalProviderError(RuntimeError):
    """A translation or generation provider call failed."""


class PassageGenerationError(ExternalProviderError):
    CAUSES = {
        "missing_credential",
        "invalid_credential",
        "model_not_found",
        "quota_exceeded",
        "malformed_response",
        "timeout",
        "provider_error",
    }

    def __init__(self, cause: str, message: str) -> None:
        if cause not in self.CAUSES:
            cause = "provider_error"
        super().__init__(message)
        self.cause = cause
        self.message = message
