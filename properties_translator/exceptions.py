"""Exception classes for the properties translator."""


class TranslatorError(Exception):
    """Base exception for all custom errors."""


class ConfigurationError(TranslatorError):
    """Raised when the application configuration is unusable."""


class TranslationServiceError(TranslatorError):
    """Translation service error with optional code and details."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}
