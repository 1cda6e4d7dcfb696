"""Custom exception classes."""


class RecipeWizardException(Exception):
    """Base exception for the recipe wizard application."""

    pass


class AuthenticationError(RecipeWizardException):
    """Raised when no caller identity is supplied."""

    pass


class ValidationError(RecipeWizardException):
    """Raised when input validation fails."""

    pass


class WizardStateError(ValidationError):
    """Raised when a wizard action is not allowed in the current step."""

    pass


class NotFoundError(RecipeWizardException):
    """Raised when a requested document does not exist."""

    pass


class QuotaExceededError(RecipeWizardException):
    """Raised when a user has used up their AI interaction allowance."""

    pass


class GeminiError(RecipeWizardException):
    """Raised when a Gemini API call fails (transport, auth, network)."""

    pass


class GeminiQuotaError(GeminiError):
    """Raised when the Gemini API rejects a call for quota reasons."""

    pass


class UpstreamParseError(RecipeWizardException):
    """Raised when model output is not valid JSON or has the wrong shape."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class TagGenerationError(UpstreamParseError):
    """Raised when generated recipe tags are not a JSON array of strings."""

    pass


class PersistenceError(RecipeWizardException):
    """Raised when a document store write fails."""

    pass
