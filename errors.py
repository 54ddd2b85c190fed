import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Every failure the user can see is one of these. None of them is fatal:
# the workflow maps each category back to a specific screen.


class ComparisonError(Exception):
    """Base class. `user_message` is safe to show in the UI."""

    user_message = "Something went wrong."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)
        if message:
            self.user_message = message


class InvalidMimeType(ComparisonError):
    def __init__(self, filename: str, mime_type: str):
        self.filename = filename
        self.mime_type = mime_type
        super().__init__(f"{filename or 'File'} is not a supported image ({mime_type or 'unknown type'}).")


class CredentialError(ComparisonError):
    """Credential problem: send the user back to profile / key entry."""


class AuthenticationMissing(CredentialError):
    user_message = "API Key is missing. Please add your API Key in the Profile settings."


class AuthenticationRejected(CredentialError):
    user_message = "Authentication Error: Your API key was rejected. Please check your key in Profile Settings."


class AnalysisFailure(ComparisonError):
    """Generic failure: the user keeps their inputs and may retry."""
    user_message = "Analysis failed. Try with clearer label images."


class GenerationFailed(ComparisonError):
    user_message = "Model failed to generate the image. Try using the default 1K resolution."


class AnalysisInProgress(ComparisonError):
    user_message = "An analysis is already running."


# ==================== CLASSIFICATION ====================

AUTH_STATUS_CODES = (401, 403)
AUTH_STATUS_NAMES = ("UNAUTHENTICATED", "PERMISSION_DENIED")
AUTH_MESSAGE_MARKERS = ("401", "403", "api key", "permission denied")


def _status_code(exc: Exception) -> Optional[int]:
    """Pull an HTTP status out of google-genai, groq or httpx style exceptions."""
    for attr in ("code", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_credential_problem(exc: Exception) -> bool:
    if isinstance(exc, CredentialError):
        return True
    if _status_code(exc) in AUTH_STATUS_CODES:
        return True
    if str(getattr(exc, "status", "")).upper() in AUTH_STATUS_NAMES:
        return True
    text = str(exc).lower()
    return any(marker in text for marker in AUTH_MESSAGE_MARKERS)


def classify_provider_error(exc: Exception, *, fallback=AnalysisFailure) -> ComparisonError:
    """
    Collapse any provider exception into one of two externally visible categories:
    a credential problem (AuthenticationRejected) or `fallback` (AnalysisFailure by default).
    Already-classified errors pass through untouched.
    """
    if isinstance(exc, ComparisonError):
        return exc
    if is_credential_problem(exc):
        logger.warning("Provider rejected credentials: %s", exc)
        return AuthenticationRejected()
    logger.error("Provider call failed: %s", exc)
    return fallback(f"{fallback.user_message} ({exc})")
