"""
Exception taxonomy for the listing worker.

Every failure that can end a job derives from ListingAutomationError so the
worker loop can tell expected automation failures apart from programming
errors when it writes the job's error message.
"""

from typing import Optional


class ListingAutomationError(Exception):
    """Base class for all listing automation failures."""

    fatal: bool = True


class ValidationError(ListingAutomationError):
    """Input or session data is unusable. Raised before any navigation."""


class SessionValidationError(ValidationError):
    """Captured session produced no usable cookies for the target site."""


class UnsupportedMarketplaceError(ValidationError):
    """No processor is registered for the requested marketplace."""


class AccountNotFoundError(ValidationError):
    """No connected platform account exists for the job's user."""


class SessionDecryptionError(ValidationError):
    """Stored session payload could not be decrypted or parsed."""


class ElementNotFoundError(ListingAutomationError):
    """A required page element could not be located."""

    def __init__(self, what: str, selectors: Optional[list] = None):
        self.what = what
        self.selectors = list(selectors or [])
        super().__init__(f"Could not find {what}")


class ImageUploadError(ListingAutomationError):
    """A single image failed to upload. Index is 1-based."""

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Failed to upload image {index}: {reason}")


class NetworkError(ListingAutomationError):
    """Transport-level failure talking to a remote host."""


class PhotoFetchError(NetworkError):
    """A photo reference could not be turned into a local file."""

    fatal = False


class NavigationTimeout(ListingAutomationError):
    """Navigation did not finish in time. Callers may still inspect the page."""

    fatal = False


class SubmitBlockedError(ListingAutomationError):
    """Submit control exists but is disabled or hidden."""


class SubmitError(ListingAutomationError):
    """Submission happened but success could not be confirmed."""


class AuthenticationRequiredError(ListingAutomationError):
    """Marketplace redirected to a login page; the account needs re-auth."""


class VerificationWallError(ListingAutomationError):
    """A CAPTCHA or human-verification wall blocked the page."""


class JobTimeoutError(ListingAutomationError):
    """The job exceeded its wall-clock budget."""


AUTH_ERROR_HINTS = ("auth", "login", "sign in", "signin", "session expired")


def is_auth_failure(error: BaseException) -> bool:
    """Return True when an error means the stored session is no longer valid."""
    if isinstance(error, AuthenticationRequiredError):
        return True
    if isinstance(error, (ValidationError, ElementNotFoundError, ImageUploadError)):
        return False
    message = str(error).lower()
    return any(hint in message for hint in AUTH_ERROR_HINTS)
