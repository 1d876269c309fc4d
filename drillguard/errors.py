class LockoutError(Exception):
    """Base class for login attempt tracking errors."""


class PolicyMisconfiguration(LockoutError, ValueError):
    """Raised when a lockout policy is built from unusable values."""


class StoreUnavailable(LockoutError):
    """The attempt store could not be reached.

    The tracker never swallows this; callers choose to fail open or closed.
    """
