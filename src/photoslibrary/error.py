"""Library error module."""

from contextlib import contextmanager


class Error(Exception):
    """Base class for all Photos Library errors."""


class InvalidRequestError(Error):
    """Raised if a request could not be constructed, e.g. a malformed URL path."""


class TransportError(Error):
    """
    Raised if the transport failed to execute a request.

    The message includes the underlying cause, which is also chained as __cause__.
    """


class AuthError(Error):
    """
    Raised if authorization could not be obtained: redirect state mismatch, authorization
    denied by the user, or a failed token exchange or refresh.
    """


@contextmanager
def wrap_exception(*, catch: type[Exception] | tuple = Exception, throw: type[Exception] = Error):
    """
    Context manager that catches an exception and raises another in its place, chaining the
    original as the cause. An exception that is already of the thrown type passes through
    unchanged.

    Parameters:
    • catch: exception class(es) to catch
    • throw: exception class to raise in its place
    """
    try:
        yield
    except throw:
        raise
    except catch as e:
        raise throw(str(e) or type(e).__name__) from e
