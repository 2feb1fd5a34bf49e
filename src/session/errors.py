"""Exceptions raised by the session subsystem."""


class SessionError(Exception):
    """Base class for every session error."""


class MalformedTransportValue(SessionError):
    """The cookie value does not split into an identifier and a signature."""


class SignatureMismatch(SessionError):
    """The signature does not match the identifier under the current secret."""


class SessionNotFound(SessionError):
    """The store holds no live record for the identifier."""


class SessionDestroyed(SessionNotFound):
    """The handle was destroyed and can no longer be used."""


class ConfigurationError(SessionError, ValueError):
    """Invalid manager configuration. Raised at construction time."""


class StoreUnavailable(SessionError):
    """The store backend could not be reached or returned an I/O error.

    Unlike SessionNotFound this means the session state could not be
    determined, so it is never reported as "no session".
    """
