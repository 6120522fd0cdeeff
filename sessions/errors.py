"""
Session error taxonomy.

The registry raises these; the HTTP and push boundaries translate them
into status codes and event payloads. Nothing here is allowed to escape
a boundary handler.
"""


class SessionError(Exception):
    """Base class for session lifecycle failures."""

    def __init__(self, session_id: str, message: str = ""):
        self.session_id = session_id
        super().__init__(message or f"Session '{session_id}' failed")


class SessionNotFound(SessionError):
    """No registry entry exists for the identifier."""

    def __init__(self, session_id: str):
        super().__init__(session_id, f"Session '{session_id}' not found")


class InvalidSessionId(SessionError):
    """Identifier cannot be used as a credential directory name."""

    def __init__(self, session_id: str):
        super().__init__(session_id, f"Invalid session id: {session_id!r}")


class PairingTimeout(SessionError):
    """No pairing image was issued within the wait bound."""

    def __init__(self, session_id: str, timeout_s: float):
        self.timeout_s = timeout_s
        super().__init__(
            session_id,
            f"Timed out after {timeout_s:g}s waiting for the QR code",
        )


class StartFailure(SessionError):
    """Connection could not be established. Underlying message attached."""
    pass


class SendFailure(SessionError):
    """Protocol layer rejected or failed an outbound message."""
    pass


class LogoutFailure(SessionError):
    """Protocol layer failed to log the session out."""
    pass


class AdapterIOFailure(SessionError):
    """Credential material could not be loaded or persisted."""
    pass
