"""
Instagram Auth Exception Classes
"""


class InstagramError(Exception):
    """Base Instagram error class"""

    def __init__(self, message: str = "", status_code: int = 0, response: dict = None):
        self.message = message
        self.status_code = status_code
        self.response = response or {}
        super().__init__(self.message)


class ValidationError(InstagramError):
    """Malformed caller input (e.g. wrong-length verification code)"""
    pass


class PreconditionError(ValidationError):
    """Operation called without required input (e.g. empty username)"""
    pass


class SequenceError(InstagramError):
    """Operation invoked out of order (e.g. two-factor before login)"""
    pass


class ProtocolError(InstagramError):
    """Remote response shape unexpected or undecodable"""
    pass


class RemoteRejection(InstagramError):
    """Well-formed error response from Instagram"""

    @property
    def error_type(self) -> str:
        return str(self.response.get("error_type", ""))


class TransportError(InstagramError):
    """Connectivity failure"""
    pass


class StateCorruptError(InstagramError):
    """Persisted session state could not be loaded"""
    pass
