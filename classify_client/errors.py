"""
Error types for the classification path

Each error carries the HTTP status it is translated to at the handler
boundary. Unauthorized callers and unknown locations are not errors: the
API key policy returns a decision and a lookup miss returns None.
"""


class ClassifyError(Exception):
    """Base error for client classification"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @classmethod
    def from_source(cls, source: str, err: Exception) -> "ClassifyError":
        return cls(f"{source}: {err}")


class ClientIpNotFound(ClassifyError):
    """Raised when the proxy chain yields no untrusted client address"""

    status_code = 400


class GeoIpUnavailable(ClassifyError):
    """Raised when no geolocation database is loaded"""


class LookupFailure(ClassifyError):
    """Raised when the geolocation database fails for a reason other than a miss"""
