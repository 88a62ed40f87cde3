"""Custom exception classes for A2UI Bridge."""


class BridgeError(Exception):
    """Base exception for A2UI Bridge errors."""

    def __init__(self, message: str, code: str = "internal", detail: str = ""):
        self.message = message
        self.code = code
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict:
        """Serialize for HTTP and NDJSON error payloads."""
        return {"code": self.code, "message": self.message, "detail": self.detail}


class InputError(BridgeError):
    """Client supplied an unusable request. Never retried."""

    pass


class MissingCatalogError(InputError):
    """Neither a session id nor an inline catalog was supplied."""

    def __init__(self, message: str = "No catalog available"):
        super().__init__(message, code="no_catalog")


class InvalidSessionError(InputError):
    """Session id is unknown or its catalog has expired."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Invalid session ID: {session_id}", code="invalid_session")


class MalformedPartError(InputError):
    """A conversation part cannot be normalized."""

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message, code="malformed_part", detail=detail)


class UnsupportedSchemaError(BridgeError):
    """Catalog uses a JSON Schema construct the converter cannot express."""

    def __init__(self, feature: str, path: str = "#"):
        self.feature = feature
        self.path = path
        super().__init__(
            f"Unsupported schema feature at {path}: {feature}",
            code="unsupported_schema",
            detail=feature,
        )


class EngineError(BridgeError):
    """Errors related to generation engine setup."""

    pass


class EngineAuthError(EngineError):
    """Generation engine client could not be created."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="auth_failed")
