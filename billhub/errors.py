"""
Domain errors raised by the services and mapped to HTTP responses in main.py.
"""
from typing import Optional


class BillHubError(Exception):
    """Base class for every error the core surfaces to its callers."""

    kind = "error"
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.kind}


class AuthorizationError(BillHubError):
    """Actor attempted something its role does not allow (e.g. an illegal status transition)."""

    kind = "authorization"
    http_status = 403


class NotFoundError(BillHubError):
    kind = "not_found"
    http_status = 404

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


class ConfigurationError(BillHubError):
    """Required configuration (e.g. an API key) is missing."""

    kind = "configuration"
    http_status = 412


class ExternalServiceError(BillHubError):
    kind = "external_service"
    http_status = 502

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["status_code"] = self.status_code
        data["body"] = self.body
        return data


class ValidationError(BillHubError):
    kind = "validation"
    http_status = 422


class ConflictError(BillHubError):
    """A write precondition no longer holds (stale status, duplicate assignment...)."""

    kind = "conflict"
    http_status = 409
