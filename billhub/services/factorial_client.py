"""
Factorial HR API Client
Handles authentication and list requests against the Factorial public API
"""
import httpx
from typing import Any, Dict, List, Optional

import structlog

from ..config import settings
from ..constants import FACTORIAL_SETTINGS_ID, SETTINGS
from ..errors import ConfigurationError, ExternalServiceError

logger = structlog.get_logger(__name__)

EMPLOYEES_RESOURCE = "resources/employees/employees"
SHIFTS_RESOURCE = "resources/attendance/shifts"
PROJECTS_RESOURCE = "resources/project_management/projects"


def normalize_collection(payload: Any, resource: str = "") -> List[Dict[str, Any]]:
    """Accept a bare array or a ``{"data": [...]}`` envelope; anything else is empty."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    logger.warning("factorial_unexpected_payload", resource=resource, payload_type=type(payload).__name__)
    return []


class FactorialClient:
    """Client for interacting with the Factorial HR API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        version: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key or settings.factorial_api_key
        self.version = version or settings.factorial_api_version
        self.base_url = f"{(base_url or settings.factorial_base_url).rstrip('/')}/api/{self.version}"
        self.timeout = timeout or settings.factorial_timeout_s
        self._transport = transport

        if not self.api_key:
            raise ConfigurationError("Factorial API key is not configured")

    @classmethod
    def from_store(cls, store, **kwargs) -> "FactorialClient":
        """Build a client with the key saved under settings/factorial, falling back to env."""
        doc = store.get(SETTINGS, FACTORIAL_SETTINGS_ID) or {}
        api_key = doc.get("api_key") or doc.get("access_token") or settings.factorial_api_key
        return cls(api_key=api_key, **kwargs)

    def _get_headers(self) -> Dict[str, str]:
        return {"accept": "application/json", "x-api-key": self.api_key}

    def _request(self, method: str, resource: str, **kwargs) -> Any:
        """Make HTTP request to the Factorial API"""
        url = f"{self.base_url}/{resource.lstrip('/')}"
        headers = self._get_headers()
        headers.update(kwargs.pop("headers", {}))

        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = client.request(method, url, headers=headers, **kwargs)
            except httpx.HTTPError as e:
                raise ExternalServiceError(f"Factorial request failed: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            logger.error("factorial_api_error", resource=resource, status_code=response.status_code)
            raise ExternalServiceError(
                f"Failed to fetch {resource}: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(f"Factorial returned invalid JSON for {resource}", status_code=response.status_code, body=response.text) from e

    def _list(self, resource: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return normalize_collection(self._request("GET", resource, params=params), resource)

    def get_employees(self) -> List[Dict[str, Any]]:
        return self._list(EMPLOYEES_RESOURCE)

    def get_time_entries(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Attendance shifts; ``params`` is passed through as the query string."""
        return self._list(SHIFTS_RESOURCE, params)

    def get_projects(self) -> List[Dict[str, Any]]:
        return self._list(PROJECTS_RESOURCE)
