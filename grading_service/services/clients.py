# services/clients.py
"""Clients for the collaborating services, invoked through the Dapr sidecar."""

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from ..config import settings
from ..exceptions import ServiceUnavailable

logger = logging.getLogger(__name__)

ACTIVE = "active"


class DaprServiceClient:
    """Small wrapper around Dapr service invocation over HTTP"""

    def __init__(self, base_url: str, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.SERVICE_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def _get(self, path: str) -> Optional[Any]:
        """GET a JSON resource; None on 404"""
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Service call failed: GET {url}: {e}")
            raise ServiceUnavailable(f"Could not reach {url}") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            logger.error(f"Service call failed: GET {url} -> {response.status_code}")
            raise ServiceUnavailable(f"{url} answered {response.status_code}")
        return response.json()


# =====================
# Enrollment service
# =====================
class EnrollmentClient:
    def get_status(self, enrollment_id: str) -> Optional[str]:
        """Enrollment status ("active", "completed", ...) or None if it does not exist"""
        raise NotImplementedError

    def is_active(self, enrollment_id: str) -> bool:
        return self.get_status(enrollment_id) == ACTIVE


class DaprEnrollmentClient(DaprServiceClient, EnrollmentClient):
    def __init__(self, base_url: Optional[str] = None, **kwargs):
        super().__init__(base_url or settings.ENROLLMENT_SERVICE_URL, **kwargs)

    def get_status(self, enrollment_id: str) -> Optional[str]:
        enrollment = self._get(f"/api/v1/enrollments/{enrollment_id}")
        if enrollment is None:
            return None
        return enrollment.get("status")


class StaticEnrollmentClient(EnrollmentClient):
    """Enrollment statuses held in memory (memory mode and tests)"""

    def __init__(self, statuses: Optional[Dict[str, str]] = None,
                 default_status: Optional[str] = None):
        self.statuses = dict(statuses or {})
        self.default_status = default_status

    def set_status(self, enrollment_id: str, status: str):
        self.statuses[enrollment_id] = status

    def get_status(self, enrollment_id: str) -> Optional[str]:
        return self.statuses.get(enrollment_id, self.default_status)


# =====================
# Assignment / roles service
# =====================
class AssignmentClient:
    def instructor_sections_for(self, instructor_id: str) -> List[str]:
        raise NotImplementedError


class DaprAssignmentClient(DaprServiceClient, AssignmentClient):
    def __init__(self, base_url: Optional[str] = None, **kwargs):
        super().__init__(base_url or settings.ASSIGNMENT_SERVICE_URL, **kwargs)

    def instructor_sections_for(self, instructor_id: str) -> List[str]:
        payload = self._get(f"/instructors/{instructor_id}/sections")
        if payload is None:
            return []
        if isinstance(payload, dict):
            payload = payload.get("sections", [])
        return [str(s) for s in payload]


class StaticAssignmentClient(AssignmentClient):
    def __init__(self, sections: Optional[Dict[str, Iterable[str]]] = None):
        self.sections = {k: list(v) for k, v in (sections or {}).items()}

    def assign(self, instructor_id: str, section_id: str):
        self.sections.setdefault(instructor_id, []).append(section_id)

    def instructor_sections_for(self, instructor_id: str) -> List[str]:
        return list(self.sections.get(instructor_id, []))
