"""Boundary types for the authentication diagnosis and recovery collaborator.

The store never acquires or refreshes tokens itself.  When a request fails with
an authentication error the coordinator hands the exception to an
:class:`AuthCollaborator`, which inspects it and may try to recover (for example
by asking the host application for a fresh token and calling
:meth:`HabitCoordinator.update_token`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Protocol

logger = logging.getLogger(__name__)

SEVERITY_CRITICAL = "critical"
SEVERITY_WARNING = "warning"


@dataclass
class AuthIssue:
    severity: str
    message: str = ""


@dataclass
class AuthDiagnostic:
    is_healthy: bool
    issues: List[AuthIssue] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def critical_issues(self) -> List[AuthIssue]:
        return [issue for issue in self.issues if issue.severity == SEVERITY_CRITICAL]


class AuthCollaborator(Protocol):
    def diagnose(self, error: BaseException) -> AuthDiagnostic:
        ...

    def attempt_auto_recovery(self, diagnostic: AuthDiagnostic) -> bool:
        ...


class StaticTokenAuth:
    """Collaborator used when the host application provides no recovery hook.

    Every authentication failure is reported as critical with a re-sign-in
    recommendation and recovery is never possible.
    """

    def diagnose(self, error: BaseException) -> AuthDiagnostic:
        logger.debug("Diagnosing authentication failure: %s", error)
        return AuthDiagnostic(
            is_healthy=False,
            issues=[AuthIssue(SEVERITY_CRITICAL, str(error))],
            recommendations=["Sign in to Google again to refresh the access token"],
        )

    def attempt_auto_recovery(self, diagnostic: AuthDiagnostic) -> bool:
        return False


__all__ = [
    "AuthCollaborator",
    "AuthDiagnostic",
    "AuthIssue",
    "SEVERITY_CRITICAL",
    "SEVERITY_WARNING",
    "StaticTokenAuth",
]
