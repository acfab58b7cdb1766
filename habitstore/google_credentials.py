"""Bearer-token credentials and request execution for the Google REST services.

The habit store receives an opaque OAuth access token from its host
application.  This module wraps it in :class:`google.oauth2.credentials.Credentials`
so ``googleapiclient`` attaches the ``Authorization: Bearer`` header, and
executes requests through a per-thread :class:`google_auth_httplib2.AuthorizedHttp`
because ``httplib2`` connections must not be shared between threads.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

import google_auth_httplib2
import httplib2
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials
from googleapiclient.errors import HttpError

from habitstore.errors import BackendError, BackendUnavailableError, StoreNotReadyError

logger = logging.getLogger(__name__)

__all__ = [
    "RequestExecutor",
    "build_credentials",
    "http_error_reason",
    "translate_http_error",
]


def build_credentials(access_token: str) -> Credentials:
    """Return credentials that only carry ``access_token`` (no refresh data)."""

    token = (access_token or "").strip()
    if not token:
        raise StoreNotReadyError("Google access token is missing; sign in first.")
    return Credentials(token=token)


def http_error_reason(exc: HttpError) -> str:
    details = getattr(exc, "error_details", None)
    if isinstance(details, list):
        for entry in details:
            if isinstance(entry, dict) and entry.get("reason"):
                return str(entry["reason"])
    return ""


def translate_http_error(exc: HttpError, action: str) -> BackendError:
    status = int(getattr(exc.resp, "status", 0) or 0)
    reason = http_error_reason(exc)
    message = f"{action} failed: {status}"
    detail = getattr(exc, "reason", "") or ""
    if detail:
        message = f"{message} {detail}"
    return BackendError(message, status=status, reason=reason)


class RequestExecutor:
    """Execute ``googleapiclient`` requests and translate their failures.

    With ``authorize=False`` the request runs on whatever transport it was
    built with, which is how tests drive in-memory services.
    """

    def __init__(self, credentials: Optional[Credentials] = None, *, authorize: bool = True) -> None:
        self._credentials = credentials
        self._authorize = authorize
        self._local = threading.local()

    @property
    def credentials(self) -> Optional[Credentials]:
        return self._credentials

    def update_token(self, access_token: str) -> None:
        token = (access_token or "").strip()
        if not token:
            raise StoreNotReadyError("Google access token is missing; sign in first.")
        if self._credentials is None:
            self._credentials = build_credentials(token)
            return
        # AuthorizedHttp reads the token on every request, so cached transports stay valid.
        self._credentials.token = token

    def _http(self) -> google_auth_httplib2.AuthorizedHttp:
        http = getattr(self._local, "http", None)
        if http is None:
            # The token cannot be refreshed here, so a 401 must reach the caller as is.
            http = google_auth_httplib2.AuthorizedHttp(
                self._credentials,
                http=httplib2.Http(),
                refresh_status_codes=(),
            )
            self._local.http = http
        return http

    def execute(self, request: Any, action: str) -> Any:
        try:
            if not self._authorize:
                return request.execute()
            if self._credentials is None:
                raise StoreNotReadyError("Google access token is missing; sign in first.")
            return request.execute(http=self._http())
        except HttpError as exc:
            error = translate_http_error(exc, action)
            logger.error("%s", error)
            raise error from exc
        except RefreshError as exc:
            logger.error("%s failed: token refresh rejected: %s", action, exc)
            raise BackendError(f"{action} failed: 401 {exc}", status=401) from exc
        except (httplib2.HttpLib2Error, OSError) as exc:
            logger.error("%s failed: %s", action, exc)
            raise BackendUnavailableError(f"{action} failed: network error ({exc})") from exc
