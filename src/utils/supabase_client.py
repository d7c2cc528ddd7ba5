# utils/supabase_client.py

from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from utils.config import Settings
from utils.http_client import build_http_client, request_with_retry
from utils.logger import get_logger

logger = get_logger("supabase_client")


class IdentityProviderError(Exception):
    """Raised when Supabase rejects a call or cannot be reached."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


def _error_message(resp: httpx.Response) -> str:
    # GoTrue and PostgREST disagree on the error field name
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"

    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"HTTP {resp.status_code}"


class _SupabaseClient:
    """Shared plumbing: one httpx client bound to a single Supabase key."""

    def __init__(
        self,
        settings: Settings,
        api_key: str,
        transport: Optional[httpx.BaseTransport] = None,
        deadline: Optional[float] = None,
    ):
        self._max_retries = settings.http_max_retries
        self._deadline = deadline
        self._api_key = api_key
        self._http = build_http_client(
            settings,
            base_url=settings.supabase_url,
            headers={"apikey": api_key},
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _call(self, method: str, path: str, *, bearer: str, **kwargs: Any) -> httpx.Response:
        headers = {"Authorization": f"Bearer {bearer}"}
        headers.update(kwargs.pop("headers", {}))
        try:
            resp = request_with_retry(
                self._http,
                method,
                path,
                max_retries=self._max_retries,
                deadline=self._deadline,
                headers=headers,
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise IdentityProviderError(f"Supabase request failed: {e}") from e

        if resp.is_error:
            raise IdentityProviderError(_error_message(resp), status=resp.status_code)
        return resp


class SessionClient(_SupabaseClient):
    """
    Least-privilege client built with the anon key.

    Only verifies caller sessions and reads data as the caller, so
    row-level security applies to everything it does.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
        deadline: Optional[float] = None,
    ):
        super().__init__(settings, settings.supabase_anon_key, transport, deadline)

    def get_user(self, access_token: str) -> Dict[str, Any]:
        """Resolve the user behind an access token. Raises IdentityProviderError if invalid."""
        resp = self._call("GET", "/auth/v1/user", bearer=access_token)
        user = resp.json()
        if not isinstance(user, dict) or not user.get("id"):
            raise IdentityProviderError("Session lookup returned no user", status=resp.status_code)
        return user

    def get_profile(self, user_id: str, access_token: str) -> Optional[Dict[str, Any]]:
        """Return the caller's profiles row (is_admin only), or None if there is none."""
        resp = self._call(
            "GET",
            "/rest/v1/profiles",
            bearer=access_token,
            params={"select": "is_admin", "id": f"eq.{user_id}"},
        )
        rows = resp.json()
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            return rows[0]
        return None


class AdminClient(_SupabaseClient):
    """
    Service-role client for administrative auth operations.

    The caller's token never reaches this client; it authenticates
    with the service-role key only.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
        deadline: Optional[float] = None,
    ):
        super().__init__(settings, settings.supabase_service_role_key, transport, deadline)

    def delete_user(self, user_id: str) -> None:
        self._call("DELETE", f"/auth/v1/admin/users/{quote(user_id, safe='')}", bearer=self._api_key)

    def generate_recovery_link(self, email: str, redirect_to: str) -> Optional[str]:
        """
        Generate a password-recovery link without sending Supabase's own email.

        Returns the action link, or None when the response does not carry one.
        """
        resp = self._call(
            "POST",
            "/auth/v1/admin/generate_link",
            bearer=self._api_key,
            json={"type": "recovery", "email": email, "redirect_to": redirect_to},
        )
        try:
            data = resp.json()
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None

        properties = data.get("properties")
        if isinstance(properties, dict) and properties.get("action_link"):
            return properties["action_link"]
        return data.get("action_link") or None


def build_clients(settings: Settings, deadline: Optional[float] = None):
    """
    Build the two Supabase handles for one invocation.

    Returns:
        (session, admin) where:
          - session: SessionClient using the anon key
          - admin:   AdminClient using the service-role key
    """
    session = SessionClient(settings, deadline=deadline)
    admin = AdminClient(settings, deadline=deadline)
    logger.info("Supabase clients initialized", extra={"supabase_url": settings.supabase_url})
    return session, admin
