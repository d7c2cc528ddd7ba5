from typing import Any, Dict, Optional

import httpx

from utils.config import Settings
from utils.http_client import build_http_client, request_with_retry
from utils.logger import get_logger, redact_recipients

logger = get_logger("resend_client")

RESEND_API_URL = "https://api.resend.com/emails"


class EmailDeliveryError(Exception):
    """
    Raised when Resend rejects a message or cannot be reached.

    `status` is the HTTP status Resend answered with, or None when no
    response was received.
    """

    def __init__(self, status: Optional[int], detail: str = ""):
        super().__init__(f"Resend delivery failed (status={status}): {detail}")
        self.status = status
        self.detail = detail


class ResendClient:
    def __init__(
        self,
        settings: Settings,
        api_key: str,
        transport: Optional[httpx.BaseTransport] = None,
        deadline: Optional[float] = None,
    ):
        self._max_retries = settings.http_max_retries
        self._deadline = deadline
        self._http = build_http_client(
            settings,
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST one email payload ({from, to, subject, html}) to Resend.

        Returns the parsed response body, which carries the message "id".
        """
        try:
            resp = request_with_retry(
                self._http,
                "POST",
                RESEND_API_URL,
                max_retries=self._max_retries,
                deadline=self._deadline,
                json=payload,
            )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(None, str(e)) from e

        if resp.is_error:
            logger.error(
                "resend.api_error",
                extra={
                    "status": resp.status_code,
                    "error_data": resp.text[:500],
                    "to": redact_recipients(payload.get("to")),
                    "subject": payload.get("subject"),
                },
            )
            raise EmailDeliveryError(resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError as e:
            raise EmailDeliveryError(resp.status_code, "Response was not JSON") from e

        return data if isinstance(data, dict) else {}
