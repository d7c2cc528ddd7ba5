import html
import re
from typing import Any, Dict, Optional

from utils.config import load_settings
from utils.http_client import invocation_deadline
from utils.logger import get_logger, redact_email, redact_recipients
from utils.resend_client import EmailDeliveryError, ResendClient
from utils.responses import (
    error_response,
    get_bearer_token,
    get_method,
    json_response,
    parse_json_body,
    preflight_response,
)
from utils.secrets import resolve_resend_api_key
from utils.supabase_client import IdentityProviderError, build_clients

logger = get_logger("send_email")

DEFAULT_FROM = "HaDirot <noreply@hadirot.com>"
PASSWORD_RESET = "password_reset"
RATE_LIMIT_CODE = "rate_limit_exceeded"
RATE_LIMIT_DEFAULT_MESSAGE = (
    "Rate limit exceeded. Please wait before requesting another password reset."
)
# Supabase: "For security purposes, you can only request this after 42 seconds."
RATE_LIMIT_PATTERN = re.compile(r"you can only request this after", re.IGNORECASE)

RESET_EMAIL_TEMPLATE = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; background-color: #F0E6D5;">
  <div style="background-color: #273140; color: white; padding: 30px; text-align: center;">
    <div style="display: flex; align-items: center; justify-content: center; margin-bottom: 10px;">
      <svg width="40" height="40" viewBox="0 0 32 32" style="color: #F0E6D5; margin-right: 10px;">
        <path d="M16 4L6 12v16h5v-8h10v8h5V12L16 4z" stroke="currentColor" stroke-width="2" fill="none" stroke-linejoin="round"/>
        <circle cx="23" cy="8" r="1" fill="currentColor"/>
      </svg>
      <span style="font-size: 28px; font-weight: bold; color: #F0E6D5;">HaDirot</span>
    </div>
    <h1 style="margin: 0; font-size: 24px;">Reset Your Password</h1>
  </div>

  <div style="padding: 30px; background-color: white; margin: 0 20px;">
    <h2 style="color: #273140; margin-top: 0; font-size: 20px;">Password Reset Request</h2>

    <p style="color: #333; line-height: 1.6; font-size: 16px;">
      We received a request to reset your password for your HaDirot account.
    </p>

    <div style="text-align: center; margin: 30px 0;">
      <a href="{link}"
         style="background-color: #C5594C; color: white; padding: 15px 30px; text-decoration: none; border-radius: 8px; display: inline-block; font-weight: bold; font-size: 16px;">
        Reset My Password
      </a>
    </div>

    <div style="background-color: #F0E6D5; padding: 20px; border-radius: 8px; margin: 20px 0; border-left: 4px solid #C5594C;">
      <p style="color: #273140; line-height: 1.6; margin: 0;">
        <strong>Security Note:</strong> This link will expire in 1 hour. If you didn't request this password reset,
        you can safely ignore this email. Your account remains secure.
      </p>
    </div>

    <div style="border-top: 1px solid #eee; padding-top: 20px; margin-top: 30px;">
      <p style="color: #666; font-size: 14px; line-height: 1.6; margin: 0;">
        If the button above doesn't work, copy and paste this link into your browser:<br>
        <a href="{link}" style="color: #273140; word-break: break-all;">{link}</a>
      </p>
    </div>
  </div>

  <div style="background-color: #273140; color: #F0E6D5; padding: 20px; text-align: center; margin: 0 20px;">
    <p style="margin: 0; font-size: 14px;">
      &copy; 2025 HaDirot. All rights reserved.<br>
      NYC's premier Jewish rental platform
    </p>
  </div>
</div>
"""


def build_reset_html(reset_link: str) -> str:
    """Render the branded password-reset email around the generated link."""
    return RESET_EMAIL_TEMPLATE.replace("{link}", html.escape(reset_link, quote=True))


def normalize_recipients(to: Any) -> list:
    return list(to) if isinstance(to, list) else [to]


def is_rate_limited(error: IdentityProviderError) -> bool:
    return error.status == 429 or bool(RATE_LIMIT_PATTERN.search(error.message or ""))


def _prepare_password_reset(email_data: Dict[str, Any], settings, admin) -> Optional[Dict[str, Any]]:
    """
    Generate the reset link and brand the outgoing email.

    Returns an error response, or None after overwriting html/from in place.
    """
    to = email_data.get("to")
    reset_email = to[0] if isinstance(to, list) and to else to
    # A generated link burns the rate-limit window, so validate everything first
    if not reset_email or not isinstance(reset_email, str) or not email_data.get("subject"):
        return error_response(400, "Missing required fields: to and subject are required")

    redirect_to = settings.password_reset_redirect
    logger.info(
        "send_email.reset_link_requested",
        extra={"email": redact_email(reset_email), "redirect_to": redirect_to},
    )

    try:
        reset_link = admin.generate_recovery_link(reset_email, redirect_to)
    except IdentityProviderError as e:
        logger.error(
            "send_email.reset_link_error",
            extra={"email": redact_email(reset_email), "error": e.message, "status": e.status},
        )
        if is_rate_limited(e):
            return error_response(
                429,
                e.message or RATE_LIMIT_DEFAULT_MESSAGE,
                code=RATE_LIMIT_CODE,
            )
        return error_response(500, "Failed to generate password reset link")

    if not reset_link:
        # Fail closed: never guess a link
        logger.error("send_email.reset_link_missing", extra={"email": redact_email(reset_email)})
        return error_response(500, "Failed to generate reset link")

    email_data["html"] = build_reset_html(reset_link)
    email_data["from"] = DEFAULT_FROM
    logger.info("send_email.reset_email_branded", extra={"email": redact_email(reset_email)})
    return None


def handle_send_email(event, settings, session, admin, mailer):
    """
    Send one transactional email.

    Password-reset requests skip authentication; everything else needs a
    valid session. `mailer` is a ResendClient, or None when no API key
    could be resolved.
    """
    method = get_method(event)
    if method == "OPTIONS":
        return preflight_response()
    if method != "POST":
        return error_response(405, "Method not allowed")

    token = get_bearer_token(event)

    if mailer is None:
        logger.error("send_email.not_configured")
        return error_response(500, "Email service not configured")

    try:
        email_data = parse_json_body(event)
    except ValueError as e:
        logger.warning("send_email.invalid_json", extra={"error": str(e)})
        return error_response(400, "Invalid JSON in request body")
    if not isinstance(email_data, dict):
        return error_response(400, "Invalid JSON in request body")

    is_password_reset = email_data.get("type") == PASSWORD_RESET
    logger.info(
        "send_email.request_received",
        extra={
            "to": redact_recipients(email_data.get("to")),
            "subject": email_data.get("subject"),
            "type": email_data.get("type"),
            "has_auth": token is not None,
        },
    )

    if not is_password_reset and not token:
        return error_response(401, "Missing authorization header")

    if is_password_reset:
        failure = _prepare_password_reset(email_data, settings, admin)
        if failure is not None:
            return failure
    else:
        try:
            user = session.get_user(token)
        except IdentityProviderError as e:
            logger.warning(
                "send_email.auth_failed",
                extra={"error": e.message, "status": e.status},
            )
            return error_response(401, "Invalid authorization")
        logger.info("send_email.auth_verified", extra={"user_id": user["id"]})

    # Common validation
    if not email_data.get("to") or not email_data.get("subject"):
        return error_response(400, "Missing required fields: to and subject are required")

    if not is_password_reset and not email_data.get("html"):
        return error_response(
            400,
            "Missing required field: html content is required for non-password-reset emails",
        )

    payload = {
        "from": email_data.get("from") or DEFAULT_FROM,
        "to": normalize_recipients(email_data["to"]),
        "subject": email_data["subject"],
        "html": email_data["html"],
    }

    try:
        result = mailer.send(payload)
    except EmailDeliveryError as e:
        if e.status is None:
            logger.error("send_email.delivery_unreachable", extra={"error": e.detail})
            return error_response(500, "Failed to send email")
        return error_response(
            500,
            "Failed to send email",
            details="Invalid email data" if e.status == 422 else "Email service error",
            resendStatus=e.status,
        )

    logger.info(
        "send_email.sent",
        extra={
            "id": result.get("id"),
            "to": redact_recipients(payload["to"]),
            "type": PASSWORD_RESET if is_password_reset else "general",
        },
    )
    return json_response(200, {"success": True, "id": result.get("id")})


def lambda_handler(event, context):
    logger.info(
        "send_email.lambda_start",
        extra={"request_id": getattr(context, "aws_request_id", None)},
    )

    method = get_method(event)
    if method == "OPTIONS":
        return preflight_response()
    if method != "POST":
        return error_response(405, "Method not allowed")

    try:
        settings = load_settings()
    except RuntimeError as e:
        logger.error("send_email.env_error", extra={"error": str(e)})
        return error_response(500, "server_misconfigured")

    try:
        deadline = invocation_deadline(settings, context)
        session, admin = build_clients(settings, deadline=deadline)
        with session, admin:
            api_key = resolve_resend_api_key(settings)
            mailer = ResendClient(settings, api_key, deadline=deadline) if api_key else None
            try:
                return handle_send_email(event, settings, session, admin, mailer)
            finally:
                if mailer is not None:
                    mailer.close()
    except Exception:
        logger.exception("send_email.unexpected_error")
        return error_response(500, "Internal server error")
