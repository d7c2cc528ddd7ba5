import os
from dataclasses import dataclass
from typing import Mapping, Optional

from utils.logger import get_logger

logger = get_logger("config")

DEFAULT_SITE_URL = "http://localhost:5173"
DEFAULT_REGION = "us-east-1"


@dataclass(frozen=True)
class Settings:
    """
    Per-invocation configuration for the HaDirot handlers.

    The anon key and the service-role key are kept as separate fields so
    each client is built with exactly the credential it is allowed to use.
    """

    supabase_url: str
    supabase_anon_key: str
    supabase_service_role_key: str
    resend_api_key: Optional[str] = None
    resend_secret_name: Optional[str] = None
    aws_region: str = DEFAULT_REGION
    site_url: str = DEFAULT_SITE_URL
    http_timeout_seconds: float = 10.0
    http_max_retries: int = 2
    # API Gateway drops the request after 29s
    request_budget_seconds: float = 25.0

    @property
    def password_reset_redirect(self) -> str:
        return f"{self.site_url.rstrip('/')}/auth"


def _parse_number(env: Mapping[str, str], name: str, default: str, cast):
    raw = env.get(name) or default
    try:
        value = cast(raw)
    except ValueError:
        msg = f"Invalid {name}='{raw}'. Must be a number."
        logger.error(msg)
        raise RuntimeError(msg)
    if value < 0:
        msg = f"Invalid {name}='{raw}'. Must not be negative."
        logger.error(msg)
        raise RuntimeError(msg)
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    SUPABASE_URL, SUPABASE_ANON_KEY and SUPABASE_SERVICE_ROLE_KEY are required.
    RESEND_API_KEY is optional here; the email handler decides what to do
    when neither it nor RESEND_SECRET_NAME is set.

    Raises RuntimeError with a clear message if something is missing/invalid.
    """
    env = os.environ if env is None else env

    supabase_url = env.get("SUPABASE_URL")
    anon_key = env.get("SUPABASE_ANON_KEY")
    service_key = env.get("SUPABASE_SERVICE_ROLE_KEY")

    missing = [
        name
        for name, value in [
            ("SUPABASE_URL", supabase_url),
            ("SUPABASE_ANON_KEY", anon_key),
            ("SUPABASE_SERVICE_ROLE_KEY", service_key),
        ]
        if not value
    ]
    if missing:
        msg = f"Missing required environment variables: {', '.join(missing)}"
        logger.error(msg)
        raise RuntimeError(msg)

    return Settings(
        supabase_url=supabase_url.rstrip("/"),
        supabase_anon_key=anon_key,
        supabase_service_role_key=service_key,
        resend_api_key=env.get("RESEND_API_KEY") or None,
        resend_secret_name=env.get("RESEND_SECRET_NAME") or None,
        aws_region=env.get("AWS_REGION") or DEFAULT_REGION,
        site_url=env.get("SITE_URL") or env.get("VITE_SITE_URL") or DEFAULT_SITE_URL,
        http_timeout_seconds=_parse_number(env, "HTTP_TIMEOUT_SECONDS", "10", float),
        http_max_retries=_parse_number(env, "HTTP_MAX_RETRIES", "2", int),
        request_budget_seconds=_parse_number(env, "REQUEST_BUDGET_SECONDS", "25", float),
    )
