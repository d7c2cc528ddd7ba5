import json
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from utils.config import Settings
from utils.logger import get_logger

logger = get_logger("secrets")


def get_resend_secret(secret_name: str, region_name: str) -> dict:
    """
    Fetch the Resend configuration from AWS Secrets Manager.

    Expects the secret value to be a JSON object, e.g.:

        {
          "api_key": "re_..."
        }
    """
    logger.info(
        "Fetching Resend secret from Secrets Manager",
        extra={"secret_name": secret_name, "region": region_name},
    )

    client = boto3.client("secretsmanager", region_name=region_name)

    resp = client.get_secret_value(SecretId=secret_name)
    secret_str = resp.get("SecretString")

    if not secret_str:
        msg = f"Secret '{secret_name}' has no SecretString payload"
        logger.error(msg)
        raise RuntimeError(msg)

    try:
        data = json.loads(secret_str)
    except json.JSONDecodeError as e:
        logger.error(
            "SecretString is not valid JSON",
            extra={"secret_name": secret_name, "error": str(e)},
        )
        raise

    if not isinstance(data, dict):
        msg = f"Secret '{secret_name}' must be a JSON object"
        logger.error(msg)
        raise RuntimeError(msg)

    return data


def resolve_resend_api_key(settings: Settings) -> Optional[str]:
    """
    Return the Resend API key, or None when it cannot be resolved.

    RESEND_API_KEY wins; otherwise RESEND_SECRET_NAME is read from
    Secrets Manager (accepting "api_key" or the legacy "RESEND_API_KEY" field).
    """
    if settings.resend_api_key:
        return settings.resend_api_key

    if not settings.resend_secret_name:
        return None

    try:
        data = get_resend_secret(settings.resend_secret_name, settings.aws_region)
    except (ClientError, BotoCoreError, RuntimeError, json.JSONDecodeError) as e:
        logger.error(
            "secrets.resend_lookup_failed",
            extra={"secret_name": settings.resend_secret_name, "error": str(e)},
        )
        return None

    api_key = data.get("api_key") or data.get("RESEND_API_KEY")
    if not api_key:
        logger.error(
            "Resend secret missing api_key",
            extra={"secret_name": settings.resend_secret_name},
        )
        return None

    return api_key
