import base64
import json
from typing import Any, Dict, Optional

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def json_response(status: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status,
        "headers": {**CORS_HEADERS, "Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def error_response(status: int, message: str, **fields: Any) -> Dict[str, Any]:
    return json_response(status, {"error": message, **fields})


def preflight_response() -> Dict[str, Any]:
    return {
        "statusCode": 200,
        "headers": dict(CORS_HEADERS),
        "body": "ok",
    }


def get_method(event: dict) -> str:
    """HTTP method for API Gateway v2 (requestContext.http) or v1 (httpMethod) events."""
    http_ctx = (event.get("requestContext") or {}).get("http") or {}
    return (http_ctx.get("method") or event.get("httpMethod") or "").upper()


def get_header(event: dict, name: str) -> Optional[str]:
    headers = event.get("headers") or {}
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def get_bearer_token(event: dict) -> Optional[str]:
    """
    Token from the Authorization header, or None when the header is absent
    or carries no token.
    """
    header = get_header(event, "Authorization")
    if not header:
        return None

    header = header.strip()
    if header[:7].lower() == "bearer ":
        header = header[7:].strip()
    return header or None


def parse_json_body(event: dict) -> Any:
    """
    Extract and parse the JSON body from the Lambda event.

    - For API Gateway: event["body"] is a JSON string, base64 encoded
      when isBase64Encoded is set.
    - For direct invocation: event["body"] may already be a dict.

    Raises ValueError (json.JSONDecodeError included) if the body is not JSON.
    """
    body = event.get("body")

    if isinstance(body, dict):
        return body
    if body is None:
        raise ValueError("Request body is empty")

    if event.get("isBase64Encoded"):
        body = base64.b64decode(body).decode("utf-8")

    return json.loads(body)
