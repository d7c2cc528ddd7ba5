from utils.config import load_settings
from utils.http_client import invocation_deadline
from utils.logger import get_logger
from utils.responses import (
    error_response,
    get_bearer_token,
    get_method,
    json_response,
    parse_json_body,
    preflight_response,
)
from utils.supabase_client import IdentityProviderError, build_clients

logger = get_logger("delete_user")


def handle_delete_user(event, session, admin):
    """
    Delete a user account on behalf of an admin.

    `session` is the anon-key SessionClient used to verify the caller;
    `admin` is the service-role AdminClient that performs the delete.
    """
    method = get_method(event)
    if method == "OPTIONS":
        return preflight_response()
    if method != "POST":
        return error_response(405, "Method not allowed")

    # 1) Authenticate caller
    token = get_bearer_token(event)
    if not token:
        return error_response(401, "Missing authorization header")

    try:
        caller = session.get_user(token)
    except IdentityProviderError as e:
        logger.warning(
            "delete_user.auth_failed",
            extra={"error": e.message, "status": e.status},
        )
        return error_response(401, "Invalid authorization")

    caller_id = caller["id"]

    # 2) Caller must be an admin; a missing profile counts as non-admin
    try:
        profile = session.get_profile(caller_id, token)
    except IdentityProviderError as e:
        logger.warning(
            "delete_user.profile_lookup_failed",
            extra={"caller_id": caller_id, "error": e.message, "status": e.status},
        )
        profile = None

    if not isinstance(profile, dict) or not profile.get("is_admin"):
        logger.warning("delete_user.not_admin", extra={"caller_id": caller_id})
        return error_response(403, "Insufficient permissions")

    # 3) Validate body
    try:
        payload = parse_json_body(event)
    except ValueError:
        return error_response(400, "Invalid JSON in request body")

    user_id = payload.get("userId") if isinstance(payload, dict) else None
    if not isinstance(user_id, str) or not user_id:
        return error_response(400, "Missing userId parameter")

    if user_id == caller_id:
        logger.warning("delete_user.self_delete_blocked", extra={"caller_id": caller_id})
        return error_response(400, "Cannot delete your own account")

    # 4) Delete with the service-role credential
    try:
        admin.delete_user(user_id)
    except IdentityProviderError as e:
        logger.error(
            "delete_user.provider_error",
            extra={"user_id": user_id, "caller_id": caller_id, "error": e.message, "status": e.status},
        )
        return error_response(500, "Failed to delete user from authentication system")

    logger.info("delete_user.deleted", extra={"user_id": user_id, "deleted_by": caller_id})
    return json_response(200, {"message": "User deleted successfully", "userId": user_id})


def lambda_handler(event, context):
    logger.info(
        "delete_user.lambda_start",
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
        # Misconfiguration is a 500, not a 4xx
        logger.error("delete_user.env_error", extra={"error": str(e)})
        return error_response(500, "server_misconfigured")

    try:
        session, admin = build_clients(settings, deadline=invocation_deadline(settings, context))
        with session, admin:
            return handle_delete_user(event, session, admin)
    except Exception:
        logger.exception("delete_user.unexpected_error")
        return error_response(500, "Internal server error")
