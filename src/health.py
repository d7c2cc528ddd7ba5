from utils.responses import get_method, json_response
from utils.logger import get_logger

logger = get_logger("health")


def lambda_handler(event, context):
    logger.info("health.check", extra={"path": "/health", "method": get_method(event) or "GET"})
    return json_response(200, {"status": "ok"})
