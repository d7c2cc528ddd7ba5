"""
HaDirot Functions Utilities
===========================

Shared helper modules for the HaDirot serverless handlers:

- logger.py          → structured JSON logging
- config.py          → explicit Settings built from environment variables
- secrets.py         → AWS Secrets Manager lookup for the Resend API key
- http_client.py     → httpx client with timeouts, retries and backoff
- supabase_client.py → anon-key session client and service-role admin client
- resend_client.py   → Resend transactional email client
- responses.py       → Lambda proxy response and request helpers

All functions in this package are stateless and safe to use from
AWS Lambda, one invocation at a time. Log level is controlled by the
LOG_LEVEL environment variable (see logger.py).
"""

__all__ = [
    "config",
    "http_client",
    "logger",
    "resend_client",
    "responses",
    "secrets",
    "supabase_client",
]
