"""
HaDirot Functions
=================

Serverless backend glue for the HaDirot rental-listing site. Each handler is a
stateless AWS Lambda behind an HTTP API and talks to Supabase (auth + data)
and Resend (transactional email) over HTTPS.

Modules under this package:
- delete_user.py → admin-only account deletion (POST { userId })
- send_email.py  → transactional email via Resend, incl. branded password reset
- payments.py    → featured-listing payment stub (Stripe not yet implemented)
- health.py      → health check (/healthz)
- utils/         → Shared helper modules (logging, config, secrets, clients)

Environment variables expected:
  • SUPABASE_URL               - Supabase project URL
  • SUPABASE_ANON_KEY          - Public key, used only to verify sessions
  • SUPABASE_SERVICE_ROLE_KEY  - Service key for admin auth operations
  • RESEND_API_KEY             - Resend API key (or RESEND_SECRET_NAME)
  • RESEND_SECRET_NAME         - Secrets Manager secret holding the Resend key (optional)
  • SITE_URL                   - Base URL for the password-reset redirect
  • HTTP_TIMEOUT_SECONDS       - Outbound request timeout (default: 10)
  • HTTP_MAX_RETRIES           - Outbound retry count (default: 2)
  • REQUEST_BUDGET_SECONDS     - Time budget for outbound calls per invocation (default: 25)
  • LOG_LEVEL                  - Log verbosity (default: INFO)

All handlers in this package are stateless and Lambda-optimized.
"""

__version__ = "1.0.0"
__author__ = "HaDirot Engineering"
__license__ = "MIT"

__all__ = ["__version__", "__author__"]
