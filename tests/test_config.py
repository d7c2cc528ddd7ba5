import json

import pytest
from botocore.exceptions import ClientError

from utils import secrets
from utils.config import DEFAULT_SITE_URL, Settings, load_settings

# Targets under test: utils/config.load_settings, utils/secrets.resolve_resend_api_key
# We monkeypatch boto3 inside utils.secrets.

BASE_ENV = {
    "SUPABASE_URL": "https://proj.supabase.co/",
    "SUPABASE_ANON_KEY": "anon",
    "SUPABASE_SERVICE_ROLE_KEY": "service",
}


class StubSecretsManager:
    def __init__(self, secret_string=None, error=None):
        self.secret_string = secret_string
        self.error = error
        self.requested = []

    def get_secret_value(self, SecretId):
        self.requested.append(SecretId)
        if self.error is not None:
            raise self.error
        return {"SecretString": self.secret_string}


def _patch_boto3(monkeypatch, stub):
    class FakeBoto3:
        def client(self, name, region_name=None):
            assert name == "secretsmanager"
            stub.region = region_name
            return stub

    monkeypatch.setattr(secrets, "boto3", FakeBoto3(), raising=True)


def test_load_settings_defaults():
    settings = load_settings(BASE_ENV)

    assert settings.supabase_url == "https://proj.supabase.co"
    assert settings.site_url == DEFAULT_SITE_URL
    assert settings.password_reset_redirect == "http://localhost:5173/auth"
    assert settings.resend_api_key is None
    assert settings.http_timeout_seconds == 10.0
    assert settings.http_max_retries == 2
    assert settings.request_budget_seconds == 25.0


def test_load_settings_site_url_falls_back_to_vite_name():
    settings = load_settings({**BASE_ENV, "VITE_SITE_URL": "https://hadirot.com"})

    assert settings.password_reset_redirect == "https://hadirot.com/auth"


def test_load_settings_missing_required():
    with pytest.raises(RuntimeError) as exc:
        load_settings({"SUPABASE_URL": "https://proj.supabase.co"})

    assert "SUPABASE_ANON_KEY" in str(exc.value)
    assert "SUPABASE_SERVICE_ROLE_KEY" in str(exc.value)


def test_load_settings_rejects_bad_timeout():
    with pytest.raises(RuntimeError):
        load_settings({**BASE_ENV, "HTTP_TIMEOUT_SECONDS": "soon"})


def test_resend_key_from_environment_skips_secrets_manager(monkeypatch):
    stub = StubSecretsManager()
    _patch_boto3(monkeypatch, stub)
    settings = Settings("https://p", "anon", "service", resend_api_key="re_env", resend_secret_name="hadirot/resend")

    assert secrets.resolve_resend_api_key(settings) == "re_env"
    assert stub.requested == []


def test_resend_key_from_secrets_manager(monkeypatch):
    stub = StubSecretsManager(secret_string=json.dumps({"api_key": "re_secret"}))
    _patch_boto3(monkeypatch, stub)
    settings = Settings("https://p", "anon", "service", resend_secret_name="hadirot/resend", aws_region="eu-west-1")

    assert secrets.resolve_resend_api_key(settings) == "re_secret"
    assert stub.requested == ["hadirot/resend"]
    assert stub.region == "eu-west-1"


def test_resend_key_unresolvable_when_secret_lookup_fails(monkeypatch):
    error = ClientError({"Error": {"Code": "AccessDeniedException", "Message": "denied"}}, "GetSecretValue")
    _patch_boto3(monkeypatch, StubSecretsManager(error=error))
    settings = Settings("https://p", "anon", "service", resend_secret_name="hadirot/resend")

    assert secrets.resolve_resend_api_key(settings) is None


def test_resend_key_none_without_any_source():
    settings = Settings("https://p", "anon", "service")

    assert secrets.resolve_resend_api_key(settings) is None
