import json
from pathlib import Path

import delete_user
from utils import http_client
from utils.supabase_client import IdentityProviderError

# Target under test: src/delete_user.handle_delete_user / lambda_handler
# Supabase is replaced by stub session/admin clients.

EVENTS = Path(__file__).parent / "events"


class StubSession:
    def __init__(self, users=None, profiles=None, profile_error=False):
        self.users = users or {"admin-token": {"id": "u1"}}
        self.profiles = profiles if profiles is not None else {"u1": {"is_admin": True}}
        self.profile_error = profile_error
        self.tokens_seen = []

    def get_user(self, token):
        self.tokens_seen.append(token)
        if token not in self.users:
            raise IdentityProviderError("invalid JWT", status=401)
        return self.users[token]

    def get_profile(self, user_id, token):
        if self.profile_error:
            raise IdentityProviderError("JSON object requested, multiple (or no) rows returned", status=406)
        return self.profiles.get(user_id)


class StubAdmin:
    def __init__(self, fail=False):
        self.deleted = []
        self.fail = fail

    def delete_user(self, user_id):
        if self.fail:
            raise IdentityProviderError("User not found", status=404)
        self.deleted.append(user_id)


def _load_event(name):
    with open(EVENTS / name, "r", encoding="utf-8") as f:
        return json.load(f)


def _event(body=None, token="admin-token", method="POST"):
    event = _load_event("api_delete_user.json")
    event["requestContext"]["http"]["method"] = method
    if token is None:
        event["headers"].pop("authorization")
    else:
        event["headers"]["authorization"] = f"Bearer {token}"
    if body is not None:
        event["body"] = body if isinstance(body, str) else json.dumps(body)
    return event


def _body(resp):
    return json.loads(resp["body"])


def test_admin_deletes_other_user():
    session, admin = StubSession(), StubAdmin()

    resp = delete_user.handle_delete_user(_event(), session, admin)

    assert resp["statusCode"] == 200
    assert _body(resp) == {"message": "User deleted successfully", "userId": "u2"}
    assert admin.deleted == ["u2"]
    assert resp["headers"]["Access-Control-Allow-Origin"] == "*"


def test_self_delete_rejected_without_provider_call():
    admin = StubAdmin()

    resp = delete_user.handle_delete_user(_event({"userId": "u1"}), StubSession(), admin)

    assert resp["statusCode"] == 400
    assert _body(resp)["error"] == "Cannot delete your own account"
    assert admin.deleted == []


def test_non_admin_gets_403():
    session = StubSession(
        users={"user-token": {"id": "u3"}},
        profiles={"u3": {"is_admin": False}},
    )
    admin = StubAdmin()

    resp = delete_user.handle_delete_user(_event(token="user-token"), session, admin)

    assert resp["statusCode"] == 403
    assert admin.deleted == []


def test_missing_profile_treated_as_non_admin():
    session = StubSession(users={"t": {"id": "u9"}}, profiles={})
    admin = StubAdmin()

    resp = delete_user.handle_delete_user(_event(token="t"), session, admin)

    assert resp["statusCode"] == 403
    assert admin.deleted == []


def test_profile_lookup_error_treated_as_non_admin():
    admin = StubAdmin()

    resp = delete_user.handle_delete_user(_event(), StubSession(profile_error=True), admin)

    assert resp["statusCode"] == 403
    assert admin.deleted == []


def test_missing_token_is_401():
    resp = delete_user.handle_delete_user(_event(token=None), StubSession(), StubAdmin())

    assert resp["statusCode"] == 401
    assert _body(resp)["error"] == "Missing authorization header"


def test_invalid_token_is_401():
    resp = delete_user.handle_delete_user(_event(token="expired"), StubSession(), StubAdmin())

    assert resp["statusCode"] == 401
    assert _body(resp)["error"] == "Invalid authorization"


def test_wrong_method_is_405():
    resp = delete_user.handle_delete_user(_event(method="GET"), StubSession(), StubAdmin())

    assert resp["statusCode"] == 405


def test_preflight_returns_cors_headers():
    resp = delete_user.handle_delete_user(_event(method="OPTIONS"), StubSession(), StubAdmin())

    assert resp["statusCode"] == 200
    assert resp["body"] == "ok"
    assert resp["headers"]["Access-Control-Allow-Headers"] == "authorization, x-client-info, apikey, content-type"


def test_missing_user_id_is_400():
    admin = StubAdmin()

    resp = delete_user.handle_delete_user(_event({}), StubSession(), admin)

    assert resp["statusCode"] == 400
    assert _body(resp)["error"] == "Missing userId parameter"
    assert admin.deleted == []


def test_malformed_body_is_400():
    resp = delete_user.handle_delete_user(_event("{not json"), StubSession(), StubAdmin())

    assert resp["statusCode"] == 400


def test_provider_failure_is_generic_500():
    resp = delete_user.handle_delete_user(_event(), StubSession(), StubAdmin(fail=True))

    assert resp["statusCode"] == 500
    body = _body(resp)
    assert body == {"error": "Failed to delete user from authentication system"}
    assert "not found" not in resp["body"].lower()


def test_lambda_handler_misconfigured(monkeypatch):
    for name in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY"):
        monkeypatch.delenv(name, raising=False)

    resp = delete_user.lambda_handler(_event(), None)

    assert resp["statusCode"] == 500
    assert _body(resp)["error"] == "server_misconfigured"


def test_lambda_handler_wires_clients(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")

    session, admin = StubSession(), StubAdmin()
    closed = []

    class Closing:
        def __init__(self, inner, name):
            self.inner, self.name = inner, name

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            closed.append(self.name)

        def __getattr__(self, attr):
            return getattr(self.inner, attr)

    monkeypatch.setattr(
        delete_user,
        "build_clients",
        lambda settings, deadline=None: (Closing(session, "session"), Closing(admin, "admin")),
    )

    resp = delete_user.lambda_handler(_event(), None)

    assert resp["statusCode"] == 200
    assert admin.deleted == ["u2"]
    assert sorted(closed) == ["admin", "session"]


def test_lambda_handler_hides_unexpected_errors(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")

    def boom(settings, deadline=None):
        raise KeyError("secret internals")

    monkeypatch.setattr(delete_user, "build_clients", boom)

    resp = delete_user.lambda_handler(_event(), None)

    assert resp["statusCode"] == 500
    assert _body(resp) == {"error": "Internal server error"}


def test_non_dict_profile_row_treated_as_non_admin():
    session = StubSession(profiles={"u1": "is_admin"})
    admin = StubAdmin()

    resp = delete_user.handle_delete_user(_event(), session, admin)

    assert resp["statusCode"] == 403
    assert admin.deleted == []


def test_lambda_handler_rejects_method_before_loading_config(monkeypatch):
    for name in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY"):
        monkeypatch.delenv(name, raising=False)

    resp = delete_user.lambda_handler(_event(method="GET"), None)

    assert resp["statusCode"] == 405


def test_lambda_handler_bounds_clients_by_remaining_time(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")
    monkeypatch.setattr(http_client.time, "monotonic", lambda: 1000.0)

    deadlines = []

    def fake_build_clients(settings, deadline=None):
        deadlines.append(deadline)
        raise RuntimeError("stop here")

    class LambdaContext:
        aws_request_id = "req-1"

        def get_remaining_time_in_millis(self):
            return 6000

    monkeypatch.setattr(delete_user, "build_clients", fake_build_clients)

    resp = delete_user.lambda_handler(_event(), LambdaContext())

    assert resp["statusCode"] == 500
    # 6s remaining minus the 1s response margin
    assert deadlines == [1005.0]
