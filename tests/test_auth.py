import threading
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from bookreview.core.config import settings
from bookreview.core.security import decode_token, hash_reset_token, verify_password
from bookreview.core.transport import encrypt
from bookreview.repositories.user import get_user_by_email
from bookreview.services import auth as auth_service
from bookreview.services import email as email_service

from conftest import auth_header


def login(client, email: str, password: str):
    return client.post(
        "/api/auth/login",
        json={"email": email, "password": password},
    )


def request_reset(client, email: str) -> str:
    response = client.post("/api/auth/forgot-password", json={"email": email})
    assert response.status_code == 200
    return response.json().get("reset_token")


# ============================================================================
# REGISTER TESTS
# ============================================================================


def test_register_success(client, db: Session):
    """Test registration returns a session token and the new identity."""
    response = client.post(
        "/api/auth/register",
        json={"name": "Carol", "email": "carol@example.com", "password": "secret1"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["name"] == "Carol"
    assert data["user"]["email"] == "carol@example.com"
    assert "password_hash" not in data["user"]
    assert decode_token(data["access_token"])["sub"] == str(data["user"]["id"])


def test_register_never_stores_plaintext(client, db: Session):
    client.post(
        "/api/auth/register",
        json={"name": "Carol", "email": "carol@example.com", "password": "secret1"},
    )
    user = get_user_by_email(db, "carol@example.com")
    assert user.password_hash != "secret1"
    assert verify_password("secret1", user.password_hash)
    assert user.password_reset_token is None
    assert user.password_reset_expires is None


def test_register_lowercases_email(client, db: Session):
    response = client.post(
        "/api/auth/register",
        json={"name": "Carol", "email": "Carol@Example.COM", "password": "secret1"},
    )
    assert response.status_code == 201
    assert response.json()["user"]["email"] == "carol@example.com"


def test_register_duplicate_email(client, db: Session, user_dict: dict):
    """Test registering an existing email in any casing fails."""
    response = client.post(
        "/api/auth/register",
        json={"name": "Alice 2", "email": "ALICE@example.com", "password": "secret1"},
    )
    assert response.status_code == 409
    assert response.json()["code"] == "DUPLICATE_RESOURCE"
    assert "already exists" in response.json()["detail"]


def test_register_password_too_short(client, db: Session):
    response = client.post(
        "/api/auth/register",
        json={"name": "Carol", "email": "carol@example.com", "password": "abc"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert "at least 6 characters" in response.json()["detail"]


def test_register_password_confirmation_mismatch(client, db: Session):
    response = client.post(
        "/api/auth/register",
        json={
            "name": "Carol",
            "email": "carol@example.com",
            "password": "secret1",
            "confirm_password": "secret2",
        },
    )
    assert response.status_code == 400
    assert "do not match" in response.json()["detail"]


def test_register_blank_name(client, db: Session):
    response = client.post(
        "/api/auth/register",
        json={"name": "   ", "email": "carol@example.com", "password": "secret1"},
    )
    assert response.status_code == 400
    assert "Name is required" in response.json()["detail"]


def test_register_name_too_long(client, db: Session):
    response = client.post(
        "/api/auth/register",
        json={"name": "x" * 51, "email": "carol@example.com", "password": "secret1"},
    )
    assert response.status_code == 422


def test_register_invalid_email(client, db: Session):
    response = client.post(
        "/api/auth/register",
        json={"name": "Carol", "email": "not-an-email", "password": "secret1"},
    )
    assert response.status_code == 422


def test_register_rejects_unknown_fields(client, db: Session):
    response = client.post(
        "/api/auth/register",
        json={
            "name": "Carol",
            "email": "carol@example.com",
            "password": "secret1",
            "is_admin": True,
        },
    )
    assert response.status_code == 422


# ============================================================================
# LOGIN TESTS
# ============================================================================


def test_login_success(client, db: Session, user_dict: dict):
    """Test successful login returns a token for the registered identity."""
    response = login(client, user_dict["email"], user_dict["password"])
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["id"] == user_dict["id"]
    assert decode_token(data["access_token"])["sub"] == str(user_dict["id"])


def test_login_email_is_case_insensitive(client, db: Session, user_dict: dict):
    response = login(client, "ALICE@example.com", user_dict["password"])
    assert response.status_code == 200


def test_login_wrong_password_and_unknown_email_look_the_same(
    client, db: Session, user_dict: dict
):
    """Test login failures do not reveal which emails are registered."""
    wrong_password = login(client, user_dict["email"], "not-the-password")
    unknown_email = login(client, "nobody@example.com", "not-the-password")

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json() == {
        "detail": "Invalid credentials",
        "code": "INVALID_CREDENTIALS",
    }


def test_login_missing_password(client, db: Session):
    response = client.post("/api/auth/login", json={"email": "alice@example.com"})
    assert response.status_code == 422


# ============================================================================
# CURRENT USER / GUARD TESTS
# ============================================================================


def test_get_current_user_success(client, db: Session, user_token: str, user_dict: dict):
    response = client.get("/api/auth/me", headers=auth_header(user_token))
    assert response.status_code == 200
    assert response.json() == {
        "id": user_dict["id"],
        "name": user_dict["name"],
        "email": user_dict["email"],
    }


def test_get_current_user_without_token(client, db: Session):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"
    assert response.headers["www-authenticate"] == "Bearer"


def test_get_current_user_invalid_token(client, db: Session):
    response = client.get("/api/auth/me", headers=auth_header("invalid_token"))
    assert response.status_code == 401
    assert "Could not validate credentials" in response.json()["detail"]


def test_get_current_user_expired_token(client, db: Session, user_dict: dict):
    from bookreview.core.security import create_access_token

    token = create_access_token(
        data={"sub": user_dict["id"]}, expires_delta=timedelta(seconds=-1)
    )
    response = client.get("/api/auth/me", headers=auth_header(token))
    assert response.status_code == 401


def test_get_current_user_unknown_subject(client, db: Session):
    from bookreview.core.security import create_access_token

    token = create_access_token(data={"sub": 9999})
    response = client.get("/api/auth/me", headers=auth_header(token))
    assert response.status_code == 401
    assert "user not found" in response.json()["detail"]


# ============================================================================
# CHANGE PASSWORD TESTS
# ============================================================================


def test_register_login_change_password_scenario(client, db: Session):
    """Test the old password stops working after a password change."""
    registered = client.post(
        "/api/auth/register",
        json={"name": "Alice", "email": "alice@x.com", "password": "secret1"},
    )
    assert registered.status_code == 201

    logged_in = login(client, "alice@x.com", "secret1")
    assert logged_in.status_code == 200
    token = logged_in.json()["access_token"]

    changed = client.put(
        "/api/auth/change-password",
        json={"current_password": "secret1", "new_password": "secret2"},
        headers=auth_header(token),
    )
    assert changed.status_code == 200
    assert changed.json() == {"message": "Password changed successfully"}

    assert login(client, "alice@x.com", "secret1").status_code == 401
    assert login(client, "alice@x.com", "secret2").status_code == 200

    # Sessions issued before the change stay valid until they expire
    assert client.get("/api/auth/me", headers=auth_header(token)).status_code == 200


def test_change_password_wrong_current(client, db: Session, user_token: str):
    response = client.put(
        "/api/auth/change-password",
        json={"current_password": "wrong-one", "new_password": "secret2"},
        headers=auth_header(user_token),
    )
    assert response.status_code == 400
    assert "Current password is incorrect" in response.json()["detail"]


def test_change_password_same_as_current(client, db: Session, user_token: str, user_dict: dict):
    response = client.put(
        "/api/auth/change-password",
        json={"current_password": user_dict["password"], "new_password": user_dict["password"]},
        headers=auth_header(user_token),
    )
    assert response.status_code == 400
    assert "must be different" in response.json()["detail"]


def test_change_password_too_short(client, db: Session, user_token: str, user_dict: dict):
    response = client.put(
        "/api/auth/change-password",
        json={"current_password": user_dict["password"], "new_password": "abc"},
        headers=auth_header(user_token),
    )
    assert response.status_code == 400
    assert "at least 6 characters" in response.json()["detail"]


def test_change_password_requires_authentication(client, db: Session):
    response = client.put(
        "/api/auth/change-password",
        json={"current_password": "secret1", "new_password": "secret2"},
    )
    assert response.status_code == 401


# ============================================================================
# FORGOT / RESET PASSWORD TESTS
# ============================================================================


def test_forgot_password_existing_email(client, db: Session, user_dict: dict):
    """Test a reset request stores only the token hash, with an expiry."""
    response = client.post(
        "/api/auth/forgot-password", json={"email": user_dict["email"]}
    )
    assert response.status_code == 200
    data = response.json()
    assert "If the email exists" in data["message"]

    token = data["reset_token"]
    user = get_user_by_email(db, user_dict["email"])
    db.refresh(user)
    assert user.password_reset_token == hash_reset_token(token)
    assert user.password_reset_token != token
    assert user.password_reset_expires is not None


def test_forgot_password_nonexistent_email(client, db: Session):
    """Test unknown emails get the same generic message."""
    response = client.post(
        "/api/auth/forgot-password", json={"email": "nobody@example.com"}
    )
    assert response.status_code == 200
    assert response.json() == {
        "message": "If the email exists, a password reset link has been sent."
    }


def test_forgot_password_hides_token_in_production(
    client, db: Session, user_dict: dict, monkeypatch
):
    monkeypatch.setattr(settings, "environment", "production")
    response = client.post(
        "/api/auth/forgot-password", json={"email": user_dict["email"]}
    )
    assert response.status_code == 200
    assert "reset_token" not in response.json()


def test_forgot_password_sends_plaintext_token_by_email(
    client, db: Session, user_dict: dict, monkeypatch
):
    sent = []

    async def fake_send(email, reset_token):
        sent.append((email, reset_token))

    monkeypatch.setattr("bookreview.services.auth.send_password_reset_email", fake_send)
    token = request_reset(client, user_dict["email"])
    assert sent == [(user_dict["email"], token)]


def test_forgot_password_smtp_failure_looks_like_unknown_email(
    client, db: Session, user_dict: dict, monkeypatch
):
    """Test an unreachable mail server does not reveal which emails are registered."""
    monkeypatch.setattr(settings, "smtp_host", "127.0.0.1")
    monkeypatch.setattr(settings, "smtp_port", 1)
    monkeypatch.setattr(settings, "smtp_user", "mailer")
    monkeypatch.setattr(settings, "smtp_password", "mailer-password")
    monkeypatch.setattr(settings, "smtp_from_email", "noreply@example.com")
    monkeypatch.setattr(settings, "smtp_use_tls", False)
    monkeypatch.setattr(settings, "environment", "production")

    known = client.post(
        "/api/auth/forgot-password", json={"email": user_dict["email"]}
    )
    unknown = client.post(
        "/api/auth/forgot-password", json={"email": "nobody@example.com"}
    )

    assert known.status_code == 200
    assert unknown.status_code == 200
    assert known.json() == unknown.json()


def test_forgot_password_runs_database_work_off_the_event_loop(
    client, db: Session, user_dict: dict, monkeypatch
):
    threads = {}
    store = auth_service._store_reset_token

    def recording_store(db, email):
        threads["store"] = threading.get_ident()
        return store(db, email)

    async def fake_send(email, reset_token):
        threads["send"] = threading.get_ident()

    monkeypatch.setattr(auth_service, "_store_reset_token", recording_store)
    monkeypatch.setattr(auth_service, "send_password_reset_email", fake_send)

    request_reset(client, user_dict["email"])
    assert threads["store"] != threads["send"]


def test_reset_password_success(client, db: Session, user_dict: dict):
    """Test a reset logs the user in and replaces the password."""
    token = request_reset(client, user_dict["email"])

    response = client.put(
        f"/api/auth/reset-password/{token}", json={"password": "brand-new"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["user"]["id"] == user_dict["id"]
    assert decode_token(data["access_token"])["sub"] == str(user_dict["id"])

    assert login(client, user_dict["email"], user_dict["password"]).status_code == 401
    assert login(client, user_dict["email"], "brand-new").status_code == 200

    user = get_user_by_email(db, user_dict["email"])
    db.refresh(user)
    assert user.password_reset_token is None
    assert user.password_reset_expires is None


def test_reset_token_is_single_use(client, db: Session, user_dict: dict):
    token = request_reset(client, user_dict["email"])
    first = client.put(f"/api/auth/reset-password/{token}", json={"password": "brand-new"})
    assert first.status_code == 200

    second = client.put(f"/api/auth/reset-password/{token}", json={"password": "another1"})
    assert second.status_code == 400
    assert second.json() == {
        "detail": "Invalid or expired token",
        "code": "INVALID_OR_EXPIRED_TOKEN",
    }


def test_reset_token_expires(client, db: Session, user_dict: dict):
    """Test a token stops working once its expiry has passed."""
    token = request_reset(client, user_dict["email"])

    user = get_user_by_email(db, user_dict["email"])
    user.password_reset_expires = datetime.now(timezone.utc) - timedelta(seconds=1)
    db.commit()

    response = client.put(f"/api/auth/reset-password/{token}", json={"password": "brand-new"})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_OR_EXPIRED_TOKEN"


def test_reset_with_unknown_token(client, db: Session, user_dict: dict):
    response = client.put(
        "/api/auth/reset-password/0123456789abcdef", json={"password": "brand-new"}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid or expired token"


def test_new_reset_request_invalidates_previous_token(client, db: Session, user_dict: dict):
    """Test only the most recently issued reset token works."""
    first = request_reset(client, user_dict["email"])
    second = request_reset(client, user_dict["email"])
    assert first != second

    stale = client.put(f"/api/auth/reset-password/{first}", json={"password": "brand-new"})
    assert stale.status_code == 400

    fresh = client.put(f"/api/auth/reset-password/{second}", json={"password": "brand-new"})
    assert fresh.status_code == 200


def test_reset_password_policy_failure_keeps_token(client, db: Session, user_dict: dict):
    token = request_reset(client, user_dict["email"])

    rejected = client.put(f"/api/auth/reset-password/{token}", json={"password": "abc"})
    assert rejected.status_code == 400
    assert rejected.json()["code"] == "VALIDATION_ERROR"

    accepted = client.put(f"/api/auth/reset-password/{token}", json={"password": "brand-new"})
    assert accepted.status_code == 200


# ============================================================================
# TRANSPORT OBFUSCATION TESTS
# ============================================================================


def test_login_with_obfuscated_password(client, db: Session, user_dict: dict, monkeypatch):
    key = "BookReviewPlatform2024SecretKey"
    monkeypatch.setattr(settings, "password_transport_key", key)

    response = login(client, user_dict["email"], encrypt(user_dict["password"], key))
    assert response.status_code == 200


def test_login_with_unreadable_obfuscated_password(
    client, db: Session, user_dict: dict, monkeypatch
):
    monkeypatch.setattr(settings, "password_transport_key", "BookReviewPlatform2024SecretKey")

    response = login(client, user_dict["email"], user_dict["password"])
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid password format"


# ============================================================================
# EMAIL TESTS
# ============================================================================


def test_reset_email_contains_link(monkeypatch):
    monkeypatch.setattr(settings, "frontend_url", "https://books.example.com/")
    message = email_service.build_password_reset_message("alice@example.com", "abc123")
    body = message.get_payload()[0].get_payload()
    assert "https://books.example.com/reset-password/abc123" in body
    assert message["To"] == "alice@example.com"


def test_reset_email_without_frontend_contains_token(monkeypatch):
    monkeypatch.setattr(settings, "frontend_url", None)
    message = email_service.build_password_reset_message("alice@example.com", "abc123")
    body = message.get_payload()[0].get_payload()
    assert "abc123" in body
    assert "reset-password/" not in body
