import json

import pytest

from detran_checklist.auth import (
    AuthenticationError,
    AuthService,
    PermissionDeniedError,
    UserManagementError,
    UserStore,
    hash_password,
    verify_password,
)
from detran_checklist.config import Settings
from detran_checklist.models import UserInput

ADMIN_PASSWORD = "Admin#2024"


@pytest.fixture
def auth(tmp_path):
    service = AuthService(UserStore(tmp_path / "users.json"))
    service.ensure_admin(email="Admin@Detran.Local", password=ADMIN_PASSWORD, name="Administrador")
    return service


def test_password_hash_round_trip():
    encoded = hash_password("Segredo#123")
    assert encoded.startswith("pbkdf2_sha256$")
    assert verify_password("Segredo#123", encoded)
    assert not verify_password("segredo#123", encoded)
    assert not verify_password("Segredo#123", "not-a-hash")


def test_login_and_logout(auth):
    assert not auth.is_authenticated()
    assert not auth.login("admin@detran.local", "wrong")

    assert auth.login(" ADMIN@detran.local ", ADMIN_PASSWORD)
    user = auth.current_user()
    assert user is not None and user.is_admin
    assert user.email == "admin@detran.local"

    auth.logout()
    assert auth.current_user() is None


def test_admin_operations_require_login_and_role(auth):
    with pytest.raises(AuthenticationError):
        auth.list_users()

    auth.login("admin@detran.local", ADMIN_PASSWORD)
    clerk = auth.create_user(
        UserInput(name="Atendente", email="clerk@detran.local", password="Clerk#2024")
    )
    auth.logout()

    assert auth.login("clerk@detran.local", "Clerk#2024")
    with pytest.raises(PermissionDeniedError):
        auth.list_users()
    with pytest.raises(PermissionDeniedError):
        auth.remove_user(clerk.id)


def test_user_management_rules(auth):
    auth.login("admin@detran.local", ADMIN_PASSWORD)
    admin_user = auth.current_user()

    created = auth.create_user(
        UserInput(name="Maria Souza", email="maria@detran.local", password="Maria#2024")
    )
    assert {user.email for user in auth.list_users()} == {"admin@detran.local", "maria@detran.local"}

    with pytest.raises(UserManagementError):
        auth.create_user(
            UserInput(name="Outra Maria", email="MARIA@detran.local", password="Maria#2025")
        )
    with pytest.raises(UserManagementError):
        auth.remove_user(admin_user.id)
    with pytest.raises(UserManagementError):
        auth.remove_user("unknown")

    auth.remove_user(created.id)
    assert [user.email for user in auth.list_users()] == ["admin@detran.local"]


def test_user_input_validation():
    with pytest.raises(ValueError):
        UserInput(name="Ana", email="not-an-email", password="Valid#123")
    with pytest.raises(ValueError):
        UserInput(name="Ana", email="ana@detran.local", password="weakpass")


def test_accounts_persist_without_plain_passwords(tmp_path, auth):
    raw = json.loads((tmp_path / "users.json").read_text(encoding="utf-8"))
    assert raw["users"][0]["email"] == "admin@detran.local"
    assert ADMIN_PASSWORD not in json.dumps(raw)

    reloaded = AuthService(UserStore(tmp_path / "users.json"))
    assert reloaded.login("admin@detran.local", ADMIN_PASSWORD)


def test_bootstrap_admin_only_when_store_empty(tmp_path):
    settings = Settings(data_dir=tmp_path, admin_password=ADMIN_PASSWORD)
    first = AuthService.from_settings(settings)
    assert first.login(settings.admin_email, ADMIN_PASSWORD)

    settings_changed = Settings(data_dir=tmp_path, admin_password="Other#2024")
    second = AuthService.from_settings(settings_changed)
    assert not second.login(settings.admin_email, "Other#2024")
    assert second.login(settings.admin_email, ADMIN_PASSWORD)
