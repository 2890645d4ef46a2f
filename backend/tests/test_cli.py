"""
CLI command tests (flask system / users / cache).
"""

from storefront.extensions import cache, db
from storefront.models import User

from conftest import TEST_PASSWORD


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    second = runner.invoke(args=["system", "init"])

    assert first.exit_code == 0
    assert "PASS Created user: admin with role 'ADMIN'" in first.output
    assert "WARN  User 'admin' already exists" in second.output
    roles = {u.username: u.role for u in db.session.query(User).all()}
    assert roles == {"admin": "ADMIN", "driver": "WORKER"}


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    created = runner.invoke(args=[
        "users", "create", "--username", "shop42", "--password", TEST_PASSWORD,
        "--role", "CUSTOMER", "--shop-name", "Corner Shop",
    ])
    listed = runner.invoke(args=["users", "list", "--role", "CUSTOMER"])

    assert created.exit_code == 0, created.output
    assert "PASS Created user: shop42" in created.output
    assert "Corner Shop" in listed.output


def test_users_create_weak_password_fails(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "users", "create", "--username", "weak", "--password", "password", "--role", "CUSTOMER",
    ])
    assert result.exit_code == 1
    assert "FAIL" in result.output
    assert db.session.query(User).count() == 0


def test_cache_clear(app, db_session):
    cache.backend.set("product:1", "{}", ex=60)
    result = app.test_cli_runner().invoke(args=["cache", "clear"])
    assert result.exit_code == 0
    assert cache.backend.get("product:1") is None
