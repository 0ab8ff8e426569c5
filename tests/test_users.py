from app.core import security
from app.models import User


def test_list_and_filter_users(client, admin_headers, regular_user):
    response = client.get("/api/v1/users", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 2

    admins = client.get("/api/v1/users", params={"role": "ADMIN"}, headers=admin_headers).json()
    assert [item["username"] for item in admins["items"]] == ["admin"]

    searched = client.get("/api/v1/users", params={"search": "shop"}, headers=admin_headers).json()
    assert [item["username"] for item in searched["items"]] == ["shopper"]


def test_users_endpoints_need_admin(client, user_headers):
    assert client.get("/api/v1/users", headers=user_headers).status_code == 403
    assert client.get("/api/v1/users").status_code == 401


def test_update_and_toggle_lock(client, admin_headers, regular_user, admin_user):
    clash = client.put(
        f"/api/v1/users/{regular_user.id}",
        json={"email": admin_user.email},
        headers=admin_headers,
    )
    assert clash.status_code == 400

    updated = client.put(
        f"/api/v1/users/{regular_user.id}",
        json={"email": "New.Mail@example.com", "enabled": False},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["email"] == "new.mail@example.com"
    assert updated.json()["enabled"] is False

    locked = client.patch(f"/api/v1/users/{regular_user.id}/toggle-lock", headers=admin_headers)
    assert locked.json()["locked"] is True


def test_change_password(client, admin_headers, regular_user, db_session):
    wrong = client.patch(
        f"/api/v1/users/{regular_user.id}/change-password",
        json={"current_password": "nope", "new_password": "another123"},
        headers=admin_headers,
    )
    assert wrong.status_code == 401

    ok = client.patch(
        f"/api/v1/users/{regular_user.id}/change-password",
        json={"current_password": "secret123", "new_password": "another123"},
        headers=admin_headers,
    )
    assert ok.status_code == 200

    db_session.expire_all()
    stored = db_session.query(User).filter(User.id == regular_user.id).first()
    assert security.verify_password("another123", stored.password_hash)


def test_delete_user_and_stats(client, admin_headers, admin_user, regular_user):
    own = client.delete(f"/api/v1/users/{admin_user.id}", headers=admin_headers)
    assert own.status_code == 400

    stats = client.get("/api/v1/users/stats", headers=admin_headers).json()
    assert stats == {"total": 2, "admins": 1, "users": 1, "enabled": 2, "disabled": 0, "locked": 0}

    deleted = client.delete(f"/api/v1/users/{regular_user.id}", headers=admin_headers)
    assert deleted.status_code == 204
    assert client.get(f"/api/v1/users/{regular_user.id}", headers=admin_headers).status_code == 404
