from margin_analysis.core.security import create_access_token, decode_access_token


def test_signup_and_signin(client):
    response = client.post(
        "/auth/signup",
        json={"email": "new.user@marginco.io", "password": "pa55word", "first_name": "New"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "user"
    assert decode_access_token(body["access_token"])["sub"] == "new.user@marginco.io"

    response = client.post("/auth/signin", json={"email": "new.user@marginco.io", "password": "pa55word"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "new.user@marginco.io"
    assert me.json()["role"] == "user"


def test_signup_duplicate_email(client):
    payload = {"email": "dup@marginco.io", "password": "pa55word"}
    assert client.post("/auth/signup", json=payload).status_code == 200
    assert client.post("/auth/signup", json=payload).status_code == 400


def test_signin_wrong_password(client, regular_user):
    response = client.post("/auth/signin", json={"email": regular_user.email, "password": "nope"})
    assert response.status_code == 401


def test_signin_disabled_account(client, db, regular_user):
    regular_user.active = False
    db.commit()

    response = client.post("/auth/signin", json={"email": regular_user.email, "password": "secret-password"})
    assert response.status_code == 403


def test_missing_and_bad_tokens(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"}).status_code == 401

    expired = create_access_token({"sub": "x@marginco.io", "id": 1, "role": "user"}, expires_minutes=-1)
    assert client.get("/auth/me", headers={"Authorization": f"Bearer {expired}"}).status_code == 401


def test_user_management_is_admin_only(client, admin_headers, user_headers):
    assert client.get("/users/", headers=user_headers).status_code == 403

    response = client.post(
        "/users/",
        json={"email": "second.admin@marginco.io", "password": "pa55word", "role": "admin"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["role"] == "admin"

    bad_role = client.post(
        "/users/",
        json={"email": "viewer@marginco.io", "password": "pa55word", "role": "viewer"},
        headers=admin_headers,
    )
    assert bad_role.status_code == 400

    emails = [u["email"] for u in client.get("/users/", headers=admin_headers).json()]
    assert "second.admin@marginco.io" in emails


def test_admin_cannot_delete_self(client, admin_user, admin_headers):
    response = client.delete(f"/users/{admin_user.id}", headers=admin_headers)
    assert response.status_code == 400


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"
