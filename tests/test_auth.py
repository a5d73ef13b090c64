from kakcup.auth import hash_password, verify_password


def test_password_hash_roundtrip():
    hashed = hash_password("AB12cd34!")
    assert hashed != "AB12cd34!"
    assert verify_password("AB12cd34!", hashed)
    assert not verify_password("wrong", hashed)


def test_login_requires_username_and_password(client):
    res = client.post("/api/auth/login", json={"username": "admin"})
    assert res.status_code == 400
    assert res.get_json()["message"] == "Username and password required"


def test_login_rejects_unknown_user_and_bad_password(client, memory_store):
    res = client.post("/api/auth/login", json={"username": "ghost", "password": "x"})
    assert res.status_code == 401

    memory_store["users"].append(
        {"id": "u1", "username": "pope", "email": None, "password_hash": hash_password("right"), "role": "user"}
    )
    res = client.post("/api/auth/login", json={"username": "pope", "password": "wrong"})
    assert res.status_code == 401
    assert res.get_json()["message"] == "Invalid credentials"


def test_login_returns_user_without_hash(client, memory_store):
    memory_store["users"].append(
        {"id": "u1", "username": "pope", "email": "pope@example.com", "password_hash": hash_password("right"), "role": "admin"}
    )
    res = client.post("/api/auth/login", json={"username": "pope", "password": "right"})
    assert res.status_code == 200
    body = res.get_json()
    assert body["username"] == "pope"
    assert "password_hash" not in body

    me = client.get("/api/auth/user").get_json()
    assert me["id"] == "u1"
    assert me["role"] == "admin"


def test_register_creates_user_role_and_logs_in(client, memory_store):
    res = client.post(
        "/api/auth/register",
        json={"username": "newbie", "password": "pw", "email": "newbie@example.com", "first_name": "New"},
    )
    assert res.status_code == 200
    assert res.get_json()["role"] == "user"
    assert memory_store["users"][0]["password_hash"] != "pw"
    assert client.get("/api/auth/user").get_json()["username"] == "newbie"


def test_register_conflicts(client):
    client.post("/api/auth/register", json={"username": "dup", "password": "pw", "email": "dup@example.com"})
    res = client.post("/api/auth/register", json={"username": "dup", "password": "pw"})
    assert res.status_code == 409
    assert res.get_json()["message"] == "Username already exists"
    res = client.post("/api/auth/register", json={"username": "other", "password": "pw", "email": "dup@example.com"})
    assert res.status_code == 409
    assert res.get_json()["message"] == "Email already exists"


def test_current_user_requires_login(client):
    res = client.get("/api/auth/user")
    assert res.status_code == 401


def test_logout_clears_session(user_client):
    assert user_client.get("/api/auth/user").status_code == 200
    res = user_client.post("/api/auth/logout")
    assert res.get_json()["message"] == "Logged out successfully"
    assert user_client.get("/api/auth/user").status_code == 401


def test_admin_gate(client, user_client, admin_client):
    body = {"name": "Squad", "position": 1}
    assert client.post("/api/years/year-2025/teams", json=body).status_code == 401
    res = user_client.post("/api/years/year-2025/teams", json=body)
    assert res.status_code == 403
    assert res.get_json()["message"] == "Admin access required"
    assert admin_client.post("/api/years/year-2025/teams", json=body).status_code == 201


def test_login_and_register_reject_malformed_bodies(client, memory_store):
    for body in ([1, 2], "admin", {"username": 5, "password": "x"}, {"username": "pope", "password": ["x"]}):
        assert client.post("/api/auth/login", json=body).status_code == 400
        assert client.post("/api/auth/register", json=body).status_code == 400

    res = client.post("/api/auth/register", json={"username": "pope", "password": "pw", "email": {"a": 1}})
    assert res.status_code == 400
    assert memory_store["users"] == []


def test_all_clients_in_one_test(client, user_client, admin_client):
    assert client.get("/api/auth/user").status_code == 401
    assert user_client.get("/api/auth/user").get_json()["role"] == "user"
    assert admin_client.get("/api/auth/user").get_json()["role"] == "admin"
    assert client.get("/api/auth/user").status_code == 401
