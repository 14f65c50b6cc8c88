from margin_analysis.models import AuditLog


def test_create_and_list_clients(client, db, user_headers):
    response = client.post("/clients/", json={"client_name": "  Globex  "}, headers=user_headers)
    assert response.status_code == 201
    assert response.json()["client_name"] == "Globex"

    names = [c["client_name"] for c in client.get("/clients/", headers=user_headers).json()]
    assert names == ["Globex"]

    audit = db.query(AuditLog).filter_by(table_name="clients", action="CREATE").one()
    assert audit.record_id == response.json()["id"]


def test_duplicate_client_name(client, acme, user_headers):
    response = client.post("/clients/", json={"client_name": "Acme Corp"}, headers=user_headers)
    assert response.status_code == 409


def test_rename_client(client, acme, user_headers):
    other = client.post("/clients/", json={"client_name": "Initech"}, headers=user_headers).json()

    clash = client.put(f"/clients/{other['id']}", json={"client_name": "Acme Corp"}, headers=user_headers)
    assert clash.status_code == 409

    renamed = client.put(f"/clients/{acme.id}", json={"client_name": "Acme Holdings"}, headers=user_headers)
    assert renamed.status_code == 200
    assert renamed.json()["client_name"] == "Acme Holdings"


def test_get_unknown_client(client, user_headers):
    assert client.get("/clients/999", headers=user_headers).status_code == 404


def test_delete_client_with_projects_is_rejected(client, project_payload, acme, user_headers):
    assert client.post("/projects/", json=project_payload, headers=user_headers).status_code == 201

    response = client.delete(f"/clients/{acme.id}", headers=user_headers)
    assert response.status_code == 400
    assert client.get(f"/clients/{acme.id}", headers=user_headers).status_code == 200


def test_delete_empty_client(client, acme, user_headers):
    assert client.delete(f"/clients/{acme.id}", headers=user_headers).status_code == 200
    assert client.get(f"/clients/{acme.id}", headers=user_headers).status_code == 404


def test_clients_require_auth(client):
    assert client.get("/clients/").status_code == 401
