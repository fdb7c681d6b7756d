"""
Clients and their buildings
"""


def test_create_and_list_clients(client, auth_headers, new_client):
    created = new_client(name="  Rothschild 5 Committee  ", contract_number="MC-100")
    assert created["name"] == "Rothschild 5 Committee"
    assert created["sla_critical_hours"] == 2
    assert created["preferred_channel"] == "whatsapp"

    new_client(name="Allenby 40 Committee")

    clients = client.get("/api/clients/", headers=auth_headers).json()
    assert [c["name"] for c in clients] == ["Allenby 40 Committee", "Rothschild 5 Committee"]

    found = client.get("/api/clients/", params={"search": "MC-100"}, headers=auth_headers).json()
    assert [c["id"] for c in found] == [created["id"]]


def test_client_validation(client, auth_headers):
    response = client.post("/api/clients/", json={"name": "   "}, headers=auth_headers)
    assert response.status_code == 400

    response = client.post("/api/clients/", json={"name": "X", "preferred_channel": "fax"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid preferred channel")

    response = client.post("/api/clients/", json={
        "name": "X",
        "contract_start_date": "2025-06-01",
        "contract_end_date": "2025-01-01",
    }, headers=auth_headers)
    assert response.status_code == 400

    response = client.post("/api/clients/", json={"name": "X", "sla_high_hours": 0}, headers=auth_headers)
    assert response.status_code == 400


def test_update_client(client, auth_headers, new_client):
    created = new_client(contract_start_date="2025-01-01")
    response = client.put(f"/api/clients/{created['id']}", json={
        "sla_critical_hours": 1,
        "tags": ["vip", "tower"],
    }, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["sla_critical_hours"] == 1
    assert response.json()["tags"] == ["vip", "tower"]

    # End date is checked against the stored start date
    response = client.put(f"/api/clients/{created['id']}", json={"contract_end_date": "2024-12-31"}, headers=auth_headers)
    assert response.status_code == 400


def test_clients_are_scoped_to_company(client, new_client, other_company_headers):
    created = new_client()
    assert client.get(f"/api/clients/{created['id']}", headers=other_company_headers).status_code == 404
    assert client.get("/api/clients/", headers=other_company_headers).json() == []


def test_delete_client_blocked_while_buildings_exist(client, auth_headers, new_client, new_building):
    created = new_client()
    building = new_building(client_id=created["id"])

    response = client.delete(f"/api/clients/{created['id']}", headers=auth_headers)
    assert response.status_code == 409

    assert client.delete(f"/api/buildings/{building['id']}", headers=auth_headers).status_code == 200
    assert client.delete(f"/api/clients/{created['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/clients/{created['id']}", headers=auth_headers).status_code == 404


def test_delete_client_requires_admin(client, new_client, user_headers):
    created = new_client()
    response = client.delete(f"/api/clients/{created['id']}", headers=user_headers("dispatcher"))
    assert response.status_code == 403


# ============================================================================
# Buildings
# ============================================================================

def test_building_display_name_and_filters(client, auth_headers, new_client, new_building):
    first = new_client(name="First")
    second = new_client(name="Second")
    building = new_building(client_id=first["id"], address="Herzl 12", entrance="B")
    new_building(client_id=second["id"], address="Ben Yehuda 3", entrance=None, city="Haifa")

    assert building["display_name"] == "Herzl 12, entrance B, Tel Aviv"

    by_client = client.get("/api/buildings/", params={"client_id": first["id"]}, headers=auth_headers).json()
    assert [b["id"] for b in by_client] == [building["id"]]

    by_city = client.get("/api/buildings/", params={"search": "haifa"}, headers=auth_headers).json()
    assert [b["address"] for b in by_city] == ["Ben Yehuda 3"]


def test_building_requires_valid_client(client, auth_headers, other_company_headers):
    other_client = client.post("/api/clients/", json={"name": "Theirs"}, headers=other_company_headers).json()

    response = client.post("/api/buildings/", json={"client_id": other_client["id"], "address": "Herzl 1"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid client"


def test_building_requires_address(client, auth_headers, new_client):
    created = new_client()
    response = client.post("/api/buildings/", json={"client_id": created["id"], "address": " "}, headers=auth_headers)
    assert response.status_code == 400


def test_update_building(client, auth_headers, new_building):
    building = new_building()
    response = client.put(f"/api/buildings/{building['id']}", json={"access_code": "4321#", "parking_available": True}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["access_code"] == "4321#"
    assert response.json()["parking_available"] is True


def test_delete_building_blocked_by_elevators(client, auth_headers, site):
    response = client.delete(f"/api/buildings/{site['building']['id']}", headers=auth_headers)
    assert response.status_code == 409


def test_delete_building_blocked_by_projects(client, auth_headers, new_building):
    building = new_building()
    client.post("/api/projects/", json={
        "name": "New installation",
        "client_id": building["client_id"],
        "building_id": building["id"],
    }, headers=auth_headers)

    response = client.delete(f"/api/buildings/{building['id']}", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["detail"] == "Cannot delete building with 1 project(s)"


def test_delete_client_blocked_by_projects(client, auth_headers, new_client, new_building):
    original = new_client()
    building = new_building(client_id=original["id"])
    client.post("/api/projects/", json={
        "name": "New installation",
        "client_id": original["id"],
        "building_id": building["id"],
    }, headers=auth_headers)

    # The building changes hands but the project still belongs to the original client
    successor = new_client(name="Herzl 12 Management")
    client.put(f"/api/buildings/{building['id']}", json={"client_id": successor["id"]}, headers=auth_headers)

    response = client.delete(f"/api/clients/{original['id']}", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["detail"] == "Cannot delete client with 1 project(s)"
