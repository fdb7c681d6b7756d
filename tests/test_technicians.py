"""
Technician address book and profile
"""


def test_create_technician_defaults(client, auth_headers, new_technician):
    technician = new_technician()
    assert technician["status"] == "active"
    assert technician["available_days"] == ["monday", "tuesday", "wednesday", "thursday", "friday"]
    assert technician["working_hours_start"] == "08:00"
    assert technician["working_hours_end"] == "17:00"


def test_technician_validation(client, auth_headers):
    base = {"full_name": "Noa", "phone": "050-1234567"}

    response = client.post("/api/technicians/", json={**base, "status": "retired"}, headers=auth_headers)
    assert response.status_code == 400

    response = client.post("/api/technicians/", json={**base, "specialization": ["rockets"]}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid specialization: rockets"

    response = client.post("/api/technicians/", json={**base, "available_days": ["Funday"]}, headers=auth_headers)
    assert response.status_code == 400

    response = client.post("/api/technicians/", json={**base, "working_hours_start": "8am"}, headers=auth_headers)
    assert response.status_code == 400

    response = client.post("/api/technicians/", json={**base, "working_hours_start": "18:00"}, headers=auth_headers)
    assert response.status_code == 400

    response = client.post("/api/technicians/", json={**base, "phone": " "}, headers=auth_headers)
    assert response.status_code == 400


def test_available_days_are_lowercased(client, auth_headers, new_technician):
    technician = new_technician(available_days=["Sunday", "MONDAY"])
    assert technician["available_days"] == ["sunday", "monday"]

    response = client.put(f"/api/technicians/{technician['id']}", json={"available_days": ["Friday"]}, headers=auth_headers)
    assert response.json()["available_days"] == ["friday"]


def test_update_working_hours_checked_against_stored_values(client, auth_headers, new_technician):
    technician = new_technician()
    response = client.put(f"/api/technicians/{technician['id']}", json={"working_hours_end": "07:00"}, headers=auth_headers)
    assert response.status_code == 400


def test_list_search_and_stats(client, auth_headers, new_technician):
    new_technician(full_name="Yossi Cohen", employee_id="T-001")
    new_technician(full_name="Noa Mizrahi", phone="050-999", email=None, status="on_leave")

    found = client.get("/api/technicians/", params={"search": "T-001"}, headers=auth_headers).json()
    assert [t["full_name"] for t in found] == ["Yossi Cohen"]

    on_leave = client.get("/api/technicians/", params={"status": "on_leave"}, headers=auth_headers).json()
    assert [t["full_name"] for t in on_leave] == ["Noa Mizrahi"]

    stats = client.get("/api/technicians/stats", headers=auth_headers).json()
    assert stats == {"total": 2, "active": 1, "on_leave": 1, "inactive": 0}


def test_profile(client, auth_headers, new_technician, new_ticket):
    technician = new_technician(emergency_contact_phone="054-111-2222")
    done = new_ticket(assigned_technician_id=technician["id"])
    new_ticket(assigned_technician_id=technician["id"])
    client.put(f"/api/tickets/{done['id']}/status", json={"status": "done"}, headers=auth_headers)

    profile = client.get(f"/api/technicians/{technician['id']}/profile", headers=auth_headers).json()
    assert profile["stats"]["tickets_assigned"] == 2
    assert profile["stats"]["tickets_completed"] == 1
    assert profile["stats"]["completion_rate"] == 50.0
    assert len(profile["monthly_performance"]) == 6
    assert profile["monthly_performance"][-1]["completed"] == 1
    assert len(profile["recent_tickets"]) == 2
    assert profile["contact"]["tel"] == "tel:+972505550201"
    assert profile["contact"]["mailto"] == "mailto:yossi@liftco.example.com"
    assert profile["emergency_contact"]["tel"] == "tel:0541112222"


def test_delete_blocked_by_open_tickets(client, auth_headers, new_technician, new_ticket):
    technician = new_technician()
    ticket = new_ticket(assigned_technician_id=technician["id"])

    response = client.delete(f"/api/technicians/{technician['id']}", headers=auth_headers)
    assert response.status_code == 409

    client.put(f"/api/tickets/{ticket['id']}/status", json={"status": "done"}, headers=auth_headers)
    assert client.delete(f"/api/technicians/{technician['id']}", headers=auth_headers).status_code == 200

    # The closed ticket stays, without a technician
    kept = client.get(f"/api/tickets/{ticket['id']}", headers=auth_headers).json()
    assert kept["assigned_technician_id"] is None


def test_delete_unlinks_projects_milestones_and_part_usage(client, auth_headers, site, new_technician, new_ticket, new_part):
    technician = new_technician()
    ticket = new_ticket()
    part = new_part()
    client.post(f"/api/tickets/{ticket['id']}/parts", json={
        "part_id": part["id"], "quantity_used": 1, "technician_id": technician["id"],
    }, headers=auth_headers)

    project = client.post("/api/projects/", json={
        "name": "Door upgrade",
        "client_id": site["client"]["id"],
        "building_id": site["building"]["id"],
        "lead_technician_id": technician["id"],
    }, headers=auth_headers).json()
    client.post(f"/api/projects/{project['id']}/milestones", json={
        "name": "Survey", "assigned_to": technician["id"],
    }, headers=auth_headers)

    assert client.delete(f"/api/technicians/{technician['id']}", headers=auth_headers).status_code == 200

    details = client.get(f"/api/projects/{project['id']}", headers=auth_headers).json()
    assert details["project"]["lead_technician_id"] is None
    assert details["lead_technician"] is None
    assert details["milestones"][0]["assigned_to"] is None

    usages = client.get(f"/api/tickets/{ticket['id']}/parts", headers=auth_headers).json()["parts"]
    assert usages[0]["technician_id"] is None


def test_technician_not_found(client, auth_headers):
    assert client.get("/api/technicians/999", headers=auth_headers).status_code == 404
