"""
Elevator registry and inspector reports
"""
from datetime import date, timedelta


def test_elevator_numbers_follow_mol_order_within_building(client, auth_headers, new_building, new_elevator):
    building = new_building()
    other = new_building(address="Dizengoff 100")
    second = new_elevator(building_id=building["id"], mol_number="41-2000")
    first = new_elevator(building_id=building["id"], mol_number="41-1000")
    alone = new_elevator(building_id=other["id"], mol_number="41-9999")

    elevators = client.get("/api/elevators/", headers=auth_headers).json()
    numbers = {e["id"]: e["elevator_number"] for e in elevators}
    assert numbers[first["id"]] == 1
    assert numbers[second["id"]] == 2
    assert numbers[alone["id"]] == 1

    filtered = client.get("/api/elevators/", params={"building_id": building["id"]}, headers=auth_headers).json()
    assert [e["mol_number"] for e in filtered] == ["41-1000", "41-2000"]
    # Numbering does not change when the list is filtered
    searched = client.get("/api/elevators/", params={"search": "41-2000"}, headers=auth_headers).json()
    assert searched[0]["elevator_number"] == 2


def test_unknown_manufacturer_is_stored_empty(client, auth_headers, new_elevator):
    elevator = new_elevator(manufacturer="Unknown")
    assert elevator["manufacturer"] is None
    new_elevator(building_id=elevator["building_id"], mol_number="41-1002", manufacturer="Otis")

    unknown = client.get("/api/elevators/", params={"manufacturer": "unknown"}, headers=auth_headers).json()
    assert [e["id"] for e in unknown] == [elevator["id"]]

    manufacturers = client.get("/api/elevators/manufacturers", headers=auth_headers).json()
    assert manufacturers == ["Otis"]


def test_elevator_validation(client, auth_headers, new_building):
    building = new_building()
    response = client.post("/api/elevators/", json={"building_id": building["id"], "mol_number": " "}, headers=auth_headers)
    assert response.status_code == 400

    response = client.post("/api/elevators/", json={"building_id": 9999, "mol_number": "41-1"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid building"


def test_elevator_stats(client, auth_headers, new_building, new_elevator):
    building = new_building()
    today = date.today()
    new_elevator(building_id=building["id"], mol_number="1", manufacturer="Otis", last_pm_date=None)
    new_elevator(building_id=building["id"], mol_number="2", manufacturer="Otis",
                 last_pm_date=(today - timedelta(days=1)).isoformat(),
                 last_inspection_date=(today - timedelta(days=1)).isoformat())
    new_elevator(building_id=building["id"], mol_number="3", manufacturer=None)

    stats = client.get("/api/elevators/stats", headers=auth_headers).json()
    assert stats["total"] == 3
    assert stats["buildings"] == 1
    assert stats["by_manufacturer"] == {"Otis": 2, "Unknown": 1}
    # Elevators without PM history are due now; the one serviced yesterday is not
    assert stats["pm_due_this_month"] == 2
    assert stats["inspections_due_this_month"] == 2


def test_elevator_details_include_schedule(client, auth_headers, new_elevator):
    elevator = new_elevator(last_pm_date="2025-01-15", last_inspection_date="2025-01-15")

    details = client.get(f"/api/elevators/{elevator['id']}", headers=auth_headers).json()
    assert details["elevator"]["elevator_number"] == 1
    assert details["next_pm_date"] == "2025-04-15"
    assert details["next_inspection_date"] == "2025-07-15"
    assert details["recent_tickets"] == []
    assert details["inspector_reports"] == []


def test_inspector_report_moves_last_inspection_date(client, auth_headers, new_elevator):
    elevator = new_elevator(last_inspection_date="2025-01-01")

    response = client.post(f"/api/elevators/{elevator['id']}/inspector-reports", json={
        "report_date": "2025-03-10",
        "inspector_name": "Inspector Gadget",
        "items_section_7": ["Pit light missing"],
    }, headers=auth_headers)
    assert response.status_code == 201
    assert response.json()["items_section_7"] == ["Pit light missing"]

    # An older report does not move the date back
    client.post(f"/api/elevators/{elevator['id']}/inspector-reports", json={"report_date": "2024-12-01"}, headers=auth_headers)

    refreshed = client.get(f"/api/elevators/{elevator['id']}", headers=auth_headers).json()
    assert refreshed["elevator"]["last_inspection_date"] == "2025-03-10"

    reports = client.get(f"/api/elevators/{elevator['id']}/inspector-reports", headers=auth_headers).json()
    assert [r["report_date"] for r in reports] == ["2025-03-10", "2024-12-01"]


def test_delete_elevator_blocked_by_tickets(client, auth_headers, site, new_ticket):
    new_ticket()
    response = client.delete(f"/api/elevators/{site['elevator']['id']}", headers=auth_headers)
    assert response.status_code == 409


def test_elevator_with_tickets_stays_in_its_building(client, auth_headers, site, new_ticket, new_building):
    new_ticket()
    elevator_id = site["elevator"]["id"]
    other = new_building(client_id=site["client"]["id"], address="Allenby 40")

    response = client.put(f"/api/elevators/{elevator_id}", json={"building_id": other["id"]}, headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["detail"] == "Cannot move elevator with 1 ticket(s) to another building"

    # Same building and other fields are still editable
    response = client.put(f"/api/elevators/{elevator_id}", json={
        "building_id": site["building"]["id"], "model": "3300",
    }, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["building_id"] == site["building"]["id"]


def test_move_elevator_without_tickets(client, auth_headers, new_elevator, new_building):
    elevator = new_elevator()
    other = new_building(address="Allenby 40")

    response = client.put(f"/api/elevators/{elevator['id']}", json={"building_id": other["id"]}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["building_id"] == other["id"]
    assert response.json()["elevator_number"] == 1


def test_delete_elevator(client, auth_headers, new_elevator):
    elevator = new_elevator()
    assert client.delete(f"/api/elevators/{elevator['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/elevators/{elevator['id']}", headers=auth_headers).status_code == 404
