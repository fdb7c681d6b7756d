"""
Trapped-person emergency workflow
"""
from datetime import datetime, timedelta

from liftdesk.models import Ticket


def _open_emergency(client, headers, site, **overrides):
    payload = {
        "building_id": site["building"]["id"],
        "elevator_id": site["elevator"]["id"],
        "trapped_person_name": "Ruth",
        "trapped_person_phone": "052-555-0199",
    }
    payload.update(overrides)
    response = client.post("/api/emergencies/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_open_emergency(client, auth_headers, site):
    view = _open_emergency(client, auth_headers, site)
    ticket = view["ticket"]

    assert ticket["ticket_type"] == "emergency"
    assert ticket["severity"] == "critical"
    assert ticket["emergency_status"] == "dispatched"
    assert ticket["title"] == "Person trapped in elevator"
    assert ticket["emergency_timer_started_at"] is not None
    assert view["is_final_time"] is False
    assert view["allowed_next_statuses"] == ["en_route", "on_site", "rescuing"]
    assert view["trapped_person_call_link"] == "tel:0525550199"

    active = client.get("/api/emergencies/active", headers=auth_headers).json()
    assert [e["ticket"]["id"] for e in active] == [ticket["id"]]


def test_pull_assigns_technician(client, auth_headers, site, new_technician):
    technician = new_technician()
    view = _open_emergency(client, auth_headers, site)

    response = client.post(f"/api/emergencies/{view['ticket']['id']}/pull", json={"technician_id": technician["id"]}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["ticket"]["status"] == "assigned"
    assert response.json()["ticket"]["technician_name"] == "Yossi Cohen"


def test_status_moves_forward_only(client, auth_headers, site):
    ticket_id = _open_emergency(client, auth_headers, site)["ticket"]["id"]
    url = f"/api/emergencies/{ticket_id}/status"

    response = client.put(url, json={"emergency_status": "on_site"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["ticket"]["emergency_status"] == "on_site"
    # Working on site puts the ticket in progress
    assert response.json()["ticket"]["status"] == "in_progress"
    assert response.json()["allowed_next_statuses"] == ["rescuing"]

    response = client.put(url, json={"emergency_status": "en_route"}, headers=auth_headers)
    assert response.status_code == 400

    response = client.put(url, json={"emergency_status": "rescued"}, headers=auth_headers)
    assert response.status_code == 400

    response = client.put(url, json={"emergency_status": "flying"}, headers=auth_headers)
    assert response.status_code == 400


def test_generic_status_endpoint_cannot_close_emergency(client, auth_headers, site):
    ticket_id = _open_emergency(client, auth_headers, site)["ticket"]["id"]
    response = client.put(f"/api/tickets/{ticket_id}/status", json={"status": "done"}, headers=auth_headers)
    assert response.status_code == 400


def test_complete_rescue_operational(client, auth_headers, site, db_session):
    ticket_id = _open_emergency(client, auth_headers, site)["ticket"]["id"]
    db_session.query(Ticket).filter(Ticket.id == ticket_id).update(
        {Ticket.created_at: datetime.utcnow() - timedelta(minutes=17, seconds=30)}, synchronize_session=False
    )
    db_session.commit()

    response = client.post(f"/api/emergencies/{ticket_id}/complete-rescue", json={"is_elevator_operational": True}, headers=auth_headers)
    assert response.status_code == 200
    view = response.json()
    assert view["ticket"]["status"] == "done"
    assert view["ticket"]["emergency_status"] == "rescued"
    assert view["ticket"]["emergency_response_time_minutes"] == 17
    assert view["ticket"]["spawned_service_ticket_id"] is None
    assert view["is_final_time"] is True
    assert view["allowed_next_statuses"] == []

    assert client.get("/api/emergencies/active", headers=auth_headers).json() == []

    again = client.post(f"/api/emergencies/{ticket_id}/complete-rescue", json={"is_elevator_operational": True}, headers=auth_headers)
    assert again.status_code == 400


def test_rescue_with_broken_elevator_opens_follow_up(client, auth_headers, site):
    ticket = _open_emergency(client, auth_headers, site)["ticket"]

    response = client.post(f"/api/emergencies/{ticket['id']}/complete-rescue", json={
        "is_elevator_operational": False,
        "notes": "Brake fault",
    }, headers=auth_headers)
    follow_up_id = response.json()["ticket"]["spawned_service_ticket_id"]
    assert follow_up_id is not None

    follow_up = client.get(f"/api/tickets/{follow_up_id}", headers=auth_headers).json()
    assert follow_up["ticket_type"] == "service"
    assert follow_up["severity"] == "high"
    assert follow_up["status"] == "new"
    assert follow_up["elevator_id"] == site["elevator"]["id"]
    assert follow_up["title"] == "Elevator repair after rescue - Herzl 12"
    assert ticket["ticket_number"] in follow_up["description"]


def test_cancel_emergency(client, auth_headers, site):
    ticket_id = _open_emergency(client, auth_headers, site)["ticket"]["id"]

    response = client.post(f"/api/emergencies/{ticket_id}/cancel", json={}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["ticket"]["status"] == "cancelled"
    assert response.json()["ticket"]["emergency_status"] is None

    activities = client.get(f"/api/tickets/{ticket_id}/activities", headers=auth_headers).json()
    assert any(a["extra_data"].get("cancellation_reason") == "The trapped person got out of the elevator on their own" for a in activities)

    assert client.post(f"/api/emergencies/{ticket_id}/cancel", json={}, headers=auth_headers).status_code == 400
    response = client.post(f"/api/emergencies/{ticket_id}/complete-rescue", json={"is_elevator_operational": True}, headers=auth_headers)
    assert response.status_code == 400


def test_service_ticket_is_not_an_emergency(client, auth_headers, new_ticket):
    ticket = new_ticket()
    assert client.get(f"/api/emergencies/{ticket['id']}", headers=auth_headers).status_code == 400
