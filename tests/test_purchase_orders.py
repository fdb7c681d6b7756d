"""
Purchase orders: ordering, receiving into stock, PDF and email
"""
from datetime import date, datetime, timedelta

import pytest

from liftdesk.services.purchase_order_report import PurchaseOrderReportService


@pytest.fixture()
def po_setup(new_supplier, new_part):
    supplier = new_supplier()
    roller = new_part()
    cable = new_part(part_number="CBL-8MM", name="Steel cable 8mm", category="cable", unit_price=12.5, quantity_in_stock=0)
    return {"supplier": supplier, "roller": roller, "cable": cable}


@pytest.fixture()
def new_po(client, auth_headers, po_setup):
    def _create(**overrides):
        payload = {
            "supplier_id": po_setup["supplier"]["id"],
            "order_date": "2025-03-01",
            "items": [
                {"part_id": po_setup["roller"]["id"], "quantity_ordered": 4},
                {"part_id": po_setup["cable"]["id"], "quantity_ordered": 10, "unit_price": 11.0},
            ],
        }
        payload.update(overrides)
        response = client.post("/api/purchase-orders/", json=payload, headers=auth_headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _create


def _stock(client, headers, part_id):
    return client.get(f"/api/parts/{part_id}", headers=headers).json()["quantity_in_stock"]


def test_create_purchase_order(client, auth_headers, new_po):
    po = new_po()
    today = datetime.utcnow().strftime("%Y%m%d")

    assert po["po_number"] == f"PO-{today}-0001"
    assert po["status"] == "pending"
    assert po["supplier_name"] == "Lift Parts Ltd"
    # Lead time of the supplier is 10 days
    assert po["expected_delivery_date"] == "2025-03-11"
    assert po["contact_person"] == "Moshe Katz"

    roller_line, cable_line = po["items"]
    assert roller_line["unit_price"] == 45.0
    assert roller_line["total_price"] == 180.0
    assert cable_line["unit_price"] == 11.0
    assert po["total_amount"] == 290.0

    assert new_po()["po_number"] == f"PO-{today}-0002"


def test_explicit_delivery_date_and_contact_are_kept(client, auth_headers, new_po):
    po = new_po(expected_delivery_date="2025-03-05", contact_person="Rina")
    assert po["expected_delivery_date"] == "2025-03-05"
    assert po["contact_person"] == "Rina"


def test_create_validation(client, auth_headers, new_po, po_setup):
    base = {"supplier_id": po_setup["supplier"]["id"], "order_date": "2025-03-01"}

    response = client.post("/api/purchase-orders/", json={**base, "items": []}, headers=auth_headers)
    assert response.status_code == 400

    response = client.post("/api/purchase-orders/", json={**base, "items": [{"part_id": 999, "quantity_ordered": 1}]}, headers=auth_headers)
    assert response.status_code == 400

    items = [{"part_id": po_setup["roller"]["id"], "quantity_ordered": 1}]
    response = client.post("/api/purchase-orders/", json={**base, "items": items, "shipping_method": "pigeon"}, headers=auth_headers)
    assert response.status_code == 400

    response = client.post("/api/purchase-orders/", json={**base, "items": items, "supplier_id": 999}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid supplier"


def test_stats(client, auth_headers, new_po):
    new_po()
    second = new_po()
    client.put(f"/api/purchase-orders/{second['id']}/status", json={"status": "ordered"}, headers=auth_headers)

    stats = client.get("/api/purchase-orders/stats", headers=auth_headers).json()
    assert stats == {"total": 2, "pending": 1, "ordered": 1, "received": 0, "total_amount": 580.0}


def test_list_filters(client, auth_headers, new_po, new_supplier, po_setup):
    new_po()
    other_supplier = new_supplier(company_name="Elevator Electronics")
    new_po(supplier_id=other_supplier["id"])

    by_supplier = client.get("/api/purchase-orders/", params={"supplier_id": other_supplier["id"]}, headers=auth_headers).json()
    assert len(by_supplier) == 1

    searched = client.get("/api/purchase-orders/", params={"search": "electronics"}, headers=auth_headers).json()
    assert [po["supplier_name"] for po in searched] == ["Elevator Electronics"]


def test_receive_partially_then_fully(client, auth_headers, new_po, po_setup):
    po = new_po()
    roller_line, cable_line = po["items"]
    url = f"/api/purchase-orders/{po['id']}/receive"

    response = client.post(url, json={"lines": [{"item_id": cable_line["id"], "quantity": 6}]}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "partially_received"
    assert _stock(client, auth_headers, po_setup["cable"]["id"]) == 6

    response = client.post(url, json={"lines": [{"item_id": cable_line["id"], "quantity": 5}]}, headers=auth_headers)
    assert response.status_code == 400
    assert _stock(client, auth_headers, po_setup["cable"]["id"]) == 6

    response = client.post(url, json={"lines": [
        {"item_id": cable_line["id"], "quantity": 4},
        {"item_id": roller_line["id"], "quantity": 4},
    ]}, headers=auth_headers)
    received = response.json()
    assert received["status"] == "received"
    assert received["actual_delivery_date"] == date.today().isoformat()
    assert _stock(client, auth_headers, po_setup["cable"]["id"]) == 10
    assert _stock(client, auth_headers, po_setup["roller"]["id"]) == 24

    timeline = client.get(f"/api/purchase-orders/{po['id']}/timeline", headers=auth_headers).json()
    assert [entry["extra_data"]["new_status"] for entry in timeline] == ["received", "partially_received"]


def test_receive_counts_repeated_lines_together(client, auth_headers, new_po, po_setup):
    po = new_po()
    roller_line = po["items"][0]
    url = f"/api/purchase-orders/{po['id']}/receive"

    response = client.post(url, json={"lines": [
        {"item_id": roller_line["id"], "quantity": 3},
        {"item_id": roller_line["id"], "quantity": 3},
    ]}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot receive 6 of Door roller: only 4 outstanding"
    assert _stock(client, auth_headers, po_setup["roller"]["id"]) == 20

    response = client.post(url, json={"lines": [
        {"item_id": roller_line["id"], "quantity": 1},
        {"item_id": roller_line["id"], "quantity": 3},
    ]}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["items"][0]["quantity_received"] == 4
    assert _stock(client, auth_headers, po_setup["roller"]["id"]) == 24


def test_receive_rejects_unknown_items_and_cancelled_orders(client, auth_headers, new_po):
    po = new_po()
    url = f"/api/purchase-orders/{po['id']}/receive"

    assert client.post(url, json={"lines": [{"item_id": 999, "quantity": 1}]}, headers=auth_headers).status_code == 400
    assert client.post(url, json={"lines": []}, headers=auth_headers).status_code == 400

    client.put(f"/api/purchase-orders/{po['id']}/status", json={"status": "cancelled"}, headers=auth_headers)
    line = po["items"][0]
    assert client.post(url, json={"lines": [{"item_id": line["id"], "quantity": 1}]}, headers=auth_headers).status_code == 400


def test_status_change(client, auth_headers, new_po):
    po = new_po()
    url = f"/api/purchase-orders/{po['id']}/status"

    response = client.put(url, json={"status": "ordered", "notes": "Confirmed by phone"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "ordered"

    assert client.put(url, json={"status": "ordered"}, headers=auth_headers).status_code == 400
    assert client.put(url, json={"status": "lost"}, headers=auth_headers).status_code == 400

    timeline = client.get(f"/api/purchase-orders/{po['id']}/timeline", headers=auth_headers).json()
    assert timeline[0]["communication_type"] == "status_change"
    assert timeline[0]["extra_data"]["notes"] == "Confirmed by phone"


def test_replace_items(client, auth_headers, new_po, po_setup):
    po = new_po()
    url = f"/api/purchase-orders/{po['id']}"

    response = client.put(url, json={"items": [{"part_id": po_setup["roller"]["id"], "quantity_ordered": 2}]}, headers=auth_headers)
    assert response.status_code == 200
    assert len(response.json()["items"]) == 1
    assert response.json()["total_amount"] == 90.0

    line = response.json()["items"][0]
    client.post(f"{url}/receive", json={"lines": [{"item_id": line["id"], "quantity": 1}]}, headers=auth_headers)

    response = client.put(url, json={"items": [{"part_id": po_setup["roller"]["id"], "quantity_ordered": 5}]}, headers=auth_headers)
    assert response.status_code == 400


def test_pdf_download(client, auth_headers, new_po):
    po = new_po()

    response = client.get(f"/api/purchase-orders/{po['id']}/pdf", headers=auth_headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")

    timeline = client.get(f"/api/purchase-orders/{po['id']}/timeline", headers=auth_headers).json()
    assert timeline[0]["communication_type"] == "pdf_downloaded"


def test_pdf_with_markup_characters_in_text(client, auth_headers, new_po, new_supplier):
    supplier = new_supplier(company_name="Lifts & Co <North>", primary_contact_name="A <b> & B")
    po = new_po(supplier_id=supplier["id"], notes="Deliver to gate <B> before 10:00 & call")

    response = client.get(f"/api/purchase-orders/{po['id']}/pdf", headers=auth_headers)
    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")


def test_update_rejects_missing_supplier_or_order_date(client, auth_headers, new_po):
    po = new_po()
    url = f"/api/purchase-orders/{po['id']}"

    for payload in ({"supplier_id": None}, {"order_date": None}):
        response = client.put(url, json=payload, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Purchase order must have a supplier and an order date"

    response = client.put(url, json={"notes": "Call before delivery"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["order_date"] == "2025-03-01"


def test_delete_keeps_supplier_communications(client, auth_headers, new_po, po_setup):
    po = new_po()
    supplier_id = po_setup["supplier"]["id"]
    url = f"/api/suppliers/{supplier_id}/communications"
    client.post(url, json={
        "communication_type": "email",
        "subject": "Delivery window",
        "related_po_id": po["id"],
    }, headers=auth_headers)

    assert client.delete(f"/api/purchase-orders/{po['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/purchase-orders/{po['id']}", headers=auth_headers).status_code == 404

    communications = client.get(url, headers=auth_headers).json()
    assert [c["subject"] for c in communications] == ["Delivery window"]
    assert communications[0]["related_po_id"] is None


def test_email_without_smtp_credentials_fails(client, auth_headers, new_po):
    po = new_po()

    response = client.post(f"/api/purchase-orders/{po['id']}/send-email", json={
        "recipient_email": "orders@liftparts.example.com",
        "subject": f"Purchase order {po['po_number']}",
    }, headers=auth_headers)
    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to send email"

    timeline = client.get(f"/api/purchase-orders/{po['id']}/timeline", headers=auth_headers).json()
    assert timeline[0]["communication_type"] == "email_bounced"
    assert timeline[0]["status"] == "failed"


def test_email_sent(client, auth_headers, new_po, monkeypatch):
    po = new_po()
    sent = []

    def fake_send(self, msg, recipients):
        sent.append((msg, recipients))
        return True

    monkeypatch.setattr(PurchaseOrderReportService, "_send_email", fake_send)

    response = client.post(f"/api/purchase-orders/{po['id']}/send-email", json={
        "recipient_email": "orders@liftparts.example.com",
        "subject": f"Purchase order {po['po_number']}",
        "message": "Please confirm the delivery date",
        "cc_emails": ["warehouse@liftco.example.com"],
    }, headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Email sent successfully"}

    msg, recipients = sent[0]
    assert recipients == ["orders@liftparts.example.com", "warehouse@liftco.example.com"]
    assert msg["Cc"] == "warehouse@liftco.example.com"

    timeline = client.get(f"/api/purchase-orders/{po['id']}/timeline", headers=auth_headers).json()
    assert timeline[0]["communication_type"] == "email_sent"
    assert timeline[0]["recipient_email"] == "orders@liftparts.example.com"


def test_email_body_escapes_message(client, auth_headers, new_po, monkeypatch):
    po = new_po(notes="Fragile <glass> & mirrors")
    sent = []
    monkeypatch.setattr(PurchaseOrderReportService, "_send_email", lambda self, msg, recipients: sent.append(msg) or True)

    response = client.post(f"/api/purchase-orders/{po['id']}/send-email", json={
        "recipient_email": "orders@liftparts.example.com",
        "subject": "PO",
        "message": "Use <gate 2> & ring",
    }, headers=auth_headers)
    assert response.status_code == 200

    body = sent[0].get_payload()[0].get_payload(decode=True).decode()
    assert "Use &lt;gate 2&gt; &amp; ring" in body
    assert "<gate 2>" not in body


def test_email_validation(client, auth_headers, new_po):
    po = new_po()
    url = f"/api/purchase-orders/{po['id']}/send-email"

    response = client.post(url, json={"recipient_email": "not-an-address", "subject": "PO"}, headers=auth_headers)
    assert response.status_code == 400

    response = client.post(url, json={"recipient_email": "a@b.example.com", "subject": "  "}, headers=auth_headers)
    assert response.status_code == 400

    response = client.post(url, json={
        "recipient_email": "a@b.example.com",
        "subject": "PO",
        "cc_emails": ["broken"],
    }, headers=auth_headers)
    assert response.status_code == 400


def test_expected_delivery_is_relative_to_order_date(client, auth_headers, new_po):
    order_date = date.today()
    po = new_po(order_date=order_date.isoformat())
    assert po["expected_delivery_date"] == (order_date + timedelta(days=10)).isoformat()
