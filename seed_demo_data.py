"""
Seed demo data for the first company
Creates a client with two buildings, their elevators, three technicians,
a supplier with a few spare parts and a couple of open tickets.
Run after reset_password.py has created the first admin.
"""
import os
import sys
from datetime import date, datetime, timedelta

# Add the app directory to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sqlalchemy.orm import Session
from liftdesk.database import SessionLocal, engine, Base
from liftdesk.models import (
    Company, Client, Building, Elevator, Technician, Supplier, Part, Ticket
)


def seed_demo_data():
    """Create sample records so the dashboard has something to show"""
    Base.metadata.create_all(bind=engine)
    db: Session = SessionLocal()

    try:
        company = db.query(Company).first()
        if not company:
            print("ERROR: No company found. Please create a company first (reset_password.py).")
            return

        print(f"Seeding demo data for company: {company.name} (ID: {company.id})")

        existing = db.query(Client).filter(
            Client.company_id == company.id,
            Client.name == "Herzl 12 Residents Committee"
        ).first()
        if existing:
            print("  SKIP: demo data already exists")
            return

        today = date.today()

        client = Client(
            company_id=company.id,
            name="Herzl 12 Residents Committee",
            contact_name="Dana Levi",
            contact_phone="+972-52-555-0101",
            contact_email="committee@herzl12.example.com",
            preferred_channel="whatsapp",
            contract_number="MC-2024-017",
            contract_type="full_service",
            contract_start_date=today - timedelta(days=300),
            contract_end_date=today + timedelta(days=45),
            monthly_fee=850.0,
            sla_critical_hours=2,
            sla_high_hours=4,
            sla_normal_hours=24,
            tags=["vip"]
        )
        db.add(client)
        db.flush()
        print(f"  CREATE: client {client.name}")

        buildings = [
            Building(company_id=company.id, client_id=client.id, address="Herzl 12", city="Tel Aviv",
                     entrance="A", floors=8, apartments=32, access_code="1234#"),
            Building(company_id=company.id, client_id=client.id, address="Herzl 12", city="Tel Aviv",
                     entrance="B", floors=8, apartments=30, parking_available=True),
        ]
        db.add_all(buildings)
        db.flush()

        elevators = []
        for building, mols in zip(buildings, [["41-1001", "41-1002"], ["41-1003"]]):
            for index, mol in enumerate(mols):
                elevator = Elevator(
                    company_id=company.id,
                    building_id=building.id,
                    mol_number=mol,
                    manufacturer="Schindler" if index == 0 else "Otis",
                    model="3300",
                    install_year=2012,
                    last_pm_date=today - timedelta(days=80 + 20 * index),
                    last_inspection_date=today - timedelta(days=170),
                    load_capacity_kg=630,
                    load_capacity_persons=8,
                    stops_count=9,
                    drive_type="traction"
                )
                elevators.append(elevator)
        db.add_all(elevators)
        db.flush()
        print(f"  CREATE: {len(buildings)} buildings, {len(elevators)} elevators")

        technicians = [
            Technician(company_id=company.id, full_name="Yossi Cohen", phone="+972-50-555-0201",
                       employee_id="T-001", specialization=["traction", "controls"], experience_years=12,
                       available_days=["sunday", "monday", "tuesday", "wednesday", "thursday"]),
            Technician(company_id=company.id, full_name="Noa Mizrahi", phone="+972-50-555-0202",
                       employee_id="T-002", specialization=["hydraulic", "doors"], experience_years=6,
                       available_days=["sunday", "monday", "tuesday", "wednesday", "thursday"]),
            Technician(company_id=company.id, full_name="Avi Peretz", phone="+972-50-555-0203",
                       employee_id="T-003", specialization=["modernization"], experience_years=20,
                       status="on_leave"),
        ]
        db.add_all(technicians)
        db.flush()
        print(f"  CREATE: {len(technicians)} technicians")

        supplier = Supplier(
            company_id=company.id,
            supplier_code="SUP-0001",
            company_name="Lift Parts Ltd",
            supplier_type="parts_mechanical",
            primary_contact_name="Moshe Katz",
            primary_contact_phone="+972-3-555-0301",
            primary_contact_email="orders@liftparts.example.com",
            lead_time_days=10,
            preferred_supplier=True
        )
        db.add(supplier)
        db.flush()

        parts = [
            Part(company_id=company.id, part_number="DR-ROLL-01", name="Door roller", category="door",
                 unit_price=45.0, quantity_in_stock=24, minimum_stock_level=10, reorder_point=5,
                 supplier_id=supplier.id),
            Part(company_id=company.id, part_number="SF-SW-02", name="Safety switch", category="safety",
                 unit_price=120.0, quantity_in_stock=4, minimum_stock_level=6, reorder_point=3,
                 supplier_id=supplier.id),
            Part(company_id=company.id, part_number="CB-8MM", name="Steel rope 8mm (m)", category="cable",
                 unit_price=18.5, quantity_in_stock=0, minimum_stock_level=50, reorder_point=20,
                 supplier_id=supplier.id, location="van_1"),
        ]
        db.add_all(parts)
        print(f"  CREATE: supplier {supplier.supplier_code} with {len(parts)} parts")

        now = datetime.utcnow()
        tickets = [
            Ticket(company_id=company.id, ticket_number=f"TKT-{now:%Y%m%d}-9001", building_id=buildings[0].id,
                   elevator_id=elevators[0].id, title="Door closes slowly", severity="medium", status="assigned",
                   assigned_technician_id=technicians[0].id, reported_by="Dana Levi", reporter_type="committee",
                   created_at=now - timedelta(days=9)),
            Ticket(company_id=company.id, ticket_number=f"TKT-{now:%Y%m%d}-9002", building_id=buildings[1].id,
                   elevator_id=elevators[2].id, title="Noise in the shaft", severity="high", status="new",
                   reported_by="Resident, apt 14", reporter_type="resident", created_at=now - timedelta(hours=6)),
        ]
        db.add_all(tickets)
        print(f"  CREATE: {len(tickets)} tickets")

        db.commit()
        print("\nDone! Demo data is ready.")

    except Exception as e:
        db.rollback()
        print(f"ERROR: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_demo_data()
