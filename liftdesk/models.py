from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey, Float, Date, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from liftdesk.database import Base
from liftdesk.services.inventory import get_stock_status


class Company(Base):
    """Tenant - an elevator maintenance company using the dashboard"""
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())

    users = relationship("User", back_populates="company")
    clients = relationship("Client", back_populates="company")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    role = Column(String(20), default="dispatcher")  # admin, dispatcher, technician, readonly
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    company = relationship("Company", back_populates="users")

    @property
    def is_admin(self):
        return self.role == "admin"

    @property
    def is_dispatcher(self):
        return self.role == "dispatcher"

    @property
    def is_technician(self):
        return self.role == "technician"

    @property
    def is_readonly(self):
        return self.role == "readonly"


class Client(Base):
    """Building committee or management company served under a maintenance contract"""
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    name = Column(String, nullable=False)

    # Contact
    contact_name = Column(String, nullable=True)
    contact_phone = Column(String, nullable=True)
    contact_email = Column(String, nullable=True)
    preferred_channel = Column(String(20), default="whatsapp")  # whatsapp, sms, email

    # Contract
    contract_number = Column(String, nullable=True)
    contract_type = Column(String, nullable=True)
    contract_start_date = Column(Date, nullable=True)
    contract_end_date = Column(Date, nullable=True)
    monthly_fee = Column(Float, nullable=True)
    auto_renew = Column(Boolean, default=False)

    # SLA response targets in hours
    sla_critical_hours = Column(Integer, default=2)
    sla_high_hours = Column(Integer, default=4)
    sla_normal_hours = Column(Integer, default=24)

    tags = Column(JSON, nullable=True)  # list of strings
    internal_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    company = relationship("Company", back_populates="clients")
    buildings = relationship("Building", back_populates="client")


class Building(Base):
    __tablename__ = "buildings"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    address = Column(String, nullable=False)
    city = Column(String, nullable=True)
    entrance = Column(String(20), nullable=True)
    floors = Column(Integer, nullable=True)
    apartments = Column(Integer, nullable=True)
    build_year = Column(Integer, nullable=True)
    access_code = Column(String, nullable=True)
    parking_available = Column(Boolean, default=False)
    access_notes = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="buildings")
    elevators = relationship("Elevator", back_populates="building")
    tickets = relationship("Ticket", back_populates="building")

    @property
    def display_name(self):
        label = self.address
        if self.entrance:
            label += f", entrance {self.entrance}"
        if self.city:
            label += f", {self.city}"
        return label


class Elevator(Base):
    __tablename__ = "elevators"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    building_id = Column(Integer, ForeignKey("buildings.id"), nullable=False)
    mol_number = Column(String, nullable=False, index=True)  # registry number
    manufacturer = Column(String, nullable=True)
    model = Column(String, nullable=True)
    serial_number = Column(String, nullable=True)
    controller = Column(String, nullable=True)
    install_year = Column(Integer, nullable=True)

    # Maintenance
    last_pm_date = Column(Date, nullable=True)
    last_inspection_date = Column(Date, nullable=True)

    # Technical specs
    load_capacity_kg = Column(Integer, nullable=True)
    load_capacity_persons = Column(Integer, nullable=True)
    speed_mps = Column(Float, nullable=True)
    stops_count = Column(Integer, nullable=True)
    drive_type = Column(String, nullable=True)
    door_type = Column(String, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    building = relationship("Building", back_populates="elevators")
    tickets = relationship("Ticket", back_populates="elevator", foreign_keys="Ticket.elevator_id")
    inspector_reports = relationship("InspectorReport", back_populates="elevator", cascade="all, delete-orphan")

    @property
    def building_address(self):
        return self.building.display_name if self.building else None


class InspectorReport(Base):
    """Findings recorded by the periodic state inspector"""
    __tablename__ = "inspector_reports"

    id = Column(Integer, primary_key=True, index=True)
    elevator_id = Column(Integer, ForeignKey("elevators.id", ondelete="CASCADE"), nullable=False)
    report_date = Column(Date, nullable=False)
    inspector_name = Column(String, nullable=True)
    items_section_7 = Column(JSON, nullable=True)
    items_section_9 = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())

    elevator = relationship("Elevator", back_populates="inspector_reports")


class Technician(Base):
    __tablename__ = "technicians"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    full_name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    email = Column(String, nullable=True)
    employee_id = Column(String, nullable=True)
    specialization = Column(JSON, nullable=True)  # hydraulic, traction, mrl, ...
    certifications = Column(JSON, nullable=True)
    experience_years = Column(Integer, nullable=True)
    status = Column(String(20), default="active")  # active, on_leave, inactive
    available_days = Column(JSON, nullable=True)
    working_hours_start = Column(String(5), default="08:00")
    working_hours_end = Column(String(5), default="17:00")
    hire_date = Column(Date, nullable=True)
    hourly_rate = Column(Float, nullable=True)
    emergency_contact_name = Column(String, nullable=True)
    emergency_contact_phone = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    tickets = relationship("Ticket", back_populates="assigned_technician")


class Ticket(Base):
    """Service ticket - a regular service call or an emergency trapped-person call"""
    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint('company_id', 'ticket_number', name='uq_ticket_company_number'),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    ticket_number = Column(String, nullable=False, index=True)  # TKT-YYYYMMDD-XXXX, unique per company

    building_id = Column(Integer, ForeignKey("buildings.id"), nullable=False)
    elevator_id = Column(Integer, ForeignKey("elevators.id"), nullable=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    severity = Column(String(20), default="medium")  # low, medium, high, critical
    status = Column(String(20), default="new")  # new, assigned, in_progress, waiting_parts, done, cancelled
    priority = Column(String(20), nullable=True)
    assigned_technician_id = Column(Integer, ForeignKey("technicians.id"), nullable=True)

    # Reporter
    reported_by = Column(String, nullable=True)
    reporter_phone = Column(String, nullable=True)
    reporter_type = Column(String(30), nullable=True)  # resident, committee, inspector, ...

    # Emergency variant
    ticket_type = Column(String(20), default="service")  # service, emergency
    emergency_status = Column(String(20), nullable=True)  # dispatched, en_route, on_site, rescuing, rescued
    emergency_timer_started_at = Column(DateTime, nullable=True)
    emergency_response_time_minutes = Column(Integer, nullable=True)
    trapped_person_name = Column(String, nullable=True)
    trapped_person_phone = Column(String, nullable=True)
    is_elevator_operational = Column(Boolean, nullable=True)
    spawned_service_ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=True)

    completed_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    building = relationship("Building", back_populates="tickets")
    elevator = relationship("Elevator", back_populates="tickets", foreign_keys=[elevator_id])
    assigned_technician = relationship("Technician", back_populates="tickets")
    activities = relationship("TicketActivity", back_populates="ticket", cascade="all, delete-orphan")
    attachments = relationship("TicketAttachment", back_populates="ticket", cascade="all, delete-orphan")
    part_usages = relationship("PartUsage", back_populates="ticket", cascade="all, delete-orphan")

    @property
    def building_address(self):
        return self.building.display_name if self.building else None

    @property
    def technician_name(self):
        return self.assigned_technician.full_name if self.assigned_technician else None


class TicketActivity(Base):
    """Timeline entry for a ticket"""
    __tablename__ = "ticket_activities"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    activity_type = Column(String(40), nullable=False)
    description = Column(Text, nullable=False)
    extra_data = Column(JSON, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_by_name = Column(String, default="System")
    created_at = Column(DateTime, default=func.now())

    ticket = relationship("Ticket", back_populates="activities")


class TicketAttachment(Base):
    __tablename__ = "ticket_attachments"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    file_path = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    file_size = Column(Integer, nullable=True)
    file_type = Column(String, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=func.now())

    ticket = relationship("Ticket", back_populates="attachments")


class Part(Base):
    """Spare part kept in the warehouse or on a service van"""
    __tablename__ = "parts"
    __table_args__ = (
        UniqueConstraint('company_id', 'part_number', name='uq_part_company_number'),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    part_number = Column(String, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(30), default="other")
    manufacturer = Column(String, nullable=True)
    unit_price = Column(Float, default=0)
    quantity_in_stock = Column(Integer, default=0)
    minimum_stock_level = Column(Integer, default=5)
    reorder_point = Column(Integer, default=10)
    location = Column(String(30), default="warehouse")  # warehouse, van_1, van_2, van_3
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)
    supplier_part_number = Column(String, nullable=True)
    lead_time_days = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    supplier = relationship("Supplier")
    usages = relationship("PartUsage", back_populates="part")

    @property
    def stock_status(self):
        return get_stock_status(self.quantity_in_stock or 0, self.minimum_stock_level or 0, self.reorder_point or 0)


class PartUsage(Base):
    __tablename__ = "part_usages"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    part_id = Column(Integer, ForeignKey("parts.id"), nullable=False)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False)
    technician_id = Column(Integer, ForeignKey("technicians.id"), nullable=True)
    quantity_used = Column(Integer, nullable=False, default=1)
    unit_price_at_use = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    used_at = Column(DateTime, default=func.now())

    part = relationship("Part", back_populates="usages")
    ticket = relationship("Ticket", back_populates="part_usages")
    technician = relationship("Technician")

    @property
    def part_name(self):
        return self.part.name if self.part else None

    @property
    def part_number(self):
        return self.part.part_number if self.part else None

    @property
    def ticket_number(self):
        return self.ticket.ticket_number if self.ticket else None


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    supplier_code = Column(String, nullable=False, index=True)  # SUP-XXXX
    company_name = Column(String, nullable=False)
    supplier_type = Column(String(40), default="parts_mechanical")
    business_id = Column(String, nullable=True)
    vat_number = Column(String, nullable=True)
    categories = Column(JSON, nullable=True)

    # Contacts
    primary_contact_name = Column(String, nullable=True)
    primary_contact_role = Column(String, nullable=True)
    primary_contact_phone = Column(String, nullable=True)
    primary_contact_email = Column(String, nullable=True)
    office_phone = Column(String, nullable=True)
    mobile_phone = Column(String, nullable=True)
    website = Column(String, nullable=True)
    billing_address = Column(JSON, nullable=True)  # street, city, zip, country

    # Terms
    payment_terms = Column(String(20), default="30")
    currency = Column(String(3), default="ILS")
    lead_time_days = Column(Integer, default=7)

    overall_rating = Column(Float, nullable=True)
    preferred_supplier = Column(Boolean, default=False)
    status = Column(String(20), default="active")  # active, inactive, suspended, blacklisted
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    purchase_orders = relationship("PurchaseOrder", back_populates="supplier")
    communications = relationship("SupplierCommunication", back_populates="supplier", cascade="all, delete-orphan")


class SupplierCommunication(Base):
    __tablename__ = "supplier_communications"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    communication_type = Column(String(20), nullable=False)  # email, phone, whatsapp, meeting, video_call, note
    direction = Column(String(10), default="outbound")  # inbound, outbound
    subject = Column(String, nullable=True)
    content = Column(Text, nullable=True)
    category = Column(String(30), default="general")
    priority = Column(String(20), default="normal")
    status = Column(String(20), default="open")  # open, closed
    related_po_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=func.now())

    supplier = relationship("Supplier", back_populates="communications")


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"
    __table_args__ = (
        UniqueConstraint('company_id', 'po_number', name='uq_po_company_number'),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    po_number = Column(String, nullable=False, index=True)  # PO-YYYYMMDD-XXXX, unique per company
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    order_date = Column(Date, nullable=False)
    expected_delivery_date = Column(Date, nullable=True)
    actual_delivery_date = Column(Date, nullable=True)
    status = Column(String(30), default="pending")  # pending, ordered, partially_received, received, cancelled
    total_amount = Column(Float, default=0)
    notes = Column(Text, nullable=True)
    contact_person = Column(String, nullable=True)
    shipping_method = Column(String(30), default="standard")
    tracking_number = Column(String, nullable=True)
    quality_rating = Column(Integer, nullable=True)  # 1-5
    delivery_rating = Column(Integer, nullable=True)  # 1-5
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    supplier = relationship("Supplier", back_populates="purchase_orders")
    project = relationship("Project", back_populates="purchase_orders")
    items = relationship("PurchaseOrderItem", back_populates="purchase_order", cascade="all, delete-orphan",
                         order_by="PurchaseOrderItem.id")
    communications = relationship("PurchaseOrderCommunication", back_populates="purchase_order", cascade="all, delete-orphan")

    @property
    def supplier_name(self):
        return self.supplier.company_name if self.supplier else None

    @property
    def project_name(self):
        return self.project.name if self.project else None


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False)
    part_id = Column(Integer, ForeignKey("parts.id"), nullable=False)
    quantity_ordered = Column(Integer, nullable=False)
    quantity_received = Column(Integer, default=0)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)

    purchase_order = relationship("PurchaseOrder", back_populates="items")
    part = relationship("Part")

    @property
    def part_name(self):
        return self.part.name if self.part else None

    @property
    def part_number(self):
        return self.part.part_number if self.part else None


class PurchaseOrderCommunication(Base):
    __tablename__ = "purchase_order_communications"

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False)
    communication_type = Column(String(30), nullable=False)  # email_sent, email_bounced, pdf_downloaded, status_change, note
    subject = Column(String, nullable=True)
    recipient_email = Column(String, nullable=True)
    status = Column(String(20), default="sent")  # pending, sent, failed
    extra_data = Column(JSON, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=func.now())

    purchase_order = relationship("PurchaseOrder", back_populates="communications")


class Project(Base):
    """Modernization / installation / renovation project at a building"""
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    project_number = Column(String, nullable=False, index=True)  # PRJ-YYYY-XXXX
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    building_id = Column(Integer, ForeignKey("buildings.id"), nullable=False)
    project_type = Column(String(30), default="modernization")
    status = Column(String(20), default="planning")
    priority = Column(String(20), default="medium")

    estimated_start_date = Column(Date, nullable=True)
    estimated_end_date = Column(Date, nullable=True)
    actual_start_date = Column(Date, nullable=True)
    actual_end_date = Column(Date, nullable=True)

    estimated_budget = Column(Float, nullable=True)
    approved_budget = Column(Float, nullable=True)
    actual_cost = Column(Float, nullable=True)
    quoted_price = Column(Float, nullable=True)

    progress_percentage = Column(Integer, default=0)
    lead_technician_id = Column(Integer, ForeignKey("technicians.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    client = relationship("Client")
    building = relationship("Building")
    lead_technician = relationship("Technician")
    milestones = relationship("Milestone", back_populates="project", cascade="all, delete-orphan",
                              order_by="Milestone.order_index")
    purchase_orders = relationship("PurchaseOrder", back_populates="project")

    @property
    def client_name(self):
        return self.client.name if self.client else None

    @property
    def building_address(self):
        return self.building.display_name if self.building else None


class Milestone(Base):
    __tablename__ = "project_milestones"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)
    completed_date = Column(Date, nullable=True)
    status = Column(String(20), default="not_started")  # not_started, in_progress, completed, cancelled
    order_index = Column(Integer, default=0)
    is_critical = Column(Boolean, default=False)
    assigned_to = Column(Integer, ForeignKey("technicians.id"), nullable=True)
    source = Column(String(10), default="manual")  # manual, auto
    source_details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=func.now())

    project = relationship("Project", back_populates="milestones")
