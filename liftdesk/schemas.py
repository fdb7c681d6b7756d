from pydantic import BaseModel, EmailStr, Field
from datetime import datetime, date
from typing import Optional, List, Any


# ============================================================================
# Auth & Users
# ============================================================================

class UserLogin(BaseModel):
    email: EmailStr
    password: str


class CompanyRegister(BaseModel):
    """Sign-up payload: creates the company and its first admin user"""
    company_name: str
    email: EmailStr
    password: str
    full_name: str
    phone: Optional[str] = None


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    full_name: str
    phone: Optional[str] = None
    role: str = "dispatcher"


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None


class User(BaseModel):
    id: int
    company_id: int
    email: EmailStr
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: str
    is_active: bool
    is_admin: bool = False
    is_dispatcher: bool = False
    is_technician: bool = False
    is_readonly: bool = False
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str
    user: User


# ============================================================================
# Clients
# ============================================================================

class ClientBase(BaseModel):
    name: str
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    preferred_channel: str = "whatsapp"
    contract_number: Optional[str] = None
    contract_type: Optional[str] = None
    contract_start_date: Optional[date] = None
    contract_end_date: Optional[date] = None
    monthly_fee: Optional[float] = None
    auto_renew: bool = False
    sla_critical_hours: int = 2
    sla_high_hours: int = 4
    sla_normal_hours: int = 24
    tags: Optional[List[str]] = None
    internal_notes: Optional[str] = None


class ClientCreate(ClientBase):
    pass


class ClientUpdate(BaseModel):
    name: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    preferred_channel: Optional[str] = None
    contract_number: Optional[str] = None
    contract_type: Optional[str] = None
    contract_start_date: Optional[date] = None
    contract_end_date: Optional[date] = None
    monthly_fee: Optional[float] = None
    auto_renew: Optional[bool] = None
    sla_critical_hours: Optional[int] = None
    sla_high_hours: Optional[int] = None
    sla_normal_hours: Optional[int] = None
    tags: Optional[List[str]] = None
    internal_notes: Optional[str] = None


class Client(ClientBase):
    id: int
    company_id: int
    contact_email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# Buildings
# ============================================================================

class BuildingBase(BaseModel):
    client_id: int
    address: str
    city: Optional[str] = None
    entrance: Optional[str] = None
    floors: Optional[int] = None
    apartments: Optional[int] = None
    build_year: Optional[int] = None
    access_code: Optional[str] = None
    parking_available: bool = False
    access_notes: Optional[str] = None
    notes: Optional[str] = None


class BuildingCreate(BuildingBase):
    pass


class BuildingUpdate(BaseModel):
    client_id: Optional[int] = None
    address: Optional[str] = None
    city: Optional[str] = None
    entrance: Optional[str] = None
    floors: Optional[int] = None
    apartments: Optional[int] = None
    build_year: Optional[int] = None
    access_code: Optional[str] = None
    parking_available: Optional[bool] = None
    access_notes: Optional[str] = None
    notes: Optional[str] = None


class Building(BuildingBase):
    id: int
    company_id: int
    display_name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# Elevators
# ============================================================================

class ElevatorBase(BaseModel):
    building_id: int
    mol_number: str
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    controller: Optional[str] = None
    install_year: Optional[int] = None
    last_pm_date: Optional[date] = None
    last_inspection_date: Optional[date] = None
    load_capacity_kg: Optional[int] = None
    load_capacity_persons: Optional[int] = None
    speed_mps: Optional[float] = None
    stops_count: Optional[int] = None
    drive_type: Optional[str] = None
    door_type: Optional[str] = None


class ElevatorCreate(ElevatorBase):
    pass


class ElevatorUpdate(BaseModel):
    building_id: Optional[int] = None
    mol_number: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    controller: Optional[str] = None
    install_year: Optional[int] = None
    last_pm_date: Optional[date] = None
    last_inspection_date: Optional[date] = None
    load_capacity_kg: Optional[int] = None
    load_capacity_persons: Optional[int] = None
    speed_mps: Optional[float] = None
    stops_count: Optional[int] = None
    drive_type: Optional[str] = None
    door_type: Optional[str] = None


class Elevator(ElevatorBase):
    id: int
    company_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Derived
    elevator_number: Optional[int] = None
    building_address: Optional[str] = None

    class Config:
        from_attributes = True


class InspectorReportCreate(BaseModel):
    report_date: date
    inspector_name: Optional[str] = None
    items_section_7: Optional[List[str]] = None
    items_section_9: Optional[List[str]] = None
    notes: Optional[str] = None


class InspectorReport(InspectorReportCreate):
    id: int
    elevator_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# Tickets
# ============================================================================

class TicketBase(BaseModel):
    building_id: int
    elevator_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    severity: str = "medium"
    priority: Optional[str] = None
    reported_by: Optional[str] = None
    reporter_phone: Optional[str] = None
    reporter_type: Optional[str] = None


class TicketCreate(TicketBase):
    assigned_technician_id: Optional[int] = None


class TicketUpdate(BaseModel):
    building_id: Optional[int] = None
    elevator_id: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    reported_by: Optional[str] = None
    reporter_phone: Optional[str] = None
    reporter_type: Optional[str] = None


class TicketStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None


class TicketAssign(BaseModel):
    technician_id: int


class TicketSeverityUpdate(BaseModel):
    severity: str


class TicketNoteCreate(BaseModel):
    note: str
    activity_type: str = "note_added"  # note_added, comment


class Ticket(TicketBase):
    id: int
    company_id: int
    ticket_number: str
    status: str
    assigned_technician_id: Optional[int] = None
    ticket_type: str = "service"
    emergency_status: Optional[str] = None
    emergency_timer_started_at: Optional[datetime] = None
    emergency_response_time_minutes: Optional[int] = None
    trapped_person_name: Optional[str] = None
    trapped_person_phone: Optional[str] = None
    is_elevator_operational: Optional[bool] = None
    spawned_service_ticket_id: Optional[int] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Derived
    building_address: Optional[str] = None
    technician_name: Optional[str] = None
    sla_hours: Optional[int] = None
    sla_breached: Optional[bool] = None

    class Config:
        from_attributes = True


class TicketList(BaseModel):
    tickets: List[Ticket]
    total: int
    page: int
    size: int


class TicketActivity(BaseModel):
    id: int
    ticket_id: int
    activity_type: str
    description: str
    extra_data: Optional[Any] = None
    created_by: Optional[int] = None
    created_by_name: Optional[str] = None
    created_at: Optional[datetime] = None
    relative_time: Optional[str] = None

    class Config:
        from_attributes = True


class TicketAttachment(BaseModel):
    id: int
    ticket_id: int
    file_name: str
    file_size: Optional[int] = None
    file_type: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# Emergency workflow
# ============================================================================

class EmergencyCreate(BaseModel):
    building_id: int
    elevator_id: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    trapped_person_name: Optional[str] = None
    trapped_person_phone: Optional[str] = None
    reported_by: Optional[str] = None
    reporter_phone: Optional[str] = None
    reporter_type: Optional[str] = None
    assigned_technician_id: Optional[int] = None


class EmergencyPull(BaseModel):
    technician_id: int


class EmergencyStatusUpdate(BaseModel):
    emergency_status: str


class RescueComplete(BaseModel):
    is_elevator_operational: bool
    notes: Optional[str] = None


class EmergencyCancel(BaseModel):
    reason: Optional[str] = None


# ============================================================================
# Technicians
# ============================================================================

class TechnicianBase(BaseModel):
    full_name: str
    phone: str
    email: Optional[EmailStr] = None
    employee_id: Optional[str] = None
    specialization: Optional[List[str]] = None
    certifications: Optional[List[str]] = None
    experience_years: Optional[int] = None
    status: str = "active"
    available_days: Optional[List[str]] = None
    working_hours_start: str = "08:00"
    working_hours_end: str = "17:00"
    hire_date: Optional[date] = None
    hourly_rate: Optional[float] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    notes: Optional[str] = None


class TechnicianCreate(TechnicianBase):
    pass


class TechnicianUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    employee_id: Optional[str] = None
    specialization: Optional[List[str]] = None
    certifications: Optional[List[str]] = None
    experience_years: Optional[int] = None
    status: Optional[str] = None
    available_days: Optional[List[str]] = None
    working_hours_start: Optional[str] = None
    working_hours_end: Optional[str] = None
    hire_date: Optional[date] = None
    hourly_rate: Optional[float] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    notes: Optional[str] = None


class Technician(TechnicianBase):
    id: int
    company_id: int
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# Parts
# ============================================================================

class PartBase(BaseModel):
    part_number: str
    name: str
    description: Optional[str] = None
    category: str = "other"
    manufacturer: Optional[str] = None
    unit_price: float = 0
    quantity_in_stock: int = 0
    minimum_stock_level: int = 5
    reorder_point: int = 10
    location: str = "warehouse"
    supplier_id: Optional[int] = None
    supplier_part_number: Optional[str] = None
    lead_time_days: Optional[int] = None
    notes: Optional[str] = None


class PartCreate(PartBase):
    pass


class PartUpdate(BaseModel):
    part_number: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    unit_price: Optional[float] = None
    quantity_in_stock: Optional[int] = None
    minimum_stock_level: Optional[int] = None
    reorder_point: Optional[int] = None
    location: Optional[str] = None
    supplier_id: Optional[int] = None
    supplier_part_number: Optional[str] = None
    lead_time_days: Optional[int] = None
    notes: Optional[str] = None


class Part(PartBase):
    id: int
    company_id: int
    is_active: bool
    stock_status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PartUsageCreate(BaseModel):
    part_id: int
    quantity_used: int = Field(1, gt=0)
    technician_id: Optional[int] = None
    notes: Optional[str] = None


class PartUsage(BaseModel):
    id: int
    part_id: int
    ticket_id: int
    technician_id: Optional[int] = None
    quantity_used: int
    unit_price_at_use: Optional[float] = None
    notes: Optional[str] = None
    used_at: Optional[datetime] = None
    part_name: Optional[str] = None
    part_number: Optional[str] = None
    ticket_number: Optional[str] = None

    class Config:
        from_attributes = True


# ============================================================================
# Suppliers
# ============================================================================

class BillingAddress(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None


class SupplierBase(BaseModel):
    company_name: str
    supplier_type: str = "parts_mechanical"
    business_id: Optional[str] = None
    vat_number: Optional[str] = None
    categories: Optional[List[str]] = None
    primary_contact_name: Optional[str] = None
    primary_contact_role: Optional[str] = None
    primary_contact_phone: Optional[str] = None
    primary_contact_email: Optional[EmailStr] = None
    office_phone: Optional[str] = None
    mobile_phone: Optional[str] = None
    website: Optional[str] = None
    billing_address: Optional[BillingAddress] = None
    payment_terms: str = "30"
    currency: str = "ILS"
    lead_time_days: int = 7
    overall_rating: Optional[float] = None
    preferred_supplier: bool = False
    status: str = "active"
    notes: Optional[str] = None


class SupplierCreate(SupplierBase):
    pass


class SupplierUpdate(BaseModel):
    company_name: Optional[str] = None
    supplier_type: Optional[str] = None
    business_id: Optional[str] = None
    vat_number: Optional[str] = None
    categories: Optional[List[str]] = None
    primary_contact_name: Optional[str] = None
    primary_contact_role: Optional[str] = None
    primary_contact_phone: Optional[str] = None
    primary_contact_email: Optional[EmailStr] = None
    office_phone: Optional[str] = None
    mobile_phone: Optional[str] = None
    website: Optional[str] = None
    billing_address: Optional[BillingAddress] = None
    payment_terms: Optional[str] = None
    currency: Optional[str] = None
    lead_time_days: Optional[int] = None
    overall_rating: Optional[float] = None
    preferred_supplier: Optional[bool] = None
    status: Optional[str] = None
    notes: Optional[str] = None


class Supplier(SupplierBase):
    id: int
    company_id: int
    supplier_code: str
    primary_contact_email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Derived from purchase orders and communications
    total_orders: int = 0
    total_spend: float = 0
    last_order_date: Optional[date] = None
    on_time_delivery_rate: Optional[float] = None
    quality_rating_average: Optional[float] = None
    open_communications: int = 0

    class Config:
        from_attributes = True


class SupplierCommunicationCreate(BaseModel):
    communication_type: str
    direction: str = "outbound"
    subject: Optional[str] = None
    content: Optional[str] = None
    category: str = "general"
    priority: str = "normal"
    related_po_id: Optional[int] = None


class SupplierCommunication(SupplierCommunicationCreate):
    id: int
    supplier_id: int
    status: str
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# Purchase Orders
# ============================================================================

class PurchaseOrderItemCreate(BaseModel):
    part_id: int
    quantity_ordered: int = Field(..., gt=0)
    unit_price: Optional[float] = None
    notes: Optional[str] = None


class PurchaseOrderItem(BaseModel):
    id: int
    part_id: int
    quantity_ordered: int
    quantity_received: int
    unit_price: float
    total_price: float
    notes: Optional[str] = None
    part_name: Optional[str] = None
    part_number: Optional[str] = None

    class Config:
        from_attributes = True


class PurchaseOrderCreate(BaseModel):
    supplier_id: int
    project_id: Optional[int] = None
    order_date: date
    expected_delivery_date: Optional[date] = None
    status: str = "pending"
    notes: Optional[str] = None
    contact_person: Optional[str] = None
    shipping_method: str = "standard"
    tracking_number: Optional[str] = None
    items: List[PurchaseOrderItemCreate]


class PurchaseOrderUpdate(BaseModel):
    supplier_id: Optional[int] = None
    project_id: Optional[int] = None
    order_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None
    contact_person: Optional[str] = None
    shipping_method: Optional[str] = None
    tracking_number: Optional[str] = None
    quality_rating: Optional[int] = Field(None, ge=1, le=5)
    delivery_rating: Optional[int] = Field(None, ge=1, le=5)
    items: Optional[List[PurchaseOrderItemCreate]] = None


class PurchaseOrderStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None


class ReceiveLine(BaseModel):
    item_id: int
    quantity: int = Field(..., gt=0)


class PurchaseOrderReceive(BaseModel):
    lines: List[ReceiveLine]


class PurchaseOrderEmail(BaseModel):
    recipient_email: str
    subject: str
    message: Optional[str] = None
    cc_emails: Optional[List[str]] = None


class PurchaseOrder(BaseModel):
    id: int
    company_id: int
    po_number: str
    supplier_id: int
    project_id: Optional[int] = None
    order_date: date
    expected_delivery_date: Optional[date] = None
    actual_delivery_date: Optional[date] = None
    status: str
    total_amount: float
    notes: Optional[str] = None
    contact_person: Optional[str] = None
    shipping_method: Optional[str] = None
    tracking_number: Optional[str] = None
    quality_rating: Optional[int] = None
    delivery_rating: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    supplier_name: Optional[str] = None
    project_name: Optional[str] = None
    items: List[PurchaseOrderItem] = []

    class Config:
        from_attributes = True


class PurchaseOrderCommunication(BaseModel):
    id: int
    purchase_order_id: int
    communication_type: str
    subject: Optional[str] = None
    recipient_email: Optional[str] = None
    status: str
    extra_data: Optional[Any] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# Projects
# ============================================================================

class ProjectBase(BaseModel):
    name: str
    client_id: int
    building_id: int
    description: Optional[str] = None
    project_type: str = "modernization"
    priority: str = "medium"
    estimated_start_date: Optional[date] = None
    estimated_end_date: Optional[date] = None
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    estimated_budget: Optional[float] = None
    approved_budget: Optional[float] = None
    actual_cost: Optional[float] = None
    quoted_price: Optional[float] = None
    lead_technician_id: Optional[int] = None
    notes: Optional[str] = None


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    client_id: Optional[int] = None
    building_id: Optional[int] = None
    description: Optional[str] = None
    project_type: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    estimated_start_date: Optional[date] = None
    estimated_end_date: Optional[date] = None
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    estimated_budget: Optional[float] = None
    approved_budget: Optional[float] = None
    actual_cost: Optional[float] = None
    quoted_price: Optional[float] = None
    lead_technician_id: Optional[int] = None
    notes: Optional[str] = None


class Project(ProjectBase):
    id: int
    company_id: int
    project_number: str
    status: str
    progress_percentage: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    client_name: Optional[str] = None
    building_address: Optional[str] = None

    class Config:
        from_attributes = True


class MilestoneCreate(BaseModel):
    name: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    is_critical: bool = False
    assigned_to: Optional[int] = None


class MilestoneStatusUpdate(BaseModel):
    status: str


class Milestone(MilestoneCreate):
    id: int
    project_id: int
    status: str
    completed_date: Optional[date] = None
    order_index: int
    source: str = "manual"
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
