"""
Purchase order API endpoints
Orders go to a supplier, optionally for a project, and carry one line per part.
Receiving a line puts the received quantity back into stock.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import Response
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import desc
from typing import Optional, List
from collections import Counter
from datetime import datetime, date
import logging
import re

from liftdesk.database import get_db
from liftdesk.models import (
    PurchaseOrder, PurchaseOrderItem, PurchaseOrderCommunication, Supplier, SupplierCommunication, Part,
    Project, User
)
from liftdesk.schemas import (
    PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseOrderStatusUpdate, PurchaseOrderReceive,
    PurchaseOrderEmail, PurchaseOrderItemCreate, PurchaseOrder as PurchaseOrderSchema,
    PurchaseOrderCommunication as PurchaseOrderCommunicationSchema
)
from liftdesk.api.auth import get_current_user, require_admin, require_write_access
from liftdesk.services.purchasing import (
    PO_STATUSES, SHIPPING_METHODS, expected_delivery, line_total, order_total, received_status
)
from liftdesk.services.purchase_order_report import PurchaseOrderReportService
from liftdesk.utils.rate_limiter import limiter, RateLimits

logger = logging.getLogger(__name__)

router = APIRouter()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def generate_po_number(db: Session, company_id: int) -> str:
    """Generate a unique PO number in format PO-YYYYMMDD-XXXX"""
    today = datetime.utcnow().strftime("%Y%m%d")
    prefix = f"PO-{today}-"

    latest = db.query(PurchaseOrder).filter(
        PurchaseOrder.company_id == company_id,
        PurchaseOrder.po_number.like(f"{prefix}%")
    ).order_by(desc(PurchaseOrder.po_number)).first()

    if latest:
        try:
            new_num = int(latest.po_number.split("-")[-1]) + 1
        except ValueError:
            new_num = 1
    else:
        new_num = 1

    return f"{prefix}{new_num:04d}"


def get_company_po(db: Session, po_id: int, company_id: int) -> PurchaseOrder:
    po = db.query(PurchaseOrder).options(
        joinedload(PurchaseOrder.supplier),
        joinedload(PurchaseOrder.project),
        joinedload(PurchaseOrder.items).joinedload(PurchaseOrderItem.part)
    ).filter(
        PurchaseOrder.id == po_id,
        PurchaseOrder.company_id == company_id
    ).first()
    if not po:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    return po


def _get_supplier(db: Session, supplier_id: int, company_id: int) -> Supplier:
    supplier = db.query(Supplier).filter(
        Supplier.id == supplier_id,
        Supplier.company_id == company_id
    ).first()
    if not supplier:
        raise HTTPException(status_code=400, detail="Invalid supplier")
    return supplier


def _check_project(db: Session, project_id: Optional[int], company_id: int):
    if not project_id:
        return
    project = db.query(Project).filter(
        Project.id == project_id,
        Project.company_id == company_id
    ).first()
    if not project:
        raise HTTPException(status_code=400, detail="Invalid project")


def _build_items(db: Session, items: List[PurchaseOrderItemCreate], company_id: int) -> List[PurchaseOrderItem]:
    """Order lines; a missing unit price falls back to the part's price"""
    if not items:
        raise HTTPException(status_code=400, detail="A purchase order needs at least one item")

    lines = []
    for item in items:
        part = db.query(Part).filter(
            Part.id == item.part_id,
            Part.company_id == company_id
        ).first()
        if not part:
            raise HTTPException(status_code=400, detail=f"Invalid part: {item.part_id}")

        unit_price = item.unit_price if item.unit_price is not None else (part.unit_price or 0)
        if unit_price < 0:
            raise HTTPException(status_code=400, detail="Unit price cannot be negative")

        lines.append(PurchaseOrderItem(
            part_id=part.id,
            quantity_ordered=item.quantity_ordered,
            quantity_received=0,
            unit_price=unit_price,
            total_price=line_total(item.quantity_ordered, unit_price),
            notes=item.notes
        ))
    return lines


def log_po_communication(
    db: Session,
    po: PurchaseOrder,
    communication_type: str,
    user: Optional[User],
    subject: Optional[str] = None,
    recipient_email: Optional[str] = None,
    status: str = "sent",
    extra_data: Optional[dict] = None
) -> PurchaseOrderCommunication:
    """Add a PO timeline entry; the caller commits"""
    communication = PurchaseOrderCommunication(
        purchase_order_id=po.id,
        communication_type=communication_type,
        subject=subject,
        recipient_email=recipient_email,
        status=status,
        extra_data=extra_data,
        created_by=user.id if user else None
    )
    db.add(communication)
    return communication


def _report_data(po: PurchaseOrder) -> dict:
    supplier = po.supplier
    return {
        "po_number": po.po_number,
        "status": po.status,
        "order_date": po.order_date,
        "expected_delivery_date": po.expected_delivery_date,
        "contact_person": po.contact_person,
        "shipping_method": po.shipping_method,
        "notes": po.notes,
        "total_amount": po.total_amount,
        "project_name": po.project_name,
        "supplier": {
            "company_name": supplier.company_name if supplier else None,
            "currency": supplier.currency if supplier else None,
            "billing_address": supplier.billing_address if supplier else None,
        },
        "items": [
            {
                "part_number": item.part_number,
                "part_name": item.part_name,
                "quantity_ordered": item.quantity_ordered,
                "unit_price": item.unit_price,
                "total_price": item.total_price,
            }
            for item in po.items
        ],
    }


@router.get("/", response_model=List[PurchaseOrderSchema])
async def list_purchase_orders(
    search: Optional[str] = Query(None, description="Search by PO number, supplier or project"),
    status: Optional[str] = None,
    supplier_id: Optional[int] = None,
    project_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(PurchaseOrder).options(
        joinedload(PurchaseOrder.supplier),
        joinedload(PurchaseOrder.project),
        joinedload(PurchaseOrder.items).joinedload(PurchaseOrderItem.part)
    ).filter(PurchaseOrder.company_id == current_user.company_id)

    if status:
        query = query.filter(PurchaseOrder.status == status)
    if supplier_id:
        query = query.filter(PurchaseOrder.supplier_id == supplier_id)
    if project_id:
        query = query.filter(PurchaseOrder.project_id == project_id)
    if search:
        search_term = f"%{search}%"
        query = query.outerjoin(Supplier, PurchaseOrder.supplier_id == Supplier.id).outerjoin(
            Project, PurchaseOrder.project_id == Project.id
        ).filter(
            (PurchaseOrder.po_number.ilike(search_term)) |
            (Supplier.company_name.ilike(search_term)) |
            (Project.name.ilike(search_term))
        )

    return query.order_by(desc(PurchaseOrder.created_at), desc(PurchaseOrder.id)).all()


@router.get("/stats")
async def get_purchase_order_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    orders = db.query(PurchaseOrder).filter(PurchaseOrder.company_id == current_user.company_id).all()
    return {
        "total": len(orders),
        "pending": sum(1 for po in orders if po.status == "pending"),
        "ordered": sum(1 for po in orders if po.status in ("ordered", "partially_received")),
        "received": sum(1 for po in orders if po.status == "received"),
        "total_amount": round(sum(po.total_amount or 0 for po in orders if po.status != "cancelled"), 2)
    }


@router.get("/{po_id}", response_model=PurchaseOrderSchema)
async def get_purchase_order(
    po_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return get_company_po(db, po_id, current_user.company_id)


@router.post("/", response_model=PurchaseOrderSchema, status_code=status.HTTP_201_CREATED)
async def create_purchase_order(
    po_data: PurchaseOrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Create a purchase order with its lines"""
    require_write_access(current_user)

    if po_data.status not in PO_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(PO_STATUSES)}")
    if po_data.shipping_method not in SHIPPING_METHODS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid shipping method. Must be one of: {', '.join(SHIPPING_METHODS)}"
        )

    supplier = _get_supplier(db, po_data.supplier_id, current_user.company_id)
    _check_project(db, po_data.project_id, current_user.company_id)
    items = _build_items(db, po_data.items, current_user.company_id)

    po = PurchaseOrder(
        company_id=current_user.company_id,
        po_number=generate_po_number(db, current_user.company_id),
        supplier_id=supplier.id,
        project_id=po_data.project_id,
        order_date=po_data.order_date,
        expected_delivery_date=po_data.expected_delivery_date or expected_delivery(po_data.order_date, supplier.lead_time_days),
        status=po_data.status,
        notes=po_data.notes,
        contact_person=po_data.contact_person or supplier.primary_contact_name,
        shipping_method=po_data.shipping_method,
        tracking_number=po_data.tracking_number,
        created_by=current_user.id,
        items=items
    )
    po.total_amount = order_total(items)

    try:
        db.add(po)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to create purchase order for supplier {supplier.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create purchase order")

    logger.info(f"Purchase order created: {po.po_number} ({len(items)} items) by user {current_user.id}")

    return get_company_po(db, po.id, current_user.company_id)


@router.put("/{po_id}", response_model=PurchaseOrderSchema)
async def update_purchase_order(
    po_id: int,
    po_data: PurchaseOrderUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Update order details; sending items replaces every line"""
    require_write_access(current_user)

    po = get_company_po(db, po_id, current_user.company_id)
    update_data = po_data.model_dump(exclude_unset=True, exclude={"items"})

    for field in ("supplier_id", "order_date"):
        if field in update_data and update_data[field] is None:
            raise HTTPException(status_code=400, detail="Purchase order must have a supplier and an order date")

    if update_data.get("supplier_id"):
        _get_supplier(db, update_data["supplier_id"], current_user.company_id)
    if "project_id" in update_data:
        _check_project(db, update_data["project_id"], current_user.company_id)
    if update_data.get("shipping_method") and update_data["shipping_method"] not in SHIPPING_METHODS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid shipping method. Must be one of: {', '.join(SHIPPING_METHODS)}"
        )

    for field, value in update_data.items():
        setattr(po, field, value)

    if po_data.items is not None:
        if any((item.quantity_received or 0) > 0 for item in po.items):
            raise HTTPException(status_code=400, detail="Cannot replace items after goods were received")
        po.items = _build_items(db, po_data.items, current_user.company_id)
        po.total_amount = order_total(po.items)

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update purchase order {po_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update purchase order")

    logger.info(f"Updated purchase order {po.po_number}")

    return get_company_po(db, po.id, current_user.company_id)


@router.put("/{po_id}/status", response_model=PurchaseOrderSchema)
async def update_purchase_order_status(
    po_id: int,
    data: PurchaseOrderStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    if data.status not in PO_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(PO_STATUSES)}")

    po = get_company_po(db, po_id, current_user.company_id)
    old_status = po.status
    if old_status == data.status:
        raise HTTPException(status_code=400, detail=f"Purchase order is already {data.status}")

    po.status = data.status
    if data.status == "received" and not po.actual_delivery_date:
        po.actual_delivery_date = date.today()

    log_po_communication(
        db, po, "status_change", current_user,
        subject=f"Status changed from {old_status} to {data.status}",
        extra_data={"old_status": old_status, "new_status": data.status, "notes": data.notes}
    )
    db.commit()

    logger.info(f"Purchase order {po.po_number}: {old_status} -> {data.status}")

    return get_company_po(db, po.id, current_user.company_id)


@router.post("/{po_id}/receive", response_model=PurchaseOrderSchema)
async def receive_purchase_order(
    po_id: int,
    data: PurchaseOrderReceive,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Record delivered quantities and add them to stock"""
    require_write_access(current_user)

    po = get_company_po(db, po_id, current_user.company_id)
    if po.status == "cancelled":
        raise HTTPException(status_code=400, detail="Cannot receive a cancelled purchase order")
    if not data.lines:
        raise HTTPException(status_code=400, detail="Nothing to receive")

    items_by_id = {item.id: item for item in po.items}
    requested = Counter()
    for line in data.lines:
        if line.item_id not in items_by_id:
            raise HTTPException(status_code=400, detail=f"Item {line.item_id} is not on this purchase order")
        requested[line.item_id] += line.quantity

    # Lines repeating an item count together against what is outstanding
    for item_id, quantity in requested.items():
        item = items_by_id[item_id]
        outstanding = item.quantity_ordered - (item.quantity_received or 0)
        if quantity > outstanding:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot receive {quantity} of {item.part_name}: only {outstanding} outstanding"
            )

    received = []
    for line in data.lines:
        item = items_by_id[line.item_id]
        item.quantity_received = (item.quantity_received or 0) + line.quantity
        item.part.quantity_in_stock = (item.part.quantity_in_stock or 0) + line.quantity
        received.append({"item_id": item.id, "part_number": item.part_number, "quantity": line.quantity})

    old_status = po.status
    new_status = received_status(po.items)
    if new_status and new_status != old_status:
        po.status = new_status
        if new_status == "received":
            po.actual_delivery_date = date.today()
        log_po_communication(
            db, po, "status_change", current_user,
            subject=f"Status changed from {old_status} to {new_status}",
            extra_data={"old_status": old_status, "new_status": new_status, "received": received}
        )

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to receive purchase order {po_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to receive purchase order")

    logger.info(f"Received {sum(r['quantity'] for r in received)} unit(s) on {po.po_number}, status {po.status}")

    return get_company_po(db, po.id, current_user.company_id)


@router.delete("/{po_id}")
async def delete_purchase_order(
    po_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_admin(current_user)

    po = get_company_po(db, po_id, current_user.company_id)
    po_number = po.po_number

    # Supplier communications outlive the order they referred to
    db.query(SupplierCommunication).filter(
        SupplierCommunication.related_po_id == po.id
    ).update({SupplierCommunication.related_po_id: None}, synchronize_session=False)

    db.delete(po)
    db.commit()

    logger.info(f"Deleted purchase order {po_number}")

    return {"message": "Purchase order deleted successfully"}


# ============================================================================
# Documents & communication
# ============================================================================

@router.get("/{po_id}/pdf")
async def download_purchase_order_pdf(
    po_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    po = get_company_po(db, po_id, current_user.company_id)

    pdf = PurchaseOrderReportService().generate_pdf(_report_data(po))

    log_po_communication(db, po, "pdf_downloaded", current_user, subject=f"{po.po_number}.pdf")
    db.commit()

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{po.po_number}.pdf"'}
    )


@router.post("/{po_id}/send-email")
@limiter.limit(RateLimits.EMAIL)
async def send_purchase_order_email(
    request: Request,
    po_id: int,
    data: PurchaseOrderEmail,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Email the purchase order PDF to the supplier"""
    require_write_access(current_user)

    recipient = (data.recipient_email or "").strip()
    subject = (data.subject or "").strip()
    if not recipient or not subject:
        raise HTTPException(status_code=400, detail="Missing email recipient or subject")
    cc_emails = [e.strip() for e in (data.cc_emails or []) if e and e.strip()]
    for email in [recipient] + cc_emails:
        if not EMAIL_PATTERN.match(email):
            raise HTTPException(status_code=400, detail=f"Invalid email address: {email}")

    po = get_company_po(db, po_id, current_user.company_id)

    service = PurchaseOrderReportService()
    report = _report_data(po)
    sent = service.send_purchase_order_email(
        recipient, subject, report, service.generate_pdf(report), data.message, cc_emails
    )

    log_po_communication(
        db, po, "email_sent" if sent else "email_bounced", current_user,
        subject=subject,
        recipient_email=recipient,
        status="sent" if sent else "failed",
        extra_data={"cc": cc_emails, "message": data.message}
    )
    db.commit()

    if not sent:
        logger.warning(f"Purchase order {po.po_number} email to {recipient} failed")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to send email")

    logger.info(f"Purchase order {po.po_number} emailed to {recipient}")

    return {"success": True, "message": "Email sent successfully"}


@router.get("/{po_id}/timeline", response_model=List[PurchaseOrderCommunicationSchema])
async def get_purchase_order_timeline(
    po_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    po = get_company_po(db, po_id, current_user.company_id)

    return db.query(PurchaseOrderCommunication).filter(
        PurchaseOrderCommunication.purchase_order_id == po.id
    ).order_by(desc(PurchaseOrderCommunication.created_at), desc(PurchaseOrderCommunication.id)).all()
