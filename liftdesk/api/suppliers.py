from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import Optional, List
import logging

from liftdesk.database import get_db
from liftdesk.models import Supplier, SupplierCommunication, PurchaseOrder, User
from liftdesk.schemas import (
    SupplierCreate, SupplierUpdate, Supplier as SupplierSchema,
    SupplierCommunicationCreate, SupplierCommunication as SupplierCommunicationSchema,
    PurchaseOrder as PurchaseOrderSchema
)
from liftdesk.api.auth import get_current_user, require_admin, require_write_access
from liftdesk.services.purchasing import (
    SUPPLIER_TYPES, SUPPLIER_STATUSES, COMMUNICATION_TYPES, COMMUNICATION_CATEGORIES,
    calculate_supplier_metrics
)
from liftdesk.utils.formatting import contact_links

logger = logging.getLogger(__name__)

router = APIRouter()


def generate_supplier_code(db: Session, company_id: int) -> str:
    """Generate the next supplier code in format SUP-XXXX"""
    codes = db.query(Supplier.supplier_code).filter(
        Supplier.company_id == company_id,
        Supplier.supplier_code.like("SUP-%")
    ).all()

    highest = 0
    for (code,) in codes:
        try:
            highest = max(highest, int(code.split("-")[-1]))
        except ValueError:
            continue

    return f"SUP-{highest + 1:04d}"


def _validate_supplier_fields(data: dict):
    if "company_name" in data and (not data["company_name"] or not data["company_name"].strip()):
        raise HTTPException(status_code=400, detail="Company name is required")
    if data.get("supplier_type") and data["supplier_type"] not in SUPPLIER_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid supplier type. Must be one of: {', '.join(SUPPLIER_TYPES)}"
        )
    if data.get("status") and data["status"] not in SUPPLIER_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status. Must be one of: {', '.join(SUPPLIER_STATUSES)}"
        )
    if data.get("lead_time_days") is not None and data["lead_time_days"] < 0:
        raise HTTPException(status_code=400, detail="Lead time cannot be negative")
    if data.get("overall_rating") is not None and not 0 <= data["overall_rating"] <= 5:
        raise HTTPException(status_code=400, detail="Rating must be between 0 and 5")


def get_company_supplier(db: Session, supplier_id: int, company_id: int) -> Supplier:
    supplier = db.query(Supplier).filter(
        Supplier.id == supplier_id,
        Supplier.company_id == company_id
    ).first()
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    return supplier


def _with_metrics(db: Session, supplier: Supplier) -> SupplierSchema:
    open_communications = db.query(SupplierCommunication).filter(
        SupplierCommunication.supplier_id == supplier.id,
        SupplierCommunication.status == "open"
    ).count()
    metrics = calculate_supplier_metrics(supplier.purchase_orders)
    return SupplierSchema.model_validate(supplier).model_copy(
        update={**metrics, "open_communications": open_communications}
    )


@router.get("/", response_model=List[SupplierSchema])
async def list_suppliers(
    search: Optional[str] = Query(None, description="Search by name, code or contact"),
    supplier_type: Optional[str] = None,
    status: Optional[str] = Query("active", description="Supplier status, or 'all'"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(Supplier).filter(Supplier.company_id == current_user.company_id)

    if status and status != "all":
        query = query.filter(Supplier.status == status)
    if supplier_type:
        query = query.filter(Supplier.supplier_type == supplier_type)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            (Supplier.company_name.ilike(search_term)) |
            (Supplier.supplier_code.ilike(search_term)) |
            (Supplier.primary_contact_name.ilike(search_term)) |
            (Supplier.primary_contact_email.ilike(search_term))
        )

    suppliers = query.order_by(desc(Supplier.preferred_supplier), Supplier.company_name).all()
    return [_with_metrics(db, s) for s in suppliers]


@router.get("/stats")
async def get_supplier_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    suppliers = db.query(Supplier).filter(Supplier.company_id == current_user.company_id).all()

    total_spend = 0.0
    for supplier in suppliers:
        total_spend += calculate_supplier_metrics(supplier.purchase_orders)["total_spend"]

    return {
        "total": len(suppliers),
        "active": sum(1 for s in suppliers if s.status == "active"),
        "preferred": sum(1 for s in suppliers if s.preferred_supplier),
        "total_spend": round(total_spend, 2)
    }


@router.get("/{supplier_id}")
async def get_supplier_details(
    supplier_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Supplier card with its communications and purchase orders"""
    supplier = get_company_supplier(db, supplier_id, current_user.company_id)

    communications = db.query(SupplierCommunication).filter(
        SupplierCommunication.supplier_id == supplier.id
    ).order_by(desc(SupplierCommunication.created_at), desc(SupplierCommunication.id)).all()

    purchase_orders = db.query(PurchaseOrder).filter(
        PurchaseOrder.supplier_id == supplier.id
    ).order_by(desc(PurchaseOrder.order_date), desc(PurchaseOrder.id)).all()

    return {
        "supplier": _with_metrics(db, supplier),
        "communications": [SupplierCommunicationSchema.model_validate(c) for c in communications],
        "purchase_orders": [PurchaseOrderSchema.model_validate(po) for po in purchase_orders],
        "contact": contact_links(
            supplier.primary_contact_phone or supplier.mobile_phone or supplier.office_phone,
            supplier.primary_contact_email
        )
    }


@router.post("/", response_model=SupplierSchema, status_code=status.HTTP_201_CREATED)
async def create_supplier(
    supplier_data: SupplierCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    data = supplier_data.model_dump()
    _validate_supplier_fields(data)
    data["company_name"] = data["company_name"].strip()

    supplier = Supplier(
        company_id=current_user.company_id,
        supplier_code=generate_supplier_code(db, current_user.company_id),
        **data
    )

    db.add(supplier)
    db.commit()
    db.refresh(supplier)

    logger.info(f"Created supplier {supplier.supplier_code} '{supplier.company_name}' for company {current_user.company_id}")

    return _with_metrics(db, supplier)


@router.put("/{supplier_id}", response_model=SupplierSchema)
async def update_supplier(
    supplier_id: int,
    supplier_data: SupplierUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    supplier = get_company_supplier(db, supplier_id, current_user.company_id)
    update_data = supplier_data.model_dump(exclude_unset=True)
    _validate_supplier_fields(update_data)

    for field, value in update_data.items():
        setattr(supplier, field, value)

    db.commit()
    db.refresh(supplier)

    logger.info(f"Updated supplier {supplier.supplier_code}")

    return _with_metrics(db, supplier)


@router.delete("/{supplier_id}")
async def delete_supplier(
    supplier_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_admin(current_user)

    supplier = get_company_supplier(db, supplier_id, current_user.company_id)

    po_count = db.query(PurchaseOrder).filter(PurchaseOrder.supplier_id == supplier.id).count()
    if po_count:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete supplier with {po_count} purchase order(s). Set it inactive instead."
        )

    db.delete(supplier)
    db.commit()

    logger.info(f"Deleted supplier {supplier_id}")

    return {"message": "Supplier deleted successfully"}


# ============================================================================
# Communications
# ============================================================================

@router.get("/{supplier_id}/communications", response_model=List[SupplierCommunicationSchema])
async def list_supplier_communications(
    supplier_id: int,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    supplier = get_company_supplier(db, supplier_id, current_user.company_id)

    query = db.query(SupplierCommunication).filter(SupplierCommunication.supplier_id == supplier.id)
    if status:
        query = query.filter(SupplierCommunication.status == status)

    return query.order_by(desc(SupplierCommunication.created_at), desc(SupplierCommunication.id)).all()


@router.post("/{supplier_id}/communications", response_model=SupplierCommunicationSchema, status_code=status.HTTP_201_CREATED)
async def log_supplier_communication(
    supplier_id: int,
    data: SupplierCommunicationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    supplier = get_company_supplier(db, supplier_id, current_user.company_id)

    if data.communication_type not in COMMUNICATION_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid communication type. Must be one of: {', '.join(COMMUNICATION_TYPES)}"
        )
    if data.category not in COMMUNICATION_CATEGORIES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid category. Must be one of: {', '.join(COMMUNICATION_CATEGORIES)}"
        )
    if data.direction not in ("inbound", "outbound"):
        raise HTTPException(status_code=400, detail="Invalid direction. Must be one of: inbound, outbound")

    if data.related_po_id:
        po = db.query(PurchaseOrder).filter(
            PurchaseOrder.id == data.related_po_id,
            PurchaseOrder.supplier_id == supplier.id
        ).first()
        if not po:
            raise HTTPException(status_code=400, detail="Purchase order does not belong to this supplier")

    communication = SupplierCommunication(
        company_id=current_user.company_id,
        supplier_id=supplier.id,
        created_by=current_user.id,
        status="open",
        **data.model_dump()
    )

    db.add(communication)
    db.commit()
    db.refresh(communication)

    logger.info(f"Logged {communication.communication_type} communication with supplier {supplier.supplier_code}")

    return communication


@router.put("/{supplier_id}/communications/{communication_id}/close", response_model=SupplierCommunicationSchema)
async def close_supplier_communication(
    supplier_id: int,
    communication_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    supplier = get_company_supplier(db, supplier_id, current_user.company_id)

    communication = db.query(SupplierCommunication).filter(
        SupplierCommunication.id == communication_id,
        SupplierCommunication.supplier_id == supplier.id
    ).first()
    if not communication:
        raise HTTPException(status_code=404, detail="Communication not found")

    communication.status = "closed"
    db.commit()
    db.refresh(communication)

    return communication
