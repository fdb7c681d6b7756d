"""
Spare parts inventory and part usage on tickets
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc
from typing import Optional, List
from datetime import datetime
import logging

from liftdesk.database import get_db
from liftdesk.models import Part, PartUsage, Supplier, User
from liftdesk.schemas import (
    PartCreate, PartUpdate, Part as PartSchema,
    PartUsageCreate, PartUsage as PartUsageSchema
)
from liftdesk.api.auth import get_current_user, require_write_access
from liftdesk.api.tickets import get_company_ticket, get_company_technician
from liftdesk.api.ticket_timeline import log_part_used
from liftdesk.services.inventory import (
    PART_CATEGORIES, PART_LOCATIONS, STOCK_STATUSES, calculate_part_stats
)
from liftdesk.services.export import PART_COLUMNS, part_rows, to_csv, to_xlsx

logger = logging.getLogger(__name__)

router = APIRouter()

# Part usage lives under the ticket URL space
ticket_parts_router = APIRouter(prefix="/tickets", tags=["Ticket Parts"])


def _validate_part_fields(db: Session, data: dict, company_id: int):
    for field in ("part_number", "name"):
        if field in data and (not data[field] or not data[field].strip()):
            raise HTTPException(status_code=400, detail=f"{field} is required")

    if data.get("category") and data["category"] not in PART_CATEGORIES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid category. Must be one of: {', '.join(PART_CATEGORIES)}"
        )
    if data.get("location") and data["location"] not in PART_LOCATIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid location. Must be one of: {', '.join(PART_LOCATIONS)}"
        )

    for field in ("unit_price", "quantity_in_stock", "minimum_stock_level", "reorder_point"):
        if data.get(field) is not None and data[field] < 0:
            raise HTTPException(status_code=400, detail=f"{field} cannot be negative")

    if data.get("supplier_id"):
        supplier = db.query(Supplier).filter(
            Supplier.id == data["supplier_id"],
            Supplier.company_id == company_id
        ).first()
        if not supplier:
            raise HTTPException(status_code=400, detail="Invalid supplier")


def _check_part_number(db: Session, part_number: str, company_id: int, exclude_id: Optional[int] = None):
    query = db.query(Part).filter(
        Part.company_id == company_id,
        Part.part_number == part_number
    )
    if exclude_id:
        query = query.filter(Part.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=400, detail=f"Part number {part_number} already exists")


def get_company_part(db: Session, part_id: int, company_id: int) -> Part:
    part = db.query(Part).filter(
        Part.id == part_id,
        Part.company_id == company_id,
        Part.is_active == True
    ).first()
    if not part:
        raise HTTPException(status_code=404, detail="Part not found")
    return part


def _filtered_parts(
    db: Session,
    company_id: int,
    search: Optional[str] = None,
    category: Optional[str] = None,
    location: Optional[str] = None,
    stock_status: Optional[str] = None
) -> List[Part]:
    query = db.query(Part).filter(Part.company_id == company_id, Part.is_active == True)

    if category:
        query = query.filter(Part.category == category)
    if location:
        query = query.filter(Part.location == location)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            (Part.name.ilike(search_term)) |
            (Part.part_number.ilike(search_term)) |
            (Part.manufacturer.ilike(search_term)) |
            (Part.description.ilike(search_term))
        )

    parts = query.order_by(Part.name).all()

    # Stock status is derived, so it is filtered after loading
    if stock_status:
        if stock_status not in STOCK_STATUSES:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid stock status. Must be one of: {', '.join(STOCK_STATUSES)}"
            )
        parts = [p for p in parts if p.stock_status == stock_status]

    return parts


@router.get("/", response_model=List[PartSchema])
async def list_parts(
    search: Optional[str] = Query(None, description="Search by name, part number, manufacturer or description"),
    category: Optional[str] = None,
    location: Optional[str] = None,
    stock_status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _filtered_parts(db, current_user.company_id, search, category, location, stock_status)


@router.get("/stats")
async def get_part_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    parts = db.query(Part).filter(
        Part.company_id == current_user.company_id,
        Part.is_active == True
    ).all()
    return calculate_part_stats(parts)


@router.get("/export")
async def export_parts(
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    search: Optional[str] = None,
    category: Optional[str] = None,
    location: Optional[str] = None,
    stock_status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Export the filtered inventory as CSV or Excel"""
    parts = _filtered_parts(db, current_user.company_id, search, category, location, stock_status)
    rows = part_rows(parts)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    logger.info(f"Exporting {len(rows)} parts as {format} for company {current_user.company_id}")

    if format == "xlsx":
        return StreamingResponse(
            to_xlsx(PART_COLUMNS, rows, "Inventory"),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f"attachment; filename=inventory_{timestamp}.xlsx"}
        )

    return StreamingResponse(
        iter([to_csv(PART_COLUMNS, rows)]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename=inventory_{timestamp}.csv"}
    )


@router.get("/{part_id}", response_model=PartSchema)
async def get_part(
    part_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return get_company_part(db, part_id, current_user.company_id)


@router.post("/", response_model=PartSchema, status_code=status.HTTP_201_CREATED)
async def create_part(
    part_data: PartCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    data = part_data.model_dump()
    _validate_part_fields(db, data, current_user.company_id)
    data["part_number"] = data["part_number"].strip()
    _check_part_number(db, data["part_number"], current_user.company_id)

    part = Part(company_id=current_user.company_id, **data)

    db.add(part)
    db.commit()
    db.refresh(part)

    logger.info(f"Created part {part.part_number} ({part.id}) for company {current_user.company_id}")

    return part


@router.put("/{part_id}", response_model=PartSchema)
async def update_part(
    part_id: int,
    part_data: PartUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    part = get_company_part(db, part_id, current_user.company_id)
    update_data = part_data.model_dump(exclude_unset=True)

    _validate_part_fields(db, update_data, current_user.company_id)
    if update_data.get("part_number"):
        update_data["part_number"] = update_data["part_number"].strip()
        _check_part_number(db, update_data["part_number"], current_user.company_id, exclude_id=part.id)

    for field, value in update_data.items():
        setattr(part, field, value)

    db.commit()
    db.refresh(part)

    logger.info(f"Updated part {part.id}")

    return part


@router.delete("/{part_id}")
async def delete_part(
    part_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Soft delete - usage history keeps pointing at the part"""
    require_write_access(current_user)

    part = get_company_part(db, part_id, current_user.company_id)
    part.is_active = False
    db.commit()

    logger.info(f"Deactivated part {part_id}")

    return {"message": "Part deleted successfully"}


@router.get("/{part_id}/usage", response_model=List[PartUsageSchema])
async def get_part_usage(
    part_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """The 20 most recent uses of a part"""
    part = get_company_part(db, part_id, current_user.company_id)

    return db.query(PartUsage).options(
        joinedload(PartUsage.ticket)
    ).filter(
        PartUsage.part_id == part.id
    ).order_by(desc(PartUsage.used_at), desc(PartUsage.id)).limit(20).all()


# ============================================================================
# Parts used on a ticket
# ============================================================================

@ticket_parts_router.get("/{ticket_id}/parts")
async def list_ticket_parts(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ticket = get_company_ticket(db, ticket_id, current_user.company_id)

    usages = db.query(PartUsage).options(
        joinedload(PartUsage.part)
    ).filter(
        PartUsage.ticket_id == ticket.id
    ).order_by(PartUsage.used_at, PartUsage.id).all()

    total_cost = sum((u.unit_price_at_use or 0) * u.quantity_used for u in usages)

    return {
        "parts": [PartUsageSchema.model_validate(u) for u in usages],
        "total_cost": round(total_cost, 2)
    }


@ticket_parts_router.post("/{ticket_id}/parts", response_model=PartUsageSchema, status_code=status.HTTP_201_CREATED)
async def add_ticket_part(
    ticket_id: int,
    usage_data: PartUsageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Record a part used on a ticket and take it out of stock"""
    require_write_access(current_user)

    ticket = get_company_ticket(db, ticket_id, current_user.company_id)
    part = get_company_part(db, usage_data.part_id, current_user.company_id)

    technician_id = usage_data.technician_id or ticket.assigned_technician_id
    if usage_data.technician_id:
        get_company_technician(db, usage_data.technician_id, current_user.company_id)

    available = part.quantity_in_stock or 0
    if available < usage_data.quantity_used:
        shortage = usage_data.quantity_used - available
        logger.warning(
            f"Insufficient stock for part {part.part_number}: "
            f"requested {usage_data.quantity_used}, available {available}"
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": f"Insufficient stock for {part.name}",
                "part_id": part.id,
                "part_number": part.part_number,
                "requested": usage_data.quantity_used,
                "available": available,
                "shortage": shortage
            }
        )

    usage = PartUsage(
        company_id=current_user.company_id,
        part_id=part.id,
        ticket_id=ticket.id,
        technician_id=technician_id,
        quantity_used=usage_data.quantity_used,
        unit_price_at_use=part.unit_price,
        notes=usage_data.notes
    )
    part.quantity_in_stock = available - usage_data.quantity_used

    db.add(usage)
    log_part_used(db, ticket, f"{part.name} ({part.part_number})", usage_data.quantity_used, current_user)
    db.commit()
    db.refresh(usage)

    logger.info(
        f"Used {usage.quantity_used} x {part.part_number} on ticket {ticket.ticket_number}, "
        f"{part.quantity_in_stock} left"
    )

    return usage


@ticket_parts_router.delete("/{ticket_id}/parts/{usage_id}")
async def remove_ticket_part(
    ticket_id: int,
    usage_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Remove a usage record. Stock is not returned."""
    require_write_access(current_user)

    ticket = get_company_ticket(db, ticket_id, current_user.company_id)

    usage = db.query(PartUsage).filter(
        PartUsage.id == usage_id,
        PartUsage.ticket_id == ticket.id
    ).first()
    if not usage:
        raise HTTPException(status_code=404, detail="Part usage not found")

    db.delete(usage)
    db.commit()

    logger.info(f"Removed part usage {usage_id} from ticket {ticket.ticket_number}")

    return {"message": "Part usage removed"}
