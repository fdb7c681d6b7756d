"""
Project API endpoints
Modernization, installation and renovation jobs tracked through milestones
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc, func
from typing import Optional, List
from datetime import datetime, date
import logging

from liftdesk.database import get_db
from liftdesk.models import Project, Milestone, Client, Building, Technician, PurchaseOrder, User
from liftdesk.schemas import (
    ProjectCreate, ProjectUpdate, Project as ProjectSchema,
    MilestoneCreate, MilestoneStatusUpdate, Milestone as MilestoneSchema,
    Client as ClientSchema, Building as BuildingSchema, Technician as TechnicianSchema,
    PurchaseOrder as PurchaseOrderSchema
)
from liftdesk.api.auth import get_current_user, require_admin, require_write_access
from liftdesk.services.projects import (
    PROJECT_TYPES, PROJECT_STATUSES, PROJECT_PRIORITIES, MILESTONE_STATUSES,
    calculate_progress, calculate_project_stats, build_timeline
)

logger = logging.getLogger(__name__)

router = APIRouter()


def generate_project_number(db: Session, company_id: int) -> str:
    """Generate the next project number in format PRJ-YYYY-XXXX"""
    prefix = f"PRJ-{datetime.utcnow().year}-"

    latest = db.query(Project).filter(
        Project.company_id == company_id,
        Project.project_number.like(f"{prefix}%")
    ).order_by(desc(Project.project_number)).first()

    if latest:
        try:
            new_num = int(latest.project_number.split("-")[-1]) + 1
        except ValueError:
            new_num = 1
    else:
        new_num = 1

    return f"{prefix}{new_num:04d}"


def get_company_project(db: Session, project_id: int, company_id: int) -> Project:
    project = db.query(Project).options(
        joinedload(Project.client),
        joinedload(Project.building)
    ).filter(
        Project.id == project_id,
        Project.company_id == company_id
    ).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _validate_project_fields(db: Session, data: dict, company_id: int, current: Optional[Project] = None):
    if "name" in data and (not data["name"] or not data["name"].strip()):
        raise HTTPException(status_code=400, detail="Project name is required")
    if data.get("project_type") and data["project_type"] not in PROJECT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid project type. Must be one of: {', '.join(PROJECT_TYPES)}"
        )
    if data.get("status") and data["status"] not in PROJECT_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status. Must be one of: {', '.join(PROJECT_STATUSES)}"
        )
    if data.get("priority") and data["priority"] not in PROJECT_PRIORITIES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid priority. Must be one of: {', '.join(PROJECT_PRIORITIES)}"
        )

    client_id = data.get("client_id", current.client_id if current else None)
    building_id = data.get("building_id", current.building_id if current else None)

    if "client_id" in data:
        client = db.query(Client).filter(Client.id == client_id, Client.company_id == company_id).first()
        if not client:
            raise HTTPException(status_code=400, detail="Invalid client")
    if "client_id" in data or "building_id" in data:
        building = db.query(Building).filter(Building.id == building_id, Building.company_id == company_id).first()
        if not building:
            raise HTTPException(status_code=400, detail="Invalid building")
        if building.client_id != client_id:
            raise HTTPException(status_code=400, detail="Building does not belong to the selected client")

    if data.get("lead_technician_id"):
        technician = db.query(Technician).filter(
            Technician.id == data["lead_technician_id"],
            Technician.company_id == company_id
        ).first()
        if not technician:
            raise HTTPException(status_code=400, detail="Invalid technician")

    start = data.get("estimated_start_date", current.estimated_start_date if current else None)
    end = data.get("estimated_end_date", current.estimated_end_date if current else None)
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="Estimated end date cannot be before the start date")


def _refresh_progress(db: Session, project: Project):
    milestones = db.query(Milestone).filter(Milestone.project_id == project.id).all()
    project.progress_percentage = calculate_progress(milestones)


@router.get("/", response_model=List[ProjectSchema])
async def list_projects(
    search: Optional[str] = Query(None, description="Search by name, number or description"),
    status: Optional[str] = None,
    project_type: Optional[str] = None,
    client_id: Optional[int] = None,
    building_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(Project).options(
        joinedload(Project.client),
        joinedload(Project.building)
    ).filter(Project.company_id == current_user.company_id)

    if status:
        query = query.filter(Project.status == status)
    if project_type:
        query = query.filter(Project.project_type == project_type)
    if client_id:
        query = query.filter(Project.client_id == client_id)
    if building_id:
        query = query.filter(Project.building_id == building_id)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            (Project.name.ilike(search_term)) |
            (Project.project_number.ilike(search_term)) |
            (Project.description.ilike(search_term))
        )

    return query.order_by(desc(Project.created_at), desc(Project.id)).all()


@router.get("/stats")
async def get_project_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    projects = db.query(Project).filter(Project.company_id == current_user.company_id).all()
    return calculate_project_stats(projects)


@router.get("/{project_id}")
async def get_project_details(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Project with its client, building, lead technician, milestones, POs and timeline"""
    project = get_company_project(db, project_id, current_user.company_id)

    milestones = db.query(Milestone).filter(
        Milestone.project_id == project.id
    ).order_by(Milestone.order_index, Milestone.id).all()

    purchase_orders = db.query(PurchaseOrder).filter(
        PurchaseOrder.project_id == project.id
    ).order_by(desc(PurchaseOrder.order_date), desc(PurchaseOrder.id)).all()

    return {
        "project": ProjectSchema.model_validate(project),
        "client": ClientSchema.model_validate(project.client) if project.client else None,
        "building": BuildingSchema.model_validate(project.building) if project.building else None,
        "lead_technician": TechnicianSchema.model_validate(project.lead_technician) if project.lead_technician else None,
        "milestones": [MilestoneSchema.model_validate(m) for m in milestones],
        "purchase_orders": [PurchaseOrderSchema.model_validate(po) for po in purchase_orders],
        "timeline": build_timeline(project, milestones)
    }


@router.post("/", response_model=ProjectSchema, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    data = project_data.model_dump()
    _validate_project_fields(db, data, current_user.company_id)
    data["name"] = data["name"].strip()

    project = Project(
        company_id=current_user.company_id,
        project_number=generate_project_number(db, current_user.company_id),
        status="planning",
        progress_percentage=0,
        created_by=current_user.id,
        **data
    )

    db.add(project)
    db.commit()
    db.refresh(project)

    logger.info(f"Created project {project.project_number} '{project.name}' for company {current_user.company_id}")

    return project


@router.put("/{project_id}", response_model=ProjectSchema)
async def update_project(
    project_id: int,
    project_data: ProjectUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    project = get_company_project(db, project_id, current_user.company_id)
    update_data = project_data.model_dump(exclude_unset=True)
    _validate_project_fields(db, update_data, current_user.company_id, current=project)

    for field, value in update_data.items():
        setattr(project, field, value)

    if update_data.get("status") == "in_progress" and not project.actual_start_date:
        project.actual_start_date = date.today()
    if update_data.get("status") == "completed" and not project.actual_end_date:
        project.actual_end_date = date.today()

    db.commit()
    db.refresh(project)

    logger.info(f"Updated project {project.project_number}")

    return project


@router.delete("/{project_id}")
async def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Delete a project and its milestones; linked POs are kept and unlinked"""
    require_admin(current_user)

    project = get_company_project(db, project_id, current_user.company_id)
    project_number = project.project_number

    db.query(PurchaseOrder).filter(PurchaseOrder.project_id == project.id).update(
        {PurchaseOrder.project_id: None}, synchronize_session=False
    )
    db.delete(project)
    db.commit()

    logger.info(f"Deleted project {project_number}")

    return {"message": "Project deleted successfully"}


# ============================================================================
# Milestones
# ============================================================================

@router.get("/{project_id}/milestones", response_model=List[MilestoneSchema])
async def list_milestones(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = get_company_project(db, project_id, current_user.company_id)
    return db.query(Milestone).filter(
        Milestone.project_id == project.id
    ).order_by(Milestone.order_index, Milestone.id).all()


@router.post("/{project_id}/milestones", response_model=MilestoneSchema, status_code=status.HTTP_201_CREATED)
async def add_milestone(
    project_id: int,
    milestone_data: MilestoneCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Append a milestone after the existing ones"""
    require_write_access(current_user)

    project = get_company_project(db, project_id, current_user.company_id)

    if not milestone_data.name or not milestone_data.name.strip():
        raise HTTPException(status_code=400, detail="Milestone name is required")
    if milestone_data.assigned_to:
        technician = db.query(Technician).filter(
            Technician.id == milestone_data.assigned_to,
            Technician.company_id == current_user.company_id
        ).first()
        if not technician:
            raise HTTPException(status_code=400, detail="Invalid technician")

    max_order = db.query(func.max(Milestone.order_index)).filter(
        Milestone.project_id == project.id
    ).scalar()

    data = milestone_data.model_dump()
    data["name"] = data["name"].strip()
    milestone = Milestone(
        project_id=project.id,
        status="not_started",
        order_index=(max_order + 1) if max_order is not None else 0,
        source="manual",
        **data
    )

    db.add(milestone)
    db.flush()
    _refresh_progress(db, project)
    db.commit()
    db.refresh(milestone)

    logger.info(f"Added milestone '{milestone.name}' to project {project.project_number}")

    return milestone


@router.put("/{project_id}/milestones/{milestone_id}/status", response_model=MilestoneSchema)
async def update_milestone_status(
    project_id: int,
    milestone_id: int,
    data: MilestoneStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    if data.status not in MILESTONE_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status. Must be one of: {', '.join(MILESTONE_STATUSES)}"
        )

    project = get_company_project(db, project_id, current_user.company_id)
    milestone = db.query(Milestone).filter(
        Milestone.id == milestone_id,
        Milestone.project_id == project.id
    ).first()
    if not milestone:
        raise HTTPException(status_code=404, detail="Milestone not found")

    milestone.status = data.status
    if data.status == "completed":
        milestone.completed_date = date.today()
    else:
        milestone.completed_date = None

    db.flush()
    _refresh_progress(db, project)
    db.commit()
    db.refresh(milestone)

    logger.info(
        f"Milestone {milestone.id} of project {project.project_number} -> {data.status}, "
        f"progress {project.progress_percentage}%"
    )

    return milestone


@router.delete("/{project_id}/milestones/{milestone_id}")
async def delete_milestone(
    project_id: int,
    milestone_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    project = get_company_project(db, project_id, current_user.company_id)
    milestone = db.query(Milestone).filter(
        Milestone.id == milestone_id,
        Milestone.project_id == project.id
    ).first()
    if not milestone:
        raise HTTPException(status_code=404, detail="Milestone not found")

    db.delete(milestone)
    db.flush()
    _refresh_progress(db, project)
    db.commit()

    logger.info(f"Deleted milestone {milestone_id} from project {project.project_number}")

    return {"message": "Milestone deleted successfully"}
