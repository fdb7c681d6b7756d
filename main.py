from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
import os
import logging

from liftdesk.api import (
    auth, clients, buildings, elevators, tickets, ticket_timeline, emergency, technicians,
    parts, suppliers, purchase_orders, projects, hubs, dashboard
)
from liftdesk.database import engine, Base
from liftdesk.config import settings
from liftdesk.utils.rate_limiter import limiter, rate_limit_exceeded_handler
import liftdesk.models  # noqa: F401 - registers the tables on Base.metadata

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="LiftDesk API", version="1.0.0")

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# Ticket attachments live under the upload directory
os.makedirs(settings.upload_dir, exist_ok=True)

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(clients.router, prefix="/api/clients", tags=["Clients"])
app.include_router(buildings.router, prefix="/api/buildings", tags=["Buildings"])
app.include_router(elevators.router, prefix="/api/elevators", tags=["Elevators"])
app.include_router(tickets.router, prefix="/api")
app.include_router(ticket_timeline.router, prefix="/api")
app.include_router(emergency.router, prefix="/api")
app.include_router(technicians.router, prefix="/api/technicians", tags=["Technicians"])
app.include_router(parts.router, prefix="/api/parts", tags=["Parts"])
app.include_router(parts.ticket_parts_router, prefix="/api")
app.include_router(suppliers.router, prefix="/api/suppliers", tags=["Suppliers"])
app.include_router(purchase_orders.router, prefix="/api/purchase-orders", tags=["Purchase Orders"])
app.include_router(projects.router, prefix="/api/projects", tags=["Projects"])
app.include_router(hubs.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api", tags=["Dashboard"])


@app.get("/")
async def root():
    return {"message": "LiftDesk API is running"}


@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "services": {
            "database": engine.dialect.name,
            "email": bool(settings.smtp_username and settings.smtp_password)
        }
    }
