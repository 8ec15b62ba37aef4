# app/infrastructure/api/routers/catalog_router.py
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends

from app.domain.models.invoice import Project
from app.domain.models.lateness import ActiveWeek
from app.domain.ports.project_catalog import ProjectCatalog
from app.domain.services.deadlines import active_weeks
from app.infrastructure.api.dependencies import get_now, get_project_catalog

router = APIRouter(prefix="/api/v1", tags=["Catálogos"])


@router.get("/proyectos", response_model=List[Project], summary="Proyectos activos")
def list_projects(project_catalog: ProjectCatalog = Depends(get_project_catalog)):
    return project_catalog.list_active()


@router.get("/semanas/activas", response_model=List[ActiveWeek], summary="Semanas con carga abierta")
def list_active_weeks(now: datetime = Depends(get_now)):
    """Semanas cuya fecha límite de carga aún no ha pasado."""
    return active_weeks(now)
