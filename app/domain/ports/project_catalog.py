# app/domain/ports/project_catalog.py
from abc import ABC, abstractmethod
from typing import List

from app.domain.models.invoice import Project


class ProjectCatalog(ABC):
    """Puerto para consultar los proyectos activos."""
    @abstractmethod
    def list_active(self) -> List[Project]:
        pass
