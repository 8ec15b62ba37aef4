# app/domain/services/projects.py
from typing import Iterable, List, Optional

from app.domain.models.invoice import Project


def _variations(label: str) -> List[str]:
    upper = label.strip().upper()
    return list(dict.fromkeys([upper, upper.replace("_", " "), upper.replace(" ", "_"), upper.replace(" ", "")]))


def find_project(label: Optional[str], projects: Iterable[Project]) -> Optional[Project]:
    """Reconoce la etiqueta de proyecto por código o nombre, sin distinguir mayúsculas."""
    if not label or not label.strip():
        return None
    wanted = set(_variations(label))
    for project in projects:
        for candidate in (project.code, project.name):
            if candidate and wanted & set(_variations(candidate)):
                return project
    return None


def find_project_in_text(text: str, projects: Iterable[Project]) -> Optional[Project]:
    """Busca el nombre de algún proyecto activo dentro del XML (descripciones de conceptos)."""
    content = (text or "").upper()
    if not content:
        return None
    for project in projects:
        for variation in _variations(project.name):
            if variation and variation in content:
                return project
    return None
