# app/domain/ports/file_storage.py
from abc import ABC, abstractmethod
from typing import Dict, List
from pydantic import BaseModel, Field


class StoredFile(BaseModel):
    kind: str
    filename: str
    file_id: str
    url: str


class ArchiveResult(BaseModel):
    folder_path: str
    files: List[StoredFile] = Field(default_factory=list)


class FileStorage(ABC):
    """Puerto para el almacenamiento de archivos en la nube."""
    @abstractmethod
    def archive_invoice_files(self, metadata: dict, local_folder_path: str, files: Dict[str, str]) -> ArchiveResult:
        """
        Crea (o reutiliza) la carpeta Semana/[Extemporaneas]/Proyecto/Emisor
        y sube los archivos. `files` mapea el tipo de archivo a su nombre.
        """
        pass
