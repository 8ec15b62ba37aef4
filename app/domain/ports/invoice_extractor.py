# app/domain/ports/invoice_extractor.py
from abc import ABC, abstractmethod
from typing import Optional

from app.domain.models.invoice import ExtractedFields


class ExtractionError(Exception):
    """El servicio de extracción falló o respondió algo inutilizable."""


class InvoiceExtractor(ABC):
    """Puerto para la extracción de campos fiscales de una factura."""
    @abstractmethod
    def extract(self, xml_text: Optional[str], pdf_bytes: Optional[bytes] = None, pdf_filename: Optional[str] = None) -> ExtractedFields:
        """
        Extrae los campos que pueda. Los que no encuentre quedan en None.
        Lanza ExtractionError si el servicio no está disponible.
        """
        pass
