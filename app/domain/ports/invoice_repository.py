# app/domain/ports/invoice_repository.py
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from app.domain.models.invoice import InvoiceDraft, Project
from app.domain.models.lateness import LatenessVerdict


class InvoiceRepository(ABC):
    """
    Contrato de persistencia de las facturas recibidas.
    """

    @abstractmethod
    def exists_uuid(self, uuid: str) -> bool:
        """Indica si ya existe una factura registrada con ese UUID fiscal."""
        pass

    @abstractmethod
    def save_invoice(
        self,
        draft: InvoiceDraft,
        verdict: Optional[LatenessVerdict],
        project: Optional[Project],
        pronto_pago: Optional[Tuple[float, float]] = None,
        credit_note_uuid: Optional[str] = None,
    ) -> str:
        """
        Guarda la factura, su emisor y sus conceptos.
        `pronto_pago` es (costo financiero, monto neto) cuando aplica.
        Retorna el ID de la factura creada.
        """
        pass

    @abstractmethod
    def save_file_record(self, invoice_id: str, kind: str, filename: str, url: str, file_id: str) -> None:
        """Registra un archivo archivado de la factura (xml, pdf, nota de crédito)."""
        pass

    @abstractmethod
    def generate_next_invoice_id(self) -> str:
        """
        Genera un ID de factura único y secuencial con el formato FAC-YYYYMMDD-XXX.
        El contador XXX se reinicia cada día.
        """
        pass
