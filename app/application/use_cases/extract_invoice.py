# app/application/use_cases/extract_invoice.py
import logging
from datetime import datetime
from typing import Optional

from app.domain.models.invoice import ExtractedFields
from app.domain.ports.invoice_extractor import ExtractionError, InvoiceExtractor
from app.domain.ports.invoice_repository import InvoiceRepository
from app.domain.ports.project_catalog import ProjectCatalog
from app.domain.services import week_clock
from app.domain.services.projects import find_project_in_text
from app.domain.services.submission_gate import (
    ExtractionFailed,
    ExtractionSucceeded,
    FilesSelected,
    GateSession,
    reduce,
)
from app.domain.services.xml_text import FILE_ERROR_MESSAGE, decode_xml_bytes

MANUAL_ENTRY_MESSAGE = "No se pudieron extraer los datos automáticamente. Por favor llena los campos."


class ExtractInvoiceUseCase:
    """
    Extrae los campos de la factura recién subida y aplica las reglas previas
    a la edición: duplicado, proyecto reconocido y extemporaneidad.
    """
    def __init__(
        self,
        extractor: InvoiceExtractor,
        local_extractor: InvoiceExtractor,
        invoice_repo: InvoiceRepository,
        project_catalog: ProjectCatalog,
    ):
        self.extractor = extractor
        self.local_extractor = local_extractor
        self.invoice_repo = invoice_repo
        self.project_catalog = project_catalog

    def _extract_fields(self, xml_text: str, pdf_bytes: bytes, pdf_filename: str) -> ExtractedFields:
        local_fields = self.local_extractor.extract(xml_text)
        try:
            ai_fields = self.extractor.extract(xml_text, pdf_bytes, pdf_filename)
        except ExtractionError:
            if not local_fields.uuid:
                raise
            logging.warning(f"[{local_fields.uuid}] Falló la extracción con IA; se usan los datos del XML.")
            return local_fields
        # El XML timbrado manda; la IA completa lo que el XML no trae
        return local_fields.merged_with(ai_fields)

    def execute(
        self,
        xml_bytes: bytes,
        pdf_bytes: bytes,
        xml_filename: str,
        pdf_filename: str,
        now: Optional[datetime] = None,
        session: Optional[GateSession] = None,
    ) -> GateSession:
        now = now or week_clock.now()
        session = reduce(session or GateSession(), FilesSelected(xml_filename=xml_filename, pdf_filename=pdf_filename))
        if session.errors:
            logging.info(f"Extracción omitida: {session.errors[0]}")
            return session

        generation = session.generation
        try:
            xml_text = decode_xml_bytes(xml_bytes)
        except UnicodeDecodeError as e:
            logging.warning(f"No se pudo decodificar {xml_filename}: {e}")
            return reduce(session, ExtractionFailed(generation=generation, message=FILE_ERROR_MESSAGE))

        fields = self._extract_fields(xml_text, pdf_bytes, pdf_filename)
        if not fields.uuid and not fields.invoice_date and not fields.rfc:
            return reduce(session, ExtractionFailed(generation=generation, message=MANUAL_ENTRY_MESSAGE))

        projects = self.project_catalog.list_active()
        if not fields.project:
            project = find_project_in_text(xml_text, projects)
            if project is not None:
                fields = fields.model_copy(update={"project": project.name})

        uuid_exists = self.invoice_repo.exists_uuid(fields.uuid) if fields.uuid else False

        session = reduce(session, ExtractionSucceeded(
            generation=generation,
            fields=fields,
            uuid_exists=uuid_exists,
            active_projects=projects,
            now=now,
        ))
        logging.info(
            f"[{fields.uuid or 'sin UUID'}] Extracción terminada. "
            f"Editable: {session.editable}. Estado: {session.lateness_state.value}."
        )
        return session
