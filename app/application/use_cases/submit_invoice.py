# app/application/use_cases/submit_invoice.py
import logging
from datetime import datetime
from typing import Dict, List, Optional

from app.application.use_cases.validate_credit_note import ValidateCreditNoteUseCase
from app.domain.models.invoice import InvoiceDraft, PaymentProgram
from app.domain.models.lateness import LateReason
from app.domain.models.submission import SubmissionResult, SubmissionStatus, UploadedFile
from app.domain.ports.invoice_repository import InvoiceRepository
from app.domain.ports.project_catalog import ProjectCatalog
from app.domain.services import week_clock
from app.domain.services.credit_note import pronto_pago_breakdown
from app.domain.services.payload_validator import validate_submission_payload
from app.domain.services.projects import find_project
from app.domain.services.submission_gate import (
    CreditNoteFilesSelected,
    CreditNoteValidated,
    GateSession,
    SubmitRequested,
    duplicate_error,
    project_error,
    reduce,
)

# Tipos de archivo aceptados en el envío
XML = "xml"
PDF = "pdf"
CREDIT_NOTE_XML = "credit_note_xml"
CREDIT_NOTE_PDF = "credit_note_pdf"

SUCCESS_MESSAGE = "¡Factura registrada exitosamente!"


class SubmitInvoiceUseCase:
    """
    Revalida el borrador que envía el usuario y, si pasa todas las
    compuertas, registra la factura.
    """
    def __init__(
        self,
        invoice_repo: InvoiceRepository,
        project_catalog: ProjectCatalog,
        credit_note_validator: Optional[ValidateCreditNoteUseCase] = None,
    ):
        self.invoice_repo = invoice_repo
        self.project_catalog = project_catalog
        self.credit_note_validator = credit_note_validator or ValidateCreditNoteUseCase()

    def _attach_filenames(self, draft: InvoiceDraft, files: Dict[str, UploadedFile]) -> InvoiceDraft:
        def name_of(kind):
            uploaded = files.get(kind)
            return uploaded.filename if uploaded else None

        return draft.model_copy(update={
            "xml_filename": name_of(XML),
            "pdf_filename": name_of(PDF),
            "credit_note_xml_filename": name_of(CREDIT_NOTE_XML),
            "credit_note_pdf_filename": name_of(CREDIT_NOTE_PDF),
        })

    def _validate_credit_note(self, session: GateSession, files: Dict[str, UploadedFile]) -> GateSession:
        draft = session.draft
        session = reduce(session, CreditNoteFilesSelected(
            xml_filename=draft.credit_note_xml_filename,
            pdf_filename=draft.credit_note_pdf_filename,
        ))
        credit_note_xml = files.get(CREDIT_NOTE_XML)
        if credit_note_xml is None:
            return session

        validation = self.credit_note_validator.execute(
            credit_note_xml.content,
            draft.uuid,
            draft.rfc,
            draft.total_amount,
        )
        return reduce(session, CreditNoteValidated(
            generation=session.credit_note_generation,
            validation=validation,
        ))

    def execute(
        self,
        draft: InvoiceDraft,
        acknowledged_reasons: List[LateReason],
        confirmed: bool,
        files: Dict[str, UploadedFile],
        now: Optional[datetime] = None,
    ) -> SubmissionResult:
        now = now or week_clock.now()
        draft = self._attach_filenames(draft, files)
        tag = draft.uuid or "sin UUID"

        # --- PASO 1: Datos mínimos ---
        errors = validate_submission_payload(draft, has_xml=XML in files, has_pdf=PDF in files)
        projects = self.project_catalog.list_active()
        if not errors:
            error = project_error(draft.project, projects)
            if error:
                errors.append(error)
        if errors:
            logging.info(f"[{tag}] Envío rechazado por validación: {errors}")
            return SubmissionResult(
                success=False,
                status=SubmissionStatus.VALIDATION_ERROR,
                message="Error de validación",
                errors=errors,
            )

        # --- PASO 2: Compuertas D, E y F sobre el borrador actual ---
        session = GateSession(
            draft=draft,
            editable=True,
            acknowledged_reasons=acknowledged_reasons,
            confirmed=confirmed,
        )
        if draft.payment_program == PaymentProgram.PRONTO_PAGO:
            session = self._validate_credit_note(session, files)

        session = reduce(session, SubmitRequested(now=now))
        decision = session.last_decision
        if not decision.allowed:
            logging.info(f"[{tag}] Envío bloqueado: {decision.errors}")
            return SubmissionResult(
                success=False,
                status=SubmissionStatus.BLOCKED,
                message=decision.errors[0],
                errors=decision.errors,
                late_modal_reason=session.late_modal_reason,
                verdict=decision.verdict,
                credit_note_validation=session.credit_note_validation,
            )

        # --- PASO 3: Duplicado (otra sesión pudo registrarla mientras tanto) ---
        error = duplicate_error(draft.uuid, self.invoice_repo.exists_uuid(draft.uuid))
        if error:
            logging.info(f"[{tag}] {error}")
            return SubmissionResult(
                success=False,
                status=SubmissionStatus.DUPLICATE,
                message=error,
                errors=[error],
            )

        # --- PASO 4: Registro ---
        pronto_pago = None
        credit_note_uuid = None
        if draft.payment_program == PaymentProgram.PRONTO_PAGO:
            pronto_pago = pronto_pago_breakdown(draft.total_amount, self.credit_note_validator.fee_rate)
            credit_note_uuid = session.credit_note_validation.data.uuid

        invoice_id = self.invoice_repo.save_invoice(
            draft,
            decision.verdict,
            find_project(draft.project, projects),
            pronto_pago=pronto_pago,
            credit_note_uuid=credit_note_uuid,
        )
        logging.info(f"[{tag}] Factura registrada con ID {invoice_id}.")
        return SubmissionResult(
            success=True,
            status=SubmissionStatus.REGISTERED,
            message=SUCCESS_MESSAGE,
            invoice_id=invoice_id,
            verdict=decision.verdict,
            credit_note_validation=session.credit_note_validation,
        )
