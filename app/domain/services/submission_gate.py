# app/domain/services/submission_gate.py
"""
Compuerta de envío de una sesión de carga de factura.

La sesión es un valor inmutable y `reduce(session, event)` devuelve la sesión
siguiente. Las reglas se evalúan en dos momentos:

- al terminar la extracción: duplicado (A), proyecto reconocido (B) y
  extemporaneidad (C), en ese orden;
- al intentar enviar: aviso de extemporaneidad aceptado (D), casilla de
  confirmación (E) y nota de crédito de pronto pago (F).

Cada selección de archivos incrementa `generation`; los resultados asíncronos
que llegan con una generación anterior se descartan.
"""
import os
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field

from app.domain.models.credit_note import CreditNoteValidation
from app.domain.models.invoice import ExtractedFields, InvoiceDraft, PaymentProgram, Project
from app.domain.models.lateness import LateReason, LatenessVerdict
from app.domain.models.submission import SubmitDecision
from app.domain.services.lateness import classify_lateness, describe_late_reason, invoice_date_error
from app.domain.services.projects import find_project

MISSING_FILES_MESSAGE = "Primero sube los archivos XML y PDF de la factura."
CONFIRMATION_MESSAGE = "Por favor confirma que la información es correcta."
CREDIT_NOTE_FILES_MESSAGE = "Para pronto pago debes adjuntar la nota de crédito en XML y PDF."
CREDIT_NOTE_PENDING_MESSAGE = "La nota de crédito aún no ha sido validada."


class LatenessState(str, Enum):
    UNCLASSIFIED = "unclassified"
    ON_TIME = "on_time"
    LATE_UNACKNOWLEDGED = "late_unacknowledged"
    LATE_ACKNOWLEDGED = "late_acknowledged"


# --- Eventos ---

class GateEvent(BaseModel):
    model_config = ConfigDict(frozen=True)


class FilesSelected(GateEvent):
    xml_filename: Optional[str] = None
    pdf_filename: Optional[str] = None


class ExtractionSucceeded(GateEvent):
    generation: int
    fields: ExtractedFields
    uuid_exists: bool
    active_projects: List[Project] = Field(default_factory=list)
    now: datetime


class ExtractionFailed(GateEvent):
    generation: int
    message: str


class DraftEdited(GateEvent):
    changes: Dict[str, Any]


class LateAcknowledged(GateEvent):
    pass


class LateCancelled(GateEvent):
    pass


class ConfirmationSet(GateEvent):
    confirmed: bool


class CreditNoteFilesSelected(GateEvent):
    xml_filename: Optional[str] = None
    pdf_filename: Optional[str] = None


class CreditNoteValidated(GateEvent):
    generation: int
    validation: CreditNoteValidation


class SubmitRequested(GateEvent):
    now: datetime


# --- Sesión ---

class GateSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    generation: int = 0
    credit_note_generation: int = 0
    draft: InvoiceDraft = Field(default_factory=InvoiceDraft)
    editable: bool = False
    errors: List[str] = Field(default_factory=list)
    verdict: Optional[LatenessVerdict] = None
    acknowledged_reasons: List[LateReason] = Field(default_factory=list)
    late_modal_reason: Optional[LateReason] = None
    confirmed: bool = False
    credit_note_validation: Optional[CreditNoteValidation] = None
    last_decision: Optional[SubmitDecision] = None

    @computed_field
    @property
    def lateness_state(self) -> LatenessState:
        return lateness_state_of(self.verdict, self.acknowledged_reasons)

    @computed_field
    @property
    def late_modal_message(self) -> Optional[str]:
        if self.late_modal_reason is None:
            return None
        return describe_late_reason(self.late_modal_reason)


def lateness_state_of(verdict: Optional[LatenessVerdict], acknowledged: List[LateReason]) -> LatenessState:
    if verdict is None:
        return LatenessState.UNCLASSIFIED
    if not verdict.is_late:
        return LatenessState.ON_TIME
    if set(verdict.reasons) <= set(acknowledged):
        return LatenessState.LATE_ACKNOWLEDGED
    return LatenessState.LATE_UNACKNOWLEDGED


def filename_mismatch_error(xml_filename: Optional[str], pdf_filename: Optional[str]) -> Optional[str]:
    """El XML y el PDF deben llamarse igual (sin contar la extensión)."""
    if not xml_filename or not pdf_filename:
        return None
    xml_base = os.path.splitext(xml_filename)[0]
    pdf_base = os.path.splitext(pdf_filename)[0]
    if xml_base.lower() != pdf_base.lower():
        return f'Los archivos deben tener el mismo nombre. XML: "{xml_base}" ≠ PDF: "{pdf_base}"'
    return None


def validation_messages(error: ValidationError) -> List[str]:
    return [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()]


# --- Reglas al terminar la extracción (A, B, C) ---

def duplicate_error(uuid: Optional[str], uuid_exists: bool) -> Optional[str]:
    if uuid and uuid_exists:
        return f"La factura con UUID {uuid} ya fue registrada anteriormente."
    return None


def project_error(label: Optional[str], projects: List[Project]) -> Optional[str]:
    # Sin etiqueta el usuario elige el proyecto manualmente
    if not label:
        return None
    if find_project(label, projects) is None:
        return f'El proyecto "{label}" no corresponde a ningún proyecto activo.'
    return None


def _apply_extraction(session: GateSession, event: ExtractionSucceeded) -> GateSession:
    draft = session.draft.apply_extraction(event.fields)
    base = dict(
        draft=draft,
        verdict=None,
        acknowledged_reasons=[],
        late_modal_reason=None,
        last_decision=None,
    )

    error = duplicate_error(draft.uuid, event.uuid_exists)
    if error:
        return session.model_copy(update=dict(base, editable=False, errors=[error]))

    error = project_error(draft.project, event.active_projects)
    if error:
        return session.model_copy(update=dict(base, editable=False, errors=[error]))

    project = find_project(draft.project, event.active_projects)
    if project is not None:
        draft = draft.model_copy(update={"project": project.name})
        base["draft"] = draft

    # Fecha inválida: el usuario la corrige en el formulario
    error = invoice_date_error(draft.invoice_date)
    if error:
        return session.model_copy(update=dict(base, editable=True, errors=[error]))

    verdict = None
    if draft.invoice_date is not None:
        verdict = classify_lateness(draft.invoice_date, draft.week_claim, event.now)

    modal = verdict.reasons[0] if verdict is not None and verdict.is_late else None
    return session.model_copy(update=dict(
        base, editable=True, errors=[], verdict=verdict, late_modal_reason=modal,
    ))


# --- Reglas al enviar (D, E, F) ---

def check_submission(session: GateSession, now: datetime) -> SubmitDecision:
    """
    Revalida el borrador actual (no el resultado guardado de la extracción)
    y decide si se puede enviar.
    """
    if not session.editable:
        return SubmitDecision(allowed=False, errors=list(session.errors) or [MISSING_FILES_MESSAGE])

    draft = session.draft

    error = invoice_date_error(draft.invoice_date)
    if error:
        return SubmitDecision(allowed=False, errors=[error])

    # D: extemporaneidad sobre el estado actual del borrador
    verdict = None
    if draft.invoice_date is not None:
        verdict = classify_lateness(draft.invoice_date, draft.week_claim, now)
        if lateness_state_of(verdict, session.acknowledged_reasons) == LatenessState.LATE_UNACKNOWLEDGED:
            return SubmitDecision(
                allowed=False,
                errors=[describe_late_reason(verdict.reasons[0])],
                reopen_late_modal=True,
                verdict=verdict,
            )

    errors = []

    # E: confirmación explícita
    if not session.confirmed:
        errors.append(CONFIRMATION_MESSAGE)

    # F: nota de crédito para pronto pago
    if draft.payment_program == PaymentProgram.PRONTO_PAGO:
        if not draft.credit_note_xml_filename or not draft.credit_note_pdf_filename:
            errors.append(CREDIT_NOTE_FILES_MESSAGE)
        validation = session.credit_note_validation
        if validation is None:
            errors.append(CREDIT_NOTE_PENDING_MESSAGE)
        elif not validation.is_valid:
            errors.extend(validation.errors)

    return SubmitDecision(allowed=not errors, errors=errors, verdict=verdict)


# --- Reductor ---

_LATENESS_FIELDS = {"invoice_date", "week_claim"}


def reduce(session: GateSession, event: GateEvent) -> GateSession:
    if isinstance(event, FilesSelected):
        draft = session.draft.model_copy(update={
            "xml_filename": event.xml_filename,
            "pdf_filename": event.pdf_filename,
        })
        mismatch = filename_mismatch_error(event.xml_filename, event.pdf_filename)
        return session.model_copy(update={
            "generation": session.generation + 1,
            "draft": draft,
            "editable": False,
            "errors": [mismatch] if mismatch else [],
            "verdict": None,
            "acknowledged_reasons": [],
            "late_modal_reason": None,
            "last_decision": None,
        })

    if isinstance(event, ExtractionSucceeded):
        if event.generation != session.generation:
            return session
        return _apply_extraction(session, event)

    if isinstance(event, ExtractionFailed):
        if event.generation != session.generation:
            return session
        # El usuario puede capturar los datos manualmente
        return session.model_copy(update={"editable": True, "errors": [event.message]})

    if isinstance(event, DraftEdited):
        values = session.draft.model_dump()
        values.update(event.changes)
        try:
            draft = InvoiceDraft.model_validate(values)
        except ValidationError as e:
            return session.model_copy(update={"errors": validation_messages(e)})
        update = {"draft": draft}
        if session.editable:
            update["errors"] = []
        if _LATENESS_FIELDS & set(event.changes):
            update["verdict"] = None
        return session.model_copy(update=update)

    if isinstance(event, LateAcknowledged):
        reasons = list(session.verdict.reasons) if session.verdict is not None else []
        return session.model_copy(update={"acknowledged_reasons": reasons, "late_modal_reason": None})

    if isinstance(event, LateCancelled):
        draft = session.draft.model_copy(update={
            "xml_filename": None,
            "pdf_filename": None,
            "invoice_date": None,
            "week_claim": None,
        })
        return session.model_copy(update={
            "generation": session.generation + 1,
            "draft": draft,
            "editable": False,
            "errors": [],
            "verdict": None,
            "acknowledged_reasons": [],
            "late_modal_reason": None,
        })

    if isinstance(event, ConfirmationSet):
        return session.model_copy(update={"confirmed": event.confirmed})

    if isinstance(event, CreditNoteFilesSelected):
        draft = session.draft.model_copy(update={
            "credit_note_xml_filename": event.xml_filename,
            "credit_note_pdf_filename": event.pdf_filename,
        })
        return session.model_copy(update={
            "credit_note_generation": session.credit_note_generation + 1,
            "draft": draft,
            "credit_note_validation": None,
        })

    if isinstance(event, CreditNoteValidated):
        if event.generation != session.credit_note_generation:
            return session
        return session.model_copy(update={"credit_note_validation": event.validation})

    if isinstance(event, SubmitRequested):
        decision = check_submission(session, event.now)
        update = {"last_decision": decision}
        if decision.verdict is not None:
            update["verdict"] = decision.verdict
        if decision.reopen_late_modal:
            update["late_modal_reason"] = decision.verdict.reasons[0]
        return session.model_copy(update=update)

    raise TypeError(f"Evento no soportado: {type(event).__name__}")
