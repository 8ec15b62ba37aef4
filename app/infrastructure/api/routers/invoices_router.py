# app/infrastructure/api/routers/invoices_router.py
import json
import logging
import os
import shutil
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

import config
from app.application.use_cases.extract_invoice import ExtractInvoiceUseCase
from app.application.use_cases.submit_invoice import (
    CREDIT_NOTE_PDF,
    CREDIT_NOTE_XML,
    PDF,
    XML,
    SubmitInvoiceUseCase,
)
from app.application.use_cases.validate_credit_note import ValidateCreditNoteUseCase
from app.domain.models.invoice import InvoiceDraft
from app.domain.models.lateness import LateReason
from app.domain.models.submission import SubmissionResult, SubmissionStatus, UploadedFile
from app.domain.ports.invoice_extractor import ExtractionError, InvoiceExtractor
from app.domain.ports.invoice_repository import InvoiceRepository
from app.domain.ports.project_catalog import ProjectCatalog
from app.domain.services.credit_note import pronto_pago_breakdown
from app.domain.services.submission_gate import validation_messages
from app.infrastructure.api.dependencies import (
    get_db,
    get_invoice_extractor,
    get_invoice_repository,
    get_local_extractor,
    get_now,
    get_project_catalog,
)
# Importamos la instancia de Celery, no la tarea específica
from app.infrastructure.celery.worker import celery_app

router = APIRouter(prefix="/api/v1/facturas", tags=["Facturas"])

STATUS_CODES = {
    SubmissionStatus.VALIDATION_ERROR: 400,
    SubmissionStatus.DUPLICATE: 409,
    SubmissionStatus.BLOCKED: 422,
}


def _check_filename(file: Optional[UploadFile]) -> None:
    if file is None:
        return
    if not file.filename or ".." in file.filename or "/" in file.filename:
        raise HTTPException(status_code=400, detail=f"Nombre de archivo inválido: {file.filename}")


async def _read_uploads(uploads: Dict[str, Optional[UploadFile]]) -> Dict[str, UploadedFile]:
    files = {}
    for kind, upload in uploads.items():
        if upload is None:
            continue
        _check_filename(upload)
        files[kind] = UploadedFile(filename=upload.filename, content=await upload.read())
    return files


def _parse_acknowledged_reasons(raw: str) -> List[LateReason]:
    try:
        values = json.loads(raw or "[]")
        return [LateReason(value) for value in values]
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Motivos de extemporaneidad inválidos: {e}")


def _archive_metadata(draft: InvoiceDraft, result: SubmissionResult) -> dict:
    verdict = result.verdict
    payment_week = verdict.payment_week
    return {
        "uuid": draft.uuid.upper(),
        "week": payment_week.week,
        "year": payment_week.year,
        "project": draft.project,
        "issuer_rfc": draft.rfc.upper(),
        "issuer_name": draft.biller_name,
        "is_late": verdict.is_late,
        "late_reasons": [reason.value for reason in verdict.reasons],
        "total_amount": draft.total_amount,
        "currency": draft.currency or "MXN",
        "payment_program": draft.payment_program.value,
    }


def _queue_archive(invoice_id: str, metadata: dict, files: Dict[str, UploadedFile]) -> bool:
    """
    Guarda los archivos en la carpeta temporal y lanza la tarea que los sube
    a Drive. Si falla, la factura ya registrada se conserva.
    """
    invoice_temp_path = os.path.join(config.TEMP_UPLOADS_DIR, invoice_id)
    os.makedirs(invoice_temp_path, exist_ok=True)
    saved = {}
    try:
        for kind, uploaded in files.items():
            filename = f"{kind}{os.path.splitext(uploaded.filename)[1].lower()}"
            with open(os.path.join(invoice_temp_path, filename), "wb") as buffer:
                buffer.write(uploaded.content)
            saved[kind] = filename

        celery_app.send_task(
            'tasks.archive_invoice_files',
            args=[invoice_id, metadata, invoice_temp_path, saved]
        )
        return True
    except Exception as e:
        logging.error(f"[{invoice_id}] No se pudo encolar el archivado: {e}")
        if os.path.exists(invoice_temp_path):
            shutil.rmtree(invoice_temp_path)
        return False


@router.post("/extraer", summary="Extraer los datos de una factura")
async def extract_invoice(
    xml_file: UploadFile = File(..., description="XML timbrado de la factura."),
    pdf_file: UploadFile = File(..., description="PDF de la factura."),
    extractor: InvoiceExtractor = Depends(get_invoice_extractor),
    local_extractor: InvoiceExtractor = Depends(get_local_extractor),
    invoice_repo: InvoiceRepository = Depends(get_invoice_repository),
    project_catalog: ProjectCatalog = Depends(get_project_catalog),
    now: datetime = Depends(get_now),
):
    """
    Extrae los campos del CFDI y aplica las revisiones de duplicado, proyecto
    y extemporaneidad. Devuelve el estado de la sesión de carga.
    """
    _check_filename(xml_file)
    _check_filename(pdf_file)
    use_case = ExtractInvoiceUseCase(extractor, local_extractor, invoice_repo, project_catalog)
    try:
        session = use_case.execute(
            await xml_file.read(),
            await pdf_file.read(),
            xml_file.filename,
            pdf_file.filename,
            now=now,
        )
    except ExtractionError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return session.model_dump(mode="json")


@router.post("/nota-credito/validar", summary="Validar la nota de crédito de pronto pago")
async def validate_credit_note(
    credit_note_xml: UploadFile = File(..., description="XML de la nota de crédito."),
    invoice_uuid: str = Form(...),
    invoice_rfc: str = Form(...),
    invoice_total: float = Form(...),
):
    _check_filename(credit_note_xml)
    use_case = ValidateCreditNoteUseCase()
    validation = use_case.execute(await credit_note_xml.read(), invoice_uuid, invoice_rfc, invoice_total)
    fee, net = pronto_pago_breakdown(invoice_total, use_case.fee_rate)
    response = validation.model_dump(mode="json")
    response.update({"expected_fee": fee, "net_amount": net})
    return response


@router.post("", status_code=201, summary="Registrar una factura")
async def submit_invoice(
    draft: str = Form(..., description="Datos de la factura en formato JSON."),
    acknowledged_reasons: str = Form("[]", description="Motivos de extemporaneidad aceptados (JSON)."),
    confirmed: bool = Form(False),
    xml_file: Optional[UploadFile] = File(None),
    pdf_file: Optional[UploadFile] = File(None),
    credit_note_xml: Optional[UploadFile] = File(None),
    credit_note_pdf: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    invoice_repo: InvoiceRepository = Depends(get_invoice_repository),
    project_catalog: ProjectCatalog = Depends(get_project_catalog),
    now: datetime = Depends(get_now),
):
    """
    Revalida el borrador completo y registra la factura. Los archivos se
    archivan en Drive en segundo plano.
    """
    try:
        invoice_draft = InvoiceDraft.model_validate_json(draft)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={
            "message": "Datos de la factura inválidos",
            "errors": validation_messages(e),
        })
    reasons = _parse_acknowledged_reasons(acknowledged_reasons)
    files = await _read_uploads({
        XML: xml_file,
        PDF: pdf_file,
        CREDIT_NOTE_XML: credit_note_xml,
        CREDIT_NOTE_PDF: credit_note_pdf,
    })

    use_case = SubmitInvoiceUseCase(invoice_repo, project_catalog)
    try:
        result = use_case.execute(invoice_draft, reasons, confirmed, files, now=now)
        if result.success:
            db.commit()
    except Exception as e:
        db.rollback()
        logging.error(f"Error al registrar la factura: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    if not result.success:
        raise HTTPException(status_code=STATUS_CODES[result.status], detail=result.model_dump(mode="json"))

    queued = _queue_archive(result.invoice_id, _archive_metadata(invoice_draft, result), files)
    response = result.model_dump(mode="json")
    response["archive_queued"] = queued
    return response
