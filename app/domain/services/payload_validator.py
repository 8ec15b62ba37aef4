# app/domain/services/payload_validator.py
import re
from typing import List

import config
from app.domain.models.invoice import InvoiceDraft
from app.domain.services.lateness import invoice_date_error

RFC_RE = re.compile(r"^[A-ZÑ&]{3,4}\d{6}[A-Z0-9]{3}$", re.IGNORECASE)
UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PAYMENT_METHODS = ("PUE", "PPD")


def is_valid_rfc(rfc: str) -> bool:
    # 12 caracteres persona moral, 13 persona física
    return bool(rfc) and RFC_RE.match(rfc) is not None


def is_valid_uuid(uuid: str) -> bool:
    return bool(uuid) and UUID_RE.match(uuid) is not None


def validate_submission_payload(draft: InvoiceDraft, has_xml: bool, has_pdf: bool) -> List[str]:
    """Reglas mínimas de los datos capturados antes de registrar la factura."""
    errors = []

    if not has_xml:
        errors.append("El archivo XML es requerido")
    if not has_pdf:
        errors.append("El archivo PDF es requerido")

    if not draft.project or not draft.project.strip():
        errors.append("Proyecto es requerido")

    if not draft.rfc:
        errors.append("RFC del emisor es requerido")
    elif not is_valid_rfc(draft.rfc):
        errors.append("RFC del emisor tiene formato inválido")

    if not draft.biller_name or not draft.biller_name.strip():
        errors.append("Nombre del emisor es requerido")

    if not draft.receiver_rfc:
        errors.append("RFC del receptor es requerido")
    elif not is_valid_rfc(draft.receiver_rfc):
        errors.append("RFC del receptor tiene formato inválido")
    elif draft.receiver_rfc.upper() != config.EXPECTED_RECEIVER_RFC.upper():
        errors.append(f"RFC del receptor debe ser {config.EXPECTED_RECEIVER_RFC}")

    if not draft.uuid:
        errors.append("UUID (Folio Fiscal) es requerido")
    elif not is_valid_uuid(draft.uuid):
        errors.append("UUID tiene formato inválido")

    date_error = invoice_date_error(draft.invoice_date)
    if draft.invoice_date is None:
        errors.append("Fecha de factura es requerida")
    elif date_error:
        errors.append(date_error)

    if not draft.payment_method:
        errors.append("Método de pago es requerido")
    elif draft.payment_method.upper() not in PAYMENT_METHODS:
        errors.append("Método de pago debe ser PUE o PPD")

    if draft.total_amount is None:
        errors.append("Monto total es requerido")
    elif draft.total_amount <= 0:
        errors.append("Monto total debe ser un número positivo")

    if draft.email and not EMAIL_RE.match(draft.email):
        errors.append("Formato de correo electrónico inválido")

    return errors
