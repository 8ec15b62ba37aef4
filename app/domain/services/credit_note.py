# app/domain/services/credit_note.py
"""
Notas de crédito (CFDI tipo "E") para el programa de pronto pago.

El emisor que elige pronto pago acepta un costo financiero y lo documenta con
una nota de crédito relacionada a su factura (TipoRelacion "01"). Aquí se leen
sus atributos con expresiones regulares sobre el texto del XML y se comparan
contra la factura principal.
"""
import logging
import re
from typing import Optional, Tuple

import config
from app.domain.models.credit_note import CreditNoteRecord, CreditNoteValidation

logger = logging.getLogger(__name__)

_FLAGS = re.IGNORECASE
_UUID = r"([A-Fa-f0-9-]{36})"

TIPO_COMPROBANTE_RE = re.compile(r"TipoDeComprobante\s*=\s*[\"']([^\"']+)[\"']", _FLAGS)
CREDIT_NOTE_TYPE_RE = re.compile(r"TipoDeComprobante\s*=\s*[\"']E[\"']", _FLAGS)
STAMP_UUID_RES = (
    re.compile(r"tfd:TimbreFiscalDigital[^>]*UUID\s*=\s*[\"']" + _UUID + r"[\"']", _FLAGS),
    re.compile(r"TimbreFiscalDigital[^>]*UUID\s*=\s*[\"']" + _UUID + r"[\"']", _FLAGS),
)
FOLIO_RE = re.compile(r"\bFolio\s*=\s*[\"']([^\"']+)[\"']", _FLAGS)
SERIE_RE = re.compile(r"\bSerie\s*=\s*[\"']([^\"']+)[\"']", _FLAGS)
ISSUER_RFC_RES = (
    re.compile(r"cfdi:Emisor[^>]*\bRfc\s*=\s*[\"']([^\"']+)[\"']", _FLAGS),
    re.compile(r"Emisor[^>]*\bRfc\s*=\s*[\"']([^\"']+)[\"']", _FLAGS),
)
ISSUER_NAME_RES = (
    re.compile(r"cfdi:Emisor[^>]*\bNombre\s*=\s*[\"']([^\"']+)[\"']", _FLAGS),
    re.compile(r"Emisor[^>]*\bNombre\s*=\s*[\"']([^\"']+)[\"']", _FLAGS),
)
TIPO_RELACION_RE = re.compile(r"CfdiRelacionados[^>]*TipoRelacion\s*=\s*[\"']([^\"']+)[\"']", _FLAGS)
RELATED_UUID_RE = re.compile(r"CfdiRelacionado\b[^>]*UUID\s*=\s*[\"']" + _UUID + r"[\"']", _FLAGS)
SUBTOTAL_RE = re.compile(r"\bSubTotal\s*=\s*[\"']([0-9.]+)[\"']", _FLAGS)
TOTAL_TAX_RE = re.compile(r"\bTotalImpuestosTrasladados\s*=\s*[\"']([0-9.]+)[\"']", _FLAGS)
TOTAL_RE = re.compile(r"\bTotal\s*=\s*[\"']([0-9.]+)[\"']", _FLAGS)
MONEDA_RE = re.compile(r"\bMoneda\s*=\s*[\"']([^\"']+)[\"']", _FLAGS)
FECHA_RE = re.compile(r"\bFecha\s*=\s*[\"']([^\"']+)[\"']", _FLAGS)
FECHA_TIMBRADO_RE = re.compile(r"\bFechaTimbrado\s*=\s*[\"']([^\"']+)[\"']", _FLAGS)


def _first(patterns, content: str) -> Optional[str]:
    if not isinstance(patterns, tuple):
        patterns = (patterns,)
    for pattern in patterns:
        match = pattern.search(content)
        if match:
            return match.group(1)
    return None


def _amount(pattern, content: str) -> float:
    value = _first(pattern, content)
    try:
        return float(value) if value else 0.0
    except ValueError:
        return 0.0


def looks_like_credit_note(xml_text: str) -> bool:
    """Revisión rápida del tipo de comprobante, sin extraer nada más."""
    return bool(xml_text) and CREDIT_NOTE_TYPE_RE.search(xml_text) is not None


def parse_credit_note(xml_text: str) -> Optional[CreditNoteRecord]:
    """
    Extrae los campos de la nota de crédito. Devuelve None si falta el UUID
    del timbre o el RFC del emisor, que son indispensables para el cruce.
    """
    content = xml_text or ""

    uuid = (_first(STAMP_UUID_RES, content) or "").upper()
    issuer_rfc = (_first(ISSUER_RFC_RES, content) or "").upper()
    if not uuid or not issuer_rfc:
        logger.warning("Nota de crédito sin UUID o RFC del emisor; no se puede validar.")
        return None

    fecha = _first(FECHA_RE, content)

    return CreditNoteRecord(
        uuid=uuid,
        issuer_rfc=issuer_rfc,
        tipo_comprobante=(_first(TIPO_COMPROBANTE_RE, content) or "").upper(),
        related_uuid=(_first(RELATED_UUID_RE, content) or "").upper(),
        tipo_relacion=_first(TIPO_RELACION_RE, content) or "01",
        issuer_name=_first(ISSUER_NAME_RES, content),
        folio=_first(FOLIO_RE, content),
        series=_first(SERIE_RE, content),
        subtotal=_amount(SUBTOTAL_RE, content),
        total_tax=_amount(TOTAL_TAX_RE, content),
        total_amount=_amount(TOTAL_RE, content),
        currency=_first(MONEDA_RE, content) or "MXN",
        issue_date=fecha.split("T")[0] if fecha else "",
        certification_date=_first(FECHA_TIMBRADO_RE, content),
    )


def validate_credit_note(
    note: Optional[CreditNoteRecord],
    invoice_uuid: str,
    invoice_issuer_rfc: str,
    expected_fee_amount: float,
    tolerance_percent: float = config.CREDIT_NOTE_TOLERANCE,
) -> CreditNoteValidation:
    """
    Compara la nota contra la factura principal. Las cinco revisiones son
    independientes y todos los errores se reportan en orden.
    """
    if note is None:
        return CreditNoteValidation(errors=["No se pudo extraer la información de la nota de crédito"])

    errors = []
    invoice_uuid = invoice_uuid or ""
    invoice_issuer_rfc = invoice_issuer_rfc or ""

    # 1. Debe ser un comprobante de Egreso
    if note.tipo_comprobante != "E":
        errors.append(
            f'El tipo de comprobante debe ser "E" (Egreso). '
            f'Se encontró: "{note.tipo_comprobante or "vacío"}"'
        )

    # 2. UUID relacionado
    if not note.related_uuid:
        errors.append("La nota de crédito no tiene un UUID relacionado (CfdiRelacionado)")
    elif note.related_uuid.upper() != invoice_uuid.upper():
        errors.append(
            f"El UUID relacionado no coincide con la factura. "
            f"Esperado: {invoice_uuid}, Encontrado: {note.related_uuid}"
        )

    # 3. Mismo emisor
    if note.issuer_rfc.upper() != invoice_issuer_rfc.upper():
        errors.append(
            f"El RFC del emisor no coincide con la factura. "
            f"Esperado: {invoice_issuer_rfc}, Encontrado: {note.issuer_rfc}"
        )

    # 4. Monto dentro de la tolerancia (límites incluidos)
    min_amount = expected_fee_amount * (1 - tolerance_percent)
    max_amount = expected_fee_amount * (1 + tolerance_percent)
    if note.total_amount < min_amount or note.total_amount > max_amount:
        errors.append(
            f"El monto de la nota de crédito no coincide con el costo financiero. "
            f"Esperado: ${expected_fee_amount:.2f}, Encontrado: ${note.total_amount:.2f}"
        )

    # 5. TipoRelacion 01: nota de crédito de los documentos relacionados
    if note.tipo_relacion != "01":
        errors.append(
            f'El tipo de relación debe ser "01" (Nota de crédito). Se encontró: "{note.tipo_relacion}"'
        )

    return CreditNoteValidation(errors=errors, data=note)


def pronto_pago_breakdown(total_amount: float, fee_rate: float = config.PRONTO_PAGO_FEE_RATE) -> Tuple[float, float]:
    """Costo financiero y monto neto a pagar bajo pronto pago."""
    fee = round(total_amount * fee_rate, 2)
    return fee, round(total_amount - fee, 2)


def describe_credit_note(note: CreditNoteRecord) -> str:
    parts = [
        f"Nota de Crédito {note.uuid}",
        f"Folio: {note.folio}" if note.folio else None,
        f"Monto: ${note.total_amount:.2f} {note.currency}",
        f"Fecha: {note.issue_date}",
        f"Relacionada a: {note.related_uuid}",
    ]
    return " | ".join(p for p in parts if p)
