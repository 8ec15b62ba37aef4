# app/application/use_cases/validate_credit_note.py
import logging

import config
from app.domain.models.credit_note import CreditNoteValidation
from app.domain.services.credit_note import (
    describe_credit_note,
    looks_like_credit_note,
    parse_credit_note,
    pronto_pago_breakdown,
    validate_credit_note,
)
from app.domain.services.xml_text import FILE_ERROR_MESSAGE, decode_xml_bytes

NOT_A_CREDIT_NOTE_MESSAGE = 'El archivo no es una nota de crédito: TipoDeComprobante debe ser "E" (Egreso).'


class ValidateCreditNoteUseCase:
    """
    Valida la nota de crédito de pronto pago contra la factura principal.
    El monto esperado es el costo financiero del programa sobre el total.
    """
    def __init__(self, fee_rate: float = config.PRONTO_PAGO_FEE_RATE, tolerance: float = config.CREDIT_NOTE_TOLERANCE):
        self.fee_rate = fee_rate
        self.tolerance = tolerance

    def expected_fee(self, invoice_total: float) -> float:
        fee, _ = pronto_pago_breakdown(invoice_total or 0.0, self.fee_rate)
        return fee

    def execute(self, xml_bytes: bytes, invoice_uuid: str, invoice_issuer_rfc: str, invoice_total: float) -> CreditNoteValidation:
        try:
            xml_text = decode_xml_bytes(xml_bytes)
        except UnicodeDecodeError as e:
            logging.warning(f"[{invoice_uuid}] No se pudo decodificar la nota de crédito: {e}")
            return CreditNoteValidation(errors=[FILE_ERROR_MESSAGE])

        if not looks_like_credit_note(xml_text):
            return CreditNoteValidation(errors=[NOT_A_CREDIT_NOTE_MESSAGE])

        note = parse_credit_note(xml_text)
        validation = validate_credit_note(
            note,
            invoice_uuid,
            invoice_issuer_rfc,
            self.expected_fee(invoice_total),
            self.tolerance,
        )
        if validation.is_valid:
            logging.info(f"[{invoice_uuid}] Nota de crédito válida: {describe_credit_note(note)}")
        else:
            logging.info(f"[{invoice_uuid}] Nota de crédito rechazada: {validation.errors}")
        return validation
