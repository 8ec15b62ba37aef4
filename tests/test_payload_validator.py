from datetime import date

import pytest

from app.domain.services.lateness import OUT_OF_RANGE_DATE_MESSAGE
from app.domain.services.payload_validator import is_valid_rfc, is_valid_uuid, validate_submission_payload


def test_valid_draft_has_no_errors(valid_draft):
    assert validate_submission_payload(valid_draft, has_xml=True, has_pdf=True) == []


def test_missing_files(valid_draft):
    errors = validate_submission_payload(valid_draft, has_xml=False, has_pdf=False)
    assert errors == ["El archivo XML es requerido", "El archivo PDF es requerido"]


@pytest.mark.parametrize("changes, error", [
    ({"project": " "}, "Proyecto es requerido"),
    ({"rfc": None}, "RFC del emisor es requerido"),
    ({"rfc": "ABC123"}, "RFC del emisor tiene formato inválido"),
    ({"biller_name": ""}, "Nombre del emisor es requerido"),
    ({"receiver_rfc": None}, "RFC del receptor es requerido"),
    ({"receiver_rfc": "XAXX010101000"}, "RFC del receptor debe ser BLI180227F23"),
    ({"uuid": None}, "UUID (Folio Fiscal) es requerido"),
    ({"uuid": "no-es-uuid"}, "UUID tiene formato inválido"),
    ({"invoice_date": None}, "Fecha de factura es requerida"),
    ({"invoice_date": date(1999, 6, 2)}, OUT_OF_RANGE_DATE_MESSAGE),
    ({"payment_method": "ABC"}, "Método de pago debe ser PUE o PPD"),
    ({"payment_method": None}, "Método de pago es requerido"),
    ({"total_amount": 0}, "Monto total debe ser un número positivo"),
    ({"total_amount": None}, "Monto total es requerido"),
    ({"email": "correo-invalido"}, "Formato de correo electrónico inválido"),
])
def test_each_rule(valid_draft, changes, error):
    draft = valid_draft.model_copy(update=changes)
    assert validate_submission_payload(draft, has_xml=True, has_pdf=True) == [error]


def test_receiver_rfc_comparison_ignores_case(valid_draft):
    draft = valid_draft.model_copy(update={"receiver_rfc": "bli180227f23", "payment_method": "ppd"})
    assert validate_submission_payload(draft, has_xml=True, has_pdf=True) == []


@pytest.mark.parametrize("rfc, valid", [
    ("BLI180227F23", True),
    ("PEGJ800101AB1", True),
    ("ÑEGJ800101AB1", True),
    ("PEGJ8001AB1", False),
    ("", False),
])
def test_is_valid_rfc(rfc, valid):
    assert is_valid_rfc(rfc) is valid


def test_is_valid_uuid():
    assert is_valid_uuid("6f1d3c2a-4b5e-4f60-8a71-92b3c4d5e6f7")
    assert not is_valid_uuid("6f1d3c2a4b5e4f608a7192b3c4d5e6f7")
