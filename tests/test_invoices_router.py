import json
import os
from datetime import date

import pytest
from fastapi.testclient import TestClient

from app.domain.models.invoice import ExtractedFields, PaymentProgram
from app.domain.services.lateness import OUT_OF_RANGE_DATE_MESSAGE
from app.infrastructure.api import dependencies
from app.infrastructure.api.routers import invoices_router
from main import app
from conftest import INVOICE_UUID, ISSUER_RFC, FakeExtractor


@pytest.fixture
def queued_tasks(monkeypatch, tmp_path):
    tasks = []
    monkeypatch.setattr(invoices_router.config, "TEMP_UPLOADS_DIR", str(tmp_path))
    monkeypatch.setattr(invoices_router.celery_app, "send_task", lambda name, args=None: tasks.append((name, args)))
    return tasks


@pytest.fixture
def client(db_session, now):
    app.dependency_overrides[dependencies.get_db] = lambda: db_session
    app.dependency_overrides[dependencies.get_invoice_extractor] = lambda: FakeExtractor(
        ExtractedFields(email="juan@example.com")
    )
    app.dependency_overrides[dependencies.get_now] = lambda: now
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _submit(client, draft, files=None, reasons="[]", confirmed="true"):
    files = files or {
        "xml_file": ("F1024.xml", b"<xml/>", "application/xml"),
        "pdf_file": ("F1024.pdf", b"%PDF", "application/pdf"),
    }
    return client.post(
        "/api/v1/facturas",
        data={"draft": draft.model_dump_json(), "acknowledged_reasons": reasons, "confirmed": confirmed},
        files=files,
    )


def test_health_check(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_list_projects(client):
    response = client.get("/api/v1/proyectos")
    assert response.status_code == 200
    assert [p["code"] for p in response.json()] == ["CDMX_SUR", "MTY_NORTE"]


def test_active_weeks(client):
    response = client.get("/api/v1/semanas/activas")
    assert response.status_code == 200
    assert [(w["week"], w["year"]) for w in response.json()] == [(3, 2026), (4, 2026)]


def test_extract_invoice(client, make_invoice_xml):
    response = client.post(
        "/api/v1/facturas/extraer",
        files={
            "xml_file": ("F1024.xml", make_invoice_xml().encode("utf-8"), "application/xml"),
            "pdf_file": ("F1024.pdf", b"%PDF", "application/pdf"),
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["editable"] is True
    assert body["draft"]["uuid"] == INVOICE_UUID
    assert body["draft"]["email"] == "juan@example.com"
    assert body["draft"]["project"] == "Monterrey Norte"
    assert body["lateness_state"] == "on_time"


def test_extract_returns_502_when_nothing_can_be_read(client):
    app.dependency_overrides[dependencies.get_invoice_extractor] = lambda: FakeExtractor(error="caído")
    response = client.post(
        "/api/v1/facturas/extraer",
        files={
            "xml_file": ("F1024.xml", b"no es xml", "application/xml"),
            "pdf_file": ("F1024.pdf", b"%PDF", "application/pdf"),
        },
    )
    assert response.status_code == 502


def test_extract_out_of_range_date_returns_session_error(client, make_invoice_xml):
    response = client.post(
        "/api/v1/facturas/extraer",
        files={
            "xml_file": ("F1024.xml", make_invoice_xml(fecha="1999-06-02T10:30:00").encode("utf-8"), "application/xml"),
            "pdf_file": ("F1024.pdf", b"%PDF", "application/pdf"),
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["errors"] == [OUT_OF_RANGE_DATE_MESSAGE]
    assert body["lateness_state"] == "unclassified"


def test_validate_credit_note(client, make_credit_note_xml):
    response = client.post(
        "/api/v1/facturas/nota-credito/validar",
        data={"invoice_uuid": INVOICE_UUID, "invoice_rfc": ISSUER_RFC, "invoice_total": "10000"},
        files={"credit_note_xml": ("NC15.xml", make_credit_note_xml().encode("utf-8"), "application/xml")},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["is_valid"] is True
    assert body["expected_fee"] == 800.0
    assert body["net_amount"] == 9200.0


def test_submit_registers_invoice_and_queues_archive(client, valid_draft, queued_tasks):
    response = _submit(client, valid_draft)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["invoice_id"].startswith("FAC-")
    assert body["archive_queued"] is True

    name, args = queued_tasks[0]
    assert name == "tasks.archive_invoice_files"
    invoice_id, metadata, temp_path, files = args
    assert invoice_id == body["invoice_id"]
    assert metadata["week"] == 3
    assert metadata["is_late"] is False
    assert files == {"xml": "xml.xml", "pdf": "pdf.pdf"}
    assert os.path.exists(os.path.join(temp_path, "xml.xml"))


def test_submit_duplicate_returns_409(client, valid_draft, queued_tasks):
    assert _submit(client, valid_draft).status_code == 201
    response = _submit(client, valid_draft)
    assert response.status_code == 409
    assert response.json()["detail"]["status"] == "duplicate"


def test_submit_validation_error_returns_400(client, valid_draft, queued_tasks):
    draft = valid_draft.model_copy(update={"receiver_rfc": "XAXX010101000"})
    response = _submit(client, draft)
    assert response.status_code == 400
    assert "RFC del receptor debe ser BLI180227F23" in response.json()["detail"]["errors"]
    assert queued_tasks == []


def test_submit_malformed_draft_returns_400(client, queued_tasks):
    response = client.post(
        "/api/v1/facturas",
        data={"draft": json.dumps({"week_claim": 99}), "confirmed": "true"},
    )
    assert response.status_code == 400


def test_submit_out_of_range_date_returns_400(client, valid_draft, queued_tasks):
    response = _submit(client, valid_draft.model_copy(update={"invoice_date": date(2000, 1, 1)}))
    assert response.status_code == 400
    assert OUT_OF_RANGE_DATE_MESSAGE in response.json()["detail"]["errors"]
    assert queued_tasks == []


def test_submit_late_invoice_requires_acknowledgment(client, valid_draft, queued_tasks):
    draft = valid_draft.model_copy(update={"invoice_date": date(2026, 1, 16)})

    response = _submit(client, draft)
    assert response.status_code == 422
    assert response.json()["detail"]["late_modal_reason"] == "wrong_invoice_date"

    response = _submit(client, draft, reasons='["wrong_invoice_date"]')
    assert response.status_code == 201
    assert queued_tasks[0][1][1]["is_late"] is True


def test_submit_rejects_unknown_reason(client, valid_draft, queued_tasks):
    response = _submit(client, valid_draft, reasons='["otro"]')
    assert response.status_code == 400


def test_submit_pronto_pago(client, valid_draft, queued_tasks, make_credit_note_xml):
    draft = valid_draft.model_copy(update={"payment_program": PaymentProgram.PRONTO_PAGO})
    response = _submit(client, draft, files={
        "xml_file": ("F1024.xml", b"<xml/>", "application/xml"),
        "pdf_file": ("F1024.pdf", b"%PDF", "application/pdf"),
        "credit_note_xml": ("NC15.xml", make_credit_note_xml().encode("utf-8"), "application/xml"),
        "credit_note_pdf": ("NC15.pdf", b"%PDF", "application/pdf"),
    })
    assert response.status_code == 201
    files = queued_tasks[0][1][3]
    assert set(files) == {"xml", "pdf", "credit_note_xml", "credit_note_pdf"}


def test_archive_failure_keeps_registered_invoice(client, valid_draft, monkeypatch, tmp_path):
    monkeypatch.setattr(invoices_router.config, "TEMP_UPLOADS_DIR", str(tmp_path))

    def broken_send_task(*args, **kwargs):
        raise ConnectionError("broker no disponible")

    monkeypatch.setattr(invoices_router.celery_app, "send_task", broken_send_task)
    response = _submit(client, valid_draft)
    assert response.status_code == 201
    assert response.json()["archive_queued"] is False
    assert os.listdir(tmp_path) == []
