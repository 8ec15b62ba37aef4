import os

# La BD de la app queda en memoria durante las pruebas
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, datetime
from typing import List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.domain.models.invoice import ExtractedFields, InvoiceDraft, PaymentProgram, Project
from app.domain.ports.invoice_extractor import ExtractionError, InvoiceExtractor
from app.domain.ports.invoice_repository import InvoiceRepository
from app.domain.ports.project_catalog import ProjectCatalog
from app.domain.services.week_clock import MEXICO_TZ
from app.infrastructure.persistence import models
from app.infrastructure.persistence.database import Base

INVOICE_UUID = "6F1D3C2A-4B5E-4F60-8A71-92B3C4D5E6F7"
CREDIT_NOTE_UUID = "A1B2C3D4-E5F6-4A7B-8C9D-0E1F2A3B4C5D"
ISSUER_RFC = "PEGJ800101AB1"
RECEIVER_RFC = "BLI180227F23"

PROJECTS = [
    Project(code="MTY_NORTE", name="Monterrey Norte"),
    Project(code="CDMX_SUR", name="CDMX Sur"),
]

INVOICE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<cfdi:Comprobante xmlns:cfdi="http://www.sat.gob.mx/cfd/4" xmlns:tfd="http://www.sat.gob.mx/TimbreFiscalDigital" Version="4.0" Serie="A" Folio="1024" Fecha="{fecha}" FormaPago="03" CondicionesDePago="Contado" SubTotal="8620.69" Moneda="MXN" Total="{total}" TipoDeComprobante="I" Exportacion="01" MetodoPago="PUE" LugarExpedicion="64000">
  <cfdi:Emisor Rfc="{issuer_rfc}" Nombre="JUAN PEREZ GARCIA" RegimenFiscal="626"/>
  <cfdi:Receptor Rfc="{receiver_rfc}" Nombre="BLUE LOGISTICS" DomicilioFiscalReceptor="06600" RegimenFiscalReceptor="601" UsoCFDI="G03"/>
  <cfdi:Conceptos>
    <cfdi:Concepto ClaveProdServ="78101802" Cantidad="1" ClaveUnidad="E48" Unidad="Servicio" Descripcion="{description}" ValorUnitario="8620.69" Importe="8620.69" ObjetoImp="02">
      <cfdi:Impuestos>
        <cfdi:Traslados>
          <cfdi:Traslado Base="8620.69" Impuesto="002" TipoFactor="Tasa" TasaOCuota="0.160000" Importe="1379.31"/>
        </cfdi:Traslados>
        <cfdi:Retenciones>
          <cfdi:Retencion Base="8620.69" Impuesto="001" TipoFactor="Tasa" TasaOCuota="0.012500" Importe="107.76"/>
        </cfdi:Retenciones>
      </cfdi:Impuestos>
    </cfdi:Concepto>
  </cfdi:Conceptos>
  <cfdi:Impuestos TotalImpuestosRetenidos="107.76" TotalImpuestosTrasladados="1379.31">
    <cfdi:Retenciones>
      <cfdi:Retencion Impuesto="001" Importe="107.76"/>
    </cfdi:Retenciones>
  </cfdi:Impuestos>
  <cfdi:Complemento>
    <tfd:TimbreFiscalDigital Version="1.1" UUID="{uuid}" FechaTimbrado="{fecha}" RfcProvCertif="SAT970701NN3" NoCertificadoSAT="00001000000509846663"/>
  </cfdi:Complemento>
</cfdi:Comprobante>
"""

CREDIT_NOTE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<cfdi:Comprobante xmlns:cfdi="http://www.sat.gob.mx/cfd/4" xmlns:tfd="http://www.sat.gob.mx/TimbreFiscalDigital" Version="4.0" Serie="NC" Folio="15" Fecha="2026-01-15T11:20:00" SubTotal="689.66" Moneda="MXN" Total="{total}" TipoDeComprobante="{tipo}" Exportacion="01" MetodoPago="PUE" LugarExpedicion="64000">
  <cfdi:CfdiRelacionados TipoRelacion="{tipo_relacion}">
    <cfdi:CfdiRelacionado UUID="{related_uuid}"/>
  </cfdi:CfdiRelacionados>
  <cfdi:Emisor Rfc="{issuer_rfc}" Nombre="JUAN PEREZ GARCIA" RegimenFiscal="626"/>
  <cfdi:Receptor Rfc="BLI180227F23" Nombre="BLUE LOGISTICS" DomicilioFiscalReceptor="06600" RegimenFiscalReceptor="601" UsoCFDI="G02"/>
  <cfdi:Conceptos>
    <cfdi:Concepto ClaveProdServ="84101700" Cantidad="1" ClaveUnidad="ACT" Descripcion="Costo financiero pronto pago" ValorUnitario="689.66" Importe="689.66" ObjetoImp="02"/>
  </cfdi:Conceptos>
  <cfdi:Impuestos TotalImpuestosTrasladados="110.34"/>
  <cfdi:Complemento>
    <tfd:TimbreFiscalDigital Version="1.1" UUID="{uuid}" FechaTimbrado="2026-01-15T11:21:00" RfcProvCertif="SAT970701NN3" NoCertificadoSAT="00001000000509846663"/>
  </cfdi:Complemento>
</cfdi:Comprobante>
"""


@pytest.fixture
def make_invoice_xml():
    def _make(
        uuid=INVOICE_UUID,
        fecha="2026-01-14T10:30:00",
        description="Servicio de transporte Semana 03 Monterrey Norte",
        issuer_rfc=ISSUER_RFC,
        receiver_rfc=RECEIVER_RFC,
        total="10000.00",
    ) -> str:
        return INVOICE_XML.format(
            uuid=uuid,
            fecha=fecha,
            description=description,
            issuer_rfc=issuer_rfc,
            receiver_rfc=receiver_rfc,
            total=total,
        )
    return _make


@pytest.fixture
def make_credit_note_xml():
    def _make(
        uuid=CREDIT_NOTE_UUID,
        related_uuid=INVOICE_UUID,
        issuer_rfc=ISSUER_RFC,
        total="800.00",
        tipo="E",
        tipo_relacion="01",
    ) -> str:
        return CREDIT_NOTE_XML.format(
            uuid=uuid,
            related_uuid=related_uuid,
            issuer_rfc=issuer_rfc,
            total=total,
            tipo=tipo,
            tipo_relacion=tipo_relacion,
        )
    return _make


@pytest.fixture
def now():
    # Martes de la semana 4 de 2026: la semana 3 sigue abierta
    return datetime(2026, 1, 20, 9, 0, tzinfo=MEXICO_TZ)


@pytest.fixture
def projects():
    return list(PROJECTS)


@pytest.fixture
def valid_draft():
    return InvoiceDraft(
        rfc=ISSUER_RFC,
        biller_name="JUAN PEREZ GARCIA",
        receiver_rfc=RECEIVER_RFC,
        project="Monterrey Norte",
        week_claim=3,
        invoice_date=date(2026, 1, 14),
        uuid=INVOICE_UUID,
        payment_method="PUE",
        subtotal=8620.69,
        total_tax=1379.31,
        total_amount=10000.00,
        currency="MXN",
        payment_program=PaymentProgram.STANDARD,
        email="juan@example.com",
    )


# --- Dobles de prueba de los puertos ---

class FakeExtractor(InvoiceExtractor):
    def __init__(self, fields: Optional[ExtractedFields] = None, error: Optional[str] = None):
        self.fields = fields or ExtractedFields()
        self.error = error
        self.calls = 0

    def extract(self, xml_text, pdf_bytes=None, pdf_filename=None) -> ExtractedFields:
        self.calls += 1
        if self.error:
            raise ExtractionError(self.error)
        return self.fields


class FakeProjectCatalog(ProjectCatalog):
    def __init__(self, projects: List[Project]):
        self.projects = projects

    def list_active(self) -> List[Project]:
        return list(self.projects)


class FakeInvoiceRepository(InvoiceRepository):
    def __init__(self, existing_uuids=()):
        self.uuids = {uuid.upper() for uuid in existing_uuids}
        self.saved = []
        self.files = []

    def exists_uuid(self, uuid: str) -> bool:
        return bool(uuid) and uuid.upper() in self.uuids

    def save_invoice(self, draft, verdict, project, pronto_pago=None, credit_note_uuid=None) -> str:
        invoice_id = self.generate_next_invoice_id()
        self.uuids.add(draft.uuid.upper())
        self.saved.append({
            "id": invoice_id,
            "draft": draft,
            "verdict": verdict,
            "project": project,
            "pronto_pago": pronto_pago,
            "credit_note_uuid": credit_note_uuid,
        })
        return invoice_id

    def save_file_record(self, invoice_id, kind, filename, url, file_id) -> None:
        self.files.append((invoice_id, kind, filename, url, file_id))

    def generate_next_invoice_id(self) -> str:
        return f"FAC-20260120-{len(self.saved) + 1:03d}"


@pytest.fixture
def fake_catalog(projects):
    return FakeProjectCatalog(projects)


@pytest.fixture
def fake_repo():
    return FakeInvoiceRepository()


# --- Base de datos en memoria ---

@pytest.fixture
def db_session(projects):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    for project in projects:
        session.add(models.Proyecto(codigo=project.code, nombre=project.name, activo=True))
    session.add(models.Proyecto(codigo="GDL_OLD", nombre="Guadalajara Anterior", activo=False))
    session.commit()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
