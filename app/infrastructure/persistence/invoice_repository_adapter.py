import logging
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from sqlalchemy import func

from app.domain.ports.invoice_repository import InvoiceRepository
from app.domain.ports.project_catalog import ProjectCatalog
from app.domain.models.invoice import InvoiceDraft, Project
from app.domain.models.lateness import LatenessVerdict
from app.domain.services import week_clock
from .models import ArchivoFactura, ConceptoFactura, Emisor, Factura, Proyecto

logger = logging.getLogger(__name__)


def _extract_code(value: Optional[str], max_len: int) -> Optional[str]:
    """'601 - General de Ley Personas Morales' -> '601'."""
    if not value:
        return None
    return value.split(" - ")[0].strip()[:max_len]


class PostgreSQLInvoiceRepository(InvoiceRepository):
    def __init__(self, db: Session):
        self.db = db

    def _find_or_create_issuer(self, draft: InvoiceDraft) -> Emisor:
        rfc = draft.rfc.upper()
        emisor = self.db.query(Emisor).filter(Emisor.rfc == rfc).first()
        if not emisor:
            emisor = Emisor(rfc=rfc)
            self.db.add(emisor)
        emisor.razon_social = draft.biller_name or emisor.razon_social
        emisor.regimen_fiscal = _extract_code(draft.issuer_regime, 10) or emisor.regimen_fiscal
        emisor.codigo_postal = _extract_code(draft.issuer_zip_code, 5) or emisor.codigo_postal
        emisor.email = draft.email or emisor.email
        emisor.telefono = draft.phone or emisor.telefono
        self.db.flush()
        return emisor

    def exists_uuid(self, uuid: str) -> bool:
        if not uuid:
            return False
        found = self.db.query(Factura.id).filter(func.upper(Factura.uuid) == uuid.upper()).first()
        return found is not None

    def save_invoice(
        self,
        draft: InvoiceDraft,
        verdict: Optional[LatenessVerdict],
        project: Optional[Project],
        pronto_pago: Optional[Tuple[float, float]] = None,
        credit_note_uuid: Optional[str] = None,
    ) -> str:
        if not draft.uuid or not draft.rfc:
            raise ValueError("No se puede guardar una factura sin UUID ni RFC del emisor.")

        invoice_id = self.generate_next_invoice_id()
        logger.info(f"[{draft.uuid}] Nuevo ID de factura generado: {invoice_id}")

        emisor = self._find_or_create_issuer(draft)

        proyecto_id = None
        if project is not None:
            proyecto = self.db.query(Proyecto).filter(Proyecto.codigo == project.code).first()
            proyecto_id = proyecto.id if proyecto else None

        fee_amount, net_amount = pronto_pago if pronto_pago else (0.0, draft.total_amount)
        fee_rate = round(fee_amount / draft.total_amount, 4) if pronto_pago and draft.total_amount else 0.0

        db_factura = Factura(
            id=invoice_id,
            uuid=draft.uuid.upper(),
            emisor_rfc=emisor.rfc,
            proyecto_id=proyecto_id,
            folio=draft.folio,
            serie=draft.series,
            fecha_factura=draft.invoice_date,
            fecha_timbrado=draft.certification_date,
            no_certificado_sat=draft.sat_cert_number,
            receptor_rfc=(draft.receiver_rfc or "").upper() or None,
            receptor_nombre=draft.receiver_name,
            receptor_regimen=_extract_code(draft.receiver_regime, 10),
            uso_cfdi=_extract_code(draft.cfdi_use, 10),
            metodo_pago=(draft.payment_method or "").upper() or None,
            forma_pago=_extract_code(draft.payment_form, 10),
            condiciones_pago=draft.payment_conditions,
            subtotal=draft.subtotal or 0,
            total_impuestos=draft.total_tax or 0,
            retencion_iva=draft.retention_iva or 0,
            retencion_iva_tasa=draft.retention_iva_rate or 0,
            retencion_isr=draft.retention_isr or 0,
            retencion_isr_tasa=draft.retention_isr_rate or 0,
            monto_total=draft.total_amount,
            moneda=draft.currency or "MXN",
            tipo_cambio=draft.exchange_rate or 1,
            semana_pago=verdict.week if verdict else None,
            anio_pago=verdict.year if verdict else None,
            es_extemporanea=bool(verdict and verdict.is_late),
            motivos_extemporanea=",".join(r.value for r in verdict.reasons) if verdict and verdict.is_late else None,
            programa_pago=draft.payment_program.value,
            tasa_pronto_pago=fee_rate,
            costo_pronto_pago=fee_amount,
            monto_neto=net_amount,
            nota_credito_uuid=credit_note_uuid,
            email_contacto=draft.email,
            telefono_contacto=draft.phone,
        )
        self.db.add(db_factura)

        for item in draft.items or []:
            self.db.add(ConceptoFactura(
                factura_id=invoice_id,
                descripcion=item.description,
                cantidad=item.quantity,
                valor_unitario=item.unit_price,
                importe=item.amount,
                unidad=item.unit,
                clave_prod_serv=item.product_key,
                objeto_imp=item.tax_object,
            ))

        self.db.flush()
        return invoice_id

    def save_file_record(self, invoice_id: str, kind: str, filename: str, url: str, file_id: str) -> None:
        self.db.add(ArchivoFactura(
            factura_id=invoice_id,
            tipo=kind,
            nombre_archivo=filename,
            url=url,
            drive_file_id=file_id,
        ))
        self.db.flush()

    def generate_next_invoice_id(self) -> str:
        today_str = week_clock.now().strftime('%Y%m%d')
        id_prefix = f"FAC-{today_str}-"

        # Compara el consecutivo como número: "-1000" va después de "-999"
        ids_today = self.db.query(Factura.id)\
            .filter(Factura.id.like(f"{id_prefix}%"))\
            .all()
        numbers = [int(row[0].split('-')[-1]) for row in ids_today]

        # Si es la primera del día, empieza en 1
        next_number = max(numbers) + 1 if numbers else 1

        # Formatea el nuevo ID con 3 dígitos (ej. 001, 012, 123)
        return f"{id_prefix}{next_number:03d}"


class PostgreSQLProjectCatalog(ProjectCatalog):
    def __init__(self, db: Session):
        self.db = db

    def list_active(self) -> List[Project]:
        rows = self.db.query(Proyecto).filter(Proyecto.activo.is_(True)).order_by(Proyecto.nombre).all()
        return [Project(code=row.codigo, name=row.nombre) for row in rows]
