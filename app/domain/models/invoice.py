# app/domain/models/invoice.py
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import date


class PaymentProgram(str, Enum):
    STANDARD = "standard"
    PRONTO_PAGO = "pronto_pago"


class InvoiceItem(BaseModel):
    """Concepto de la factura."""
    description: str = ""
    quantity: float = 0.0
    unit_price: float = 0.0
    amount: float = 0.0
    unit: Optional[str] = None
    product_key: Optional[str] = None  # ClaveProdServ
    tax_object: Optional[str] = None   # ObjetoImp


class Project(BaseModel):
    code: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class ExtractedFields(BaseModel):
    """
    Campos que devuelve un extractor (IA o lectura local del XML).
    Todos son opcionales: un campo ausente significa "aún no se conoce",
    nunca un error de validación.
    """
    # --- Emisor ---
    rfc: Optional[str] = None
    biller_name: Optional[str] = None
    issuer_regime: Optional[str] = None
    issuer_zip_code: Optional[str] = None

    # --- Receptor ---
    receiver_rfc: Optional[str] = None
    receiver_name: Optional[str] = None
    receiver_regime: Optional[str] = None
    receiver_zip_code: Optional[str] = None
    cfdi_use: Optional[str] = None

    # --- Identificación ---
    project: Optional[str] = None
    week_claim: Optional[int] = Field(default=None, ge=1, le=53)
    invoice_date: Optional[date] = None
    folio: Optional[str] = None
    series: Optional[str] = None
    uuid: Optional[str] = None
    certification_date: Optional[str] = None
    sat_cert_number: Optional[str] = None

    # --- Pago ---
    payment_method: Optional[str] = None
    payment_form: Optional[str] = None
    payment_conditions: Optional[str] = None

    # --- Importes ---
    subtotal: Optional[float] = None
    total_tax: Optional[float] = None
    retention_iva: Optional[float] = None
    retention_iva_rate: Optional[float] = None
    retention_isr: Optional[float] = None
    retention_isr_rate: Optional[float] = None
    total_amount: Optional[float] = None
    currency: Optional[str] = None
    exchange_rate: Optional[float] = None

    items: Optional[List[InvoiceItem]] = None
    email: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    def merged_with(self, fallback: "ExtractedFields") -> "ExtractedFields":
        """Completa los campos vacíos con los de `fallback`."""
        values = fallback.model_dump(exclude_none=True)
        values.update(self.model_dump(exclude_none=True))
        return ExtractedFields(**values)


class InvoiceDraft(ExtractedFields):
    """
    Borrador editable de la factura durante la sesión de carga.
    Se crea vacío, lo llena la extracción y lo corrige el usuario.
    """
    payment_program: PaymentProgram = PaymentProgram.STANDARD
    phone: Optional[str] = None

    # --- Archivos adjuntos (solo nombres; el contenido viaja aparte) ---
    xml_filename: Optional[str] = None
    pdf_filename: Optional[str] = None
    credit_note_xml_filename: Optional[str] = None
    credit_note_pdf_filename: Optional[str] = None

    def apply_extraction(self, fields: ExtractedFields) -> "InvoiceDraft":
        """Sobrescribe solo los campos que la extracción sí produjo."""
        update = {
            name: getattr(fields, name)
            for name in ExtractedFields.model_fields
            if getattr(fields, name) is not None
        }
        return self.model_copy(update=update)
