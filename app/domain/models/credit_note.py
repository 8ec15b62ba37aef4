# app/domain/models/credit_note.py
from typing import List, Optional
from pydantic import BaseModel, Field, computed_field


class CreditNoteRecord(BaseModel):
    """Datos leídos de un CFDI de Egreso (tipo "E") usado como nota de crédito."""
    uuid: str
    issuer_rfc: str
    tipo_comprobante: str = ""
    related_uuid: str = ""
    tipo_relacion: str = "01"
    issuer_name: Optional[str] = None
    folio: Optional[str] = None
    series: Optional[str] = None
    subtotal: float = 0.0
    total_tax: float = 0.0
    total_amount: float = 0.0
    currency: str = "MXN"
    issue_date: str = ""
    certification_date: Optional[str] = None


class CreditNoteValidation(BaseModel):
    errors: List[str] = Field(default_factory=list)
    data: Optional[CreditNoteRecord] = None

    @computed_field
    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0
