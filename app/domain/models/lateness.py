# app/domain/models/lateness.py
from enum import Enum
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, computed_field


class LateReason(str, Enum):
    """Motivos de extemporaneidad, en orden de severidad."""
    AFTER_DEADLINE = "after_deadline"
    WRONG_INVOICE_DATE = "wrong_invoice_date"
    WRONG_WEEK_IN_DESCRIPTION = "wrong_week_in_description"


class PaymentWeek(BaseModel):
    week: int = Field(ge=1, le=53)
    year: int


class LatenessVerdict(BaseModel):
    reasons: List[LateReason] = Field(default_factory=list)
    week: int
    year: int
    # Sin plazo ni ventana cuando el año ISO está fuera de rango
    deadline: Optional[datetime] = None
    valid_window_start: Optional[datetime] = None
    valid_window_end: Optional[datetime] = None

    @computed_field
    @property
    def is_late(self) -> bool:
        return len(self.reasons) > 0

    @property
    def payment_week(self) -> PaymentWeek:
        return PaymentWeek(week=self.week, year=self.year)


class ActiveWeek(BaseModel):
    week: int
    year: int
    deadline: datetime
    label: str
