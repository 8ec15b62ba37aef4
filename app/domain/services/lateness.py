# app/domain/services/lateness.py
import re
from datetime import date, datetime, time
from typing import Iterable, Optional, Union

from app.domain.models.lateness import LateReason, LatenessVerdict
from app.domain.services import deadlines, week_clock
from app.domain.services.week_clock import MEXICO_TZ

_WEEK_CLAIM_RE = re.compile(r"\bsemana\s*(?:no\.?\s*|#\s*)?(\d{1,2})\b", re.IGNORECASE)

OUT_OF_RANGE_DATE_MESSAGE = (
    "Fecha de factura fuera de rango: la semana debe pertenecer a los años "
    f"{deadlines.MIN_YEAR}-{deadlines.MAX_YEAR}."
)

_REASON_DESCRIPTIONS = {
    LateReason.AFTER_DEADLINE: "Subida después del plazo límite (Jueves 10am CDMX)",
    LateReason.WRONG_INVOICE_DATE: "Fecha de factura fuera del período válido (Martes-Jueves de su semana)",
    LateReason.WRONG_WEEK_IN_DESCRIPTION: "La semana indicada en la descripción no corresponde a la semana de facturación",
}


def parse_invoice_date(value: Union[str, date, None]) -> Optional[date]:
    """
    Acepta "YYYY-MM-DD" o el atributo Fecha completo del CFDI
    ("2026-01-15T10:30:00"). Devuelve None si no se puede interpretar.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return week_clock.local_date(value)
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text.split("T")[0])
    except ValueError:
        return None


def extract_week_claim(descriptions: Union[str, Iterable[str], None]) -> Optional[int]:
    """Busca "Semana 04" (o similar) en las descripciones de los conceptos."""
    if not descriptions:
        return None
    if isinstance(descriptions, str):
        descriptions = [descriptions]
    for text in descriptions:
        match = _WEEK_CLAIM_RE.search(text or "")
        if match:
            week = int(match.group(1))
            if 1 <= week <= 53:
                return week
    return None


def invoice_date_error(invoice_date: Union[date, datetime, None]) -> Optional[str]:
    """Mensaje de rechazo si la semana ISO de la fecha cae fuera de los años admitidos."""
    if invoice_date is None:
        return None
    _, year = week_clock.week_of(invoice_date)
    if not deadlines.is_plausible_year(year):
        return OUT_OF_RANGE_DATE_MESSAGE
    return None


def classify_lateness(
    invoice_date: Union[date, datetime],
    week_claim: Optional[int] = None,
    now: Optional[datetime] = None,
) -> LatenessVerdict:
    """
    Evalúa las tres reglas sin cortocircuito. El orden de `reasons` es fijo:
    after_deadline, wrong_invoice_date, wrong_week_in_description.

    Nunca lanza excepción: si el año ISO de la factura está fuera de rango el
    veredicto no lleva plazo y la fecha se marca como wrong_invoice_date.
    """
    now = week_clock.localize(now) if now is not None else week_clock.now()
    invoice_day = week_clock.local_date(invoice_date)
    week, year = week_clock.week_of(invoice_day)

    reasons = []
    deadline = start = end = None
    if deadlines.is_plausible_year(year):
        deadline = deadlines.upload_deadline(week, year)
        start, end = deadlines.valid_invoice_date_window(week, year)
        if now > deadline:
            reasons.append(LateReason.AFTER_DEADLINE)
        invoice_moment = datetime.combine(invoice_day, time(12, 0), tzinfo=MEXICO_TZ)
        if not start <= invoice_moment <= end:
            reasons.append(LateReason.WRONG_INVOICE_DATE)
    else:
        reasons.append(LateReason.WRONG_INVOICE_DATE)

    if week_claim is not None and week_claim != week:
        reasons.append(LateReason.WRONG_WEEK_IN_DESCRIPTION)

    return LatenessVerdict(
        reasons=reasons,
        week=week,
        year=year,
        deadline=deadline,
        valid_window_start=start,
        valid_window_end=end,
    )


def describe_late_reason(reason: LateReason) -> str:
    return _REASON_DESCRIPTIONS.get(reason, "Factura extemporánea")
