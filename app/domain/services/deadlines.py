# app/domain/services/deadlines.py
"""
Política temporal del ciclo de facturación.

- Las facturas de la semana N deben estar fechadas de martes a jueves de N.
- Se pueden subir hasta el jueves de la semana N+1 a las 10:00 (CDMX).
"""
from datetime import datetime, time, timedelta
from typing import List, Optional, Tuple

import config
from app.domain.models.lateness import ActiveWeek
from app.domain.services import week_clock
from app.domain.services.week_clock import MEXICO_TZ

MIN_YEAR = 2000
MAX_YEAR = 2100


def is_plausible_year(year: int) -> bool:
    return MIN_YEAR <= year <= MAX_YEAR


def _check_week(week: int, year: int) -> None:
    if not 1 <= week <= 53:
        raise ValueError(f"Semana fuera de rango (1-53): {week}")
    if not is_plausible_year(year):
        raise ValueError(f"Año fuera de rango ({MIN_YEAR}-{MAX_YEAR}): {year}")


def upload_deadline(week: int, year: int) -> datetime:
    """Jueves de la semana siguiente a las 10:00: lunes + 10 días."""
    _check_week(week, year)
    thursday_next = week_clock.monday_of(week, year) + timedelta(days=10)
    return datetime.combine(thursday_next, time(config.DEADLINE_HOUR, 0, 0), tzinfo=MEXICO_TZ)


def valid_invoice_date_window(week: int, year: int) -> Tuple[datetime, datetime]:
    """Martes 00:00 a jueves 23:59:59.999999 de la semana indicada."""
    _check_week(week, year)
    monday = week_clock.monday_of(week, year)
    start = datetime.combine(monday + timedelta(days=1), time.min, tzinfo=MEXICO_TZ)
    end = datetime.combine(monday + timedelta(days=3), time.max, tzinfo=MEXICO_TZ)
    return start, end


def active_weeks(now: Optional[datetime] = None) -> List[ActiveWeek]:
    """Semana actual y anterior cuyo plazo de carga sigue abierto."""
    now = week_clock.localize(now) if now is not None else week_clock.now()
    current_week, current_year = week_clock.week_of(now)

    candidates = []
    if current_week > 1:
        candidates.append((current_week - 1, current_year))
    else:
        candidates.append((week_clock.weeks_in_year(current_year - 1), current_year - 1))
    candidates.append((current_week, current_year))

    weeks = []
    for week, year in candidates:
        deadline = upload_deadline(week, year)
        if now <= deadline:
            weeks.append(ActiveWeek(
                week=week,
                year=year,
                deadline=deadline,
                label=week_clock.format_week_info(week, year),
            ))
    return weeks
