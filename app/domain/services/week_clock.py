# app/domain/services/week_clock.py
"""
Semanas ISO-8601 evaluadas en hora de la Ciudad de México.

Una semana ISO empieza en lunes y se identifica por su jueves: la semana 1 es
la que contiene el primer jueves del año. Por eso un 31 de diciembre puede
pertenecer a la semana 1 del año siguiente y un 1 de enero a la semana 52 o 53
del anterior.
"""
import math
from datetime import date, datetime, timedelta
from typing import Tuple, Union
from zoneinfo import ZoneInfo

import config

MEXICO_TZ = ZoneInfo(config.TIMEZONE)

_MONTHS_ES = ["ene", "feb", "mar", "abr", "may", "jun", "jul", "ago", "sep", "oct", "nov", "dic"]


def now() -> datetime:
    """Hora actual en la Ciudad de México (único punto impuro del módulo)."""
    return datetime.now(MEXICO_TZ)


def localize(value: datetime) -> datetime:
    """Un datetime sin zona se interpreta como hora local de México."""
    if value.tzinfo is None:
        return value.replace(tzinfo=MEXICO_TZ)
    return value.astimezone(MEXICO_TZ)


def local_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return localize(value).date()
    return value


def week_of(value: Union[date, datetime]) -> Tuple[int, int]:
    """Devuelve (semana, año ISO) de una fecha."""
    d = local_date(value)
    # Domingo = 7, nunca 0
    thursday = d + timedelta(days=4 - d.isoweekday())
    year_start = date(thursday.year, 1, 1)
    week = math.ceil(((thursday - year_start).days + 1) / 7)
    return week, thursday.year


def monday_of(week: int, year: int) -> date:
    """Lunes de la semana ISO `week` del año `year`."""
    # El 4 de enero siempre cae en la semana 1
    jan4 = date(year, 1, 4)
    monday_week1 = jan4 - timedelta(days=jan4.isoweekday() - 1)
    return monday_week1 + timedelta(days=(week - 1) * 7)


def weeks_in_year(year: int) -> int:
    # El 28 de diciembre siempre pertenece a la última semana del año
    return week_of(date(year, 12, 28))[0]


def format_week_info(week: int, year: int) -> str:
    monday = monday_of(week, year)
    sunday = monday + timedelta(days=6)
    start = f"{monday.day} {_MONTHS_ES[monday.month - 1]}"
    end = f"{sunday.day} {_MONTHS_ES[sunday.month - 1]}"
    return f"Semana {week} ({start} - {end}, {year})"
