from datetime import date, datetime, timedelta

import pytest

from app.domain.models.lateness import LateReason
from app.domain.services.deadlines import upload_deadline
from app.domain.services.lateness import (
    OUT_OF_RANGE_DATE_MESSAGE,
    classify_lateness,
    describe_late_reason,
    extract_week_claim,
    invoice_date_error,
    parse_invoice_date,
)
from app.domain.services.week_clock import MEXICO_TZ


def test_wednesday_invoice_before_deadline_is_on_time():
    verdict = classify_lateness(date(2026, 1, 14), now=datetime(2026, 1, 20, 9, 0, tzinfo=MEXICO_TZ))
    assert verdict.is_late is False
    assert verdict.reasons == []
    assert (verdict.week, verdict.year) == (3, 2026)
    assert verdict.deadline == upload_deadline(3, 2026)


@pytest.mark.parametrize("now", [
    datetime(2026, 1, 12, 18, 0, tzinfo=MEXICO_TZ),
    datetime(2026, 1, 20, 9, 0, tzinfo=MEXICO_TZ),
])
def test_monday_invoice_has_wrong_invoice_date_regardless_of_now(now):
    verdict = classify_lateness(date(2026, 1, 12), now=now)
    assert verdict.is_late is True
    assert verdict.reasons == [LateReason.WRONG_INVOICE_DATE]


def test_one_minute_after_deadline_is_late():
    now = upload_deadline(3, 2026) + timedelta(minutes=1)
    verdict = classify_lateness(date(2026, 1, 14), now=now)
    assert verdict.reasons == [LateReason.AFTER_DEADLINE]


def test_exactly_at_deadline_is_on_time():
    verdict = classify_lateness(date(2026, 1, 14), now=upload_deadline(3, 2026))
    assert verdict.is_late is False


def test_week_claim_mismatch_alone():
    # Miércoles 29 de julio de 2026 es semana 31
    verdict = classify_lateness(
        date(2026, 7, 29),
        week_claim=30,
        now=datetime(2026, 7, 30, 12, 0, tzinfo=MEXICO_TZ),
    )
    assert verdict.week == 31
    assert verdict.reasons == [LateReason.WRONG_WEEK_IN_DESCRIPTION]


def test_matching_week_claim_is_not_a_reason():
    verdict = classify_lateness(date(2026, 7, 29), week_claim=31, now=datetime(2026, 7, 30, tzinfo=MEXICO_TZ))
    assert verdict.is_late is False


def test_all_reasons_are_reported_in_fixed_order():
    verdict = classify_lateness(
        date(2026, 1, 12),
        week_claim=2,
        now=datetime(2026, 2, 1, 12, 0, tzinfo=MEXICO_TZ),
    )
    assert verdict.reasons == [
        LateReason.AFTER_DEADLINE,
        LateReason.WRONG_INVOICE_DATE,
        LateReason.WRONG_WEEK_IN_DESCRIPTION,
    ]


@pytest.mark.parametrize("invoice_day, week_claim, late, wrong_date", [
    (date(2026, 1, 13), 4, False, False),
    (date(2026, 1, 16), 3, False, True),
    (date(2026, 1, 18), 9, True, True),
    (date(2026, 1, 15), None, True, False),
])
def test_reasons_are_never_omitted(invoice_day, week_claim, late, wrong_date):
    now = datetime(2026, 1, 22, 11, 0, tzinfo=MEXICO_TZ) if late else datetime(2026, 1, 19, tzinfo=MEXICO_TZ)
    verdict = classify_lateness(invoice_day, week_claim=week_claim, now=now)

    expected = []
    if late:
        expected.append(LateReason.AFTER_DEADLINE)
    if wrong_date:
        expected.append(LateReason.WRONG_INVOICE_DATE)
    if week_claim is not None and week_claim != 3:
        expected.append(LateReason.WRONG_WEEK_IN_DESCRIPTION)
    assert verdict.reasons == expected
    assert verdict.is_late == bool(expected)


def test_invoice_datetime_is_converted_to_local_day():
    # 02:00 UTC del viernes 16 es jueves 15 a las 20:00 en CDMX
    moment = datetime.fromisoformat("2026-01-16T02:00:00+00:00")
    verdict = classify_lateness(moment, now=datetime(2026, 1, 19, tzinfo=MEXICO_TZ))
    assert verdict.reasons == []


def test_date_in_week_of_earlier_iso_year_does_not_raise():
    # El sábado 1 de enero de 2000 pertenece a la semana 52 de 1999
    verdict = classify_lateness(date(2000, 1, 1), week_claim=3, now=datetime(2026, 1, 20, tzinfo=MEXICO_TZ))
    assert (verdict.week, verdict.year) == (52, 1999)
    assert verdict.deadline is None
    assert verdict.valid_window_start is None
    assert verdict.reasons == [LateReason.WRONG_INVOICE_DATE, LateReason.WRONG_WEEK_IN_DESCRIPTION]


@pytest.mark.parametrize("invoice_day, expected", [
    (date(1999, 6, 2), OUT_OF_RANGE_DATE_MESSAGE),
    (date(2000, 1, 1), OUT_OF_RANGE_DATE_MESSAGE),
    (date(2000, 1, 3), None),
    (date(2101, 1, 1), None),
    (date(2102, 1, 3), OUT_OF_RANGE_DATE_MESSAGE),
    (None, None),
])
def test_invoice_date_error_uses_iso_year(invoice_day, expected):
    assert invoice_date_error(invoice_day) == expected


@pytest.mark.parametrize("value, expected", [
    ("2026-01-14", date(2026, 1, 14)),
    ("2026-01-14T10:30:00", date(2026, 1, 14)),
    (date(2026, 1, 14), date(2026, 1, 14)),
    ("14/01/2026", None),
    ("", None),
    (None, None),
])
def test_parse_invoice_date(value, expected):
    assert parse_invoice_date(value) == expected


@pytest.mark.parametrize("text, expected", [
    ("Servicio de transporte Semana 04", 4),
    ("SEMANA #12 ruta norte", 12),
    ("semana no. 7", 7),
    (["Flete", "Semana 53"], 53),
    ("Semana 60", None),
    ("Flete sin referencia", None),
    (None, None),
])
def test_extract_week_claim(text, expected):
    assert extract_week_claim(text) == expected


def test_describe_late_reason():
    assert "Jueves 10am" in describe_late_reason(LateReason.AFTER_DEADLINE)
    assert "Martes-Jueves" in describe_late_reason(LateReason.WRONG_INVOICE_DATE)
