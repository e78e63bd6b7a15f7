"""
test_parsers.py

Unit tests for the lab-sheet parsers: event labels, dates and field maps.
"""

from datetime import date

from labjournal.parsers.base import parse_number, strip_punctuation
from labjournal.parsers.dates import parse_date
from labjournal.parsers.event_tag import EventTag, parse_event
from labjournal.parsers.fields import parse_fields

TODAY = date(2024, 3, 1)

SHEET_FOLFIRI = {"EVENT": "FOLFIRI C2 D11", "白细胞计数": "5.6", "未知字段": "x"}

SHEET_FULL = {
    "EVENT": "XELOX C3 D8 化疗后",
    "日期": "02.20",
    "白细胞计数": "3.21",
    "中性粒细胞绝对值": " 1.5 ",
    "血红蛋白": "118",
    "血小板计数": "96",
    "癌胚抗原（CEA）": "-",
    "总胆红素": "",
}


# ----------------- EventTag -----------------
def test_event_scheme_cycle_day():
    tag = parse_event("FOLFIRI C2 D11")
    assert tag.scheme == "FOLFIRI"
    assert tag.cycle == 2
    assert tag.day == 11
    assert tag.raw_tokens == ()


def test_event_compact_and_free_tokens():
    tag = EventTag.parse("XELOX C3D1 化疗后")
    assert (tag.scheme, tag.cycle, tag.day) == ("XELOX", 3, 1)
    assert tag.raw_tokens == ("化疗后",)


def test_event_without_scheme_strips_punctuation():
    tag = parse_event("复查 C4, 第二次")
    assert tag.scheme is None
    assert tag.cycle == 4
    assert tag.day is None
    assert tag.raw_tokens == ("复查", "第二次")


def test_event_plain_text_and_empty():
    assert parse_event("术后复查") == EventTag(raw_tokens=("术后复查",))
    empty = parse_event("")
    assert empty.is_empty
    assert empty.display_text() == ""


def test_event_display_text_is_stable():
    tag = parse_event("FOLFIRI  D11 C2 化疗后 (门诊)")
    assert tag.display_text() == "FOLFIRI C2 D11 化疗后 门诊"
    assert parse_event(tag.display_text()) == tag


def test_event_scheme_must_lead_the_label():
    # a scheme behind an opening bracket is kept as a plain token; the rendered
    # text no longer has the bracket, so re-reading it promotes the scheme
    tag = parse_event("(XELOX) 复查")
    assert tag.scheme is None
    assert tag.raw_tokens == ("XELOX", "复查")
    again = parse_event(tag.display_text())
    assert again.scheme == "XELOX"
    assert again.raw_tokens == ("复查",)


def test_strip_punctuation():
    assert strip_punctuation("（门诊）") == "门诊"
    assert strip_punctuation("...") == ""
    assert strip_punctuation("a-b") == "a-b"


# ----------------- Dates -----------------
def test_date_full_forms():
    assert parse_date("2024-03-05", today=date(2026, 1, 1)) == date(2024, 3, 5)
    assert parse_date("2024/03/05", today=date(2026, 1, 1)) == date(2024, 3, 5)
    # a full four-digit year is taken as written
    assert parse_date("2024-12-31", today=TODAY) == date(2024, 12, 31)


def test_date_two_digit_year():
    assert parse_date("24-01-05", today=TODAY) == date(2024, 1, 5)
    assert parse_date("24-12-05", today=TODAY) == date(2023, 12, 5)


def test_date_month_day_rolls_back_when_in_future():
    assert parse_date("03-05", today=TODAY) == date(2023, 3, 5)
    assert parse_date("02/28", today=TODAY) == date(2024, 2, 28)
    assert parse_date("03-01", today=TODAY) == date(2024, 3, 1)
    assert parse_date("12.19", today=date(2024, 1, 10)) == date(2023, 12, 19)
    assert parse_date("1.5", today=date(2024, 1, 10)) == date(2024, 1, 5)


def test_date_rejects_garbage():
    for text in ["", "abc", "13.40", "2024-02-30", "1.2.3", "2024-03", "12-19-", "１２.19", "3 .5"]:
        assert parse_date(text, today=TODAY) is None, text


# ----------------- Numbers -----------------
def test_parse_number():
    assert parse_number(" 5.6 ") == 5.6
    assert parse_number("-0.5") == -0.5
    assert parse_number(".5") == 0.5
    assert parse_number("1e3") == 1000.0
    for text in ["", "abc", "5,6", "5.6mg", "nan", "inf", "↑5.6"]:
        assert parse_number(text) is None, text


# ----------------- Field maps -----------------
def test_fields_example_sheet():
    info = parse_fields(SHEET_FOLFIRI, today=TODAY)
    rec = info.record
    assert rec.event == "FOLFIRI C2 D11"
    assert (rec.tags.scheme, rec.tags.cycle, rec.tags.day) == ("FOLFIRI", 2, 11)
    assert rec.values == {"wbc": 5.6}
    assert info.unrecognized_keys == ["未知字段"]
    assert info.invalid_values == []
    assert rec.date == TODAY


def test_fields_invalid_number():
    info = parse_fields({"白细胞计数": "abc"}, today=TODAY)
    assert info.record.values == {}
    assert info.invalid_values == ["白细胞计数=abc"]
    assert not info.is_usable


def test_fields_full_sheet_skips_placeholders():
    info = parse_fields(SHEET_FULL, today=TODAY)
    rec = info.record
    assert rec.date == date(2024, 2, 20)
    assert rec.values == {"wbc": 3.21, "neutAbs": 1.5, "hgb": 118.0, "plt": 96.0}
    assert info.unrecognized_keys == []
    assert info.invalid_values == []
    assert [d.key for d in rec.present_keys()] == ["wbc", "neutAbs", "hgb", "plt"]


def test_fields_unreadable_date_keeps_default():
    info = parse_fields({"日期": "昨天", "血红蛋白": "120"}, today=TODAY)
    assert info.record.date == TODAY
    assert info.invalid_values == []
    assert info.is_usable

    info = parse_fields(
        {"日期": "昨天", "血红蛋白": "120"}, today=TODAY, default_date=date(2024, 2, 1)
    )
    assert info.record.date == date(2024, 2, 1)


def test_fields_strict_dates_reports_unreadable_date():
    info = parse_fields({"日期": "昨天", "血红蛋白": "120"}, today=TODAY, strict_dates=True)
    assert info.invalid_values == ["日期=昨天"]
    assert info.date_error == "日期=昨天"
    assert not info.is_usable


def test_fields_ignored_and_trimmed_keys():
    info = parse_fields({"IGNORE": "whatever", " 血小板计数 ": "210"}, today=TODAY)
    assert info.record.values == {"plt": 210.0}
    assert info.unrecognized_keys == []

    info = parse_fields({"序号": "1", "血小板计数": "210"}, today=TODAY, ignored_keys={"序号"})
    assert info.unrecognized_keys == []


def test_fields_repeated_keys_last_write_wins():
    pairs = [("血红蛋白", "110"), ("EVENT", "A"), ("血红蛋白", "112"), ("EVENT", "B C1")]
    info = parse_fields(pairs, today=TODAY)
    assert info.record.values == {"hgb": 112.0}
    assert info.record.event == "B C1"
    assert info.record.tags.cycle == 1
