from __future__ import annotations

from datetime import date, datetime

import pytest
import pytz

from shipflow.processing.normalizer import is_numeric_text, normalize_value


@pytest.mark.parametrize("value", [None, '', '   '])
def test_empty_values_normalize_to_empty_string(value) -> None:
    assert normalize_value(value) == ''


def test_numeric_forms_collapse() -> None:
    assert normalize_value('7') == normalize_value('7.0') == normalize_value(7) == normalize_value(7.0) == '7'
    assert normalize_value(' 7.50 ') == '7.5'
    assert normalize_value('-0') == '0'


def test_numeric_text_is_strict() -> None:
    assert is_numeric_text('1e3')
    assert not is_numeric_text('1_000')
    assert not is_numeric_text('nan')
    assert normalize_value('1_000') == '1_000'
    assert normalize_value('inf') == 'inf'


def test_text_is_trimmed() -> None:
    assert normalize_value('  Acme Corp  ') == 'Acme Corp'


def test_bool_is_not_treated_as_number() -> None:
    assert normalize_value(True) == 'true'
    assert normalize_value(False) == 'false'


def test_equivalent_instants_collapse() -> None:
    johannesburg = pytz.timezone('Africa/Johannesburg')
    local = johannesburg.localize(datetime(2024, 1, 2, 5, 4, 5))
    utc = datetime(2024, 1, 2, 3, 4, 5, tzinfo=pytz.UTC)

    assert normalize_value(local) == normalize_value(utc) == '2024-01-02T03:04:05.000Z'


def test_naive_datetime_uses_default_timezone() -> None:
    tz = pytz.timezone('Africa/Johannesburg')
    assert normalize_value(datetime(2024, 1, 2, 5, 0, 0), tz) == '2024-01-02T03:00:00.000Z'


def test_date_normalizes_to_midnight_utc() -> None:
    assert normalize_value(date(2024, 3, 9)) == '2024-03-09T00:00:00.000Z'


@pytest.mark.parametrize("value", [
    None, '', ' x ', '7', '7.0', 7, 0.1, 1e21, '1e+21', 12345678901234567890,
    '007', True, datetime(2024, 1, 2, 3, 4, 5, 678000), date(2020, 2, 29),
    float('nan'), 'a,"b"', '-3.25e-7',
])
def test_normalization_is_idempotent(value) -> None:
    once = normalize_value(value)
    assert normalize_value(once) == once
