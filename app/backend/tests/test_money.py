from decimal import Decimal

import pytest

from cronograma.services.money import (
    format_money,
    format_money_compact,
    format_percent,
    safe_percent,
    to_number,
    to_percent,
)


def test_format_money_groups_thousands() -> None:
    assert format_money(Decimal("1234567.891")) == "$1,234,567.89"
    assert format_money(0) == "$0.00"
    assert format_money(40000) == "$40,000.00"


def test_format_money_rejects_negative_amounts() -> None:
    with pytest.raises(ValueError):
        format_money(Decimal("-1"))


def test_to_number_reads_display_text() -> None:
    assert to_number("$1,234.50") == Decimal("1234.50")
    assert to_number(" 40000 MXN") == Decimal("40000.00")
    assert to_number(format_money(Decimal("98765.43"))) == Decimal("98765.43")


@pytest.mark.parametrize("raw", ["", "$", "abc", "-5", "NaN"])
def test_to_number_rejects_invalid_text(raw: str) -> None:
    with pytest.raises(ValueError):
        to_number(raw)


def test_compact_money_uses_thousands_suffix() -> None:
    assert format_money_compact(Decimal("40000")) == "$40K"
    assert format_money_compact(Decimal("950.4")) == "$950"
    assert format_money_compact(Decimal("123456789")) == "$123,457K"


def test_percent_helpers() -> None:
    assert format_percent(33.333) == "33.3%"
    assert to_percent("45.5%") == 45.5
    assert safe_percent(Decimal("50"), Decimal("200")) == 25.0
    assert safe_percent(Decimal("50"), Decimal("0")) == 0.0
    with pytest.raises(ValueError):
        to_percent("-3")
    with pytest.raises(ValueError):
        to_percent("mucho")
