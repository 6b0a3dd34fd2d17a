"""Tests for field validators and money helpers."""

from decimal import Decimal

import pytest

from app.config import settings
from app.utils.money import half_of, host_earnings, to_money
from app.utils.validators import (
    mask_sensitive_data,
    normalize_iban,
    validate_bic,
    validate_card_number,
    validate_iban,
    validate_mobile_money_number,
    validate_phone,
)


class TestIban:
    def test_valid_ibans(self):
        assert validate_iban("DE89370400440532013000")
        assert validate_iban("GB82WEST12345698765432")

    def test_spaces_and_case_are_ignored(self):
        assert validate_iban("de89 3704 0044 0532 0130 00")
        assert normalize_iban("de89 3704 0044 0532 0130 00") == "DE89370400440532013000"

    def test_bad_checksum(self):
        assert not validate_iban("DE89370400440532013001")

    def test_bad_shape(self):
        assert not validate_iban("1234")
        assert not validate_iban("")


class TestOtherFields:
    def test_bic(self):
        assert validate_bic("DEUTDEFF")
        assert validate_bic("DEUTDEFF500")
        assert not validate_bic("DEUT")

    def test_card_number_luhn(self):
        assert validate_card_number("4111111111111111")
        assert validate_card_number("4111-1111-1111-1111")
        assert not validate_card_number("4111111111111112")
        assert not validate_card_number("41111")

    def test_phone(self):
        assert validate_phone("+33 6 12 34 56 78")
        assert not validate_phone("call me")

    def test_mobile_money_pattern(self):
        pattern = settings.mobile_money_pattern
        assert validate_mobile_money_number("+261 34 12 345 67", pattern)
        assert validate_mobile_money_number("+261341234567", pattern)
        assert not validate_mobile_money_number("+33 6 12 34 56 78", pattern)

    def test_mask(self):
        assert mask_sensitive_data("1234567890") == "******7890"
        assert mask_sensitive_data("123") == "***"


class TestMoney:
    def test_host_earnings_after_commission(self):
        assert host_earnings(Decimal("200.00"), Decimal("10")) == Decimal("180.00")
        assert host_earnings(Decimal("99.99"), Decimal("15")) == Decimal("84.99")

    def test_half_rounds_down(self):
        assert half_of(Decimal("180.00")) == Decimal("90.00")
        assert half_of(Decimal("0.05")) == Decimal("0.02")

    @pytest.mark.parametrize(
        "value, expected",
        [(None, "0.00"), (10, "10.00"), ("1.005", "1.01"), (Decimal("2.5"), "2.50")],
    )
    def test_to_money(self, value, expected):
        assert to_money(value) == Decimal(expected)
