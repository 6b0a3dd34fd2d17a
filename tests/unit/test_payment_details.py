"""Tests for method-keyed payout details."""

import pytest

from app.core.exceptions import InvalidPaymentAccountFields
from app.domain.payment_details import (
    BankTransferDetails,
    CardPayoutDetails,
    CashTransferNetworkDetails,
    describe_destination,
    details_to_json,
    parse_payment_details,
)
from tests.factories import VALID_CARD, VALID_IBAN, VALID_MOBILE


class TestParsePaymentDetails:
    """Each method accepts exactly its own fields."""

    def test_bank_transfer(self):
        details = parse_payment_details(
            {
                "method": "BANK_TRANSFER",
                "account_holder_name": "Jane Host",
                "iban": "de89 3704 0044 0532 0130 00",
                "bic": "deutdeff",
            }
        )
        assert isinstance(details, BankTransferDetails)
        assert details.iban == VALID_IBAN
        assert details.bic == "DEUTDEFF"
        assert details.holder_name == "Jane Host"

    def test_mobile_money(self):
        details = parse_payment_details(
            {"method": "MOBILE_MONEY", "account_holder_name": "Jane", "mobile_number": VALID_MOBILE}
        )
        assert details.mobile_number == VALID_MOBILE

    def test_digital_wallet_needs_email_or_handle(self):
        ok = parse_payment_details(
            {"method": "DIGITAL_WALLET", "account_holder_name": "Jane", "wallet_handle": "@jane"}
        )
        assert ok.wallet_handle == "@jane"

        with pytest.raises(InvalidPaymentAccountFields):
            parse_payment_details({"method": "DIGITAL_WALLET", "account_holder_name": "Jane"})

    def test_cash_transfer_holder_is_recipient(self):
        details = parse_payment_details(
            {
                "method": "CASH_TRANSFER_NETWORK",
                "recipient_full_name": "Jane Doe",
                "phone": "+261341234567",
            }
        )
        assert isinstance(details, CashTransferNetworkDetails)
        assert details.holder_name == "Jane Doe"

    def test_card_payout_keeps_digits_only(self):
        details = parse_payment_details(
            {
                "method": "CARD_PAYOUT",
                "account_holder_name": "Jane",
                "card_number": "4111 1111 1111 1111",
                "card_email": "jane@example.com",
            }
        )
        assert isinstance(details, CardPayoutDetails)
        assert details.card_number == VALID_CARD

    def test_unknown_field_is_rejected(self):
        with pytest.raises(InvalidPaymentAccountFields) as exc_info:
            parse_payment_details(
                {
                    "method": "BANK_TRANSFER",
                    "account_holder_name": "Jane",
                    "iban": VALID_IBAN,
                    "mobile_number": VALID_MOBILE,
                }
            )
        assert exc_info.value.status_code == 422
        assert exc_info.value.errors

    def test_missing_field_is_rejected(self):
        with pytest.raises(InvalidPaymentAccountFields):
            parse_payment_details({"method": "BANK_TRANSFER", "account_holder_name": "Jane"})

    def test_bad_iban_is_rejected(self):
        with pytest.raises(InvalidPaymentAccountFields) as exc_info:
            parse_payment_details(
                {"method": "BANK_TRANSFER", "account_holder_name": "Jane", "iban": "DE00123"}
            )
        assert any("iban" in err["loc"] for err in exc_info.value.errors)

    def test_unknown_method_is_rejected(self):
        with pytest.raises(InvalidPaymentAccountFields):
            parse_payment_details({"method": "CARRIER_PIGEON", "account_holder_name": "Jane"})


class TestDestination:
    def test_json_drops_empty_optionals(self):
        details = parse_payment_details(
            {"method": "BANK_TRANSFER", "account_holder_name": "Jane", "iban": VALID_IBAN}
        )
        assert details_to_json(details) == {
            "method": "BANK_TRANSFER",
            "account_holder_name": "Jane",
            "iban": VALID_IBAN,
        }

    def test_describe_masks_numbers(self):
        label = describe_destination({"method": "BANK_TRANSFER", "iban": VALID_IBAN})
        assert label.startswith("IBAN ")
        assert label.endswith("3000")
        assert VALID_IBAN not in label

        card = describe_destination({"method": "CARD_PAYOUT", "card_number": VALID_CARD})
        assert card == "Card ************1111"
