"""Custom validation utilities."""

import re

_IBAN_SHAPE = re.compile(r"^[A-Z]{2}\d{2}[A-Z0-9]{11,30}$")
_BIC_SHAPE = re.compile(r"^[A-Z]{4}[A-Z]{2}[A-Z0-9]{2}([A-Z0-9]{3})?$")
_PHONE_SHAPE = re.compile(r"^\+?\d{7,15}$")


def normalize_iban(iban: str) -> str:
    """Strip spaces and upper-case an IBAN."""
    return iban.replace(" ", "").upper()


def validate_iban(iban: str) -> bool:
    """Validate an IBAN.

    Checks the shape (country code, check digits, 11-30 alphanumerics)
    and the ISO 7064 mod-97 checksum.

    Args:
        iban: IBAN to validate

    Returns:
        bool: True if valid IBAN
    """
    cleaned = normalize_iban(iban)

    if not _IBAN_SHAPE.match(cleaned):
        return False

    rearranged = cleaned[4:] + cleaned[:4]
    digits = "".join(str(int(ch, 36)) for ch in rearranged)
    return int(digits) % 97 == 1


def validate_bic(bic: str) -> bool:
    """Validate a BIC/SWIFT code (8 or 11 characters)."""
    return bool(_BIC_SHAPE.match(bic.replace(" ", "").upper()))


def validate_card_number(card_number: str) -> bool:
    """Validate a payout card number with the Luhn checksum.

    Args:
        card_number: Card number, spaces and dashes allowed

    Returns:
        bool: True if 12-19 digits with a valid checksum
    """
    cleaned = re.sub(r"[\s\-]", "", card_number)
    if not cleaned.isdigit() or not 12 <= len(cleaned) <= 19:
        return False

    total = 0
    for index, ch in enumerate(reversed(cleaned)):
        digit = int(ch)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def validate_phone(phone: str) -> bool:
    """Validate an international phone number (7-15 digits, optional +)."""
    cleaned = re.sub(r"[\s\-\(\)]", "", phone)
    return bool(_PHONE_SHAPE.match(cleaned))


def validate_mobile_money_number(number: str, pattern: str) -> bool:
    """Validate a mobile money number against the configured regional pattern."""
    return bool(re.match(pattern, number.strip()))


def mask_sensitive_data(data: str, visible_chars: int = 4) -> str:
    """Mask sensitive data showing only last few characters.

    Args:
        data: Sensitive data to mask
        visible_chars: Number of characters to show at end

    Returns:
        str: Masked string like '********7890'
    """
    if len(data) <= visible_chars:
        return "*" * len(data)

    masked_length = len(data) - visible_chars
    return "*" * masked_length + data[-visible_chars:]
