"""
South African ID number validation and extraction.

SA ID format: YYMMDD SSSS C A Z (13 digits)
    YYMMDD  date of birth
    SSSS    gender sequence (0000-4999 female, 5000-9999 male)
    C       citizenship (0 citizen, otherwise permanent resident)
    A       usually 8 or 9
    Z       Luhn checksum digit

Anything of 6-9 letters/digits is accepted as a passport number with no
extractable metadata.
"""
import math
import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from ..config import settings


_PASSPORT_RE = re.compile(r"^[A-Z0-9]{6,9}$")
_SA_ID_RE = re.compile(r"^[0-9]{13}$")
_STRIP_RE = re.compile(r"[\s-]")


class IdNumberError(str, Enum):
    INVALID_FORMAT = "InvalidFormat"
    INVALID_DATE = "InvalidDate"
    UNDERAGE = "Underage"
    CHECKSUM_MISMATCH = "ChecksumMismatch"


_MESSAGES = {
    IdNumberError.INVALID_FORMAT: "Must be a valid SA ID (13 digits) or Passport (6-9 characters)",
    IdNumberError.INVALID_DATE: "Invalid date in ID number",
    IdNumberError.UNDERAGE: "Person must be at least {min_age} years old",
    IdNumberError.CHECKSUM_MISMATCH: "Invalid ID number checksum",
}


@dataclass(frozen=True)
class IdNumberInfo:
    is_valid: bool
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None  # male|female
    is_citizen: Optional[bool] = None
    error: Optional[str] = None
    error_code: Optional[IdNumberError] = None
    is_passport: bool = False

    def as_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "gender": self.gender,
            "is_citizen": self.is_citizen,
            "is_passport": self.is_passport,
            "error": self.error,
            "error_code": self.error_code.value if self.error_code else None,
        }


def normalize_id_number(id_number: str) -> str:
    """Remove spaces and dashes and uppercase."""
    return _STRIP_RE.sub("", id_number or "").upper()


def luhn_check_digit(digits: str) -> int:
    """Luhn check digit for a string of digits (the payload, without the check digit)."""
    total = 0
    # Rightmost payload digit is doubled first
    for offset, ch in enumerate(reversed(digits)):
        digit = int(ch)
        if offset % 2 == 0:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return (10 - (total % 10)) % 10


def _infer_year(two_digit_year: int, today: date) -> int:
    # Nearest century that does not put the birth year in the future
    year = (today.year // 100) * 100 + two_digit_year
    if year > today.year:
        year -= 100
    return year


def _failure(code: IdNumberError, min_age: int, **extracted) -> IdNumberInfo:
    return IdNumberInfo(
        is_valid=False,
        error=_MESSAGES[code].format(min_age=min_age),
        error_code=code,
        **extracted,
    )


def validate_id_number(id_number: str, today: Optional[date] = None, min_age: Optional[int] = None) -> IdNumberInfo:
    """
    Validate an SA ID or passport number and extract what it encodes.

    Args:
        id_number: Raw input; spaces and dashes are ignored
        today: Reference date for century inference and age (default local today)
        min_age: Minimum age in whole years (default from settings)

    Returns:
        IdNumberInfo. A checksum failure still carries the date of birth,
        gender and citizenship since those are derivable independently.
    """
    if today is None:
        from .time_rules import local_today
        today = local_today()
    if min_age is None:
        min_age = settings.min_labourer_age

    clean = normalize_id_number(id_number)

    if _PASSPORT_RE.match(clean) and not _SA_ID_RE.match(clean):
        return IdNumberInfo(is_valid=True, is_passport=True)

    if not _SA_ID_RE.match(clean):
        return _failure(IdNumberError.INVALID_FORMAT, min_age)

    year = _infer_year(int(clean[0:2]), today)
    month = int(clean[2:4])
    day = int(clean[4:6])
    gender_value = int(clean[6:10])
    citizen_digit = clean[10]

    try:
        date_of_birth = date(year, month, day)
    except ValueError:
        return _failure(IdNumberError.INVALID_DATE, min_age)

    age = math.floor((today - date_of_birth).days / 365.25)
    if age < min_age:
        return _failure(IdNumberError.UNDERAGE, min_age, date_of_birth=date_of_birth)

    gender = "female" if gender_value < 5000 else "male"
    is_citizen = citizen_digit == "0"

    if luhn_check_digit(clean[:12]) != int(clean[12]):
        return _failure(
            IdNumberError.CHECKSUM_MISMATCH,
            min_age,
            date_of_birth=date_of_birth,
            gender=gender,
            is_citizen=is_citizen,
        )

    return IdNumberInfo(
        is_valid=True,
        date_of_birth=date_of_birth,
        gender=gender,
        is_citizen=is_citizen,
    )
