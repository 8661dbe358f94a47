"""Conditional field rules for member profiles.

Rules are data: each entry is ``(applies_to, field, check)``. ``applies_to``
looks at the whole record, ``check`` returns an error message or ``None``.
Every applicable rule runs, so the caller gets all violations at once.
Adding a new occupation/membership combination means appending rows, not
nesting another branch.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable
from urllib.parse import urlparse

from app.models.profile import MEMBERSHIP_TYPES, OCCUPATIONS
from app.services.errors import FieldError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")
PAN_PATTERN = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
COUNTRY_CODE_PATTERN = re.compile(r"^\+\d{1,4}$")

MIN_DOB = date(1900, 1, 1)
MIN_AGE_YEARS = 18
MAX_MENTORSHIP_KEYWORDS = 5
MAX_KEYWORD_LENGTH = 60
MIN_SUPPORT_WORDS = 50
MAX_SUPPORT_WORDS = 1000

TEXT_FIELDS = (
    "name",
    "nativeAddress",
    "currentAddress",
    "phoneCountryCode",
    "phoneNumber",
    "whatsappNumber",
    "email",
    "pan",
    "linkedinUrl",
    "websiteUrl",
    "occupation",
    "occupationDescription",
    "supportStageMessage",
    "membershipType",
    "previousExperience",
    "areaOfExpertise",
)

Check = Callable[[Any, dict], str | None]
Predicate = Callable[[dict], bool]


@dataclass(frozen=True)
class Rule:
    applies_to: Predicate
    field: str
    check: Check


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    return True


def _always(record: dict) -> bool:
    return True


def _is_startup_promoter(record: dict) -> bool:
    return record.get("occupation") == "startup_promoter"


def _is_mentor(record: dict) -> bool:
    return record.get("membershipType") == "Mentor"


def _when_present(check: Check) -> Check:
    def wrapped(value: Any, record: dict) -> str | None:
        if not _present(value):
            return None
        return check(value, record)

    return wrapped


def _required(message: str) -> Check:
    def check(value: Any, record: dict) -> str | None:
        return None if _present(value) else message

    return check


def _length_between(field: str, minimum: int, maximum: int) -> Check:
    def check(value: Any, record: dict) -> str | None:
        length = len(str(value).strip())
        if length < minimum or length > maximum:
            return f"{field} must be between {minimum} and {maximum} characters."
        return None

    return check


def _max_length(field: str, maximum: int) -> Check:
    def check(value: Any, record: dict) -> str | None:
        if len(str(value)) > maximum:
            return f"{field} cannot exceed {maximum} characters."
        return None

    return check


def _matches(pattern: re.Pattern, message: str) -> Check:
    def check(value: Any, record: dict) -> str | None:
        return None if isinstance(value, str) and pattern.match(value) else message

    return check


def _one_of(field: str, choices: tuple[str, ...]) -> Check:
    def check(value: Any, record: dict) -> str | None:
        if value in choices:
            return None
        return f"{field} must be one of: {', '.join(choices)}."

    return check


def _absolute_url(field: str) -> Check:
    def check(value: Any, record: dict) -> str | None:
        try:
            parsed = urlparse(str(value))
        except ValueError:
            return f"{field} must be a valid URL."
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return f"{field} must be a valid URL."
        return None

    return check


def _check_dob(value: Any, record: dict) -> str | None:
    if not isinstance(value, date):
        return "dob must be a valid date (YYYY-MM-DD)."
    today = date.today()
    if value > today:
        return "dob cannot be in the future."
    if value < MIN_DOB:
        return "dob cannot be before 1900-01-01."
    # Age is the difference of calendar years, month and day are ignored.
    if today.year - value.year < MIN_AGE_YEARS:
        return f"Member must be at least {MIN_AGE_YEARS} years old."
    return None


def _check_support_words(value: Any, record: dict) -> str | None:
    words = len(str(value).split())
    if words < MIN_SUPPORT_WORDS:
        return f"supportStageMessage must be at least {MIN_SUPPORT_WORDS} words."
    if words > MAX_SUPPORT_WORDS:
        return f"supportStageMessage cannot exceed {MAX_SUPPORT_WORDS} words."
    return None


def _check_keywords(value: Any, record: dict) -> str | None:
    if not isinstance(value, list) or not value:
        return f"mentorshipFields (1-{MAX_MENTORSHIP_KEYWORDS} keywords) are required for Mentor."
    if len(value) > MAX_MENTORSHIP_KEYWORDS:
        return f"Maximum {MAX_MENTORSHIP_KEYWORDS} keywords allowed in mentorshipFields."
    if any(len(keyword) > MAX_KEYWORD_LENGTH for keyword in value):
        return f"Each mentorship keyword must be at most {MAX_KEYWORD_LENGTH} characters."
    return None


def _check_boolean(value: Any, record: dict) -> str | None:
    return None if isinstance(value, bool) else "availableForMentorship must be true or false."


RULES: tuple[Rule, ...] = (
    Rule(_always, "name", _required("name is required.")),
    Rule(_always, "name", _when_present(_length_between("name", 2, 100))),
    Rule(_always, "email", _when_present(_matches(EMAIL_PATTERN, "email must be a valid email address."))),
    Rule(_always, "phoneNumber", _when_present(_matches(PHONE_PATTERN, "phoneNumber must be a valid phone number."))),
    Rule(_always, "whatsappNumber", _when_present(_matches(PHONE_PATTERN, "whatsappNumber must be a valid phone number."))),
    Rule(
        _always,
        "phoneCountryCode",
        _when_present(_matches(COUNTRY_CODE_PATTERN, "phoneCountryCode must look like +91.")),
    ),
    Rule(_always, "pan", _when_present(_matches(PAN_PATTERN, "pan must match the format AAAAA9999A."))),
    Rule(_always, "linkedinUrl", _when_present(_absolute_url("linkedinUrl"))),
    Rule(_always, "websiteUrl", _when_present(_absolute_url("websiteUrl"))),
    Rule(_always, "dob", _when_present(_check_dob)),
    Rule(_always, "occupation", _required("occupation is required.")),
    Rule(_always, "occupation", _when_present(_one_of("occupation", OCCUPATIONS))),
    Rule(_always, "membershipType", _required("membershipType is required.")),
    Rule(_always, "membershipType", _when_present(_one_of("membershipType", MEMBERSHIP_TYPES))),
    Rule(_always, "occupationDescription", _when_present(_max_length("occupationDescription", 300))),
    Rule(_always, "previousExperience", _when_present(_max_length("previousExperience", 100))),
    Rule(_always, "areaOfExpertise", _when_present(_max_length("areaOfExpertise", 100))),
    # startup promoters
    Rule(
        _is_startup_promoter,
        "occupationDescription",
        _required("occupationDescription is required for startup_promoter."),
    ),
    Rule(
        _is_startup_promoter,
        "supportStageMessage",
        _required("supportStageMessage is required for startup_promoter."),
    ),
    Rule(_is_startup_promoter, "supportStageMessage", _when_present(_check_support_words)),
    # mentors
    Rule(_is_mentor, "mentorshipFields", _check_keywords),
    Rule(_is_mentor, "previousExperience", _required("previousExperience is required for Mentor.")),
    Rule(_is_mentor, "areaOfExpertise", _required("areaOfExpertise is required for Mentor.")),
    Rule(_is_mentor, "availableForMentorship", _check_boolean),
)


def validate(record: dict, rules: tuple[Rule, ...] = RULES) -> list[FieldError]:
    errors: list[FieldError] = []
    for rule in rules:
        if not rule.applies_to(record):
            continue
        message = rule.check(record.get(rule.field), record)
        if message:
            errors.append(FieldError(rule.field, message))
    return errors


def split_keywords(value: Any) -> list[str] | None:
    """Trim and lower-case each keyword, dropping blanks. Repeats are kept so they count toward the limit."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    keywords = (str(item).strip().lower() for item in value)
    return [keyword for keyword in keywords if keyword]


def normalize_keywords(value: Any) -> list[str] | None:
    keywords = split_keywords(value)
    if keywords is None:
        return None
    return list(dict.fromkeys(keywords))


def _parse_bool(value: Any) -> Any:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
    return value


def _parse_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return text
    return value


def normalize(fields: dict) -> dict:
    """Trim text, fix casing and coerce form values into their field types."""
    record = dict(fields)
    for key in TEXT_FIELDS:
        value = record.get(key)
        if isinstance(value, str):
            value = value.strip()
            record[key] = value or None

    if record.get("email"):
        record["email"] = record["email"].lower()
    if record.get("pan"):
        record["pan"] = record["pan"].upper()
    if "mentorshipFields" in record:
        record["mentorshipFields"] = split_keywords(record["mentorshipFields"])
    if "availableForMentorship" in record:
        record["availableForMentorship"] = _parse_bool(record["availableForMentorship"])
    if "dob" in record:
        record["dob"] = _parse_date(record["dob"])
    return record
