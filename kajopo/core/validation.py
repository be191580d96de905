"""Form field validation rules."""
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import urlparse

from .passwords import MAX_PASSWORD_BYTES

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")
PHONE_STRIP = re.compile(r"[\s\-()]")
SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")

MIN_PASSWORD_LENGTH = 8

MESSAGES = {
    "required": "This field is required",
    "email": "Please enter a valid email address",
    "phone": "Please enter a valid phone number",
    "password": f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
    "strong_password": "Password must contain uppercase, lowercase, number, and special character",
    "min_length": "Must be at least {param} characters long",
    "max_length": "Must be no more than {param} characters long",
    "max_bytes": "Must be no more than {param} bytes long",
    "url": "Please enter a valid URL",
    "date": "Please enter a valid date",
    "future_date": "Date must be in the future",
}


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def is_email(value: str) -> bool:
    return bool(value) and EMAIL_PATTERN.match(value) is not None


def is_phone(value: str) -> bool:
    return bool(value) and PHONE_PATTERN.match(PHONE_STRIP.sub("", value)) is not None


def is_valid_password(value: str) -> bool:
    return bool(value) and len(value) >= MIN_PASSWORD_LENGTH


def is_strong_password(value: str) -> bool:
    return (
        is_valid_password(value)
        and re.search(r"[A-Z]", value) is not None
        and re.search(r"[a-z]", value) is not None
        and re.search(r"\d", value) is not None
        and SPECIAL_CHARACTERS.search(value) is not None
    )


def is_url(value: str) -> bool:
    parsed = urlparse(value or "")
    return bool(parsed.scheme and parsed.netloc)


def parse_date(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_date(value: Any) -> bool:
    return parse_date(value) is not None


def is_future_date(value: Any, now: datetime = None) -> bool:
    parsed = parse_date(value)
    return parsed is not None and parsed > (now or datetime.now(timezone.utc))


_CHECKS: Dict[str, Callable[..., bool]] = {
    "required": is_present,
    "email": is_email,
    "phone": is_phone,
    "password": is_valid_password,
    "strong_password": is_strong_password,
    "min_length": lambda value, n: value is not None and len(value) >= n,
    "max_length": lambda value, n: value is None or len(value) <= n,
    "max_bytes": lambda value, n: value is None or len(str(value).encode("utf-8")) <= n,
    "url": is_url,
    "date": is_date,
    "future_date": is_future_date,
}

Rule = Union[str, Tuple[str, Any]]


def validate_fields(data: Dict[str, Any], rules: Dict[str, Iterable[Rule]]) -> Dict[str, List[str]]:
    """Check ``data`` against ``rules``; returns the messages per failing field.

    Optional fields (no ``required`` rule) are skipped when empty.
    """
    errors: Dict[str, List[str]] = {}
    for field, field_rules in rules.items():
        value = data.get(field)
        field_rules = list(field_rules)
        names = [rule if isinstance(rule, str) else rule[0] for rule in field_rules]
        if "required" not in names and not is_present(value):
            continue

        for rule in field_rules:
            name, param = (rule, None) if isinstance(rule, str) else rule
            check = _CHECKS[name]
            passed = check(value) if param is None else check(value, param)
            if not passed:
                errors.setdefault(field, []).append(MESSAGES[name].format(param=param))
                if name == "required":
                    break
    return errors


REGISTRATION_RULES: Dict[str, List[Rule]] = {
    "email": ["required", "email"],
    "password": ["required", "password", ("max_bytes", MAX_PASSWORD_BYTES)],
    "first_name": ["required"],
    "last_name": ["required"],
    "phone": ["phone"],
}

LOGIN_RULES: Dict[str, List[Rule]] = {
    "email": ["required"],
    "password": ["required"],
}
