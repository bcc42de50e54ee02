"""
Declarative record constraints.

A resource declares its rules as a tuple of constraint objects. The handler
factory materializes the full candidate record (stored values merged with
the incoming payload) and hands it to validate_record(), which runs every
constraint and collects all violations before raising. Constraints see the
whole record, so a rule can compare sibling fields (e.g. a discount must stay
below the price even when only the price is being updated).

Pydantic already checks the *shape* of request bodies. These constraints
check the *record* that would be stored.
"""

import re
from typing import Any, Iterable

from tourbook.exceptions import ValidationError


EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


class Constraint:
    """Base class: check() returns an error message, or None when satisfied."""

    field: str

    def check(self, record: dict[str, Any]) -> str | None:
        raise NotImplementedError


class Required(Constraint):
    def __init__(self, field: str, message: str | None = None):
        self.field = field
        self.message = message or f"{field} is required"

    def check(self, record):
        value = record.get(self.field)
        if value is None or (isinstance(value, str) and not value.strip()):
            return self.message
        return None


class Length(Constraint):
    """String length bounds, inclusive. Missing values are left to Required."""

    def __init__(self, field: str, min_len: int | None = None, max_len: int | None = None):
        self.field = field
        self.min_len = min_len
        self.max_len = max_len

    def check(self, record):
        value = record.get(self.field)
        if value is None:
            return None
        if self.min_len is not None and len(value) < self.min_len:
            return f"{self.field} must have at least {self.min_len} characters"
        if self.max_len is not None and len(value) > self.max_len:
            return f"{self.field} must have at most {self.max_len} characters"
        return None


class Range(Constraint):
    """Numeric bounds. gt/lt are exclusive, ge/le inclusive."""

    def __init__(
        self,
        field: str,
        ge: float | None = None,
        le: float | None = None,
        gt: float | None = None,
    ):
        self.field = field
        self.ge = ge
        self.le = le
        self.gt = gt

    def check(self, record):
        value = record.get(self.field)
        if value is None:
            return None
        if self.gt is not None and not value > self.gt:
            return f"{self.field} must be greater than {self.gt}"
        if self.ge is not None and value < self.ge:
            return f"{self.field} must be at least {self.ge}"
        if self.le is not None and value > self.le:
            return f"{self.field} must be at most {self.le}"
        return None


class OneOf(Constraint):
    def __init__(self, field: str, choices: Iterable[str]):
        self.field = field
        self.choices = tuple(choices)

    def check(self, record):
        value = record.get(self.field)
        if value is None or value in self.choices:
            return None
        return f"{self.field} is either: {', '.join(self.choices)}"


class LessThanField(Constraint):
    """record[field] < record[other] whenever both are present."""

    def __init__(self, field: str, other: str, message: str | None = None):
        self.field = field
        self.other = other
        self.message = message

    def check(self, record):
        value = record.get(self.field)
        bound = record.get(self.other)
        if value is None or bound is None or value < bound:
            return None
        if self.message:
            return self.message.format(value=value)
        return f"{self.field} ({value}) should be below {self.other}"


class EmailFormat(Constraint):
    def __init__(self, field: str = "email"):
        self.field = field

    def check(self, record):
        value = record.get(self.field)
        if value is None or EMAIL_REGEX.match(value):
            return None
        return "Please provide a valid email"


def validate_record(record: dict[str, Any], constraints: Iterable[Constraint]) -> None:
    """
    Run every constraint against the candidate record.

    Raises:
        ValidationError: listing every violated field, first message per field.
    """
    errors: dict[str, str] = {}
    for constraint in constraints:
        if constraint.field in errors:
            continue
        message = constraint.check(record)
        if message is not None:
            errors[constraint.field] = message

    if errors:
        raise ValidationError(
            "Invalid input data. " + ". ".join(errors.values()),
            errors=errors,
        )
