"""
Input Validation

Schema-driven validation of untrusted input. Schemas are pydantic models;
``validate_payload`` runs one over a raw mapping and either returns the
normalized model or raises ``InvalidInputError`` listing every violation.

Shared field helpers used by the module schemas live here too.
"""

import re
from datetime import UTC, datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from courseapp.core.errors import InvalidInputError, violations_from_pydantic

SchemaT = TypeVar("SchemaT", bound=BaseModel)

# Basic local@domain.tld shape
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class InputSchema(BaseModel):
    """
    Base for request schemas.

    Unknown fields are dropped, strings are trimmed and fields are read by
    their camelCase wire names.
    """

    model_config = ConfigDict(
        extra="ignore",
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class OutputSchema(BaseModel):
    """Base for response projections, serialized with camelCase keys."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


def validate_payload(schema: type[SchemaT], raw: dict[str, Any]) -> SchemaT:
    """
    Validate a raw mapping against a schema.

    Args:
        schema: The pydantic model to validate with
        raw: Untrusted input (form fields, JSON body, ...)

    Returns:
        The normalized model instance

    Raises:
        InvalidInputError: With every violation found, not just the first
    """
    try:
        return schema.model_validate(raw)
    except ValidationError as e:
        raise InvalidInputError(violations_from_pydantic(e.errors())) from e


def normalize_email(value: Any) -> Any:
    """Lowercase and shape-check an email address."""
    if not isinstance(value, str):
        return value
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("email must be a valid email address")
    return value


def parse_iso_datetime(value: Any) -> Any:
    """
    Parse an ISO-8601 date or datetime string.

    Date-only values are taken as midnight; naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError("date must be a valid ISO 8601 date") from e
    else:
        raise ValueError("date must be a valid ISO 8601 date")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
