from __future__ import annotations

from dqa_setup.domain import DatasetTemplate, DataElementTemplate

NAME_MAX_LENGTH = 230
SHORT_NAME_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 255
CODE_MAX_LENGTH = 50


class ValidationError(Exception):
    """Raised when a template would be rejected by the target system."""


def truncate(value: str | None, limit: int) -> str:
    return str(value or "")[:limit]


def shorten(value: str, limit: int = SHORT_NAME_MAX_LENGTH) -> str:
    """Truncate with a trailing ellipsis so cut names stay recognisable."""

    if len(value) <= limit:
        return value
    return value[: limit - 3] + "..."


def validate_template(template: DataElementTemplate | DatasetTemplate) -> None:
    if not template.name:
        raise ValidationError("template name is required")
    if len(template.name) > NAME_MAX_LENGTH:
        raise ValidationError(f"name longer than {NAME_MAX_LENGTH} characters: {template.name!r}")
    if len(template.short_name) > SHORT_NAME_MAX_LENGTH:
        raise ValidationError(f"short name longer than {SHORT_NAME_MAX_LENGTH} characters: {template.short_name!r}")
    if len(template.description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(f"description longer than {DESCRIPTION_MAX_LENGTH} characters")
    if not template.code or len(template.code) > CODE_MAX_LENGTH:
        raise ValidationError(f"code must be 1-{CODE_MAX_LENGTH} characters: {template.code!r}")
