from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from keepsake.api.models import ContentForm, ContentRecord, Notice
from keepsake.infra.backend import BackendError, HostedBackend

logger = logging.getLogger(__name__)


CONTENT_TABLE = "user_content"

SAVED_MESSAGE = "Content saved successfully!"
FAILED_MESSAGE = "Failed to save content"

_FIELD_MESSAGES: dict[str, str] = {
    "title": "Title is required",
    "content": "Content is required",
    "content_type": "Invalid content type",
    "is_private": "Must be true or false",
}


class ContentValidationError(ValueError):
    """Field-level validation failure. `errors` maps field name to message."""

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))


class SubmissionFailed(RuntimeError):
    """The hosted store rejected the insert."""


def parse_tags(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


def validate_form(form: dict[str, Any]) -> ContentForm:
    try:
        return ContentForm.model_validate(form)
    except ValidationError as e:
        errors: dict[str, str] = {}
        for err in e.errors():
            field = str(err["loc"][0]) if err["loc"] else "form"
            errors.setdefault(field, _FIELD_MESSAGES.get(field, err["msg"]))
        raise ContentValidationError(errors) from e


def build_record(form: ContentForm, *, user_id: str | None) -> ContentRecord:
    return ContentRecord(
        user_id=user_id,
        title=form.title,
        content_type=form.content_type,
        content=form.content,
        tags=parse_tags(form.tags),
        is_private=form.is_private,
    )


async def submit_content(
    *,
    backend: HostedBackend,
    form: dict[str, Any],
    access_token: str | None,
) -> Notice:
    """Validate editor input and insert it as one `user_content` row.

    Without a session the row is still inserted, with `user_id` unset.
    """

    validated = validate_form(form)

    user = await backend.get_current_user(access_token)
    if user is None:
        logger.debug("No session; submitting content without an owner")

    record = build_record(validated, user_id=user.id if user else None)
    try:
        await backend.insert_record(CONTENT_TABLE, record.model_dump(mode="json"))
    except BackendError as e:
        logger.exception("Error saving content")
        raise SubmissionFailed(FAILED_MESSAGE) from e

    logger.info("Saved %s content for owner=%s", record.content_type.value, record.user_id)
    return Notice(ok=True, message=SAVED_MESSAGE)
