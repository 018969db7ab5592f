"""Queue message schemas, one variant per job kind."""

from typing import Annotated, Literal, Union
from uuid import UUID

import pydantic
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from translator.exceptions import InvalidMessage
from translator.models.job import Job, JobKind


class TranslationMessage(BaseModel):
    """Work message for a translation job."""

    kind: Literal["translation"] = "translation"
    id: UUID
    text: str = Field(min_length=1)
    source_lang: str = Field(min_length=2)
    target_lang: str = Field(min_length=2)


class DetectionMessage(BaseModel):
    """Work message for a language detection job."""

    kind: Literal["detection"] = "detection"
    id: UUID
    text: str = Field(min_length=1)


JobMessage = Annotated[Union[TranslationMessage, DetectionMessage], Field(discriminator="kind")]

_message_adapter = TypeAdapter(JobMessage)


def message_for_job(job: Job) -> Union[TranslationMessage, DetectionMessage]:
    """Build the minimal queue message referencing a job."""
    if job.kind == JobKind.TRANSLATION.value:
        return TranslationMessage(
            id=job.id,
            text=job.input_text,
            source_lang=job.source_language,
            target_lang=job.target_language,
        )
    return DetectionMessage(id=job.id, text=job.input_text)


def encode_message(message: Union[TranslationMessage, DetectionMessage]) -> str:
    """Serialize a message to JSON."""
    return message.model_dump_json()


def decode_message(body: Union[str, bytes]) -> Union[TranslationMessage, DetectionMessage]:
    """
    Parse and validate a queue message body.

    Raises:
        InvalidMessage: If the body is not a valid message of a known kind
    """
    try:
        return _message_adapter.validate_json(body)
    except pydantic.ValidationError as e:
        raise InvalidMessage(details=e.errors(include_url=False)) from e


class Delivery(BaseModel):
    """A message handed to a consumer and not yet acknowledged."""

    model_config = ConfigDict(frozen=True)

    queue_name: str
    body: str
    message_id: str
    raw: str  # Envelope as stored, needed to remove it on ack
