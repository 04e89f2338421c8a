"""Wire-level types exchanged with the consultation backend."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Backend job states as seen by the client."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def from_wire(cls, value: Any) -> JobStatus:
        """Map a raw ``status`` field, treating unknown values as pending."""
        text = str(value or "").strip().lower()
        if text == cls.COMPLETED.value:
            return cls.COMPLETED
        if text == cls.FAILED.value:
            return cls.FAILED
        return cls.PENDING

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PENDING


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    return text if text.strip() else None


@dataclass(frozen=True, slots=True)
class JobSnapshot:
    """One observation of a backend job returned by the status API."""

    job_id: str
    status: JobStatus
    raw_status: str = ""
    transcribed_text: str | None = None
    final_answer: str | None = None
    detail: str | None = None

    @classmethod
    def from_payload(cls, job_id: str, payload: Mapping[str, Any]) -> JobSnapshot:
        raw_status = str(payload.get("status") or "")
        status = JobStatus.from_wire(raw_status)
        completed = status is JobStatus.COMPLETED
        return cls(
            job_id=job_id,
            status=status,
            raw_status=raw_status,
            transcribed_text=_optional_text(payload.get("transcribed_text")) if completed else None,
            final_answer=_optional_text(payload.get("final_answer")) if completed else None,
            detail=_optional_text(payload.get("detail") or payload.get("message")),
        )


@dataclass(frozen=True, slots=True)
class AudioInput:
    """Recorded audio uploaded as the ``audio_file`` multipart part."""

    data: bytes
    filename: str = "recording.wav"
    content_type: str = "audio/wav"


@dataclass(frozen=True, slots=True)
class ImageInput:
    """Image uploaded as the ``image`` multipart part."""

    data: bytes
    image_type: str
    filename: str = "image"


@dataclass(frozen=True, slots=True)
class SubmissionInput:
    """A unit of user input; at least one member must carry content."""

    audio: AudioInput | None = None
    text: str | None = None
    image: ImageInput | None = None

    @classmethod
    def from_audio(cls, data: bytes, *, filename: str = "recording.wav") -> SubmissionInput:
        return cls(audio=AudioInput(data=data, filename=filename))

    @classmethod
    def from_text(cls, text: str) -> SubmissionInput:
        return cls(text=text)

    @classmethod
    def from_image(
        cls, data: bytes, image_type: str, *, filename: str = "image"
    ) -> SubmissionInput:
        return cls(image=ImageInput(data=data, image_type=image_type, filename=filename))

    @property
    def normalized_text(self) -> str | None:
        if self.text is None:
            return None
        stripped = self.text.strip()
        return stripped or None

    @property
    def is_empty(self) -> bool:
        has_audio = self.audio is not None and bool(self.audio.data)
        has_image = self.image is not None and bool(self.image.data)
        return not (has_audio or has_image or self.normalized_text)

    @property
    def kind(self) -> str:
        """Short label used in logs and placeholder turns."""
        parts = []
        if self.audio is not None and self.audio.data:
            parts.append("audio")
        if self.normalized_text:
            parts.append("text")
        if self.image is not None and self.image.data:
            parts.append("image")
        return "+".join(parts) or "empty"


@dataclass(frozen=True, slots=True)
class ContinuityFields:
    """Conversation linkage sent alongside every submission."""

    is_new: bool
    last_job_id: str | None = None

    def to_form(self) -> dict[str, Any]:
        """Return typed form values; the linkage id is omitted for new chats."""
        form: dict[str, Any] = {"is_new_chat": bool(self.is_new)}
        if not self.is_new and self.last_job_id:
            form["previous_order_id"] = str(self.last_job_id)
        return form


@dataclass(frozen=True, slots=True)
class HistoryPage:
    """Raw history items returned for one page request."""

    page: int
    page_size: int
    items: Sequence[Mapping[str, Any]] = field(default_factory=tuple)
    reported_size: int | None = None

    @property
    def returned_count(self) -> int:
        return len(self.items)

    @property
    def is_last(self) -> bool:
        return self.returned_count < self.page_size


__all__ = [
    "AudioInput",
    "ContinuityFields",
    "HistoryPage",
    "ImageInput",
    "JobSnapshot",
    "JobStatus",
    "SubmissionInput",
]
