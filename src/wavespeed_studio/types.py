from __future__ import annotations

import base64
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import TerminalJobError

Artifact = str
"""A dereferenceable URI (``https://...`` or ``data:...``) for one generated output."""

RawArtifact = Union[str, bytes, Mapping[str, Any], Any]


class InputImage(BaseModel):
    """An uploaded image forwarded inline with a generation request."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(..., min_length=1, description="Raw image bytes")
    mime_type: str = Field(..., description="Declared MIME type, e.g. 'image/png'")
    name: str | None = Field(default=None, description="Original file name, if known")

    @property
    def data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


class GenerationRequest(BaseModel):
    """Immutable description of one generation job, built once per user action."""

    model_config = ConfigDict(frozen=True)

    endpoint: str = Field(..., min_length=1, description="Model path, e.g. 'bytedance/seedream-v4.5/edit'")
    prompt: str = Field(..., min_length=1, description="Primary text prompt")
    images: tuple[InputImage, ...] = Field(default=())
    image_field: Literal["image", "images"] = Field(
        default="images",
        description="Payload key for input images; 'image' sends only the first one",
    )
    params: Mapping[str, Any] = Field(
        default_factory=dict,
        description="Model-specific controls (duration, guidance_scale, size, negative_prompt, ...)",
    )
    artifact_count: int | None = Field(
        default=None,
        ge=1,
        description="Number of independent jobs to fan out; None runs a single job",
    )
    seed: int | None = Field(default=None, ge=0)

    @field_validator("params", mode="after")
    @classmethod
    def _freeze_params(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        # Read-only view over a private copy; seeded copies share it safely.
        return MappingProxyType(dict(value))

    def with_seed(self, seed: int) -> "GenerationRequest":
        return self.model_copy(update={"seed": seed})

    def to_payload(self) -> dict[str, Any]:
        """Render the JSON body posted to the submission endpoint."""
        payload: dict[str, Any] = {"prompt": self.prompt}
        if self.images:
            if self.image_field == "image":
                payload["image"] = self.images[0].data_uri
            else:
                payload["images"] = [image.data_uri for image in self.images]
        payload.update(self.params)
        if self.seed is not None:
            payload["seed"] = self.seed
        return payload


@dataclass(frozen=True, slots=True)
class JobHandle:
    """Remote job identifier returned on submission."""

    id: str
    endpoint: str


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)

    @classmethod
    def from_remote(cls, label: Optional[str]) -> "JobStatus":
        """Map the service's status literal onto the engine's vocabulary.

        Unknown literals are treated as still running so polling continues
        until the attempt budget decides.
        """
        value = (label or "").strip().lower()
        if value in {"completed", "succeeded"}:
            return cls.SUCCEEDED
        if value == "failed":
            return cls.FAILED
        if value in {"queued", "pending"}:
            return cls.QUEUED
        return cls.PROCESSING


@dataclass(frozen=True, slots=True)
class JobOutcome:
    """Terminal result of polling one job."""

    status: JobStatus
    job_id: str
    artifacts: tuple[RawArtifact, ...] = ()
    elapsed_ms: int = 0
    reported_cost: Decimal | None = None
    reason: str | None = None
    raw: Mapping[str, Any] | None = field(default=None, compare=False)

    @classmethod
    def succeeded(
        cls,
        job_id: str,
        artifacts: tuple[RawArtifact, ...],
        elapsed_ms: int,
        reported_cost: Decimal | None = None,
        raw: Mapping[str, Any] | None = None,
    ) -> "JobOutcome":
        return cls(
            status=JobStatus.SUCCEEDED,
            job_id=job_id,
            artifacts=artifacts,
            elapsed_ms=elapsed_ms,
            reported_cost=reported_cost,
            raw=raw,
        )

    @classmethod
    def failed(
        cls,
        job_id: str,
        reason: str,
        elapsed_ms: int = 0,
        raw: Mapping[str, Any] | None = None,
    ) -> "JobOutcome":
        return cls(
            status=JobStatus.FAILED,
            job_id=job_id,
            elapsed_ms=elapsed_ms,
            reason=reason,
            raw=raw,
        )

    @property
    def ok(self) -> bool:
        return self.status is JobStatus.SUCCEEDED

    def raise_for_failure(self) -> "JobOutcome":
        """Return self, or raise ``TerminalJobError`` for a failed job."""
        if self.status is JobStatus.FAILED:
            raise TerminalJobError(self.reason or "Unknown server error", job_id=self.job_id)
        return self
