from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .cost import estimate_cost
from .errors import RequestValidationError
from .types import GenerationRequest, InputImage


class ToolPreset(BaseModel):
    """A remote model exposed as a tool, with its polling budget and pricing."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Short identifier used on the command line")
    title: str = Field(..., description="Human readable tool name")
    endpoint: str = Field(..., description="Model path below /api/v3/")
    image_field: Literal["image", "images"] = Field(default="images")
    output_kind: Literal["image", "video"] = Field(default="image")
    max_poll_attempts: int = Field(default=90, ge=1, le=600)
    per_second_rate: Decimal | None = Field(default=None, description="Price per second of video")
    per_artifact_rate: Decimal | None = Field(default=None, description="Price per generated artifact")

    def estimate(self, params: Mapping[str, Any]) -> Decimal:
        """Projected price for a run with ``params``."""
        if self.per_second_rate is not None:
            return estimate_cost(duration_seconds=params.get("duration", 0), rate=self.per_second_rate)
        if self.per_artifact_rate is not None:
            count = params.get("artifact_count") or 1
            return estimate_cost(artifact_count=count, per_artifact_rate=self.per_artifact_rate)
        raise ValueError(f"Tool '{self.name}' has no pricing configured")


SEEDREAM = ToolPreset(
    name="seedream",
    title="Seedream v4.5 Edit",
    endpoint="bytedance/seedream-v4.5/edit",
    image_field="images",
    output_kind="image",
    max_poll_attempts=90,
    per_artifact_rate=Decimal("0.04"),
)

KLING = ToolPreset(
    name="kling",
    title="Kling v2.5 Turbo Std Image-to-Video",
    endpoint="kwaivgi/kling-v2.5-turbo-std/image-to-video",
    image_field="image",
    output_kind="video",
    max_poll_attempts=150,
    per_second_rate=Decimal("0.042"),
)

TOOLS: dict[str, ToolPreset] = {preset.name: preset for preset in (SEEDREAM, KLING)}

SEEDREAM_MIN_SIZE = 512
SEEDREAM_MAX_SIZE = 4096
SEEDREAM_MAX_IMAGES = 4
KLING_DURATIONS = (5, 10)


def get_tool(name: str) -> ToolPreset:
    try:
        return TOOLS[name.strip().lower()]
    except KeyError as exc:
        available = ", ".join(sorted(TOOLS))
        raise RequestValidationError(f"Unknown tool '{name}'. Available tools: {available}") from exc


def _require_prompt(prompt: str) -> str:
    if not prompt or not prompt.strip():
        raise RequestValidationError("Please enter a prompt.")
    return prompt


def _build(**fields: Any) -> GenerationRequest:
    try:
        return GenerationRequest(**fields)
    except ValidationError as exc:
        invalid = ", ".join(sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()}))
        raise RequestValidationError(f"Invalid generation request fields: {invalid}") from exc


def build_seedream_request(
    prompt: str,
    images: Sequence[InputImage],
    *,
    width: int = 1024,
    height: int = 1024,
    max_images: int = 1,
) -> GenerationRequest:
    """Build an edit request that fans out into ``max_images`` seeded jobs."""
    _require_prompt(prompt)
    if not images:
        raise RequestValidationError("Please upload at least one image.")
    for label, value in (("width", width), ("height", height)):
        if not SEEDREAM_MIN_SIZE <= value <= SEEDREAM_MAX_SIZE:
            raise RequestValidationError(
                f"{label} must be between {SEEDREAM_MIN_SIZE} and {SEEDREAM_MAX_SIZE}, got {value}."
            )
    if not 1 <= max_images <= SEEDREAM_MAX_IMAGES:
        raise RequestValidationError(f"max_images must be between 1 and {SEEDREAM_MAX_IMAGES}.")

    return _build(
        endpoint=SEEDREAM.endpoint,
        prompt=prompt,
        images=tuple(images),
        image_field=SEEDREAM.image_field,
        params={
            "size": f"{width}*{height}",
            "enable_sync_mode": False,
            "enable_base64_output": False,
        },
        artifact_count=max_images,
    )


def build_kling_request(
    prompt: str,
    image: InputImage | None,
    *,
    negative_prompt: str = "",
    duration: int = 5,
    guidance_scale: float = 0.5,
) -> GenerationRequest:
    """Build a single-job image-to-video request."""
    _require_prompt(prompt)
    if image is None:
        raise RequestValidationError("Please upload an image.")
    if duration not in KLING_DURATIONS:
        raise RequestValidationError(f"duration must be one of {KLING_DURATIONS}, got {duration}.")
    if not 0.0 <= guidance_scale <= 1.0:
        raise RequestValidationError(f"guidance_scale must be between 0 and 1, got {guidance_scale}.")

    return _build(
        endpoint=KLING.endpoint,
        prompt=prompt,
        images=(image,),
        image_field=KLING.image_field,
        params={
            "negative_prompt": negative_prompt,
            "duration": int(duration),
            "guidance_scale": float(guidance_scale),
        },
    )
