from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path, PurePosixPath
from typing import Any, Mapping

import httpx

from ..errors import WaveSpeedError
from ..types import Artifact

_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
    "image/avif": ".avif",
    "image/heic": ".heic",
    "image/heif": ".heif",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
}


def _extension(mime_type: str, source: str | None = None) -> str:
    ext = _EXTENSIONS.get(mime_type.split(";")[0].strip().lower())
    if ext:
        return ext
    if source:
        suffix = PurePosixPath(httpx.URL(source).path).suffix
        if suffix:
            return suffix.lower()
    return ".bin"


def decode_data_uri(uri: str) -> tuple[bytes, str]:
    """Split a base64 ``data:`` URI into its bytes and MIME type."""
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise WaveSpeedError("Only base64 data URIs can be saved")
    mime_type = header[len("data:") : -len(";base64")] or "application/octet-stream"
    try:
        return base64.b64decode(payload, validate=True), mime_type
    except (ValueError, binascii.Error) as exc:
        raise WaveSpeedError("Artifact data URI is not valid base64") from exc


class ArtifactStore:
    """Writes generated artifacts (and optional metadata) under one batch directory."""

    def __init__(
        self,
        root_dir: Path,
        batch_name: str,
        *,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.base_dir = Path(root_dir) / batch_name
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=httpx.Timeout(120.0), follow_redirects=True)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def _fetch(self, artifact: Artifact) -> tuple[bytes, str]:
        if artifact.startswith("data:"):
            return decode_data_uri(artifact)
        try:
            response = self._http.get(artifact)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise WaveSpeedError(f"Failed to download artifact {artifact}: {exc}") from exc
        return response.content, response.headers.get("content-type", "application/octet-stream")

    def save(
        self,
        artifact: Artifact,
        *,
        tool: str,
        index: int,
        metadata: Mapping[str, Any] | None = None,
        include_metadata: bool = True,
    ) -> Path:
        """Persist one artifact and return the written path."""
        content, mime_type = self._fetch(artifact)
        source = None if artifact.startswith("data:") else artifact
        target = self.base_dir / f"{tool}-result-{index + 1}{_extension(mime_type, source)}"
        target.write_bytes(content)

        if include_metadata:
            sidecar = {
                "tool": tool,
                "index": index,
                "source": source or "inline",
                "mime_type": mime_type,
                "bytes": len(content),
            }
            sidecar.update(metadata or {})
            target.with_suffix(".json").write_text(
                json.dumps(sidecar, indent=2, default=str),
                encoding="utf-8",
            )
        return target

    def __enter__(self) -> "ArtifactStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()
