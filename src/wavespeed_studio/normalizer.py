from __future__ import annotations

import base64
import binascii
from typing import Iterable, Mapping

from .encoder import detect_mime_type, encode_bytes
from .errors import UnrecognizedArtifactShape
from .types import Artifact, RawArtifact


def _is_uri(value: str) -> bool:
    return value.startswith(("http://", "https://", "data:"))


def _from_string(value: str) -> Artifact:
    if _is_uri(value):
        return value

    # Jobs submitted with enable_base64_output return bare base64 image data.
    stripped = value.strip()
    if not stripped:
        raise UnrecognizedArtifactShape("Empty artifact string")
    try:
        base64.b64decode(stripped, validate=True)
    except (ValueError, binascii.Error) as exc:
        raise UnrecognizedArtifactShape(f"Unrecognized artifact string: {value[:40]!r}") from exc
    return f"data:image/png;base64,{stripped}"


def normalize_artifact(raw: RawArtifact) -> Artifact:
    """
    Map one raw output entry onto an artifact URI.

    Accepted shapes:
    - ``"https://..."`` / ``"data:..."`` strings, returned unchanged
    - bare base64 strings, wrapped as a PNG data URI
    - ``bytes``, wrapped as a data URI with a sniffed MIME type
    - mappings with a ``url`` key, or objects with a ``url`` attribute
    """
    if isinstance(raw, str):
        return _from_string(raw)

    if isinstance(raw, (bytes, bytearray)):
        if not raw:
            raise UnrecognizedArtifactShape("Empty artifact payload")
        data = bytes(raw)
        return encode_bytes(data, detect_mime_type(data))

    if isinstance(raw, Mapping):
        url = raw.get("url")
    else:
        url = getattr(raw, "url", None)

    if isinstance(url, str) and url:
        return url

    raise UnrecognizedArtifactShape(f"Unrecognized artifact shape: {type(raw).__name__}")


def normalize_artifacts(raws: Iterable[RawArtifact]) -> list[Artifact]:
    return [normalize_artifact(raw) for raw in raws]
