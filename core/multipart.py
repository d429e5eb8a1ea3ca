# core/multipart.py
"""
Multipart/form-data payload extraction.

Recovers the named text fields and the single binary attachment from a raw
``multipart/form-data`` body. The body is processed as ``bytes`` from start to
finish: the attachment is sliced straight out of the input, so every byte
value (0-255) survives untouched. Header blocks are decoded as latin-1, which
maps each byte to exactly one character and back.

The module is pure: no I/O, no logging, deterministic for a given input.
"""
import re
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from core.exceptions import MalformedPayload

ATTACHMENT_FIELD = "image"
DEFAULT_ATTACHMENT_FILENAME = "uploaded_image.jpg"

_BOUNDARY_RE = re.compile(r'boundary=(?:"([^"]+)"|([^;\s]+))', re.IGNORECASE)
_DISPOSITION_PARAM_RE = re.compile(r';\s*([\w*-]+)=(?:"((?:[^"\\]|\\.)*)"|([^;\s]*))')


class ExtractedFile(BaseModel):
    content: bytes
    filename: str = DEFAULT_ATTACHMENT_FILENAME
    content_type: Optional[str] = None


class ExtractedPayload(BaseModel):
    fields: Dict[str, str] = Field(default_factory=dict)
    attachment: Optional[ExtractedFile] = None


def boundary_from_content_type(content_type: Optional[str]) -> Optional[str]:
    """Returns the boundary token of a ``multipart/form-data`` Content-Type header, or None."""
    if not content_type:
        return None
    match = _BOUNDARY_RE.search(content_type)
    if not match:
        return None
    return match.group(1) or match.group(2)


def _split_headers(part: bytes) -> Optional[Tuple[List[str], bytes]]:
    """Splits a part into header lines and its body at the first blank line."""
    # Earliest blank line wins; the body may itself contain either separator
    candidates = [(part.find(sep), sep) for sep in (b"\r\n\r\n", b"\n\n")]
    found = [(idx, sep) for idx, sep in candidates if idx != -1]
    if not found:
        return None
    idx, separator = min(found, key=lambda c: c[0])
    header_block = part[:idx].decode("latin-1")
    lines = [line.strip() for line in header_block.splitlines() if line.strip()]
    return lines, part[idx + len(separator):]


def _header_value(lines: List[str], name: str) -> Optional[str]:
    prefix = name.lower() + ":"
    for line in lines:
        if line.lower().startswith(prefix):
            return line[len(prefix):].strip()
    return None


def _disposition_params(disposition: str) -> Dict[str, str]:
    params = {}
    for key, quoted, bare in _DISPOSITION_PARAM_RE.findall(disposition):
        params[key.lower()] = quoted.replace('\\"', '"') if quoted or not bare else bare
    return params


def _strip_delimiter_newline(body: bytes) -> bytes:
    # Only the line break that belongs to the following delimiter is removed.
    if body.endswith(b"\r\n"):
        return body[:-2]
    if body.endswith(b"\n"):
        return body[:-1]
    return body


def extract(raw_body: bytes, boundary: Optional[str]) -> ExtractedPayload:
    """
    Extracts form fields and the ``image`` attachment from a multipart body.

    Args:
        raw_body: The complete request body.
        boundary: The boundary token from the request's Content-Type header.

    Returns:
        ExtractedPayload with every non-attachment field decoded as text and
        the first ``image`` part (if any) as raw bytes.

    Raises:
        MalformedPayload: If the boundary token is missing or empty.
    """
    if not boundary:
        raise MalformedPayload("No multipart boundary found")

    delimiter = b"--" + boundary.encode("latin-1")
    segments = raw_body.split(delimiter)
    payload = ExtractedPayload()

    # segments[0] is the preamble before the first delimiter
    for segment in segments[1:]:
        if segment.startswith(b"--"):
            break # closing delimiter
        split = _split_headers(segment)
        if split is None:
            continue
        lines, body = split

        disposition = _header_value(lines, "Content-Disposition")
        if not disposition or not disposition.lower().startswith("form-data"):
            continue
        params = _disposition_params(disposition)
        name = params.get("name")
        if not name:
            continue

        if name == ATTACHMENT_FIELD:
            if payload.attachment is None:
                payload.attachment = ExtractedFile(
                    content=_strip_delimiter_newline(body),
                    filename=params.get("filename") or DEFAULT_ATTACHMENT_FILENAME,
                    content_type=_header_value(lines, "Content-Type"),
                )
        else:
            payload.fields[name] = body.rstrip(b"\r\n").decode("utf-8", errors="replace")

    return payload
