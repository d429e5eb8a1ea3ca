# services/upload_relay/app/relay.py
import logging
import mimetypes
from typing import Optional

import httpx
from pydantic import BaseModel, Field

from core.config import Settings
from core.exceptions import MissingAttachment, MissingDestination, PayloadTooLarge, UnsupportedAttachmentType
from core.models import RelayOutcome, RelayRequest, is_image_mime_type
from core.multipart import ExtractedFile, boundary_from_content_type, extract
from core.storage import put_object

logger = logging.getLogger("Storefront_Core").getChild("UploadRelay").getChild("Relay")

DESTINATION_FIELD = "s3UploadUrl"
ROUTING_KEY_FIELD = "xObject"
GENERIC_BINARY_TYPE = "application/octet-stream"


class RelayOptions(BaseModel):
    """Limits and defaults applied to every relayed upload."""
    max_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    default_routing_key: str = "default"
    default_mime_type: str = "image/jpeg"
    images_only: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "RelayOptions":
        return cls(
            max_bytes=settings.RELAY_MAX_UPLOAD_BYTES,
            default_routing_key=settings.RELAY_DEFAULT_ROUTING_KEY,
            default_mime_type=settings.RELAY_DEFAULT_MIME_TYPE,
            images_only=settings.RELAY_IMAGES_ONLY,
        )


def resolve_mime_type(attachment: ExtractedFile, default: str) -> str:
    """Part Content-Type first, then a guess from the part filename, then the configured default."""
    declared = (attachment.content_type or "").strip()
    if declared and declared.split(";", 1)[0].strip().lower() != GENERIC_BINARY_TYPE:
        return declared
    guessed, _ = mimetypes.guess_type(attachment.filename)
    return guessed or default


def build_relay_request(raw_body: bytes, content_type: Optional[str], options: RelayOptions) -> RelayRequest:
    """
    Turns an inbound multipart body into a validated RelayRequest.

    Raises:
        MalformedPayload: No boundary token in the Content-Type header.
        MissingDestination: ``s3UploadUrl`` absent or blank.
        MissingAttachment: No ``image`` part.
        PayloadTooLarge: Attachment larger than ``options.max_bytes``.
        UnsupportedAttachmentType: Non-image attachment while ``images_only`` is set.
    """
    payload = extract(raw_body, boundary_from_content_type(content_type))

    destination_url = payload.fields.get(DESTINATION_FIELD, "").strip()
    if not destination_url:
        raise MissingDestination("S3 upload URL not provided")

    attachment = payload.attachment
    if attachment is None:
        raise MissingAttachment("No image file provided")

    size = len(attachment.content)
    if size > options.max_bytes:
        raise PayloadTooLarge(size, options.max_bytes)

    mime_type = resolve_mime_type(attachment, options.default_mime_type)
    if options.images_only and not is_image_mime_type(mime_type):
        raise UnsupportedAttachmentType(mime_type)

    routing_key = payload.fields.get(ROUTING_KEY_FIELD, "").strip() or options.default_routing_key

    return RelayRequest(
        destination_url=destination_url,
        routing_key=routing_key,
        content=attachment.content,
        mime_type=mime_type,
        filename=attachment.filename,
    )


async def relay_upload(http_client: httpx.AsyncClient, raw_body: bytes, content_type: Optional[str], options: RelayOptions) -> RelayOutcome:
    """Validates one inbound multipart upload and forwards its attachment with a single PUT. No retries."""
    relay_request = build_relay_request(raw_body, content_type, options)
    logger.info(f"Relaying {relay_request.filename} ({len(relay_request.content)} bytes) with x-object '{relay_request.routing_key}'")
    return await put_object(http_client, relay_request)
