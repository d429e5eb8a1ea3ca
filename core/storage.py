# core/storage.py
"""
Core Storage Utilities.

Object-storage writes go through provider-issued pre-signed URLs: a single
PUT of the raw object bytes, with the routing key in the ``x-object`` header.
No credentials are attached here; the URL itself authorises the write.
"""
import logging

import httpx

from core.models import RelayRequest, RelayOutcome

logger = logging.getLogger("Storefront_Core").getChild("Storage")


async def put_object(http_client: httpx.AsyncClient, request: RelayRequest) -> RelayOutcome:
    """
    PUTs the attachment bytes to the pre-signed destination URL.

    Success is decided purely by a 2xx status; the response body is only kept
    on failure. Transport errors (``httpx.RequestError``) propagate to the caller.
    """
    headers = {
        "x-object": request.routing_key,
        "Content-Type": request.mime_type,
    }
    logger.info(f"Uploading {request.filename} ({len(request.content)} bytes, {request.mime_type}) to storage")
    response = await http_client.put(request.destination_url, content=request.content, headers=headers)

    if response.is_success:
        logger.info(f"Successfully uploaded {request.filename} to storage (Status: {response.status_code})")
        return RelayOutcome(success=True, status_code=response.status_code)

    error_text = response.text
    logger.error(f"Storage upload failed for {request.filename}: {response.status_code} - {error_text}")
    return RelayOutcome(success=False, status_code=response.status_code, body=error_text)
