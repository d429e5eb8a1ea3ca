# services/store_builder/app/slots.py

from core.models import StoreBuilderConfig, UploadSlot
from core.exceptions import ContractViolation, RemoteRejected
from pydantic import ValidationError
from typing import List
import logging
import httpx

logger = logging.getLogger("Storefront_Core").getChild("StoreBuilder").getChild("Slots")

GET_URLS_ENDPOINT = "/api/file/get-urls"


async def acquire_slots(http_client: httpx.AsyncClient, config: StoreBuilderConfig, count: int) -> List[UploadSlot]:
    """
    Reserves ``count`` pre-signed upload slots from the remote API.

    Returns the slots in the order the API issued them. ``count == 0`` returns
    an empty list without calling the API. The length of the returned list is
    NOT checked here; the caller owns the slot-to-product correlation.

    Raises:
        ValueError: If ``count`` is negative.
        RemoteRejected: If the API answers with a non-success status.
        ContractViolation: If the response has no ``urls`` array or a malformed entry.
    """
    if count < 0:
        raise ValueError(f"Slot count must be non-negative, got {count}")
    if count == 0:
        logger.info("No images to upload; skipping upload URL request.")
        return []

    url = config.api_url(GET_URLS_ENDPOINT)
    logger.info(f"Requesting {count} upload URLs")
    response = await http_client.post(url, json={"count": count}, headers=config.auth_headers())

    if not response.is_success:
        logger.error(f"Failed to get upload URLs ({response.status_code}): {response.text}")
        raise RemoteRejected(response.status_code, response.text, operation="get upload URLs")

    try:
        data = response.json()
    except ValueError as e:
        raise ContractViolation(f"Upload URL response is not valid JSON: {e}") from e

    urls = data.get("urls") if isinstance(data, dict) else None
    if not isinstance(urls, list):
        raise ContractViolation(f"Invalid response format: expected urls array, got {type(urls).__name__}")

    try:
        slots = [UploadSlot.model_validate(entry) for entry in urls]
    except ValidationError as e:
        raise ContractViolation(f"Malformed upload URL entry: {e}") from e

    logger.info(f"Received {len(slots)} upload URLs")
    return slots
