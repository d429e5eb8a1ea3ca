# services/store_builder/app/submitter.py

from core.models import ProductRecord, StoreBuilderConfig, StoreDetails, StoreGenerationResult, StoreRecord
from core.exceptions import EmptyStore, InvalidOwnerIdentifier, RemoteRejected
from typing import List, Sized
import logging
import re
import httpx

logger = logging.getLogger("Storefront_Core").getChild("StoreBuilder").getChild("Submitter")

CREATE_STORE_ENDPOINT = "/api/store/create"

# Two-digit country code followed by a nine-digit subscriber number, e.g. 27794343222
OWNER_NUMBER_RE = re.compile(r"[0-9]{2}[0-9]{9}")


def validate_store(details: StoreDetails, products: Sized) -> None:
    """
    Local checks that must pass before any remote call is made.

    Raises:
        EmptyStore: If there are no products.
        InvalidOwnerIdentifier: If the owner number is not a country-code-prefixed MSISDN.
    """
    if len(products) == 0:
        raise EmptyStore("A store needs at least one product")
    if not OWNER_NUMBER_RE.fullmatch(details.owner_number):
        raise InvalidOwnerIdentifier(details.owner_number)


async def submit_store(
    http_client: httpx.AsyncClient,
    config: StoreBuilderConfig,
    details: StoreDetails,
    records: List[ProductRecord],
) -> StoreGenerationResult:
    """Builds the store record and submits it once. No retries."""
    validate_store(details, records)
    store = StoreRecord(owner_number=details.owner_number, name=details.name, slug=details.slug, products=records)

    url = config.api_url(CREATE_STORE_ENDPOINT)
    logger.info(f"Creating store '{store.slug}' with {len(store.products)} product(s)")
    logger.debug(f"Store data: {store.to_payload()}")
    response = await http_client.post(url, json=store.to_payload(), headers=config.auth_headers())

    if not response.is_success:
        logger.error(f"Failed to create store ({response.status_code}): {response.text}")
        raise RemoteRejected(response.status_code, response.text, operation="create store")

    try:
        created = response.json()
    except ValueError:
        logger.warning("Store created but the response body is not JSON; returning raw text.")
        created = {"raw": response.text}

    logger.info(f"Store '{store.slug}' created successfully")
    return StoreGenerationResult(store=store, response=created if isinstance(created, dict) else {"data": created})
