# services/store_builder/app/pipeline.py

from core.models import ProductDraft, StoreBuilderConfig, StoreDetails, StoreGenerationResult
from . import slots as slot_ops, coordinator, submitter
from .coordinator import RelayClient
from typing import Optional, Sequence
import logging
import httpx

logger = logging.getLogger("Storefront_Core").getChild("StoreBuilder").getChild("Pipeline")


async def _run_batch(
    http_client: httpx.AsyncClient,
    config: StoreBuilderConfig,
    details: StoreDetails,
    drafts: Sequence[ProductDraft],
    relay: RelayClient,
) -> StoreGenerationResult:
    imaged, _ = coordinator.partition_drafts(drafts)

    # Step 1: reserve one slot per imaged product
    slots = await slot_ops.acquire_slots(http_client, config, len(imaged))

    # Step 2: upload images; any failure aborts before submission
    records = await coordinator.upload_products(drafts, slots, relay, timeout=config.upload_timeout)

    # Step 3: create the store
    return await submitter.submit_store(http_client, config, details, records)


async def generate_store(
    config: StoreBuilderConfig,
    details: StoreDetails,
    drafts: Sequence[ProductDraft],
    http_client: Optional[httpx.AsyncClient] = None,
    relay: Optional[RelayClient] = None,
) -> StoreGenerationResult:
    """
    Runs one store batch: acquire slots, relay images, submit the store record.

    Store details are validated before any remote call. Slot, upload and
    submission errors propagate unchanged; the store is only submitted when
    every image upload succeeded.

    Args:
        config: Remote API, relay and timeout settings for this batch.
        details: Owner number, store name and slug.
        drafts: Products in display order; each may carry an image.
        http_client: Client for remote API and relay calls. A temporary one is
            created (and closed) when omitted.
        relay: Relay client override; defaults to ``config.relay_url``.
    """
    submitter.validate_store(details, drafts)
    logger.info(f"Starting store generation for '{details.slug}' with {len(drafts)} product(s)")

    if http_client is None:
        async with httpx.AsyncClient(timeout=config.http_timeout) as client:
            relay = relay or RelayClient(client, config.relay_url, config.default_routing_key)
            return await _run_batch(client, config, details, drafts, relay)

    relay = relay or RelayClient(http_client, config.relay_url, config.default_routing_key)
    return await _run_batch(http_client, config, details, drafts, relay)
