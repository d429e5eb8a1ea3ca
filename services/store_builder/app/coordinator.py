# services/store_builder/app/coordinator.py

from core.models import ImageAttachment, ProductDraft, ProductRecord, UploadOutcome, UploadSlot
from core.exceptions import ContractViolation, PartialUploadFailure, RelayCallFailed
from core.utils import settle_all, describe_error
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import httpx

logger = logging.getLogger("Storefront_Core").getChild("StoreBuilder").getChild("Coordinator")


class RelayClient:
    """Sends one product image through the upload relay endpoint."""

    def __init__(self, http_client: httpx.AsyncClient, relay_url: str, default_routing_key: str = "default"):
        self.http_client = http_client
        self.relay_url = relay_url
        self.default_routing_key = default_routing_key

    async def upload(self, image: ImageAttachment, slot: UploadSlot) -> None:
        """
        Posts ``image`` to the relay, targeting ``slot``.

        Raises:
            RelayCallFailed: If the relay answers with a non-2xx status.
            httpx.RequestError: If the relay cannot be reached.
        """
        if image.content_type:
            file_part = (image.filename, image.content, image.content_type)
        else:
            file_part = (image.filename, image.content)
        data = {
            "s3UploadUrl": slot.destination_url,
            "xObject": slot.routing_key or self.default_routing_key,
        }
        response = await self.http_client.post(self.relay_url, data=data, files={"image": file_part})
        if not response.is_success:
            raise RelayCallFailed(response.status_code, response.text)


def partition_drafts(drafts: Sequence[ProductDraft]) -> Tuple[List[int], List[int]]:
    """Splits drafts into (imaged positions, bare positions), both in input order."""
    imaged, bare = [], []
    for position, draft in enumerate(drafts):
        (imaged if draft.has_image else bare).append(position)
    return imaged, bare


async def upload_products(
    drafts: Sequence[ProductDraft],
    slots: Sequence[UploadSlot],
    relay: RelayClient,
    timeout: Optional[float] = None,
) -> List[ProductRecord]:
    """
    Uploads every product image to its slot and builds the product records.

    Slot ``i`` belongs to the ``i``-th imaged draft in input order. All uploads
    are started together and every one is awaited before deciding the batch
    outcome. Records come back in input order; bare drafts get no image URL.

    Raises:
        ContractViolation: If the number of slots differs from the number of imaged drafts.
        PartialUploadFailure: If any upload failed or timed out. No records are returned.
    """
    imaged, bare = partition_drafts(drafts)
    if len(slots) != len(imaged):
        raise ContractViolation(f"Received {len(slots)} upload slots for {len(imaged)} imaged products")

    logger.info(f"Coordinating {len(imaged)} image upload(s); {len(bare)} product(s) without images")
    if imaged:
        uploads = [relay.upload(drafts[position].image, slots[index]) for index, position in enumerate(imaged)]
        settled = await settle_all(uploads, timeout=timeout)

        outcomes = [
            UploadOutcome(
                index=result.index,
                product_name=drafts[imaged[result.index]].name,
                success=result.ok,
                error=None if result.ok else describe_error(result.error),
            )
            for result in settled
        ]
        failed = [outcome for outcome in outcomes if not outcome.success]
        if failed:
            for outcome in failed:
                logger.error(f"Image upload #{outcome.index} for '{outcome.product_name}' failed: {outcome.error}")
            raise PartialUploadFailure(
                failed_indices=[outcome.index for outcome in failed],
                failed_products={outcome.index: outcome.product_name for outcome in failed},
                errors={outcome.index: outcome.error for outcome in failed},
            )
        logger.info(f"All {len(imaged)} image upload(s) succeeded")

    image_urls: Dict[int, str] = {position: slots[index].public_url for index, position in enumerate(imaged)}
    return [
        ProductRecord(name=draft.name, price=draft.price, image_url=image_urls.get(position))
        for position, draft in enumerate(drafts)
    ]
