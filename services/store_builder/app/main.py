# services/store_builder/app/main.py
from fastapi import FastAPI, Request, HTTPException, Depends, status
from starlette.datastructures import UploadFile
from core.config import settings, logger as core_logger
from core.models import (
    GatewayResponse, ImageAttachment, ProductDraft, ProductSpec,
    StoreBuilderConfig, StoreDetails
)
from core.exceptions import ContractViolation, PartialUploadFailure, RemoteRejected, StoreError
from . import pipeline
from pydantic import TypeAdapter, ValidationError
from typing import List
import httpx
from contextlib import asynccontextmanager

logger = core_logger.getChild("StoreBuilder")

_product_specs = TypeAdapter(List[ProductSpec])


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Store Builder lifespan startup: Initializing HTTPX Client.")
    app.state.config = StoreBuilderConfig.from_settings(settings)
    try:
        app.state.http_client = httpx.AsyncClient(timeout=app.state.config.http_timeout)
        logger.info("HTTPX Client initialized and stored in app.state.")
    except Exception as e:
        logger.error(f"Failed to initialize HTTPX client during startup: {e}", exc_info=True)
        app.state.http_client = None

    yield # Application runs here

    logger.info("Store Builder lifespan shutdown: Cleaning up resources.")
    if getattr(app.state, 'http_client', None):
        await app.state.http_client.aclose()
        app.state.http_client = None
        logger.info("HTTPX Client closed.")
    else:
        logger.warning("HTTPX Client was not available in app.state during shutdown.")


app = FastAPI(
    title="Storefront Store Builder",
    description="Creates a store: reserves upload slots, relays product images, submits the store record",
    version="1.0.0",
    lifespan=lifespan
)


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Dependency function to get the HTTP client from app state."""
    client = getattr(request.app.state, 'http_client', None)
    if not client:
        logger.error("HTTP client dependency not met: Client not available in application state.")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store builder internal error: HTTP client not ready")
    return client


def get_config(request: Request) -> StoreBuilderConfig:
    return getattr(request.app.state, 'config', None) or StoreBuilderConfig.from_settings(settings)


async def _drafts_from_form(form) -> List[ProductDraft]:
    """Builds product drafts from the ``products`` JSON field and the file parts it references."""
    raw_products = form.get("products")
    if not isinstance(raw_products, str):
        raise HTTPException(status_code=400, detail="'products' must be a JSON array")
    try:
        specs = _product_specs.validate_json(raw_products)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid products: {e.errors(include_url=False)}")

    drafts = []
    for position, spec in enumerate(specs):
        image = None
        if spec.image_field:
            upload = form.get(spec.image_field)
            if not isinstance(upload, UploadFile):
                raise HTTPException(status_code=400, detail=f"Product #{position} references missing file field '{spec.image_field}'")
            image = ImageAttachment(
                content=await upload.read(),
                filename=upload.filename or "uploaded_image.jpg",
                content_type=upload.content_type,
            )
        drafts.append(ProductDraft(name=spec.name, price=spec.price, image=image))
    return drafts


@app.get("/health", response_model=GatewayResponse, tags=["Meta"])
async def health_check(request: Request):
    client_status = "initialized" if getattr(request.app.state, 'http_client', None) else "NOT initialized"
    return GatewayResponse(status="success", message=f"Store Builder is running (HTTP Client: {client_status})")


@app.post("/stores", response_model=GatewayResponse, tags=["Stores"])
async def create_store(
    request: Request,
    http_client: httpx.AsyncClient = Depends(get_http_client),
    config: StoreBuilderConfig = Depends(get_config),
):
    """Create a store from a multipart form of store details, product JSON and product images."""
    form = await request.form()
    try:
        details = StoreDetails(
            owner_number=str(form.get("ownerNumber") or ""),
            name=str(form.get("name") or ""),
            slug=str(form.get("slug") or ""),
        )
        drafts = await _drafts_from_form(form)
    finally:
        await form.close()
    logger.info(f"Received store creation request: slug='{details.slug}', products={len(drafts)}")

    try:
        result = await pipeline.generate_store(config, details, drafts, http_client=http_client)
        return GatewayResponse(status="success", data=result.model_dump(by_alias=True), message="Store created successfully")

    except StoreError as e:
        logger.warning(f"Store request rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except PartialUploadFailure as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(e), "failedIndices": e.failed_indices, "errors": e.errors},
        )
    except ContractViolation as e:
        logger.error(f"Remote API broke the upload slot contract: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except RemoteRejected as e:
        # Non-2xx below 400 (e.g. a redirect) is still an upstream failure
        status_code = e.status_code if e.status_code >= 400 else status.HTTP_502_BAD_GATEWAY
        logger.warning(f"Remote API rejected request: {e}")
        raise HTTPException(status_code=status_code, detail={"message": str(e), "status": e.status_code, "body": e.body})
    except httpx.RequestError as e:
        logger.error(f"Could not reach remote store API: {e}")
        raise HTTPException(status_code=503, detail="Remote store API unavailable.")
    except Exception as e:
        logger.error(f"Store builder error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal Store Builder Error")
