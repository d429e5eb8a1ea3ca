# services/upload_relay/app/main.py
from fastapi import FastAPI, Request, HTTPException, Depends, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from core.config import settings, logger as core_logger
from core.exceptions import PayloadTooLarge, RelayError
from . import relay
from .relay import RelayOptions
import httpx
from contextlib import asynccontextmanager

logger = core_logger.getChild("UploadRelay")

# Room for the multipart framing and text fields around the attachment
MULTIPART_OVERHEAD_BYTES = 64 * 1024


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: one shared client for every outbound storage PUT
    logger.info("Upload Relay lifespan startup: Initializing HTTPX Client.")
    try:
        app.state.http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
        logger.info("HTTPX Client initialized and stored in app.state.")
    except Exception as e:
        logger.error(f"Failed to initialize HTTPX client during startup: {e}", exc_info=True)
        app.state.http_client = None
    app.state.relay_options = RelayOptions.from_settings(settings)

    yield # Application runs here

    logger.info("Upload Relay lifespan shutdown: Cleaning up resources.")
    if getattr(app.state, 'http_client', None):
        await app.state.http_client.aclose()
        app.state.http_client = None
        logger.info("HTTPX Client closed.")
    else:
        logger.warning("HTTPX Client was not available in app.state during shutdown.")


app = FastAPI(
    title="Storefront Upload Relay",
    description="Same-origin proxy that forwards product images to pre-signed storage URLs",
    version="1.0.0",
    lifespan=lifespan
)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError):
    logger.warning(f"Rejected upload relay request ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Dependency function to get the HTTP client from app state."""
    client = getattr(request.app.state, 'http_client', None)
    if not client:
        logger.error("HTTP client dependency not met: Client not available in application state.")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Upload relay internal error: HTTP client not ready")
    return client


def get_relay_options(request: Request) -> RelayOptions:
    return getattr(request.app.state, 'relay_options', None) or RelayOptions.from_settings(settings)


async def read_body_limited(request: Request, limit: int) -> bytes:
    """Reads the request body, refusing it as soon as it grows past ``limit`` bytes."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLarge(int(declared), limit)

    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise PayloadTooLarge(size, limit)
        chunks.append(chunk)
    return b"".join(chunks)


@app.get("/health", tags=["Meta"])
async def health_check(request: Request):
    client_status = "initialized" if getattr(request.app.state, 'http_client', None) else "NOT initialized"
    return {"status": "success", "message": f"Upload Relay is running (HTTP Client: {client_status})"}


@app.get("/", tags=["Meta"])
async def read_root():
    return {"message": "Storefront Upload Relay Running"}


@app.post("/api/s3-upload", tags=["Uploads"])
async def s3_upload(
    request: Request,
    http_client: httpx.AsyncClient = Depends(get_http_client),
    options: RelayOptions = Depends(get_relay_options),
):
    """Forward the multipart ``image`` part to the pre-signed ``s3UploadUrl`` with a single PUT."""
    raw_body = await read_body_limited(request, options.max_bytes + MULTIPART_OVERHEAD_BYTES)

    try:
        outcome = await relay.relay_upload(http_client, raw_body, request.headers.get("content-type"), options)
    except RelayError:
        raise # Rendered by relay_error_handler
    except httpx.RequestError as e:
        logger.error(f"Could not reach storage provider: {e}")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"error": "Storage provider unavailable."})
    except Exception as e:
        logger.error(f"Upload relay error: {e}", exc_info=True)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": f"S3 upload failed: {e}"})

    if outcome.success:
        return {"success": True, "message": "File uploaded to S3 successfully"}
    return JSONResponse(status_code=outcome.status_code, content={"error": f"S3 upload failed: {outcome.body}"})
