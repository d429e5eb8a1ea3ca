from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Dict, Any
from urllib.parse import quote

from core.config import Settings

# --- Utility Functions ---

def is_image_mime_type(mime_type: Optional[str]) -> bool:
    """True for any ``image/*`` media type (parameters such as charset are ignored)."""
    if not mime_type:
        return False
    return mime_type.split(";", 1)[0].strip().lower().startswith("image/")

# --- Core Data Models ---

class UploadSlot(BaseModel):
    """A pre-signed upload slot issued by the remote API. Identity is its position in the issued list."""
    destination_url: str = Field(..., alias="uploadUrl", description="Pre-signed, time-limited PUT URL")
    public_url: str = Field(..., alias="fileUrl", description="URL the object is served from once uploaded")
    routing_key: Optional[str] = Field(None, alias="xObject", description="Opaque x-object header value forwarded to storage")

    @field_validator("routing_key", mode="before")
    @classmethod
    def blank_routing_key_is_absent(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    class Config:
        frozen = True
        populate_by_name = True

class ImageAttachment(BaseModel):
    """Binary image attached to a product draft."""
    content: bytes
    filename: str = "uploaded_image.jpg"
    content_type: Optional[str] = None

    class Config:
        frozen = True

class ProductDraft(BaseModel):
    """A product as entered by the operator, before any upload happened."""
    name: str
    price: float = Field(..., ge=0)
    image: Optional[ImageAttachment] = None

    class Config:
        frozen = True

    @property
    def has_image(self) -> bool:
        return self.image is not None

class ProductRecord(BaseModel):
    """A product as submitted to the store API."""
    name: str
    price: float = Field(..., ge=0)
    image_url: Optional[str] = Field(None, alias="imageUrl")

    class Config:
        frozen = True
        populate_by_name = True

class RelayRequest(BaseModel):
    """One outbound storage PUT, built from a single inbound relay request."""
    destination_url: str
    routing_key: str
    content: bytes
    mime_type: str
    filename: str = "uploaded_image.jpg"

class RelayOutcome(BaseModel):
    """Result of the outbound storage PUT. Success is decided by status code alone."""
    success: bool
    status_code: int
    body: Optional[str] = Field(None, description="Storage response body, kept only on failure")

class UploadOutcome(BaseModel):
    """Settled result of one imaged product's upload, indexed in imaged-product order."""
    index: int
    product_name: str
    success: bool
    error: Optional[str] = None

class StoreDetails(BaseModel):
    """Store identity fields supplied by the operator."""
    owner_number: str = Field(..., alias="ownerNumber")
    name: str
    slug: str

    class Config:
        frozen = True
        populate_by_name = True

class StoreRecord(BaseModel):
    """The store-creation record. Built once, submitted once."""
    owner_number: str = Field(..., alias="ownerNumber")
    name: str
    slug: str
    products: List[ProductRecord]

    class Config:
        frozen = True
        populate_by_name = True

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

class StoreGenerationResult(BaseModel):
    """Submitted store record together with the remote API's created-store representation."""
    store: StoreRecord
    response: Dict[str, Any] = Field(default_factory=dict)

# --- Configuration Record ---

class StoreBuilderConfig(BaseModel):
    """Explicit configuration passed into the store builder pipeline."""
    remote_api_base_url: str
    bearer_token: str
    relay_url: str
    use_cors_proxy: bool = False
    cors_proxy_url: str = "https://corsproxy.io/?"
    default_routing_key: str = "default"
    upload_timeout: Optional[float] = Field(None, gt=0, description="Seconds to wait for an upload batch; None waits for all")
    http_timeout: float = Field(60.0, gt=0)

    class Config:
        frozen = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "StoreBuilderConfig":
        return cls(
            remote_api_base_url=settings.REMOTE_API_BASE_URL,
            bearer_token=settings.REMOTE_API_TOKEN,
            relay_url=settings.UPLOAD_RELAY_URL,
            use_cors_proxy=settings.USE_CORS_PROXY,
            cors_proxy_url=settings.CORS_PROXY_URL,
            default_routing_key=settings.RELAY_DEFAULT_ROUTING_KEY,
            upload_timeout=settings.UPLOAD_BATCH_TIMEOUT,
            http_timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    def api_url(self, endpoint: str) -> str:
        """Full URL of a remote API endpoint, wrapped in the CORS proxy when enabled."""
        url = f"{self.remote_api_base_url.rstrip('/')}{endpoint}"
        if self.use_cors_proxy:
            return f"{self.cors_proxy_url}{quote(url, safe='')}"
        return url

    def auth_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.bearer_token}",
        }


# --- Store Builder Request/Response Models (Representing Client Input) ---

class ProductSpec(BaseModel):
    """Product entry of a store builder request; ``imageField`` names an uploaded file part."""
    name: str
    price: float = Field(..., ge=0)
    image_field: Optional[str] = Field(None, alias="imageField")

    class Config:
        populate_by_name = True

class GatewayResponse(BaseModel):
    """Standard response wrapper for the store builder service."""
    status: str = Field(description="'success' or 'error'")
    data: Any | None = Field(default=None, description="The primary data payload (depends on the endpoint)")
    message: Optional[str] = Field(default=None, description="Optional status message or error details")
