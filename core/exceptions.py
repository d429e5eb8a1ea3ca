"""Storefront upload and store-creation errors."""
from typing import Any, Dict, List, Optional


class StorefrontError(Exception):
    """Base class for every error raised by the storefront core."""


# --- Upload Relay (inbound request) errors ---

class RelayError(StorefrontError):
    """Base class for errors surfaced to the caller of the upload relay endpoint."""
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedPayload(RelayError):
    """Raised when the multipart body cannot be framed (no boundary token)."""


class MissingDestination(RelayError):
    """Raised when no pre-signed destination URL was supplied."""


class MissingAttachment(RelayError):
    """Raised when the multipart body carries no image part."""


class PayloadTooLarge(RelayError):
    """Raised when the payload exceeds the relay size ceiling."""
    status_code = 413

    def __init__(self, size: int, limit: int):
        super().__init__(f"File too large ({size} bytes, max {limit} bytes)")
        self.size = size
        self.limit = limit


class UnsupportedAttachmentType(RelayError):
    """Raised when the attachment is not an image and the relay only accepts images."""
    status_code = 415

    def __init__(self, mime_type: str):
        super().__init__(f"Only image files are allowed (got '{mime_type}')")
        self.mime_type = mime_type


# --- Batch (coordinator) errors ---

class BatchError(StorefrontError):
    """Base class for errors that abort the current store batch before submission."""


class ContractViolation(BatchError):
    """Raised when the remote API breaks its slot contract (count or shape mismatch)."""


class RelayCallFailed(BatchError):
    """Raised for a single relay call answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Relay call failed ({status_code}): {body}")
        self.status_code = status_code
        self.body = body


class PartialUploadFailure(BatchError):
    """Raised when at least one imaged product failed to upload.

    ``failed_indices`` are positions in imaged-product order, i.e. the index of
    the slot each failed upload was assigned. ``failed_products`` maps each of
    those indices to the product name so callers can retry only that subset.
    """

    def __init__(self, failed_indices: List[int], failed_products: Dict[int, str], errors: Optional[Dict[int, str]] = None):
        names = ", ".join(f"#{i} '{failed_products.get(i, '?')}'" for i in failed_indices)
        super().__init__(f"{len(failed_indices)} image upload(s) failed: {names}")
        self.failed_indices = failed_indices
        self.failed_products = failed_products
        self.errors = errors or {}


# --- Store submission errors ---

class StoreError(StorefrontError):
    """Base class for local store-record validation errors."""


class EmptyStore(StoreError):
    """Raised when a store is submitted without any products."""


class InvalidOwnerIdentifier(StoreError):
    """Raised when the owner number is not a country-code-prefixed MSISDN."""

    def __init__(self, owner_number: str):
        super().__init__(f"Invalid owner number '{owner_number}': expected 2-digit country code followed by 9 digits")
        self.owner_number = owner_number


class RemoteRejected(StorefrontError):
    """Raised when the remote store API answers with a non-success status."""

    def __init__(self, status_code: int, body: Any, operation: str = "remote call"):
        super().__init__(f"Failed to {operation} ({status_code}): {body}")
        self.status_code = status_code
        self.body = body
        self.operation = operation
