# core/config.py
import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import logging
from typing import Optional

# Load variables from .env file located in the project root directory
dotenv_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)
else:
    load_dotenv() # Fallback

class Settings(BaseSettings):
    """Loads configuration settings from environment variables and .env file."""

    # --- Remote Store API ---
    REMOTE_API_BASE_URL: str = "https://eazithenga.com"
    REMOTE_API_TOKEN: str = "YOUR_BEARER_TOKEN_HERE"
    USE_CORS_PROXY: bool = False
    CORS_PROXY_URL: str = "https://corsproxy.io/?"

    # --- Service URLs ---
    UPLOAD_RELAY_URL: str = "http://localhost:3001/api/s3-upload"

    # --- Upload Relay ---
    RELAY_MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024 # 10 MiB
    RELAY_DEFAULT_ROUTING_KEY: str = "default"
    RELAY_DEFAULT_MIME_TYPE: str = "image/jpeg"
    RELAY_IMAGES_ONLY: bool = True

    # --- Timeouts (seconds) ---
    HTTP_TIMEOUT_SECONDS: float = 60.0
    UPLOAD_BATCH_TIMEOUT: Optional[float] = None # None waits for every upload to settle

    class Config:
        env_file = '.env'
        env_file_encoding = 'utf-8'
        extra = 'ignore'

# Instantiate settings once for import
settings = Settings()

# --- Logging Setup ---
log_level_str = os.getenv("LOG_LEVEL", "INFO").upper(); log_level = getattr(logging, log_level_str, logging.INFO)
logging.basicConfig(level=log_level, format='%(asctime)s - %(name)s - [%(levelname)s] - %(message)s', datefmt='%Y-%m-%d %H:%M:%S')
logger = logging.getLogger("Storefront_Core")
logging.getLogger("httpx").setLevel(logging.WARNING); logging.getLogger("watchfiles").setLevel(logging.WARNING)

# --- Configuration Validation Checks ---
logger.info(f"Core Settings loaded. Log Level: {log_level_str}")
if not settings.REMOTE_API_TOKEN or settings.REMOTE_API_TOKEN == "YOUR_BEARER_TOKEN_HERE": logger.warning("REMOTE_API_TOKEN missing.")
if settings.USE_CORS_PROXY: logger.info(f"Remote API calls routed through CORS proxy: {settings.CORS_PROXY_URL}")
else: logger.info(f"Remote API base URL: {settings.REMOTE_API_BASE_URL}")

if settings.RELAY_MAX_UPLOAD_BYTES <= 0:
    logger.error(f"Invalid RELAY_MAX_UPLOAD_BYTES: {settings.RELAY_MAX_UPLOAD_BYTES}. Falling back to 10 MiB.")
    settings.RELAY_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
logger.info(f"Upload Relay Config: Max Size={settings.RELAY_MAX_UPLOAD_BYTES} bytes, Images Only={settings.RELAY_IMAGES_ONLY}")
if settings.UPLOAD_BATCH_TIMEOUT is not None and settings.UPLOAD_BATCH_TIMEOUT <= 0:
    logger.warning(f"Ignoring non-positive UPLOAD_BATCH_TIMEOUT: {settings.UPLOAD_BATCH_TIMEOUT}")
    settings.UPLOAD_BATCH_TIMEOUT = None
