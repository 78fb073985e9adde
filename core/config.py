# core/config.py
import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import logging

# Load variables from .env file located in the project root directory
dotenv_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)
else:
    load_dotenv() # Fallback

class Settings(BaseSettings):
    """Loads configuration settings from environment variables and .env file."""

    # --- Supabase Configuration ---
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None # ANON key usually
    SUPABASE_SERVICE_KEY: str | None = None # SERVICE_ROLE key

    # --- Service URLs ---
    GALLERY_SERVICE_URL: str = "http://localhost:8010"

    # --- Storage Configuration ---
    IMAGE_STORAGE_BUCKET: str = "portfolio-images"
    STORAGE_CACHE_CONTROL: str = "3600"

    # --- Image Processing Config ---
    IMAGE_MAX_DIMENSION: int = int(os.getenv("IMAGE_MAX_DIMENSION", 1600))
    IMAGE_QUALITY: int = int(os.getenv("IMAGE_QUALITY", 92))

    class Config:
        env_file = '.env'
        env_file_encoding = 'utf-8'
        extra = 'ignore'

# Instantiate settings once for import
settings = Settings()

# --- Logging Setup ---
log_level_str = os.getenv("LOG_LEVEL", "INFO").upper(); log_level = getattr(logging, log_level_str, logging.INFO)
logging.basicConfig(level=log_level, format='%(asctime)s - %(name)s - [%(levelname)s] - %(message)s', datefmt='%Y-%m-%d %H:%M:%S')
logger = logging.getLogger("Gallery_Core")
logging.getLogger("httpx").setLevel(logging.WARNING); logging.getLogger("supabase").setLevel(logging.WARNING)
logging.getLogger("PIL").setLevel(logging.WARNING)

# --- Configuration Validation Checks ---
logger.info(f"Core Settings loaded. Log Level: {log_level_str}")
if not settings.SUPABASE_URL or not settings.SUPABASE_KEY: logger.warning("Supabase URL/Key missing.")
if not settings.SUPABASE_SERVICE_KEY: logger.warning("Supabase Service Key missing.")
if not settings.IMAGE_STORAGE_BUCKET: logger.warning("IMAGE_STORAGE_BUCKET missing, using default.")
else: logger.info(f"Using Supabase Storage Bucket: {settings.IMAGE_STORAGE_BUCKET}")

try: assert settings.IMAGE_MAX_DIMENSION > 0; logger.info(f"Using max image dimension: {settings.IMAGE_MAX_DIMENSION}px")
except (AssertionError, ValueError): logger.error(f"Invalid IMAGE_MAX_DIMENSION: {settings.IMAGE_MAX_DIMENSION}.")
try: assert 1 <= settings.IMAGE_QUALITY <= 100; logger.info(f"Using image encode quality: {settings.IMAGE_QUALITY}")
except (AssertionError, ValueError): logger.error(f"Invalid IMAGE_QUALITY: {settings.IMAGE_QUALITY} (expected 1-100).")
