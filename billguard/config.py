import os
from pathlib import Path
from dotenv import load_dotenv

# Base directory resolution (billguard -> project root)
PACKAGE_DIR = Path(__file__).resolve().parent
BASE_DIR = PACKAGE_DIR.parent


# Load environment variables from .env (check project root, then cwd)
env_path = BASE_DIR / ".env"
if not env_path.exists():
    env_path = Path.cwd() / ".env"
load_dotenv(dotenv_path=env_path if env_path.exists() else None)

# Logging
LOG_LEVEL = os.getenv("BILLGUARD_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# API server
HOST = os.getenv("BILLGUARD_HOST", "0.0.0.0")
PORT = int(os.getenv("BILLGUARD_PORT", 8001))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "BILLGUARD_CORS_ORIGINS",
        "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173,http://127.0.0.1:3000",
    ).split(",")
    if origin.strip()
]

# Display only; arithmetic is currency-agnostic
CURRENCY_SYMBOL = os.getenv("BILLGUARD_CURRENCY_SYMBOL", "₱")

# Extraction collaborator runner
EXTRACTION_TIMEOUT = float(os.getenv("BILLGUARD_EXTRACTION_TIMEOUT", 60))
EXTRACTION_RETRIES = int(os.getenv("BILLGUARD_EXTRACTION_RETRIES", 2))
