import os

from dotenv import load_dotenv

# Environment setup
load_dotenv()

# Local identity
SITE_URL = os.getenv("SITE_URL")
ARCHIVE_ROOT = os.getenv("ARCHIVE_ROOT", "./archive")

# Remote sites are read through this gateway
GATEWAY_URL = os.getenv("GATEWAY_URL", "http://localhost:3000")
FETCH_TIMEOUT = float(os.getenv("FETCH_TIMEOUT", 30))

FEED_LIMIT = int(os.getenv("FEED_LIMIT", 20))

# Host app
API_KEY = os.getenv("API_KEY")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))
