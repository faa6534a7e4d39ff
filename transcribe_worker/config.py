import os
import logging

from dotenv import load_dotenv

# Load variables from .env if present
load_dotenv()

ENVIRONMENT = os.getenv('ENVIRONMENT', 'development').lower()

# ===== LOGGING =====
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger('transcribe_worker')

# ===== DATABASE =====
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///./transcribe_worker.db')

# ===== QUEUE =====
TRANSCRIBE_QUEUE_NAME = os.getenv('TRANSCRIBE_QUEUE_NAME', 'transcribe')
QUEUE_BATCH_SIZE = int(os.getenv('QUEUE_BATCH_SIZE', '10'))
QUEUE_MAX_ATTEMPTS = int(os.getenv('QUEUE_MAX_ATTEMPTS', '3'))
QUEUE_RETRY_DELAY = float(os.getenv('QUEUE_RETRY_DELAY', '30'))
QUEUE_LEASE_TIMEOUT = float(os.getenv('QUEUE_LEASE_TIMEOUT', '900'))

# ===== TRANSCRIPTION (OpenAI-compatible Whisper deployment) =====
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
OPENAI_ENDPOINT = os.getenv('OPENAI_ENDPOINT', 'https://api.openai.azure.com').rstrip('/')
OPENAI_API_VERSION = os.getenv('OPENAI_API_VERSION', '2025-01-01-preview')
TRANSCRIBE_TIMEOUT = float(os.getenv('TRANSCRIBE_TIMEOUT', '600'))

# ===== MEDIA STAGING (Cloudflare Stream) =====
CLOUDFLARE_ACCOUNT_ID = os.getenv('CLOUDFLARE_ACCOUNT_ID', '')
STREAM_API_TOKEN = os.getenv('STREAM_API_TOKEN', '')
STAGING_WAIT_TIMEOUT = float(os.getenv('STAGING_WAIT_TIMEOUT', '300'))
STAGING_POLL_INTERVAL = float(os.getenv('STAGING_POLL_INTERVAL', '5'))

HTTP_TIMEOUT = float(os.getenv('HTTP_TIMEOUT', '30'))

if not OPENAI_API_KEY:
    logger.warning("OPENAI_API_KEY is not set; transcription requests will be rejected")
if not (CLOUDFLARE_ACCOUNT_ID and STREAM_API_TOKEN):
    logger.warning("Stream credentials are not set; video jobs will fail at upload")

logger.debug(
    "Configuration loaded",
    extra={"environment": ENVIRONMENT, "queue": TRANSCRIBE_QUEUE_NAME},
)
