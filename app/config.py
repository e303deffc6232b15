"""
Application configuration and paths.
"""
import os
from pathlib import Path

# Application identity
APP_NAME = 'CreativeAI'
APP_VERSION = '0.1.0'

# Server configuration
SERVER_HOST = os.environ.get('SERVER_HOST', '127.0.0.1')
SERVER_PORT = int(os.environ.get('SERVER_PORT', '5111'))

# Data directory (database and object storage)
DATA_DIR = Path(os.environ.get('CREATIVE_AI_DATA_DIR', Path.home() / '.creative-ai'))

# Database configuration
DATABASE_PATH = DATA_DIR / 'creative.db'
DATABASE_URL = os.environ.get('DATABASE_URL', f'sqlite+aiosqlite:///{DATABASE_PATH}')

# Object storage
STORAGE_DIR = DATA_DIR / 'storage'
STORAGE_SECRET = os.environ.get('STORAGE_SECRET', 'local-storage-secret')
PRESIGN_TTL_SECONDS = 3600

# Generation backends, keyed by provider namespace
BACKEND_API_KEY = os.environ.get('BACKEND_API_KEY', '')
PROVIDER_ROUTES = {
    'styletts2': os.environ.get('STYLETTS2_API_ROUTE', 'http://127.0.0.1:8001'),
    'seedvc': os.environ.get('SEED_VC_API_ROUTE', 'http://127.0.0.1:8002'),
    'make-an-audio': os.environ.get('MAKE_AN_AUDIO_API_ROUTE', 'http://127.0.0.1:8003'),
    'image': os.environ.get('IMAGE_API_ROUTE', 'http://127.0.0.1:8004'),
}
PROVIDER_TIMEOUT_SECONDS = 120.0

# Image providers and the models each one accepts
IMAGE_PROVIDERS = {
    'fireworks1': [
        'accounts/fireworks/models/playground-v2-5-1024px-aesthetic',
        'accounts/fireworks/models/playground-v2-1024px-aesthetic',
    ],
    'fireworks2': [
        'accounts/fireworks/models/flux-1-dev-fp8',
        'accounts/fireworks/models/flux-1-schnell-fp8',
    ],
    'fireworks3': [
        'accounts/fireworks/models/stable-diffusion-xl-1024-v1-0',
        'accounts/fireworks/models/japanese-stable-diffusion-xl',
        'accounts/fireworks/models/SSD-1B',
    ],
}
CUSTOM_ASPECT_RATIO_PROVIDERS = {'fireworks2'}
DEFAULT_ASPECT_RATIO = '1:1'

# Credit costs per job
AUDIO_GENERATION_COST = 15
IMAGE_GENERATION_COST = 45

# Debit with a single conditional UPDATE instead of check-then-debit
ATOMIC_DEBIT = os.environ.get('ATOMIC_DEBIT', '0') == '1'

# Durable function runner
GENERATION_MAX_ATTEMPTS = 3
UPLOAD_MAX_ATTEMPTS = 1
RETRY_DELAY_SECONDS = float(os.environ.get('RETRY_DELAY_SECONDS', '2.0'))

# Per-user throttle: at most THROTTLE_LIMIT runs started per THROTTLE_PERIOD_SECONDS
THROTTLE_LIMIT = 3
THROTTLE_PERIOD_SECONDS = 60.0


def ensure_directories():
    """Create required directories if they don't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    STORAGE_DIR.mkdir(parents=True, exist_ok=True)
