import os
import logging

from tour_optimizer.utils.env_loader import load_env_from_file

logger = logging.getLogger(__name__)

# Try different possible locations for the env file
env_paths = [
    os.path.join(os.path.dirname(__file__), 'env_var.env'),  # App directory
    os.path.join(os.path.dirname(os.path.dirname(__file__)), 'env_var.env'),  # Root directory
]

for path in env_paths:
    if os.path.exists(path) and load_env_from_file(path, override=False):
        break


def _env_number(name, default, cast):
    raw_value = os.getenv(name)
    if raw_value is None or raw_value.strip() == '':
        return default
    try:
        return cast(raw_value)
    except ValueError:
        logger.warning(f"Ignoring invalid value {raw_value!r} for {name}; using default {default}.")
        return default


def _env_bool(name, default):
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in ('1', 'true', 'yes', 'on')


# --- Ant Colony Optimization defaults ---
ACO_ANT_COUNT = _env_number('ACO_ANT_COUNT', 50, int)
ACO_ITERATION_COUNT = _env_number('ACO_ITERATION_COUNT', 100, int)
ACO_DECAY = _env_number('ACO_DECAY', 0.95, float)
ACO_ALPHA = _env_number('ACO_ALPHA', 1.0, float)
ACO_BETA = _env_number('ACO_BETA', 2.0, float)
ACO_WORKERS = _env_number('ACO_WORKERS', 1, int)
ACO_SEED_FROM_BASELINE = _env_bool('ACO_SEED_FROM_BASELINE', False)

# Upper bound on iterations for a single request; acts as the optimizer's timeout control
ACO_MAX_ITERATIONS = _env_number('ACO_MAX_ITERATIONS', 1000, int)

# --- Geocoding (OpenStreetMap Nominatim) ---
GEOCODER_URL = os.getenv('GEOCODER_URL', 'https://nominatim.openstreetmap.org/search')
GEOCODER_USER_AGENT = os.getenv('GEOCODER_USER_AGENT', 'tour-optimizer/0.1')
GEOCODER_TIMEOUT_SECONDS = _env_number('GEOCODER_TIMEOUT_SECONDS', 10, float)
# Nominatim's usage policy allows at most one request per second
GEOCODER_MIN_INTERVAL_SECONDS = _env_number('GEOCODER_MIN_INTERVAL_SECONDS', 1.0, float)

# API request settings
MAX_RETRIES = _env_number('MAX_RETRIES', 3, int)
BACKOFF_FACTOR = 2  # Exponential backoff
RETRY_DELAY_SECONDS = 1

# Cache settings
OPTIMIZATION_RESULT_CACHE_TIMEOUT = 3600  # 1 hour
