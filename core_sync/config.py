import os
from dotenv import load_dotenv

load_dotenv()

# Worker pool size for one run
SYNC_MAX_WORKERS = int(os.getenv("SYNC_MAX_WORKERS", "4"))

# A unit running longer than this is counted as failed
SYNC_UNIT_TIMEOUT_SECONDS = float(os.getenv("SYNC_UNIT_TIMEOUT_SECONDS", "30"))

# Transient store errors: retries per unit, exponential backoff
SYNC_MAX_RETRIES = int(os.getenv("SYNC_MAX_RETRIES", "3"))
SYNC_RETRY_BASE_DELAY = float(os.getenv("SYNC_RETRY_BASE_DELAY", "0.5"))
SYNC_RETRY_MAX_DELAY = float(os.getenv("SYNC_RETRY_MAX_DELAY", "5"))

# Finished jobs stay queryable this long
SYNC_JOB_TTL_SECONDS = float(os.getenv("SYNC_JOB_TTL_SECONDS", "3600"))

SYNC_SOURCE_LABEL = os.getenv("SYNC_SOURCE_LABEL", "cleaned")
