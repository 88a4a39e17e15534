"""
Runtime configuration for DelayGuard.

Values are read from the environment once, at import. A local .env file
is loaded first and never overrides variables that are already set.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Carrier credentials
UPS_CLIENT_ID = os.getenv("UPS_CLIENT_ID")
UPS_CLIENT_SECRET = os.getenv("UPS_CLIENT_SECRET")
FEDEX_CLIENT_ID = os.getenv("FEDEX_CLIENT_ID")
FEDEX_CLIENT_SECRET = os.getenv("FEDEX_CLIENT_SECRET")
USPS_USER_ID = os.getenv("USPS_USER_ID")

# Outbound carrier calls
CARRIER_REQUEST_TIMEOUT_SECONDS = float(
    os.getenv("CARRIER_REQUEST_TIMEOUT_SECONDS", "15")
)
TOKEN_REFRESH_BUFFER_SECONDS = 60

# "memory" keeps tokens per process, "database" shares them across instances
TOKEN_CACHE_BACKEND = os.getenv("TOKEN_CACHE_BACKEND", "database")

# Polling
CARRIER_POLL_CONCURRENCY = int(os.getenv("CARRIER_POLL_CONCURRENCY", "10"))
POLL_SCHEDULER_BATCH_SIZE = int(os.getenv("POLL_SCHEDULER_BATCH_SIZE", "500"))
POLL_SCHEDULER_MAX_SHIPMENTS = int(os.getenv("POLL_SCHEDULER_MAX_SHIPMENTS", "10000"))
