"""Configuration management."""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
# Try to load from standard locations
env_paths = [
    Path("/etc/cellpos/.env"),  # Production location
    Path(".env"),  # Current directory
    Path(__file__).parent.parent.parent / ".env",  # Project root
]
for env_path in env_paths:
    if env_path.exists():
        load_dotenv(env_path)
        break
else:
    # Fallback: try default load_dotenv() behavior
    load_dotenv()


def _get_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to default on junk."""
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Cell location dataset
# Shards live at <DATASET_DIR>/.../<first digit of location code>/<DATASET_FILE_NAME>
DATASET_DIR = Path(os.getenv("CELLPOS_DATASET_DIR", "/usr/share/geoclue-provider-mlsdb/"))
DATASET_FILE_NAME = os.getenv("CELLPOS_DATASET_FILE", "mlsdb.data")
DATASET_MAGIC = 0x0C710CDB
DATASET_VERSION = 3

# Location settings store (INI format, written by the system settings UI)
SETTINGS_FILE = Path(os.getenv("CELLPOS_SETTINGS_FILE", "/etc/location/location.conf"))
SETTINGS_POLL_INTERVAL = 2  # seconds between settings file checks

# JSON file the modem binding writes the visible cells to
CELLS_FILE = Path(os.getenv("CELLPOS_CELLS_FILE", "/run/cellpos/cells.json"))
CELLS_POLL_INTERVAL = 5  # seconds

# JSON file the WLAN scanner writes the visible access points to
WLAN_FILE = Path(os.getenv("CELLPOS_WLAN_FILE", "/run/cellpos/wlan.json"))
WLAN_POLL_INTERVAL = 5  # seconds

# Held for the lifetime of the process, a second provider refuses to start
LOCK_FILE = Path(os.getenv("CELLPOS_LOCK_FILE", "/run/cellpos/cellpos.lock"))

# Online locator
# Empty URL disables the online path even when the settings allow it
ONLINE_LOCATOR_URL = os.getenv("CELLPOS_ONLINE_URL", "")
ONLINE_LOCATOR_API_KEY = os.getenv("CELLPOS_ONLINE_API_KEY", "")
ONLINE_LOCATOR_TIMEOUT = _get_int("CELLPOS_ONLINE_TIMEOUT", 10)  # seconds
WLAN_REUSE_INTERVAL = 60000  # ms, previous query's access points are re-sent for this long

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Position policy timings (milliseconds)
# MINIMUM_ACCURACY: cell triangulation is error-prone, never claim better than this (metres)
# QUIT_IDLE_TIME: process exits when no client holds a reference for this long
# FIX_TIMEOUT: status drops from Available to Acquiring without a new fix for this long
# MINIMUM_INTERVAL: shortest recompute interval regardless of client requests
# REUSE_INTERVAL: a fix is republished without recomputing while younger than this
# FALLBACK_INTERVAL: a more accurate fix younger than this beats a worse new estimate
MINIMUM_ACCURACY = 2500
BASE_ACCURACY = 10000
PER_CELL_ACCURACY_GAIN = 1000
QUIT_IDLE_TIME = _get_int("CELLPOS_QUIT_IDLE_TIME", 30000)
FIX_TIMEOUT = 30000
MINIMUM_INTERVAL = 10000
REUSE_INTERVAL = 30000
FALLBACK_INTERVAL = 120000

# Project information
PROJECT_NAME = "Cell-id Position Provider"
PROVIDER_NAME = "Mlsdb"
PROVIDER_DESCRIPTION = "Mozilla Location Service Database cell-id position provider"
USER_AGENT = "cellpos-provider/0.1"
