"""Application-wide configuration constants."""

import os
import platform
from pathlib import Path


def _env(name: str, default: str) -> str:
    return os.environ.get(f"AIRSHARE_{name}", default)


# --- Identity ---
DEVICE_NAME = _env("DEVICE_NAME", platform.node() or "Unknown")

# --- Networking ---
API_HOST = _env("API_HOST", "0.0.0.0")
API_PORT = int(_env("API_PORT", "8080"))
DISCOVERY_PORT = int(_env("DISCOVERY_PORT", "9988"))  # UDP
BROADCAST_ADDR = _env("BROADCAST_ADDR", "255.255.255.255")
# Multicast reaches peers on hotspots that drop broadcast traffic
MULTICAST_GROUP = _env("MULTICAST_GROUP", "224.0.0.251")
BEACON_INTERVAL = float(_env("BEACON_INTERVAL", "1.0"))  # seconds
DATAGRAM_MAX_SIZE = 4096

# --- Transfer ---
DOWNLOAD_TIMEOUT = float(_env("DOWNLOAD_TIMEOUT", "30"))  # seconds

# --- Storage ---
SHARED_DIR = _env("SHARED_DIR", str(Path.cwd() / "shared"))
DEMO_FILE_NAME = _env("DEMO_FILE_NAME", "demo.txt")
DEMO_FILE_CONTENT = "Hello from AirShare!\nThis is a demo file.\n"

# --- Logging ---
LOG_LEVEL = _env("LOG_LEVEL", "INFO").upper()
