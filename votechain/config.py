"""
VOTECHAIN — Configuration.
Shared settings for the ledger, storage backends and API.
"""

import os
from pathlib import Path

# Base Paths
VOTECHAIN_DIR = Path.home() / ".votechain"
DEFAULT_DB_PATH = VOTECHAIN_DIR / "votechain.db"


def reload() -> None:
    """Re-read every setting from the environment."""
    global DB_PATH, DIFFICULTY, GENESIS_MESSAGE, MAX_MINING_ATTEMPTS
    global STORE_TIMEOUT, CONFLICT_RETRIES, ALLOWED_ORIGINS
    global FIRESTORE_PROJECT_ID, FIRESTORE_API_KEY, FIRESTORE_ID_TOKEN
    global FIRESTORE_COLLECTION, FIRESTORE_BASE_URL

    # Database Configuration
    DB_PATH = os.environ.get("VOTECHAIN_DB", str(DEFAULT_DB_PATH))

    # Ledger Configuration
    DIFFICULTY = int(os.environ.get("VOTECHAIN_DIFFICULTY", "2"))
    GENESIS_MESSAGE = os.environ.get(
        "VOTECHAIN_GENESIS_MESSAGE", "Blockchain Voting System Genesis Block"
    )
    MAX_MINING_ATTEMPTS = int(os.environ.get("VOTECHAIN_MAX_MINING_ATTEMPTS", "10000000"))

    # Store calls
    STORE_TIMEOUT = float(os.environ.get("VOTECHAIN_STORE_TIMEOUT", "10.0"))
    CONFLICT_RETRIES = int(os.environ.get("VOTECHAIN_CONFLICT_RETRIES", "3"))

    # Security Configuration
    ALLOWED_ORIGINS = os.environ.get(
        "VOTECHAIN_ALLOWED_ORIGINS", "http://localhost:8081,http://localhost:19006"
    ).split(",")

    # ─── Cloud Storage (Firestore) ───────────────────────────────────
    FIRESTORE_PROJECT_ID = os.environ.get("FIRESTORE_PROJECT_ID", "")
    FIRESTORE_API_KEY = os.environ.get("FIRESTORE_API_KEY", "")
    FIRESTORE_ID_TOKEN = os.environ.get("FIRESTORE_ID_TOKEN", "")
    FIRESTORE_COLLECTION = os.environ.get("FIRESTORE_COLLECTION", "blockchain")
    FIRESTORE_BASE_URL = os.environ.get(
        "FIRESTORE_BASE_URL", "https://firestore.googleapis.com/v1"
    )


reload()
