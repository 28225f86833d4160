"""Configuration module for the Academy Admission service.

This module provides centralized configuration management, including directory
paths, API server settings, database settings, and admission defaults.
All configuration values can be overridden via environment variables.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Directory Configuration ---

# Root directory of the project
ROOT_DIR = Path(__file__).parent.parent.resolve()

# Data directory name
DATA_DIR_NAME = "data"
DATA_DIR = ROOT_DIR / DATA_DIR_NAME

# --- Database Configuration ---

DATABASE_URL: str = os.getenv(
    "DATABASE_URL", f"sqlite:///{DATA_DIR}/academy_admission.db"
)

# Seconds a SQLite writer waits for a competing writer before giving up
SQLITE_BUSY_TIMEOUT: float = float(os.getenv("SQLITE_BUSY_TIMEOUT", "30"))

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# CORS allowed origins (comma-separated list)
# Default includes local development addresses. For production, set via
# CORS_ALLOWED_ORIGINS environment variable.
_CORS_ALLOWED_ORIGINS_STR: str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,"
    "http://127.0.0.1:3000",
)
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]

# --- Logging Configuration ---

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Pagination Configuration ---

DEFAULT_PAGE_LIMIT: int = int(os.getenv("DEFAULT_PAGE_LIMIT", "20"))
MAX_PAGE_LIMIT: int = int(os.getenv("MAX_PAGE_LIMIT", "100"))

# --- Validation Limits ---

# Request and review messages on join requests
MAX_MESSAGE_LENGTH: int = int(os.getenv("MAX_MESSAGE_LENGTH", "500"))

# Reasons attached to signup code and batch mutations
MAX_REASON_LENGTH: int = int(os.getenv("MAX_REASON_LENGTH", "200"))

# --- Signup Code Configuration ---

# Random bytes per code; rendered as upper-case hex (4 bytes -> 8 characters)
SIGNUP_CODE_BYTES: int = int(os.getenv("SIGNUP_CODE_BYTES", "4"))

# Attempts at drawing an unused code value before giving up
SIGNUP_CODE_MAX_ATTEMPTS: int = int(os.getenv("SIGNUP_CODE_MAX_ATTEMPTS", "10"))

# --- Join Request Configuration ---

# Minimum minutes between two join requests from one student to one class
JOIN_REQUEST_COOLDOWN_MINUTES: int = int(
    os.getenv("JOIN_REQUEST_COOLDOWN_MINUTES", "10")
)

AUTO_REJECT_SIBLING_MESSAGE: str = (
    "Auto-rejected: another request for this class was approved"
)
ALREADY_ENROLLED_MESSAGE: str = "Student is already enrolled in this class"
OPEN_CLASS_APPROVAL_MESSAGE: str = "Auto-approved: open class direct join"
