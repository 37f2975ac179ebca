"""
Environment-driven settings for the branch portal.

Values are read from the process environment (optionally seeded from a
``.env`` file) at call time so tests can override them per case.
"""
import logging
import os
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)
load_dotenv(override=True)

DEFAULT_DATABASE_URL = "sqlite:///branch_portal.db"
DEFAULT_BATCH_CHUNK_SIZE = 400
DEFAULT_MAX_UPLOAD_ROWS = 1000
DEFAULT_BEDROCK_MODEL_ID = "anthropic.claude-3-haiku-20240307-v1:0"


def _get_int_env(name: str, default: int) -> int:
    raw_value = os.environ.get(name)
    if not raw_value:
        return default
    try:
        parsed = int(raw_value)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer. Using default %s.", name, raw_value, default)
        return default
    if parsed <= 0:
        logger.warning("Ignoring %s=%s: must be positive. Using default %s.", name, parsed, default)
        return default
    return parsed


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL") or DEFAULT_DATABASE_URL


def get_api_key() -> Optional[str]:
    """Shared secret expected in the ``x-api-key`` header."""
    return os.environ.get("TRADERS_API_KEY") or None


def get_batch_chunk_size() -> int:
    return _get_int_env("BATCH_CHUNK_SIZE", DEFAULT_BATCH_CHUNK_SIZE)


def get_max_upload_rows() -> int:
    return _get_int_env("MAX_UPLOAD_ROWS", DEFAULT_MAX_UPLOAD_ROWS)


def get_aws_region() -> Optional[str]:
    return os.environ.get("AWS_DEFAULT_REGION")


def get_bedrock_model_id() -> str:
    return os.environ.get("BEDROCK_MODEL_ID", DEFAULT_BEDROCK_MODEL_ID)
