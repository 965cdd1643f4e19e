"""
Runtime configuration from environment variables.

A ``.env`` file in the working directory is loaded first (python-dotenv), so
local setups can keep credentials out of the shell profile.

Environment variables:
- SUPABASE_DB_URL: Full Postgres connection string, or
- SUPABASE_DB_HOST / SUPABASE_DB_PORT / SUPABASE_DB_NAME / SUPABASE_DB_USER /
  SUPABASE_DB_PASSWORD: Individual connection parameters
- BOMTREE_DB_MINCONN / BOMTREE_DB_MAXCONN: Connection pool size (1 / 10)
- BOMTREE_BLOB_DIR: Directory for stored original workbooks (./blobs)
"""

import os
from urllib.parse import quote
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv


@dataclass
class Settings:
    db_url: Optional[str] = None
    db_minconn: int = 1
    db_maxconn: int = 10
    blob_dir: str = "blobs"


def build_db_url(
    host: Optional[str] = None,
    port: Optional[int] = None,
    database: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None
) -> Optional[str]:
    """
    Resolve a Postgres URL.

    Without arguments SUPABASE_DB_URL is used when set. Otherwise the URL is
    assembled from the SUPABASE_DB_* parts, where any argument given here
    replaces its variable. Database and user default to "postgres", port to
    5432. User and password are percent-encoded.

    Returns:
        The URL, or None when no host or password is known
    """
    overrides = (host, port, database, user, password)
    if not any(overrides) and os.getenv("SUPABASE_DB_URL"):
        return os.getenv("SUPABASE_DB_URL")

    host = host or os.getenv("SUPABASE_DB_HOST")
    password = password or os.getenv("SUPABASE_DB_PASSWORD")
    if not (host and password):
        return None
    port = port or os.getenv("SUPABASE_DB_PORT", "5432")
    database = database or os.getenv("SUPABASE_DB_NAME", "postgres")
    user = user or os.getenv("SUPABASE_DB_USER", "postgres")
    return f"postgresql://{quote(user, safe='')}:{quote(password, safe='')}@{host}:{port}/{database}"


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Load settings from the environment.

    Args:
        env_file: Explicit .env path (default: search from the working directory).
            Variables already set in the environment take precedence.
    """
    load_dotenv(env_file or find_dotenv(usecwd=True))

    return Settings(
        db_url=build_db_url(),
        db_minconn=int(os.getenv("BOMTREE_DB_MINCONN", "1")),
        db_maxconn=int(os.getenv("BOMTREE_DB_MAXCONN", "10")),
        blob_dir=os.getenv("BOMTREE_BLOB_DIR", "blobs"),
    )
