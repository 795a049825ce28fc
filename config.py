"""
Runtime configuration for the Collection API.

Values come from the process environment, optionally seeded from a `.env`
file next to this module. The API cannot talk to its database without the
Supabase values, so a missing required variable stops the process.
"""
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).parent

REQUIRED_VARS = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_BUCKET",
    "FRONTEND_URL",
]

LOCAL_DEV_ORIGIN = "http://localhost:5173"


class Settings(BaseModel):
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_service_role_key: str = Field(..., description="Service role key used by the backend")
    supabase_bucket: str = Field(..., description="Storage bucket name")
    frontend_urls: List[str] = Field(default_factory=list, description="Allowed frontend origins")
    port: int = Field(5000, ge=1, le=65535)
    log_level: str = Field("INFO")

    @property
    def allowed_origins(self) -> List[str]:
        origins = [LOCAL_DEV_ORIGIN]
        for url in self.frontend_urls:
            if url not in origins:
                origins.append(url)
        return origins


def load_settings(env_file: Optional[Path] = None) -> Settings:
    load_dotenv(env_file or ROOT_DIR / ".env")

    missing = [name for name in REQUIRED_VARS if not os.getenv(name)]
    if missing:
        logger.error("Missing environment variables: %s", ", ".join(missing))
        raise SystemExit(1)

    frontend = [u.strip() for u in os.environ["FRONTEND_URL"].split(",") if u.strip()]
    return Settings(
        supabase_url=os.environ["SUPABASE_URL"],
        supabase_service_role_key=os.environ["SUPABASE_SERVICE_ROLE_KEY"],
        supabase_bucket=os.environ["SUPABASE_BUCKET"],
        frontend_urls=frontend,
        port=int(os.getenv("PORT", 5000)),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
