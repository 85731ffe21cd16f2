"""Centralised settings for the family tree backend.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("FAMILYTREE_WORKSPACE", Path.home() / ".familytree_data")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "family.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    cli_config_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("FAMILYTREE_CLI_DIR", Path.home() / ".familytree_cli")
        )
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )

    # ------------------------------------------------------------------
    # Backblaze B2 object storage
    # ------------------------------------------------------------------
    b2_key_id: str = field(
        default_factory=lambda: os.environ.get("B2_KEY_ID", "").strip()
    )
    b2_application_key: str = field(
        default_factory=lambda: os.environ.get("B2_APPLICATION_KEY", "").strip()
    )
    b2_bucket_name: str = field(
        default_factory=lambda: os.environ.get("B2_BUCKET_NAME", "").strip()
    )
    b2_bucket_id: str = field(
        default_factory=lambda: os.environ.get("B2_BUCKET_ID", "").strip()
    )
    b2_api_url: str = field(
        default_factory=lambda: os.environ.get(
            "B2_API_URL", "https://api.backblazeb2.com"
        )
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )
    max_upload_bytes: int = field(
        default_factory=lambda: int(os.environ.get("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    )

    # ------------------------------------------------------------------
    # Layout engine
    # ------------------------------------------------------------------
    layout_rankdir: str = field(
        default_factory=lambda: os.environ.get("LAYOUT_RANKDIR", "TB")
    )
    layout_ranksep: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_RANKSEP", "150"))
    )
    layout_nodesep: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_NODESEP", "100"))
    )
    layout_edgesep: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_EDGESEP", "50"))
    )
    layout_order_sweeps: int = field(
        default_factory=lambda: int(os.environ.get("LAYOUT_ORDER_SWEEPS", "4"))
    )
    relax_max_iterations: int = field(
        default_factory=lambda: int(os.environ.get("RELAX_MAX_ITERATIONS", "120"))
    )

    # ------------------------------------------------------------------
    # Data-entry wizard
    # ------------------------------------------------------------------
    data_entry_max_distance: int = field(
        default_factory=lambda: int(os.environ.get("DATA_ENTRY_MAX_DISTANCE", "5"))
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)

    @property
    def b2_configured(self) -> bool:
        """``True`` when every B2 credential and bucket setting is present."""
        return all(
            (self.b2_key_id, self.b2_application_key, self.b2_bucket_name, self.b2_bucket_id)
        )


# Module-level singleton; import this everywhere:
#   from familytree.config import settings
settings = Settings()
