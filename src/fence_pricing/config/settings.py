"""
Centralized settings and path configuration for the pricing service.
"""
import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

# Tie-breaks among client price-book assignments that all cover a SKU
ASSIGNMENT_ORDERS = ('store', 'default_first', 'latest_effective')


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 4 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path
    data_dir: Path

    # Record store backend: "tables" (CSV exports) or "supabase"
    backend: str = 'tables'
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    # Seconds allowed for each record store read
    store_timeout: float = 5.0

    # Default tie-break among client price-book assignments
    assignment_order: str = 'store'

    # Logging
    log_level: str = 'INFO'
    log_json: bool = False

    def __post_init__(self):
        if self.backend not in ('tables', 'supabase'):
            raise ValueError(f"Unknown backend '{self.backend}', expected 'tables' or 'supabase'")
        if self.assignment_order not in ASSIGNMENT_ORDERS:
            raise ValueError(
                f"Unknown assignment order '{self.assignment_order}', "
                f"expected one of {', '.join(ASSIGNMENT_ORDERS)}"
            )
        if self.store_timeout <= 0:
            raise ValueError("store_timeout must be positive")
        if self.backend == 'supabase' and not (self.supabase_url and self.supabase_key):
            raise ValueError("SUPABASE_URL and SUPABASE_KEY are required for the supabase backend")

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and environment."""
        root = project_root or get_project_root()
        data_dir = os.environ.get('FENCE_PRICING_DATA_DIR')

        return cls(
            project_root=root,
            data_dir=Path(data_dir) if data_dir else root / 'data',
            backend=os.environ.get('FENCE_PRICING_BACKEND', 'tables').strip().lower(),
            supabase_url=os.environ.get('SUPABASE_URL') or None,
            supabase_key=os.environ.get('SUPABASE_KEY') or None,
            store_timeout=float(os.environ.get('FENCE_PRICING_STORE_TIMEOUT', '5.0')),
            assignment_order=os.environ.get('FENCE_PRICING_ASSIGNMENT_ORDER', 'store').strip().lower(),
            log_level=os.environ.get('FENCE_PRICING_LOG_LEVEL', 'INFO'),
            log_json=_env_bool('FENCE_PRICING_LOG_JSON', False),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
