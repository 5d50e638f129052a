import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import dotenv_values

from .logging import get_logger
from .paths import catalog_dir, expand_abs, find_project_root

log = get_logger("config")

DEFAULT_OBF_BASE_URL = "https://world.openbeautyfacts.org"
DEFAULT_PAGE_SIZE = 20
DEFAULT_SAMPLE_SIZE = 20
DEFAULT_HTTP_TIMEOUT = 15


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    This makes running tools from subdirectories (e.g., `src/`) still find
    project-level config files like `.env`.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Read the nearest .env into a mapping without touching os.environ."""
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return {}
    try:
        env = {k: v.strip() for k, v in dotenv_values(path).items() if v is not None}
    except OSError as e:
        log.warning(f"Failed reading .env: {e}")
        return {}
    log.debug(f"Loaded {len(env)} key(s) from .env at {path}")
    return env


def _lookup(name: str, env: Dict[str, str]) -> Optional[str]:
    v = os.environ.get(name)
    if v:
        return v.strip()
    v = env.get(name)
    return v.strip() if v else None


def _lookup_int(name: str, env: Dict[str, str], default: int) -> int:
    raw = _lookup(name, env)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        log.warning(f"{name}={raw!r} is not an integer; using {default}")
        return default
    if value <= 0:
        log.warning(f"{name}={value} must be positive; using {default}")
        return default
    return value


@dataclass
class CatalogSettings:
    data_dir: str
    obf_base_url: str
    user_agent: Optional[str]
    page_size: int
    sample_size: int
    timeout: int
    sync_url: Optional[str]
    sync_token: Optional[str]
    user_id: Optional[str]
    seed_path: Optional[str]
    project_root: str

    @property
    def sync_enabled(self) -> bool:
        return bool(self.sync_url and self.user_id)


def build_settings(args=None, *, script_dir: str) -> CatalogSettings:
    """Create CatalogSettings from CLI args, env and .env, logging the result.

    Precedence: CLI argument, then process environment, then .env, then default.
    """
    env = _read_dotenv(script_dir)
    project_root = find_project_root(script_dir)

    data_dir_arg = getattr(args, "data_dir", None)
    data_dir_env = _lookup("CATALOG_DATA_DIR", env)
    if data_dir_arg:
        data_dir = expand_abs(data_dir_arg)
    elif data_dir_env:
        data_dir = expand_abs(data_dir_env)
    else:
        data_dir = catalog_dir(project_root)

    seed_arg = getattr(args, "seed", None) or _lookup("CATALOG_SEED_PATH", env)

    settings = CatalogSettings(
        data_dir=data_dir,
        obf_base_url=getattr(args, "base_url", None) or _lookup("OBF_BASE_URL", env) or DEFAULT_OBF_BASE_URL,
        user_agent=_lookup("OBF_USER_AGENT", env),
        page_size=getattr(args, "page_size", None) or _lookup_int("CATALOG_PAGE_SIZE", env, DEFAULT_PAGE_SIZE),
        sample_size=_lookup_int("CATALOG_SAMPLE_SIZE", env, DEFAULT_SAMPLE_SIZE),
        timeout=getattr(args, "timeout", None) or _lookup_int("CATALOG_HTTP_TIMEOUT", env, DEFAULT_HTTP_TIMEOUT),
        sync_url=_lookup("FAVORITES_SYNC_URL", env),
        sync_token=_lookup("FAVORITES_SYNC_TOKEN", env),
        user_id=getattr(args, "user_id", None) or _lookup("CATALOG_USER_ID", env),
        seed_path=expand_abs(seed_arg) if seed_arg else None,
        project_root=project_root,
    )

    log.info("Catalog configuration prepared")
    log.info(f"Data directory     : {settings.data_dir}")
    log.info(f"Directory base URL : {settings.obf_base_url}")
    log.info(f"Page / sample size : {settings.page_size} / {settings.sample_size}")
    log.info(f"HTTP timeout       : {settings.timeout}s")
    log.info(f"Favorites sync     : {'enabled' if settings.sync_enabled else 'disabled'}")
    return settings
