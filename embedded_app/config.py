"""
Single source of truth for app configuration.
Built once at startup from env; passed to create_app() instead of living in module globals.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

log = logging.getLogger(__name__)

# .env lives in the project root (parent of embedded_app/)
_root = Path(__file__).resolve().parent.parent
ENV_FILE = _root / ".env"

AUTH_PATH = "/api/auth"
AUTH_CALLBACK_PATH = "/api/auth/callback"
WEBHOOKS_PATH = "/api/webhooks"

DEFAULT_PORT = 3000
DEFAULT_SCOPES = "write_products"
DEFAULT_API_VERSION = "2024-10"


@dataclass(frozen=True)
class AppConfig:
    port: int
    environment: str
    static_path: Path
    api_key: str
    api_secret: str
    app_url: str
    scopes: str = DEFAULT_SCOPES
    api_version: str = DEFAULT_API_VERSION
    token_store_path: Path = _root / "data" / "stores.json"
    auth_path: str = AUTH_PATH
    auth_callback_path: str = AUTH_CALLBACK_PATH
    webhooks_path: str = WEBHOOKS_PATH

    @property
    def redirect_uri(self) -> str:
        # Shopify requires an exact match with the dashboard; never a trailing slash
        return f"{self.app_url}{self.auth_callback_path}"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _parse_port(environ) -> int:
    raw = environ.get("BACKEND_PORT") or environ.get("PORT") or str(DEFAULT_PORT)
    try:
        return int(raw, 10)
    except ValueError:
        raise ValueError(f"Invalid port in environment: {raw!r}")


def load_config(environ=None, cwd=None) -> AppConfig:
    """Read the environment (after loading .env) into an AppConfig.

    Pass environ/cwd explicitly to build a config without touching the process env.
    """
    if environ is None:
        if ENV_FILE.exists():
            load_dotenv(ENV_FILE)
        environ = os.environ
    cwd = Path(cwd) if cwd is not None else Path.cwd()

    port = _parse_port(environ)
    environment = environ.get("NODE_ENV", "development")
    static_path = cwd / "frontend" / "dist" if environment == "production" else cwd / "frontend"

    app_url = (environ.get("SHOPIFY_APP_URL") or "").strip().rstrip("/")
    store_path = environ.get("SHOPIFY_TOKEN_STORE")

    return AppConfig(
        port=port,
        environment=environment,
        static_path=static_path,
        api_key=environ.get("SHOPIFY_API_KEY", ""),
        api_secret=environ.get("SHOPIFY_API_SECRET", ""),
        app_url=app_url or f"http://localhost:{port}",
        scopes=environ.get("SCOPES") or DEFAULT_SCOPES,
        api_version=environ.get("SHOPIFY_API_VERSION") or DEFAULT_API_VERSION,
        token_store_path=Path(store_path) if store_path else _root / "data" / "stores.json",
    )


def log_config(config: AppConfig) -> None:
    """Log final client_id and redirect_uri for debugging verification."""
    log.info("[Shopify app config]")
    log.info("  client_id: %s", config.api_key or "(not set)")
    log.info("  redirect_uri: %s", config.redirect_uri)
    log.info("  app_url: %s", config.app_url)
    log.info("  static_path: %s", config.static_path)
