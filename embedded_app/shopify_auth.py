"""
Shopify OAuth: install flow, session tokens and offline token storage.
Merchant installs via /api/auth -> redirect to Shopify -> callback -> store token.
Embedded requests then carry a session token (JWT) that maps back to the stored token.
"""
import base64
import binascii
import hashlib
import hmac
import json
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode, urlparse

import httpx
import jwt

JWT_LEEWAY_SECONDS = 5
OAUTH_STATE_TTL_SECONDS = 600


class SessionTokenError(Exception):
    """The Authorization bearer token is missing, malformed or not signed by us."""


@dataclass(frozen=True)
class Session:
    """Per-request auth context. Handlers read it, nothing writes to it."""

    shop: str
    access_token: str
    user_id: Optional[str] = None

    @property
    def id(self) -> str:
        return f"offline_{self.shop}"


class TokenStore:
    """Offline access tokens persisted as { shop_domain: access_token } in a JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _ensure_file(self) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text("{}")
        return self.path

    def get_stored_shops(self) -> dict[str, str]:
        """Return { shop_domain: access_token }."""
        return json.loads(self._ensure_file().read_text())

    def save_token(self, shop: str, access_token: str) -> None:
        """Persist access token for shop."""
        data = self.get_stored_shops()
        data[shop] = access_token
        self.path.write_text(json.dumps(data, indent=2))

    def get_token(self, shop: str) -> Optional[str]:
        """Return stored access token for shop, or None."""
        return self.get_stored_shops().get(normalize_shop(shop))


class OAuthStates:
    """Pending OAuth nonces (state -> shop), dropped after `ttl` seconds or on first use."""

    def __init__(self, ttl: float = OAUTH_STATE_TTL_SECONDS, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._states: dict[str, tuple[str, float]] = {}

    def __contains__(self, state: str) -> bool:
        return state in self._states

    def __len__(self) -> int:
        return len(self._states)

    def _prune(self, now: float) -> None:
        expired = [s for s, (_, issued) in self._states.items() if now - issued > self.ttl]
        for s in expired:
            del self._states[s]

    def issue(self, shop: str) -> str:
        now = self._clock()
        self._prune(now)
        state = secrets.token_hex(16)
        self._states[state] = (shop, now)
        return state

    def pop(self, state: Optional[str]) -> Optional[str]:
        """Consume a state nonce; returns the shop it was issued for, or None if unknown or expired."""
        if not state:
            return None
        entry = self._states.pop(state, None)
        if entry is None:
            return None
        shop, issued = entry
        if self._clock() - issued > self.ttl:
            return None
        return shop


def normalize_shop(shop: str) -> str:
    """Return shop in form xxx.myshopify.com."""
    s = shop.strip().lower()
    if not s:
        return ""
    if ".myshopify.com" in s:
        return s.split(".myshopify.com")[0].split("//")[-1].rstrip("/") + ".myshopify.com"
    return s + ".myshopify.com"


def is_valid_shop_hostname(shop: str) -> bool:
    return bool(re.match(r"^[a-zA-Z0-9][a-zA-Z0-9\-]*\.myshopify\.com$", shop))


def verify_hmac(query_params: dict, secret: str) -> bool:
    """Verify Shopify HMAC. Build message from all params except hmac (sorted)."""
    if "hmac" not in query_params:
        return False
    received = query_params.get("hmac")
    rest = {k: v for k, v in query_params.items() if k not in ("hmac", "signature")}
    message = "&".join(f"{k}={v}" for k, v in sorted(rest.items()))
    expected = hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()
    return _digests_match(expected, received)


def _digests_match(expected: str, received: str) -> bool:
    # compare_digest rejects non-ASCII str, so compare bytes
    return hmac.compare_digest(expected.encode(), received.encode("utf-8", "surrogateescape"))


def verify_webhook_hmac(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """Webhooks sign the raw body; header is base64, not hex."""
    if not signature or not secret:
        return False
    digest = hmac.new(secret.encode(), raw_body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode()
    return _digests_match(expected, signature)


def build_authorize_url(shop: str, client_id: str, redirect_uri: str, scopes: str, state: str) -> str:
    """Build Shopify OAuth authorize URL carrying the given state (nonce)."""
    redirect_uri = redirect_uri.rstrip("/")
    params = {
        "client_id": client_id,
        "scope": scopes,
        "redirect_uri": redirect_uri,
        "state": state,
    }
    return f"https://{shop}/admin/oauth/authorize?{urlencode(params)}"


async def exchange_code_for_token(shop: str, code: str, client_id: str, client_secret: str) -> str:
    """POST to shop's oauth/access_token; return access_token."""
    url = f"https://{shop}/admin/oauth/access_token"
    async with httpx.AsyncClient() as client:
        r = await client.post(
            url,
            json={
                "client_id": client_id,
                "client_secret": client_secret,
                "code": code,
            },
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        r.raise_for_status()
        data = r.json()
    return data["access_token"]


def decode_host(host: str) -> Optional[str]:
    """The `host` param is base64 of e.g. admin.shopify.com/store/foo, sometimes without padding."""
    try:
        decoded = base64.b64decode(host + "=" * (-len(host) % 4)).decode()
    except (binascii.Error, UnicodeDecodeError):
        return None
    return decoded.rstrip("/") or None


def build_app_root_url(shop: str, api_key: str, host: Optional[str] = None) -> str:
    """Where to send the merchant after OAuth: inside the Shopify admin."""
    decoded = decode_host(host) if host else None
    if decoded:
        return f"https://{decoded}/apps/{api_key}"
    return f"https://{shop}/admin/apps/{api_key}"


def decode_session_token(token: str, api_key: str, api_secret: str) -> dict:
    """Verify an App Bridge session token and return its claims."""
    try:
        claims = jwt.decode(
            token,
            api_secret,
            algorithms=["HS256"],
            audience=api_key,
            leeway=JWT_LEEWAY_SECONDS,
        )
    except jwt.PyJWTError as e:
        raise SessionTokenError(f"Invalid session token: {e}")
    shop = shop_from_claims(claims)
    if not shop:
        raise SessionTokenError("Session token has no valid dest claim")
    if _url_host(claims.get("iss")) != _url_host(claims.get("dest")):
        raise SessionTokenError("Session token iss and dest hosts differ")
    return claims


def _url_host(value) -> str:
    if not isinstance(value, str):
        return ""
    return (urlparse(value).hostname or "").lower()


def shop_from_claims(claims: dict) -> Optional[str]:
    dest = claims.get("dest") or ""
    shop = urlparse(dest).netloc or dest
    shop = normalize_shop(shop) if shop else ""
    return shop if is_valid_shop_hostname(shop) else None
