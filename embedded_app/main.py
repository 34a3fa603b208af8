"""
Backend for the embedded Shopify admin app.
OAuth install + privacy webhooks, the /api proxy routes, and the frontend shell.
"""
import json
import logging
import os
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, RedirectResponse

from embedded_app import api, shopify_auth
from embedded_app.config import AppConfig, load_config, log_config
from embedded_app.privacy import PRIVACY_WEBHOOK_HANDLERS, topic_key
from embedded_app.shopify_auth import OAuthStates, TokenStore

log = logging.getLogger(__name__)

API_KEY_PLACEHOLDER = "%VITE_SHOPIFY_API_KEY%"


def csp_header(shop: Optional[str]) -> str:
    """frame-ancestors value letting only this shop's admin embed the app."""
    if shop and shopify_auth.is_valid_shop_hostname(shop):
        return f"frame-ancestors https://{shop} https://admin.shopify.com;"
    return "frame-ancestors 'none';"


def _static_file(static_path: Path, url_path: str) -> Optional[Path]:
    """Resolve url_path inside static_path, refusing anything that escapes it."""
    if not url_path or not static_path.is_dir():
        return None
    root = static_path.resolve()
    candidate = (root / url_path).resolve()
    if root not in candidate.parents or not candidate.is_file():
        return None
    return candidate


def create_app(config: AppConfig, token_store: Optional[TokenStore] = None, webhook_handlers=None) -> FastAPI:
    app = FastAPI(title="Shopify Embedded App")
    app.state.config = config
    app.state.token_store = token_store or TokenStore(config.token_store_path)
    app.state.oauth_states = OAuthStates()
    handlers = PRIVACY_WEBHOOK_HANDLERS if webhook_handlers is None else webhook_handlers

    @app.middleware("http")
    async def csp_headers(request: Request, call_next):
        response = await call_next(request)
        shop = request.query_params.get("shop")
        response.headers["Content-Security-Policy"] = csp_header(
            shopify_auth.normalize_shop(shop) if shop else None
        )
        return response

    # --- Shopify auth (OAuth) and webhooks: outside the session check ---

    @app.get(config.auth_path)
    async def auth_begin(request: Request, shop: str = Query("", alias="shop")):
        """Redirect merchant to Shopify OAuth. shop = mystore.myshopify.com or mystore."""
        if not config.api_key or not config.api_secret:
            raise HTTPException(status_code=503, detail="Shopify app not configured. Set SHOPIFY_API_KEY and SHOPIFY_API_SECRET.")
        normalized = shopify_auth.normalize_shop(shop)
        if not shopify_auth.is_valid_shop_hostname(normalized):
            raise HTTPException(status_code=400, detail="Invalid shop. Use your-store.myshopify.com or your-store.")
        state = request.app.state.oauth_states.issue(normalized)
        url = shopify_auth.build_authorize_url(normalized, config.api_key, config.redirect_uri, config.scopes, state)
        log.info("OAuth begin for %s, redirect_uri=%r", normalized, config.redirect_uri)
        return RedirectResponse(url=url, status_code=302)

    @app.get(config.auth_callback_path)
    async def auth_callback(request: Request):
        """Shopify redirects here after approval. Verify HMAC and state, exchange code, save token."""
        params = dict(request.query_params)
        if not shopify_auth.verify_hmac(params, config.api_secret):
            raise HTTPException(status_code=400, detail="Invalid HMAC")
        shop = request.app.state.oauth_states.pop(params.get("state"))
        incoming_shop = shopify_auth.normalize_shop(params.get("shop", ""))
        if not shop or shop != incoming_shop:
            raise HTTPException(status_code=400, detail="Invalid or expired state. Try installing again.")
        code = params.get("code")
        if not code:
            raise HTTPException(status_code=400, detail="Missing code")
        try:
            token = await shopify_auth.exchange_code_for_token(shop, code, config.api_key, config.api_secret)
        except Exception as e:
            log.error("Token exchange for %s failed: %s", shop, e)
            raise HTTPException(status_code=502, detail=f"Could not get token: {e}")
        request.app.state.token_store.save_token(shop, token)
        log.info("Installed on %s", shop)
        url = shopify_auth.build_app_root_url(shop, config.api_key, params.get("host"))
        return RedirectResponse(url=url, status_code=302)

    @app.post(config.webhooks_path)
    async def process_webhooks(request: Request):
        raw = await request.body()
        signature = request.headers.get("x-shopify-hmac-sha256")
        if not shopify_auth.verify_webhook_hmac(raw, signature, config.api_secret):
            raise HTTPException(status_code=401, detail="Invalid webhook HMAC")
        topic = request.headers.get("x-shopify-topic", "")
        handler = handlers.get(topic_key(topic))
        if handler is None:
            raise HTTPException(status_code=404, detail=f"No webhook handler registered for topic {topic!r}")
        try:
            payload = json.loads(raw or b"{}")
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid webhook payload")
        shop = request.headers.get("x-shopify-shop-domain", "")
        webhook_id = request.headers.get("x-shopify-webhook-id", "")
        await handler(topic, shop, payload, webhook_id)
        return {"ok": True}

    # If you add routes outside /api, the frontend dev server needs a proxy rule for them too.
    app.include_router(api.router)

    # --- Frontend shell ---

    @app.get("/{full_path:path}")
    def frontend(full_path: str, request: Request):
        if full_path == "api" or full_path.startswith("api/"):
            raise HTTPException(status_code=404, detail="Not Found")

        static = _static_file(config.static_path, full_path)
        if static is not None:
            return FileResponse(static)

        # ensure installed on shop
        raw_shop = request.query_params.get("shop", "")
        shop = shopify_auth.normalize_shop(raw_shop) if raw_shop else ""
        if not shopify_auth.is_valid_shop_hostname(shop):
            return PlainTextResponse("No shop provided", status_code=422)
        if not request.app.state.token_store.get_token(shop):
            return RedirectResponse(url=f"{config.auth_path}?shop={shop}", status_code=302)
        host = request.query_params.get("host")
        if host and request.query_params.get("embedded") != "1":
            return RedirectResponse(url=shopify_auth.build_app_root_url(shop, config.api_key, host), status_code=302)

        html = (config.static_path / "index.html").read_text(encoding="utf-8")
        return HTMLResponse(content=html.replace(API_KEY_PLACEHOLDER, config.api_key), status_code=200)

    return app


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

settings = load_config()
log_config(settings)
app = create_app(settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
