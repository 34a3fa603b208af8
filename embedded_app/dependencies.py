"""
FastAPI dependencies shared by the /api routes.
Tests swap these out through app.dependency_overrides.
"""
import logging

from fastapi import Depends, HTTPException, Request

from embedded_app import shopify_auth
from embedded_app.config import AppConfig
from embedded_app.shopify_api import GraphqlClient
from embedded_app.shopify_auth import Session, SessionTokenError, TokenStore

log = logging.getLogger(__name__)

REAUTHORIZE_HEADER = "X-Shopify-API-Request-Failure-Reauthorize"
REAUTHORIZE_URL_HEADER = "X-Shopify-API-Request-Failure-Reauthorize-Url"


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_token_store(request: Request) -> TokenStore:
    return request.app.state.token_store


def _bearer_token(request: Request) -> str:
    auth = request.headers.get("authorization") or ""
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Missing session token")
    return token.strip()


def validate_authenticated_session(
    request: Request,
    config: AppConfig = Depends(get_config),
    store: TokenStore = Depends(get_token_store),
) -> Session:
    """Resolve the App Bridge session token to the shop's offline session, or reject."""
    token = _bearer_token(request)
    try:
        claims = shopify_auth.decode_session_token(token, config.api_key, config.api_secret)
    except SessionTokenError as e:
        log.info("Rejected request to %s: %s", request.url.path, e)
        raise HTTPException(status_code=401, detail="Invalid session token")

    shop = shopify_auth.shop_from_claims(claims)
    access_token = store.get_token(shop)
    if not access_token:
        # App Bridge follows these headers to restart OAuth
        raise HTTPException(
            status_code=403,
            detail="App not installed on this shop",
            headers={
                REAUTHORIZE_HEADER: "1",
                REAUTHORIZE_URL_HEADER: f"{config.auth_path}?shop={shop}",
            },
        )
    return Session(shop=shop, access_token=access_token, user_id=claims.get("sub"))


def get_graphql_client(
    session: Session = Depends(validate_authenticated_session),
    config: AppConfig = Depends(get_config),
) -> GraphqlClient:
    return GraphqlClient(session, api_version=config.api_version)
