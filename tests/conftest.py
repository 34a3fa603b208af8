import time

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from embedded_app.config import AppConfig
from embedded_app.dependencies import get_graphql_client, validate_authenticated_session
from embedded_app.main import create_app
from embedded_app.shopify_api import GraphqlResponse
from embedded_app.shopify_auth import Session, TokenStore

API_KEY = "test-api-key"
API_SECRET = "test-api-secret"
SHOP = "test-shop.myshopify.com"


class StubGraphqlClient:
    """Stands in for GraphqlClient: returns a canned body or raises."""

    def __init__(self, body=None, error=None):
        self.body = body
        self.error = error
        self.calls = []

    async def query(self, data):
        self.calls.append(data)
        if self.error is not None:
            raise self.error
        return GraphqlResponse(body=self.body)

    async def request(self, query, variables=None):
        response = await self.query({"query": query, "variables": variables})
        return response.body


def make_session_token(shop=SHOP, secret=API_SECRET, audience=API_KEY, **overrides):
    now = int(time.time())
    claims = {
        "iss": f"https://{shop}/admin",
        "dest": f"https://{shop}",
        "aud": audience,
        "sub": "42",
        "exp": now + 60,
        "nbf": now - 1,
        "iat": now - 1,
        "jti": "abc",
        "sid": "def",
    }
    claims.update(overrides)
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        port=3000,
        environment="development",
        static_path=tmp_path / "frontend",
        api_key=API_KEY,
        api_secret=API_SECRET,
        app_url="https://app.example.com",
        token_store_path=tmp_path / "data" / "stores.json",
    )


@pytest.fixture
def token_store(config):
    return TokenStore(config.token_store_path)


@pytest.fixture
def app(config, token_store):
    return create_app(config, token_store=token_store)


@pytest.fixture
def session():
    return Session(shop=SHOP, access_token="shpat_test", user_id="42")


@pytest.fixture
def use_graphql(app, session):
    """Authenticate every /api request as `session` and route GraphQL to a stub."""

    def install(stub):
        app.dependency_overrides[validate_authenticated_session] = lambda: session
        app.dependency_overrides[get_graphql_client] = lambda: stub
        return stub

    yield install
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
