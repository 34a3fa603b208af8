"""
GraphQL Admin API client bound to one merchant session.
"""
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from embedded_app.shopify_auth import Session

BASE = "https://{shop}/admin/api/{version}"


class GraphqlQueryError(Exception):
    """Upstream call failed: transport, non-2xx status, or GraphQL `errors` in the body."""

    def __init__(self, message: str, response_body: Any = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.response_body = response_body
        self.status_code = status_code


@dataclass
class GraphqlResponse:
    body: dict
    headers: dict = field(default_factory=dict)


def _headers(token: str) -> dict:
    return {
        "X-Shopify-Access-Token": token,
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


class GraphqlClient:
    """Async client for /admin/api/{version}/graphql.json.

    No retries and no timeout: a slow upstream holds the request open.
    Pass `transport` to swap the network layer (tests use httpx.MockTransport).
    """

    def __init__(self, session: Session, api_version: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.session = session
        self.url = f"{BASE.format(shop=session.shop, version=api_version)}/graphql.json"
        self._transport = transport

    async def query(self, data: dict) -> GraphqlResponse:
        """POST {"query", "variables"} and return the decoded body and headers."""
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=None) as client:
                r = await client.post(self.url, json=data, headers=_headers(self.session.access_token))
        except httpx.HTTPError as e:
            raise GraphqlQueryError(f"GraphQL request to {self.session.shop} failed: {e}")

        try:
            body = r.json()
        except ValueError:
            body = r.text

        if r.is_error:
            raise GraphqlQueryError(
                f"GraphQL request failed with status {r.status_code}",
                response_body=body,
                status_code=r.status_code,
            )
        if not isinstance(body, dict):
            raise GraphqlQueryError("GraphQL response was not a JSON object", response_body=body, status_code=r.status_code)
        if body.get("errors"):
            raise GraphqlQueryError("GraphQL query returned errors", response_body=body, status_code=r.status_code)
        return GraphqlResponse(body=body, headers=dict(r.headers))

    async def request(self, query: str, variables: Optional[dict] = None) -> dict:
        """Shorthand for query(); returns just the body."""
        data: dict = {"query": query}
        if variables is not None:
            data["variables"] = variables
        response = await self.query(data)
        return response.body
