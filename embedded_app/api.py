"""
/api routes: thin proxies from the embedded frontend to the GraphQL Admin API.
Every route here sits behind validate_authenticated_session.
"""
import json
import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, StrictBool, StrictFloat, StrictInt, StrictStr, ValidationError

from embedded_app import messages
from embedded_app.dependencies import get_graphql_client, validate_authenticated_session
from embedded_app.operations import (
    PRODUCT_UPDATE_MUTATION,
    PRODUCTS_COUNT_QUERY,
    VARIANTS_BULK_UPDATE_MUTATION,
    decode_product_update,
    decode_products_count,
    decode_variants_bulk_update,
    dump_product,
    dump_user_errors,
)
from embedded_app.product_creator import create_products
from embedded_app.shopify_api import GraphqlClient
from embedded_app.shopify_auth import Session

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", dependencies=[Depends(validate_authenticated_session)])


class UpdatePriceRequest(BaseModel):
    productId: Optional[str] = None
    variantId: Optional[str] = None
    # strict so a JSON true is not read as 1
    price: Optional[Union[StrictStr, StrictInt, StrictFloat, StrictBool]] = None


class UpdateTitleRequest(BaseModel):
    productId: Optional[str] = None
    newTitle: Optional[str] = None


async def _json_object(request: Request) -> dict:
    """Request body as a dict; anything else (empty, invalid JSON, a list) reads as {}."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


def _price_string(price: Union[str, int, float, bool]) -> str:
    if isinstance(price, bool):
        return "true" if price else "false"
    if isinstance(price, float) and price.is_integer():
        return str(int(price))
    return str(price)


def _log_upstream_error(prefix: str, e: Exception) -> None:
    body = getattr(e, "response_body", None)
    if body is not None:
        log.error("%s: %s", prefix, json.dumps(body, indent=2, ensure_ascii=False))
    else:
        log.exception("Error: %s", e)


@router.get("/products/count")
async def products_count(client: GraphqlClient = Depends(get_graphql_client)):
    # Upstream failures are not caught here; the default 500 handler applies.
    body = await client.request(PRODUCTS_COUNT_QUERY)
    return {"count": decode_products_count(body).count}


@router.post("/products")
async def create_sample_products(
    session: Session = Depends(validate_authenticated_session),
    client: GraphqlClient = Depends(get_graphql_client),
):
    status = 200
    error = None
    try:
        await create_products(client)
    except Exception as e:
        log.error("Failed to process products/create for %s: %s", session.shop, e)
        status = 500
        error = str(e)
    return JSONResponse(status_code=status, content={"success": status == 200, "error": error})


@router.post("/update-price")
async def update_price(
    request: Request,
    session: Session = Depends(validate_authenticated_session),
    client: GraphqlClient = Depends(get_graphql_client),
):
    body = await _json_object(request)
    log.info("Received request body: %s", body)

    try:
        update = UpdatePriceRequest.model_validate(body)
    except ValidationError:
        update = UpdatePriceRequest()
    if not update.productId or not update.variantId or not update.price:
        return JSONResponse(status_code=400, content={"error": messages.ALL_FIELDS_REQUIRED})

    log.info("Session shop: %s", session.shop)
    try:
        response = await client.query(
            data={
                "query": VARIANTS_BULK_UPDATE_MUTATION,
                "variables": {
                    "productId": update.productId,
                    "variantsToBulkUpdate": [
                        {"id": update.variantId, "price": _price_string(update.price)},
                    ],
                },
            }
        )
        log.info("GraphQL Response: %s", response.body)
        result = decode_variants_bulk_update(response.body)
    except Exception as e:
        _log_upstream_error("GraphQL Error Details", e)
        return JSONResponse(status_code=500, content={"error": messages.SERVER_ERROR})

    # userErrors do not fail the request; the frontend has always treated this path as success.
    if result.user_errors:
        log.warning(
            "productVariantsBulkUpdate returned userErrors for %s: %s",
            update.productId,
            dump_user_errors(result.user_errors),
        )
    return {"success": True, "product": dump_product(result.product)}


@router.post("/update-product-title")
async def update_product_title(
    request: Request,
    client: GraphqlClient = Depends(get_graphql_client),
):
    body = await _json_object(request)
    try:
        update = UpdateTitleRequest.model_validate(body)
    except ValidationError:
        update = UpdateTitleRequest()
    if not update.productId or not update.newTitle:
        return JSONResponse(status_code=400, content={"success": False, "error": messages.ALL_FIELDS_REQUIRED})

    try:
        response = await client.query(
            data={
                "query": PRODUCT_UPDATE_MUTATION,
                "variables": {"input": {"id": update.productId, "title": update.newTitle}},
            }
        )
        result = decode_product_update(response.body)
    except Exception as e:
        log.error("Error updating product title: %s", e)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    if result.user_errors:
        return JSONResponse(
            status_code=400,
            content={"success": False, "errors": dump_user_errors(result.user_errors)},
        )
    return {"success": True, "product": dump_product(result.product)}
