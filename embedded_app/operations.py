"""
GraphQL documents used by the API routes and typed views of their results.

Each decode_* helper takes the raw response body and either returns a model or raises
MalformedResponseError; callers never poke at nested dicts directly.
"""
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

PRODUCTS_COUNT_QUERY = """
  query shopifyProductCount {
    productsCount {
      count
    }
  }
"""

VARIANTS_BULK_UPDATE_MUTATION = """
  mutation variantsToBulkUpdate($productId: ID!, $variantsToBulkUpdate: [ProductVariantsBulkInput!]!) {
    productVariantsBulkUpdate(
      productId: $productId
      variants: $variantsToBulkUpdate
    ) {
      userErrors {
        field
        message
      }
      product {
        id
      }
    }
  }
"""

PRODUCT_UPDATE_MUTATION = """
  mutation updateProductTitle($input: ProductInput!) {
    productUpdate(input: $input) {
      product {
        id
        title
      }
      userErrors {
        field
        message
      }
    }
  }
"""

PRODUCT_CREATE_MUTATION = """
  mutation populateProduct($input: ProductInput!) {
    productCreate(input: $input) {
      product {
        id
        title
      }
      userErrors {
        field
        message
      }
    }
  }
"""


class MalformedResponseError(Exception):
    """The upstream body did not have the shape the operation returns."""

    def __init__(self, operation: str, body):
        super().__init__(f"Malformed {operation} response")
        self.operation = operation
        self.response_body = body


class UserError(BaseModel):
    # usually a path like ["variants", "0", "price"]; null for non-field errors
    field: Optional[Union[list[str], str]] = None
    message: str


class ProductRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    title: Optional[str] = None


class ProductsCount(BaseModel):
    count: int


class MutationResult(BaseModel):
    """{userErrors, product} payload shared by the product mutations."""

    model_config = ConfigDict(populate_by_name=True)

    user_errors: list[UserError] = Field(default_factory=list, alias="userErrors")
    product: Optional[ProductRef] = None


class VariantsBulkUpdateResult(MutationResult):
    pass


class ProductUpdateResult(MutationResult):
    pass


class ProductCreateResult(MutationResult):
    pass


def _payload(body, root: str):
    if not isinstance(body, dict):
        raise MalformedResponseError(root, body)
    data = body.get("data")
    if not isinstance(data, dict) or data.get(root) is None:
        raise MalformedResponseError(root, body)
    return data[root]


def _decode(model, body, root: str):
    try:
        return model.model_validate(_payload(body, root))
    except ValidationError:
        raise MalformedResponseError(root, body)


def decode_products_count(body) -> ProductsCount:
    return _decode(ProductsCount, body, "productsCount")


def decode_variants_bulk_update(body) -> VariantsBulkUpdateResult:
    return _decode(VariantsBulkUpdateResult, body, "productVariantsBulkUpdate")


def decode_product_update(body) -> ProductUpdateResult:
    return _decode(ProductUpdateResult, body, "productUpdate")


def decode_product_create(body) -> ProductCreateResult:
    return _decode(ProductCreateResult, body, "productCreate")


def dump_product(product: Optional[ProductRef]) -> Optional[dict]:
    """Relay the product as upstream sent it (no None-filled keys it didn't ask for)."""
    if product is None:
        return None
    return product.model_dump(exclude_unset=True)


def dump_user_errors(errors: list[UserError]) -> list[dict]:
    return [e.model_dump() for e in errors]
