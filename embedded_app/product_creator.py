"""
Populate a dev store with a handful of randomly named products.
"""
import json
import logging
import random

from embedded_app.operations import PRODUCT_CREATE_MUTATION, decode_product_create
from embedded_app.shopify_api import GraphqlClient, GraphqlQueryError

log = logging.getLogger(__name__)

ADJECTIVES = [
    "autumn", "hidden", "bitter", "misty", "silent", "empty", "dry", "dark",
    "summer", "icy", "delicate", "quiet", "white", "cool", "spring", "winter",
    "patient", "twilight", "dawn", "crimson", "wispy", "weathered", "blue",
    "billowing", "broken", "cold", "damp", "falling", "frosty", "green", "long",
]

NOUNS = [
    "waterfall", "river", "breeze", "moon", "rain", "wind", "sea", "morning",
    "snow", "lake", "sunset", "pine", "shadow", "leaf", "dawn", "glitter",
    "forest", "hill", "cloud", "meadow", "sun", "glade", "bird", "brook",
    "butterfly", "bush", "dew", "dust", "field", "fire", "flower",
]

DEFAULT_PRODUCTS_COUNT = 5


class ProductCreatorError(Exception):
    pass


def random_title(rng=random) -> str:
    return f"{rng.choice(ADJECTIVES)} {rng.choice(NOUNS)}"


async def create_products(client: GraphqlClient, count: int = DEFAULT_PRODUCTS_COUNT, rng=random) -> list[str]:
    """Create `count` products one after another; returns the titles used."""
    titles = []
    try:
        for _ in range(count):
            title = random_title(rng)
            body = await client.request(PRODUCT_CREATE_MUTATION, variables={"input": {"title": title}})
            result = decode_product_create(body)
            if result.user_errors:
                log.warning("productCreate reported userErrors for %r: %s", title, result.user_errors)
            titles.append(title)
    except GraphqlQueryError as e:
        raise ProductCreatorError(f"{e}\n{json.dumps(e.response_body, indent=2, ensure_ascii=False)}") from e
    return titles
