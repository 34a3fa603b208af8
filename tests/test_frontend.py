import pytest

from conftest import API_KEY, SHOP
from embedded_app.main import csp_header


@pytest.fixture
def frontend(config):
    config.static_path.mkdir(parents=True)
    (config.static_path / "index.html").write_text(
        '<script>window.apiKey = "%VITE_SHOPIFY_API_KEY%"</script>', encoding="utf-8"
    )
    (config.static_path / "assets").mkdir()
    (config.static_path / "assets" / "app.js").write_text("console.log('hi')")
    return config.static_path


@pytest.mark.asyncio
async def test_index_injects_api_key(client, token_store, frontend):
    token_store.save_token(SHOP, "shpat_1")

    response = await client.get("/", params={"shop": SHOP, "embedded": "1"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert f'window.apiKey = "{API_KEY}"' in response.text
    assert response.headers["content-security-policy"] == (
        f"frame-ancestors https://{SHOP} https://admin.shopify.com;"
    )


@pytest.mark.asyncio
async def test_static_asset_served_without_shop(client, frontend):
    response = await client.get("/assets/app.js")

    assert response.status_code == 200
    assert response.text == "console.log('hi')"
    assert response.headers["content-security-policy"] == "frame-ancestors 'none';"


@pytest.mark.asyncio
async def test_path_traversal_is_not_served(client, frontend, tmp_path):
    (tmp_path / "secret.txt").write_text("nope")

    response = await client.get("/..%2Fsecret.txt")

    assert "nope" not in response.text


@pytest.mark.asyncio
async def test_missing_shop_is_422(client, frontend):
    response = await client.get("/")

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_uninstalled_shop_redirects_to_auth(client, frontend):
    response = await client.get("/", params={"shop": SHOP})

    assert response.status_code == 302
    assert response.headers["location"] == f"/api/auth?shop={SHOP}"


@pytest.mark.asyncio
async def test_unknown_api_path_is_404(client):
    response = await client.get("/api/nothing-here")

    assert response.status_code == 404


def test_csp_header():
    assert csp_header(None) == "frame-ancestors 'none';"
    assert csp_header("evil.com") == "frame-ancestors 'none';"
    assert csp_header(SHOP) == f"frame-ancestors https://{SHOP} https://admin.shopify.com;"
