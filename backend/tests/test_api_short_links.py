"""End-to-end tests for the ad-gated shareable link flow."""
from urllib.parse import parse_qs, urlsplit

import pytest

from conftest import upload
from slugshare.services.file_registry import DAY_MS


def redirect_params(response):
    location = urlsplit(response.headers["location"])
    return location.path, parse_qs(location.query)


async def test_link_without_marker_redirects_to_ad_screen(client):
    slug = (await upload(client)).json()["slug"]

    response = await client.get(f"/s/{slug}")
    assert response.status_code == 302
    path, params = redirect_params(response)
    assert path == "/ad"
    assert params["showAd"] == ["true"]
    assert params["downloadUrl"] == [f"http://testserver/s/{slug}"]


async def test_gate_runs_before_lookup(client):
    response = await client.get("/s/unknown1")
    assert response.status_code == 302


async def test_link_with_marker_serves_file(client):
    slug = (await upload(client, b"0123456789")).json()["slug"]

    response = await client.get(f"/s/{slug}", params={"ad": "seen"})
    assert response.status_code == 200
    assert response.content == b"0123456789"
    assert response.headers["content-length"] == "10"


async def test_full_round_trip_through_ad_screen(client):
    slug = (await upload(client, b"payload")).json()["slug"]

    gated = await client.get(f"/s/{slug}")
    _, params = redirect_params(gated)
    ad_page = await client.get("/ad", params={"downloadUrl": params["downloadUrl"][0]})
    assert ad_page.status_code == 200
    assert "Your file is almost ready!" in ad_page.text
    assert f"http://testserver/s/{slug}?ad=seen" in ad_page.text

    opened = await client.get(f"/s/{slug}?ad=seen")
    assert opened.status_code == 200
    assert opened.content == b"payload"


async def test_passcode_prompt_keeps_ad_marker(client):
    slug = (await upload(client, b"secret", isPrivate="true", passcode="abc")).json()["slug"]

    prompt = await client.get(f"/s/{slug}", params={"ad": "seen"})
    assert prompt.status_code == 401
    assert prompt.headers["content-type"].startswith("text/html")
    assert '<input type="hidden" name="ad" value="seen">' in prompt.text
    assert f'action="/s/{slug}"' in prompt.text

    wrong = await client.get(f"/s/{slug}", params={"ad": "seen", "passcode": "xyz"})
    assert wrong.status_code == 403
    assert 'name="ad" value="seen"' in wrong.text

    # Resubmitting the prompt form does not go back through the ad screen.
    right = await client.get(f"/s/{slug}", params={"ad": "seen", "passcode": "abc"})
    assert right.status_code == 200
    assert right.content == b"secret"


async def test_ad_screen_arms_url_with_passcode(client):
    response = await client.get("/ad", params={"downloadUrl": "/s/abcd1234?passcode=abc"})
    assert response.status_code == 200
    assert "/s/abcd1234?passcode=abc&amp;ad=seen" in response.text


async def test_expired_and_unknown_links_render_error_pages(client, clock):
    slug = (await upload(client, expiryDays="1")).json()["slug"]
    clock.advance(DAY_MS + 1)

    expired = await client.get(f"/s/{slug}", params={"ad": "seen"})
    assert expired.status_code == 410
    assert "expired" in expired.text

    unknown = await client.get("/s/unknown1", params={"ad": "seen"})
    assert unknown.status_code == 404
    assert unknown.headers["content-type"].startswith("text/html")


async def test_ad_screen_requires_download_url(client):
    response = await client.get("/ad")
    assert response.status_code == 400
    assert "Download link is incomplete." in response.text


async def test_ad_screen_rejects_foreign_urls(client):
    response = await client.get("/ad", params={"downloadUrl": "https://evil.example/s/abcd1234"})
    assert response.status_code == 400


@pytest.mark.parametrize("url", ["/\\evil.example/s/abcd1234", "/\\\\evil.example/s/abcd1234", "/\t/evil.example/s/abcd1234"])
async def test_ad_screen_rejects_backslash_and_control_tricks(client, url):
    response = await client.get("/ad", params={"downloadUrl": url})
    assert response.status_code == 400
    assert "evil.example" not in response.text


async def test_download_proxy_redirects_to_ad_screen(client):
    response = await client.get("/download-proxy", params={"url": "http://testserver/s/abcd1234"})
    assert response.status_code == 302
    path, params = redirect_params(response)
    assert path == "/ad"
    assert params["downloadUrl"] == ["http://testserver/s/abcd1234"]


async def test_download_proxy_requires_url(client):
    response = await client.get("/download-proxy")
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Download link is incomplete."}
