import pytest

from backend.config import LOCAL_BASE_URL, resolve_base_url

DEPLOY_VARS = ("BASE_URL", "RENDER_EXTERNAL_URL", "VERCEL_URL")


@pytest.fixture(autouse=True)
def _clean_deploy_env(monkeypatch):
    for name in DEPLOY_VARS:
        monkeypatch.delenv(name, raising=False)


def test_explicit_base_url_wins(monkeypatch):
    monkeypatch.setenv("BASE_URL", "https://shop.example/")
    monkeypatch.setenv("RENDER_EXTERNAL_URL", "https://render.example")
    assert resolve_base_url() == "https://shop.example"


def test_render_url_before_vercel(monkeypatch):
    monkeypatch.setenv("RENDER_EXTERNAL_URL", "https://shop.onrender.com")
    monkeypatch.setenv("VERCEL_URL", "shop.vercel.app")
    assert resolve_base_url() == "https://shop.onrender.com"


def test_vercel_host_gets_https_scheme(monkeypatch):
    monkeypatch.setenv("VERCEL_URL", "shop-abc123.vercel.app")
    assert resolve_base_url() == "https://shop-abc123.vercel.app"


def test_quoted_values_are_cleaned(monkeypatch):
    monkeypatch.setenv("BASE_URL", "'https://shop.example'")
    assert resolve_base_url() == "https://shop.example"


def test_local_default():
    assert resolve_base_url() == LOCAL_BASE_URL
