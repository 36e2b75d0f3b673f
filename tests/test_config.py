"""
Tests for settings loading
"""

from storefront.config import DEFAULT_API_URL, DEFAULT_HTTP_TIMEOUT, DEFAULT_MIRROR_ATTEMPTS, load_settings


def test_defaults():
    settings = load_settings(env={})

    assert settings.api_url == DEFAULT_API_URL
    assert settings.storage_backend == "file"
    assert settings.http_timeout == DEFAULT_HTTP_TIMEOUT
    assert settings.mirror_attempts == DEFAULT_MIRROR_ATTEMPTS


def test_reads_environment():
    settings = load_settings(env={
        "STOREFRONT_API_URL": "https://shop.example.com/api/",
        "STOREFRONT_STORAGE": "REDIS",
        "UPSTASH_REDIS_REST_URL": "https://redis.test",
        "UPSTASH_REDIS_REST_TOKEN": "tok",
        "STOREFRONT_HTTP_TIMEOUT": "3.5",
        "STOREFRONT_MIRROR_ATTEMPTS": "5",
    })

    assert settings.api_url == "https://shop.example.com/api"
    assert settings.storage_backend == "redis"
    assert settings.redis_url == "https://redis.test"
    assert settings.redis_token == "tok"
    assert settings.http_timeout == 3.5
    assert settings.mirror_attempts == 5


def test_invalid_values_fall_back():
    settings = load_settings(env={
        "STOREFRONT_STORAGE": "floppy",
        "STOREFRONT_HTTP_TIMEOUT": "soon",
        "STOREFRONT_MIRROR_ATTEMPTS": "-2",
    })

    assert settings.storage_backend == "file"
    assert settings.http_timeout == DEFAULT_HTTP_TIMEOUT
    assert settings.mirror_attempts == DEFAULT_MIRROR_ATTEMPTS


def test_env_file(tmp_path, monkeypatch):
    # Registered with monkeypatch so the value load_dotenv sets is undone
    monkeypatch.setenv("STOREFRONT_API_URL", "placeholder")
    monkeypatch.delenv("STOREFRONT_API_URL")
    env_file = tmp_path / ".env"
    env_file.write_text("STOREFRONT_API_URL=https://from-dotenv.test/api\n")

    settings = load_settings(env_file=str(env_file))

    assert settings.api_url == "https://from-dotenv.test/api"
