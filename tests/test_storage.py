"""
Tests for local persistence backends
"""

import json
from unittest.mock import Mock

import pytest

from storefront.config import Settings
from storefront.db import FileStorage, MemoryStorage, RedisStorage, StorageKeys, create_storage


class TestFileStorage:
    """Tests for the JSON file backend."""

    def test_missing_file_reads_empty(self, tmp_path):
        storage = FileStorage(str(tmp_path / "state.json"))

        assert storage.get(StorageKeys.CART) is None

    def test_values_survive_new_instance(self, tmp_path):
        path = tmp_path / "nested" / "state.json"
        FileStorage(str(path)).set_many({StorageKeys.ACCESS_TOKEN: "a", StorageKeys.REFRESH_TOKEN: "r"})

        reopened = FileStorage(str(path))

        assert reopened.get(StorageKeys.ACCESS_TOKEN) == "a"
        assert reopened.get(StorageKeys.REFRESH_TOKEN) == "r"

    def test_write_leaves_no_temp_files(self, tmp_path):
        storage = FileStorage(str(tmp_path / "state.json"))
        storage.set(StorageKeys.CART, '{"P1": 1}')
        storage.set(StorageKeys.CART, '{"P1": 2}')

        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]
        assert json.loads((tmp_path / "state.json").read_text()) == {StorageKeys.CART: '{"P1": 2}'}

    def test_delete(self, tmp_path):
        path = tmp_path / "state.json"
        storage = FileStorage(str(path))
        storage.set_many({"token": "a", "refreshToken": "r", "cartItems": "{}"})

        storage.delete("token", "refreshToken")

        assert json.loads(path.read_text()) == {"cartItems": "{}"}

    def test_delete_missing_key_does_not_create_file(self, tmp_path):
        path = tmp_path / "state.json"
        FileStorage(str(path)).delete("token")

        assert not path.exists()

    @pytest.mark.parametrize("content", ["not json", "[1, 2, 3]"])
    def test_malformed_file_reads_empty(self, tmp_path, content):
        path = tmp_path / "state.json"
        path.write_text(content)

        storage = FileStorage(str(path))

        assert storage.get("token") is None
        storage.set("token", "a")
        assert json.loads(path.read_text()) == {"token": "a"}


class TestRedisStorage:
    def test_keys_are_prefixed(self):
        client = Mock()
        client.get.return_value = "value"
        storage = RedisStorage(client, prefix="device-1:")

        assert storage.get("token") == "value"
        client.get.assert_called_once_with("device-1:token")

    def test_set_many_uses_single_mset(self):
        client = Mock()
        storage = RedisStorage(client)

        storage.set_many({"token": "a", "refreshToken": "r"})

        client.mset.assert_called_once_with({"storefront:token": "a", "storefront:refreshToken": "r"})
        client.set.assert_not_called()

    def test_delete(self):
        client = Mock()
        RedisStorage(client).delete("token", "refreshToken")

        client.delete.assert_called_once_with("storefront:token", "storefront:refreshToken")

    def test_get_missing(self):
        client = Mock()
        client.get.return_value = None

        assert RedisStorage(client).get("cartItems") is None


class TestCreateStorage:
    def test_memory(self):
        assert isinstance(create_storage(Settings(storage_backend="memory")), MemoryStorage)

    def test_file(self, tmp_path):
        storage = create_storage(Settings(storage_backend="file", state_path=str(tmp_path / "s.json")))

        assert isinstance(storage, FileStorage)

    def test_redis_requires_credentials(self):
        with pytest.raises(ValueError):
            create_storage(Settings(storage_backend="redis"))

    def test_redis(self, monkeypatch):
        created = {}

        class FakeRedis:
            def __init__(self, url, token):
                created.update(url=url, token=token)

        monkeypatch.setattr("storefront.db.Redis", FakeRedis)

        storage = create_storage(
            Settings(storage_backend="redis", redis_url="https://redis.test", redis_token="tok")
        )

        assert isinstance(storage, RedisStorage)
        assert created == {"url": "https://redis.test", "token": "tok"}


def test_cart_storage_exports_only_what_the_cart_uses():
    from storefront.cart import storage as cart_storage

    assert sorted(cart_storage.__all__) == ["KeyValueStorage", "StorageKeys"]
    assert not hasattr(cart_storage, "get_storage")
    assert cart_storage.StorageKeys is StorageKeys
