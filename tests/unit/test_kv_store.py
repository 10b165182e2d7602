"""
Unit tests for KVStore implementations.
"""
import os

import pytest

from tests.unit.test_store_base import BaseLocalDiskStoreTests, BaseTigrisStoreTests, KVStoreContractTests


class TestInMemoryKVStore(KVStoreContractTests):
    """Test suite for InMemoryKVStore."""

    @pytest.fixture
    def store(self):
        """Create an InMemoryKVStore instance."""
        from briefly.memory_kv_store import InMemoryKVStore
        return InMemoryKVStore()

    def test_implements_interface(self, store):
        """Test that InMemoryKVStore implements KVStore interface."""
        from briefly.kv_store import KVStore
        assert isinstance(store, KVStore)

    def test_stores_are_independent(self, store):
        """Test that two instances don't share data."""
        from briefly.memory_kv_store import InMemoryKVStore
        store.put("breaking", b"[]")
        assert InMemoryKVStore().get("breaking") is None


class TestLocalDiskKVStore(BaseLocalDiskStoreTests, KVStoreContractTests):
    """Test suite for LocalDiskKVStore."""

    @pytest.fixture
    def store(self, temp_state_dir):
        """Create a LocalDiskKVStore instance."""
        from briefly.local_disk_kv_store import LocalDiskKVStore
        return LocalDiskKVStore(state_dir=temp_state_dir)

    def test_implements_interface(self, store):
        """Test that LocalDiskKVStore implements KVStore interface."""
        from briefly.kv_store import KVStore
        assert isinstance(store, KVStore)

    def test_persists_to_file(self, store, temp_state_dir):
        """Test that values are written to one file per key."""
        store.put("articles:a1", b'{"_id": "a1"}')
        filepath = os.path.join(temp_state_dir, "kv", "articles%3Aa1.json")
        assert os.path.exists(filepath)
        with open(filepath, "rb") as f:
            assert f.read() == b'{"_id": "a1"}'

    def test_loads_from_existing_files(self, store, temp_state_dir):
        """Test that a new instance sees data written by a previous one."""
        from briefly.local_disk_kv_store import LocalDiskKVStore
        store.put("categories:World", b'["a1"]')
        reopened = LocalDiskKVStore(state_dir=temp_state_dir)
        assert reopened.get("categories:World") == b'["a1"]'
        assert reopened.list_keys("categories:") == ["categories:World"]

    def test_list_keys_ignores_foreign_files(self, store, temp_state_dir):
        """Test that stray files in the data directory are not reported as keys."""
        with open(os.path.join(temp_state_dir, "kv", "README.txt"), "w") as f:
            f.write("not a key")
        store.put("breaking", b"[]")
        assert store.list_keys("") == ["breaking"]

    def test_version_is_content_hash(self, store):
        """Test that identical contents yield identical versions."""
        store.put("breaking", b'["a1"]')
        _, first = store.get_versioned("breaking")
        store.put("breaking", b'["a1"]')
        _, second = store.get_versioned("breaking")
        assert first == second

    def test_long_keyword_key(self, store, temp_state_dir):
        """Test that a key too long for a filename is stored under a digest name."""
        key = "search_index:" + "x" * 300
        store.put(key, b'["a1"]')
        assert store.get(key) == b'["a1"]'
        assert store.list_keys("search_index:") == [key]
        for filename in os.listdir(os.path.join(temp_state_dir, "kv")):
            assert len(filename.encode("utf-8")) <= 255

    def test_long_non_ascii_category_key(self, store):
        """Test that quoting multi-byte characters cannot overflow the filename."""
        key = "categories:" + "Новости мира и международные события " * 3
        store.put(key, b'["a1"]')
        assert store.get(key) == b'["a1"]'
        assert store.list_keys("categories:") == [key]

    def test_long_key_survives_reopen(self, store, temp_state_dir):
        """Test that a new instance recovers the real key of a digest-named entry."""
        from briefly.local_disk_kv_store import LocalDiskKVStore
        key = "search_index:" + "y" * 300
        store.put(key, b'["a1"]')
        reopened = LocalDiskKVStore(state_dir=temp_state_dir)
        assert reopened.list_keys("") == [key]
        assert reopened.get(key) == b'["a1"]'

    def test_long_key_delete_removes_sidecar(self, store, temp_state_dir):
        """Test that deleting a digest-named entry leaves no files behind."""
        key = "search_index:" + "x" * 300
        store.put(key, b'["a1"]')
        store.delete(key)
        assert store.get(key) is None
        assert store.list_keys("") == []
        assert os.listdir(os.path.join(temp_state_dir, "kv")) == []

    def test_long_key_conditional_writes(self, store, temp_state_dir):
        """Test compare-and-swap on a digest-named entry."""
        key = "search_index:" + "x" * 300
        assert store.put_if_version(key, b'["a1"]', None) is True
        assert store.put_if_version(key, b'["a2"]', None) is False
        _, version = store.get_versioned(key)
        assert store.put_if_version(key, b'["a1", "a2"]', version) is True
        _, version = store.get_versioned(key)
        assert store.delete_if_version(key, version) is True
        assert os.listdir(os.path.join(temp_state_dir, "kv")) == []

    def test_short_keys_keep_readable_names(self, store, temp_state_dir):
        """Test that keys within the limit are not renamed."""
        from briefly.file_utils import key_to_filename
        assert key_to_filename("search_index:election") == "search_index%3Aelection.json"
        assert key_to_filename("search_index:" + "x" * 300).startswith("#")

    def test_long_content_article_is_indexed(self, store):
        """Test creating an article whose keywords and category exceed filename limits."""
        from briefly.article import new_article
        from briefly.article_service import ArticleService
        from briefly.query_resolver import ArticleFilter
        category = ("Новости мира и международные события " * 3).strip()
        service = ArticleService(store)
        article = service.create_article(new_article({
            "title": "Long words",
            "content": "see " + "x" * 260,
            "category": category,
        }))
        assert [a.id for a in service.query_articles(ArticleFilter(search="x" * 260))] == [article.id]
        assert [a.id for a in service.query_articles(ArticleFilter(category=category))] == [article.id]
        service.delete_article(article.id)
        assert store.list_keys("") == []


class TestTigrisKVStore(BaseTigrisStoreTests):
    """Test suite for TigrisKVStore using mocked S3."""

    @pytest.fixture
    def store(self, mock_s3_client, monkeypatch):
        """Create a TigrisKVStore with mocked S3 client."""
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "test_key")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "test_secret")
        monkeypatch.setenv("TIGRIS_BUCKET_NAME", "test-bucket")
        monkeypatch.delenv("TIGRIS_KEY_PREFIX", raising=False)
        from briefly.tigris_kv_store import TigrisKVStore
        kv_store = TigrisKVStore()
        kv_store.s3_client = mock_s3_client
        return kv_store

    def test_implements_interface(self, store):
        """Test that TigrisKVStore implements KVStore interface."""
        from briefly.kv_store import KVStore
        assert isinstance(store, KVStore)

    def test_requires_credentials(self, monkeypatch):
        """Test that missing credentials raise ValueError."""
        monkeypatch.delenv("AWS_ACCESS_KEY_ID", raising=False)
        monkeypatch.delenv("AWS_SECRET_ACCESS_KEY", raising=False)
        from briefly.tigris_kv_store import TigrisKVStore
        with pytest.raises(ValueError, match="credentials"):
            TigrisKVStore(bucket_name="bucket")

    def test_requires_bucket(self, monkeypatch):
        """Test that a missing bucket name raises ValueError."""
        monkeypatch.delenv("TIGRIS_BUCKET_NAME", raising=False)
        from briefly.tigris_kv_store import TigrisKVStore
        with pytest.raises(ValueError, match="Bucket"):
            TigrisKVStore(access_key_id="key", secret_access_key="secret")

    def test_get_missing_returns_none(self, store, mock_s3_client):
        """Test get returns None when the object doesn't exist."""
        self.setup_mock_no_such_key(mock_s3_client)
        assert store.get("articles:a1") is None

    def test_get_versioned_returns_body_and_etag(self, store, mock_s3_client):
        """Test get_versioned returns the object body and its ETag."""
        self.setup_mock_get_object(mock_s3_client, b'["a1"]', etag='"abc"')
        assert store.get_versioned("breaking") == (b'["a1"]', '"abc"')
        call_kwargs = mock_s3_client.get_object.call_args[1]
        assert call_kwargs == {"Bucket": "test-bucket", "Key": "breaking"}

    def test_get_propagates_other_errors(self, store, mock_s3_client):
        """Test that errors other than NoSuchKey are raised."""
        from botocore.exceptions import ClientError
        mock_s3_client.get_object.side_effect = self.client_error("AccessDenied", "GetObject")
        with pytest.raises(ClientError):
            store.get("breaking")

    def test_put_writes_object(self, store, mock_s3_client):
        """Test that put stores the value as a JSON object."""
        store.put("categories:World", b'["a1"]')
        call_kwargs = mock_s3_client.put_object.call_args[1]
        assert call_kwargs["Bucket"] == "test-bucket"
        assert call_kwargs["Key"] == "categories:World"
        assert call_kwargs["Body"] == b'["a1"]'
        assert call_kwargs["ContentType"] == "application/json"
        assert "IfMatch" not in call_kwargs

    def test_key_prefix_is_applied(self, mock_s3_client, monkeypatch):
        """Test that the key prefix is prepended on write and stripped on list."""
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "test_key")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "test_secret")
        monkeypatch.setenv("TIGRIS_BUCKET_NAME", "test-bucket")
        from briefly.tigris_kv_store import TigrisKVStore
        store = TigrisKVStore(key_prefix="news_db:")
        store.s3_client = mock_s3_client
        store.put("breaking", b"[]")
        assert mock_s3_client.put_object.call_args[1]["Key"] == "news_db:breaking"

        paginator = mock_s3_client.get_paginator.return_value
        paginator.paginate.return_value = [{"Contents": [{"Key": "news_db:articles:a1"}]}]
        assert store.list_keys("articles:") == ["articles:a1"]
        assert paginator.paginate.call_args[1]["Prefix"] == "news_db:articles:"

    def test_list_keys_across_pages(self, store, mock_s3_client):
        """Test that list_keys collects keys from every page."""
        paginator = mock_s3_client.get_paginator.return_value
        paginator.paginate.return_value = [
            {"Contents": [{"Key": "articles:b"}]},
            {"Contents": [{"Key": "articles:a"}]},
            {},
        ]
        assert store.list_keys("articles:") == ["articles:a", "articles:b"]
        mock_s3_client.get_paginator.assert_called_once_with("list_objects_v2")

    def test_delete(self, store, mock_s3_client):
        """Test that delete removes the object."""
        store.delete("breaking")
        mock_s3_client.delete_object.assert_called_once_with(Bucket="test-bucket", Key="breaking")

    def test_put_if_version_none_requires_absent(self, store, mock_s3_client):
        """Test that creating a key uses If-None-Match."""
        assert store.put_if_version("breaking", b'["a1"]', None) is True
        assert mock_s3_client.put_object.call_args[1]["IfNoneMatch"] == "*"

    def test_put_if_version_uses_if_match(self, store, mock_s3_client):
        """Test that updating a key uses If-Match with the ETag."""
        assert store.put_if_version("breaking", b'["a1"]', '"abc"') is True
        assert mock_s3_client.put_object.call_args[1]["IfMatch"] == '"abc"'

    def test_put_if_version_conflict_returns_false(self, store, mock_s3_client):
        """Test that a failed precondition is reported as a conflict."""
        mock_s3_client.put_object.side_effect = self.client_error("PreconditionFailed", "PutObject")
        assert store.put_if_version("breaking", b'["a1"]', '"abc"') is False

    def test_put_if_version_propagates_other_errors(self, store, mock_s3_client):
        """Test that store failures are not mistaken for conflicts."""
        from botocore.exceptions import ClientError
        mock_s3_client.put_object.side_effect = self.client_error("InternalError", "PutObject")
        with pytest.raises(ClientError):
            store.put_if_version("breaking", b'["a1"]', '"abc"')

    def test_delete_if_version(self, store, mock_s3_client):
        """Test conditional delete with If-Match."""
        assert store.delete_if_version("breaking", '"abc"') is True
        mock_s3_client.delete_object.assert_called_once_with(
            Bucket="test-bucket", Key="breaking", IfMatch='"abc"'
        )

    def test_delete_if_version_conflict_returns_false(self, store, mock_s3_client):
        """Test that a failed delete precondition is reported as a conflict."""
        mock_s3_client.delete_object.side_effect = self.client_error("PreconditionFailed", "DeleteObject")
        assert store.delete_if_version("breaking", '"abc"') is False


class TestKVStoreFactory:
    """Test suite for key-value store factory function."""

    def test_factory_returns_local_by_default(self, monkeypatch, tmp_path):
        """Test factory returns LocalDiskKVStore when KV_STORAGE_TYPE not set."""
        monkeypatch.delenv("KV_STORAGE_TYPE", raising=False)
        from briefly.kv_store_factory import create_kv_store
        from briefly.local_disk_kv_store import LocalDiskKVStore
        store = create_kv_store(state_dir=str(tmp_path))
        assert isinstance(store, LocalDiskKVStore)

    def test_factory_returns_memory(self, monkeypatch):
        """Test factory returns InMemoryKVStore when KV_STORAGE_TYPE=memory."""
        monkeypatch.setenv("KV_STORAGE_TYPE", "Memory")
        from briefly.kv_store_factory import create_kv_store
        from briefly.memory_kv_store import InMemoryKVStore
        assert isinstance(create_kv_store(), InMemoryKVStore)

    def test_factory_returns_tigris(self, monkeypatch):
        """Test factory returns TigrisKVStore when KV_STORAGE_TYPE=tigris."""
        monkeypatch.setenv("KV_STORAGE_TYPE", "tigris")
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "test_key")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "test_secret")
        monkeypatch.setenv("TIGRIS_BUCKET_NAME", "test-bucket")
        from briefly.kv_store_factory import create_kv_store
        from briefly.tigris_kv_store import TigrisKVStore
        assert isinstance(create_kv_store(), TigrisKVStore)

    def test_factory_passes_key_prefix_to_tigris(self, monkeypatch):
        """Test that an explicit key prefix overrides TIGRIS_KEY_PREFIX."""
        monkeypatch.setenv("KV_STORAGE_TYPE", "tigris")
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "test_key")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "test_secret")
        monkeypatch.setenv("TIGRIS_BUCKET_NAME", "test-bucket")
        monkeypatch.setenv("TIGRIS_KEY_PREFIX", "from_env:")
        from briefly.kv_store_factory import create_kv_store
        assert create_kv_store(key_prefix="news_db:").key_prefix == "news_db:"
        assert create_kv_store().key_prefix == "from_env:"


class TestKeyNaming:
    """Keys must match data written by earlier deployments."""

    def test_key_helpers(self):
        from briefly.kv_store import BREAKING_KEY, article_key, category_key, search_key
        assert article_key("abc") == "articles:abc"
        assert category_key("World") == "categories:World"
        assert search_key("election") == "search_index:election"
        assert BREAKING_KEY == "breaking"
