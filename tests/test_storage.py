from unittest.mock import MagicMock

from app.services.storage import BlobStorage, build_storage_path, safe_filename


def test_storage_path():
    assert build_storage_path("bot-1", "My Report (v2).pdf", now_ms=1700000000000) == \
        "documents/bot-1/1700000000000_My_Report__v2_.pdf"

def test_safe_filename():
    assert safe_filename("a b/c.txt") == "a_b_c.txt"

def test_disabled_storage_is_a_noop():
    storage = BlobStorage(None)
    assert not storage.enabled
    assert storage.put("p", b"x", "text/plain") is False
    storage.remove("p")

def test_put_and_remove_use_bucket():
    client = MagicMock()
    storage = BlobStorage(client, bucket="kb")
    assert storage.put("documents/b/1_a.txt", b"abc", "text/plain") is True
    client.storage.from_.assert_called_with("kb")
    client.storage.from_.return_value.upload.assert_called_once()
    storage.remove("documents/b/1_a.txt")
    client.storage.from_.return_value.remove.assert_called_once_with(["documents/b/1_a.txt"])

def test_failures_are_swallowed():
    client = MagicMock()
    client.storage.from_.return_value.upload.side_effect = RuntimeError("bucket missing")
    client.storage.from_.return_value.remove.side_effect = RuntimeError("bucket missing")
    storage = BlobStorage(client)
    assert storage.put("p", b"x", "text/plain") is False
    storage.remove("p")
