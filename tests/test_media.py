from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from services.media import MediaUploadGateway, UploadStatus


@pytest.fixture()
def minio_client():
    minio_client = MagicMock()
    minio_client.bucket_exists.return_value = True
    minio_client.fput_object.return_value = MagicMock(etag="abc123")
    return minio_client


@pytest.fixture()
def gateway(settings, minio_client):
    return MediaUploadGateway(settings, client=minio_client)


@pytest.fixture()
def local_file(tmp_path):
    path = tmp_path / "avatar.PNG"
    path.write_bytes(b"png")
    return path


@pytest.mark.parametrize("path", [None, ""])
def test_upload_without_path_is_skipped(gateway, minio_client, path):
    result = gateway.upload(path)

    assert result.status is UploadStatus.SKIPPED
    assert not result.ok
    assert result.url is None
    minio_client.fput_object.assert_not_called()


def test_upload_returns_asset(gateway, minio_client, local_file):
    result = gateway.upload(str(local_file))

    assert result.ok
    asset = result.asset
    assert asset.bucket == "media"
    assert asset.object_name.endswith(".png")
    assert asset.content_type == "image/png"
    assert asset.size == 3
    assert asset.etag == "abc123"
    assert result.url == f"http://localhost:9000/media/{asset.object_name}"
    minio_client.fput_object.assert_called_once_with(
        bucket_name="media",
        object_name=asset.object_name,
        file_path=str(local_file),
        content_type="image/png"
    )


def test_unknown_extension_falls_back_to_octet_stream(gateway, tmp_path):
    path = tmp_path / "blob.unknownext"
    path.write_bytes(b"x")

    assert gateway.upload(str(path)).asset.content_type == "application/octet-stream"


def test_missing_bucket_is_created_once(gateway, minio_client, local_file):
    minio_client.bucket_exists.return_value = False

    gateway.upload(str(local_file))
    gateway.upload(str(local_file))

    minio_client.make_bucket.assert_called_once_with("media")


def test_failed_upload_removes_local_file(gateway, minio_client, local_file):
    minio_client.fput_object.side_effect = ConnectionError("host unreachable")

    result = gateway.upload(str(local_file))

    assert result.status is UploadStatus.FAILED
    assert "host unreachable" in result.error
    assert result.url is None
    assert not local_file.exists()


def test_failed_cleanup_is_not_surfaced(gateway, tmp_path):
    result = gateway.upload(str(tmp_path / "missing.png"))

    assert result.status is UploadStatus.FAILED


def test_bucket_allows_anonymous_reads(gateway, minio_client, local_file):
    minio_client.bucket_exists.return_value = False

    gateway.upload(str(local_file))

    minio_client.set_bucket_policy.assert_called_once()
    bucket, policy = minio_client.set_bucket_policy.call_args.args
    statement = json.loads(policy)["Statement"][0]
    assert bucket == "media"
    assert statement["Effect"] == "Allow"
    assert statement["Principal"] == {"AWS": ["*"]}
    assert statement["Action"] == ["s3:GetObject"]
    assert statement["Resource"] == ["arn:aws:s3:::media/*"]
