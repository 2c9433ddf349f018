"""Tests for profile photo storage."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import pytest
from botocore.exceptions import ClientError

from clubauth.core.exceptions import ValidationError
from clubauth.services.file_storage import (
    ImageData,
    PhotoUploadError,
    ProfilePhotoStorage,
    is_absolute_url,
    is_data_uri,
    parse_image_data_uri,
)


@pytest.fixture
def s3_settings(settings):
    return settings.model_copy(update={"s3_access_key": "key", "s3_secret_key": "secret"})


@pytest.fixture
def mock_s3():
    s3 = AsyncMock()
    s3.put_object = AsyncMock(return_value={})
    s3.delete_object = AsyncMock(return_value={})
    return s3


@pytest.fixture
def storage(s3_settings, clock, mock_s3, monkeypatch):
    photos = ProfilePhotoStorage(s3_settings, clock=clock)

    @asynccontextmanager
    async def fake_client():
        yield mock_s3

    monkeypatch.setattr(photos, "get_client", fake_client)
    return photos


def client_error(operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, operation)


@pytest.mark.unit
class TestDataUris:
    def test_parse_png(self):
        image = parse_image_data_uri("data:image/png;base64,aGVsbG8=")

        assert image == ImageData(subtype="png", content=b"hello")
        assert image.content_type == "image/png"

    def test_not_a_data_uri(self):
        assert parse_image_data_uri("https://example.com/a.png") is None
        assert parse_image_data_uri("data:text/plain;base64,aGVsbG8=") is None

    def test_bad_base64(self):
        with pytest.raises(ValidationError):
            parse_image_data_uri("data:image/png;base64,@@@@")

    def test_classifiers(self):
        assert is_data_uri("data:image/jpeg;base64,xx")
        assert not is_data_uri("https://example.com")
        assert is_absolute_url("https://example.com/a.png")
        assert is_absolute_url("http://example.com/a.png")
        assert not is_absolute_url("ftp://example.com/a.png")


@pytest.mark.unit
class TestKeys:
    def test_key_from_extension(self, storage, clock):
        key = storage.build_key("user-1", ImageData("jpeg", b"x"))

        assert key == f"profiles/user-1-{int(clock.now * 1000)}.jpeg"

    def test_key_from_filename_is_sanitized(self, storage, clock):
        key = storage.build_key("user-1", ImageData("png", b"x"), "../my photo!.png")

        assert key == f"profiles/user-1-{int(clock.now * 1000)}-my_photo_.png"

    def test_url_round_trip(self, storage):
        url = storage.public_url("profiles/a.png")

        assert url == "https://profile-photos.sctcoding.club/profiles/a.png"
        assert storage.key_from_url(url) == "profiles/a.png"

    def test_foreign_url_has_no_key(self, storage):
        assert storage.key_from_url("https://elsewhere.example/profiles/a.png") is None


@pytest.mark.unit
class TestUploadAndDelete:
    async def test_upload(self, storage, mock_s3, clock):
        url = await storage.upload("user-1", ImageData("png", b"hello"))

        key = f"profiles/user-1-{int(clock.now * 1000)}.png"
        assert url == f"https://profile-photos.sctcoding.club/{key}"
        mock_s3.put_object.assert_awaited_once_with(
            Bucket="profile-photos", Key=key, Body=b"hello", ContentType="image/png"
        )

    async def test_upload_failure(self, storage, mock_s3):
        mock_s3.put_object.side_effect = client_error("PutObject")

        with pytest.raises(PhotoUploadError):
            await storage.upload("user-1", ImageData("png", b"hello"))

    async def test_upload_without_configuration(self, settings):
        photos = ProfilePhotoStorage(settings)

        with pytest.raises(PhotoUploadError):
            await photos.upload("user-1", ImageData("png", b"hello"))

    async def test_delete_own_photo(self, storage, mock_s3):
        deleted = await storage.delete_by_url(
            "https://profile-photos.sctcoding.club/profiles/old.png"
        )

        assert deleted is True
        mock_s3.delete_object.assert_awaited_once_with(
            Bucket="profile-photos", Key="profiles/old.png"
        )

    async def test_delete_foreign_photo_is_noop(self, storage, mock_s3):
        assert await storage.delete_by_url("https://etlab.example/photo.jpg") is False
        mock_s3.delete_object.assert_not_called()

    async def test_delete_failure_is_logged_not_raised(self, storage, mock_s3):
        mock_s3.delete_object.side_effect = client_error("DeleteObject")

        assert (
            await storage.delete_by_url("https://profile-photos.sctcoding.club/profiles/old.png")
            is False
        )
