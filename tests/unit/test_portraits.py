"""
Unit tests for portrait URL handling and the mock storage client.
"""

import asyncio

import pytest

from teammanager.core.models import Athlete
from teammanager.core.portraits import normalize_photo_url, placeholder_url
from teammanager.infrastructure.storage.client import (
    MockStorageClient,
    StorageError,
    create_storage_client,
    resolve_portrait_url,
)


# ---------------------------------------------------------------------------
# Photo URL Normalization
# ---------------------------------------------------------------------------

class TestNormalizePhotoUrl:
    """Tests for cleaning up stored photo values."""

    def test_drive_share_link_is_rewritten(self):
        url = "https://drive.google.com/file/d/1AbC_d-9/view?usp=sharing"
        assert normalize_photo_url(url) == "https://drive.google.com/uc?id=1AbC_d-9"

    def test_other_urls_pass_through(self):
        assert normalize_photo_url(" https://cdn.example.org/a.jpg ") == "https://cdn.example.org/a.jpg"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_values_mean_no_photo(self, value):
        assert normalize_photo_url(value) is None


class TestPlaceholderUrl:
    def test_uses_quoted_name(self):
        url = placeholder_url(Athlete(fincode=7, name="Rossi Anna"))
        assert url == "https://ui-avatars.com/api/?name=Rossi%20Anna&background=cccccc&color=ffffff&size=40"

    def test_unnamed_athlete_uses_fincode(self):
        assert "name=7&" in placeholder_url(Athlete(fincode=7, name=""))

    def test_custom_template(self):
        assert placeholder_url(Athlete(fincode=1, name="Neri"), "/avatar/{name}") == "/avatar/Neri"


# ---------------------------------------------------------------------------
# Storage and Resolution
# ---------------------------------------------------------------------------

class TestMockStorageClient:
    """Tests for the in-memory storage backend."""

    def test_stored_key_is_presigned(self):
        storage = MockStorageClient()
        storage._seed("portraits/42.png")

        url = asyncio.run(storage.get_presigned_url("portraits/42.png"))

        assert url == "mock://storage/portraits/42.png"

    def test_missing_object_raises(self):
        with pytest.raises(StorageError):
            asyncio.run(MockStorageClient().get_presigned_url("portraits/1.jpg"))

    def test_factory_requires_config_outside_mock_mode(self):
        assert isinstance(create_storage_client(mock_mode=True), MockStorageClient)
        with pytest.raises(ValueError):
            create_storage_client()


class TestResolvePortraitUrl:
    """Tests for choosing the URL to display."""

    def test_stored_portrait_is_presigned(self):
        storage = MockStorageClient()
        storage._seed("portraits/101.jpg")
        athlete = Athlete(fincode=101, name="Bianchi Luca", photo="portraits/101.jpg")

        assert asyncio.run(resolve_portrait_url(storage, athlete)) == "mock://storage/portraits/101.jpg"

    def test_external_photo_passes_through(self):
        athlete = Athlete(fincode=1, name="Neri", photo="https://drive.google.com/file/d/XYZ/view")
        url = asyncio.run(resolve_portrait_url(MockStorageClient(), athlete))
        assert url == "https://drive.google.com/uc?id=XYZ"

    def test_missing_object_falls_back_to_placeholder(self):
        athlete = Athlete(fincode=3, name="Verdi", photo="portraits/3.jpg")
        url = asyncio.run(resolve_portrait_url(MockStorageClient(), athlete))
        assert url.startswith("https://ui-avatars.com/api/?name=Verdi")

    def test_no_photo_falls_back_to_placeholder(self):
        athlete = Athlete(fincode=3, name="Verdi")
        url = asyncio.run(resolve_portrait_url(MockStorageClient(), athlete, "/avatar/{name}"))
        assert url == "/avatar/Verdi"
