"""Tests for the file store and stub build generator."""

import pytest

from appbuilder.errors import StorageError, ValidationError
from appbuilder.services.build_artifacts import StubBuildGenerator
from appbuilder.services.file_store import FileStore, validate_package_name


class TestFileStore:
    @pytest.mark.asyncio
    async def test_save_icon_upload(self, file_store: FileStore):
        stored = await file_store.save_upload("icon", "logo.png", b"\x89PNG")
        assert stored.relative_path.startswith("icons/")
        assert stored.relative_path.endswith("-logo.png")
        assert stored.absolute_path.read_bytes() == b"\x89PNG"

    @pytest.mark.asyncio
    async def test_save_splash_upload(self, file_store: FileStore):
        stored = await file_store.save_upload("splash", "splash.jpg", b"jpg")
        assert stored.relative_path.startswith("splash/")

    @pytest.mark.asyncio
    async def test_unknown_kind_goes_to_others(self, file_store: FileStore):
        stored = await file_store.save_upload("banner", "b.png", b"x")
        assert stored.relative_path.startswith("others/")

    @pytest.mark.asyncio
    async def test_upload_name_cannot_escape_root(self, file_store: FileStore):
        stored = await file_store.save_upload("icon", "../../etc/passwd", b"x")
        assert stored.relative_path.startswith("icons/")
        assert ".." not in stored.relative_path
        assert file_store.root in stored.absolute_path.parents

    @pytest.mark.asyncio
    async def test_write_artifact_overwrites(self, file_store: FileStore):
        await file_store.write_artifact("com.acme.app", "apk", b"first")
        stored = await file_store.write_artifact("com.acme.app", "apk", b"second")
        assert stored.relative_path == "builds/com.acme.app.apk"
        assert stored.absolute_path.read_bytes() == b"second"

    @pytest.mark.asyncio
    async def test_write_artifact_rejects_unsafe_package(self, file_store: FileStore):
        with pytest.raises(ValidationError):
            await file_store.write_artifact("../evil", "apk", b"x")

    @pytest.mark.asyncio
    async def test_write_failure_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = FileStore(blocker)
        with pytest.raises(StorageError):
            await store.write_artifact("com.acme.app", "apk", b"x")

    def test_public_url(self, file_store: FileStore):
        url = file_store.public_url("builds/com.acme.app.apk", "http://host:5000/")
        assert url == "http://host:5000/uploads/builds/com.acme.app.apk"

    @pytest.mark.parametrize("name", ["com.acme.app", "app_1", "a-b.c"])
    def test_valid_package_names(self, name):
        assert validate_package_name(name) == name

    @pytest.mark.parametrize("name", ["", ".hidden", "a/b", "a\\b", "a b"])
    def test_invalid_package_names(self, name):
        with pytest.raises(ValidationError):
            validate_package_name(name)


class TestStubBuildGenerator:
    @pytest.mark.asyncio
    async def test_generates_apk_marker(self, builder: StubBuildGenerator):
        stored = await builder.generate("com.acme.app", "apk")
        assert stored.relative_path == "builds/com.acme.app.apk"
        content = stored.absolute_path.read_text()
        assert content.startswith("APK build for com.acme.app at ")

    @pytest.mark.asyncio
    async def test_generates_aab_marker(self, builder: StubBuildGenerator):
        stored = await builder.generate("com.acme.app", "aab")
        assert stored.relative_path == "builds/com.acme.app.aab"
        assert "AAB build for com.acme.app" in stored.absolute_path.read_text()

    @pytest.mark.asyncio
    async def test_rejects_unknown_kind(self, builder: StubBuildGenerator):
        with pytest.raises(ValueError):
            await builder.generate("com.acme.app", "ipa")
