# tests/test_media.py

import io

import pytest
from starlette.datastructures import UploadFile
from storefront_api import media, settings

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + b"\x00" * 64
WEBP_BYTES = b"RIFF\x24\x00\x00\x00WEBPVP8 " + b"\x00" * 64


@pytest.fixture(name="upload_dir")
def upload_dir_fixture(tmp_path, monkeypatch):
    directory = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(directory))
    return directory


def test_validate_png(tmp_path):
    path = tmp_path / "receipt.jpg"  # extension is ignored
    path.write_bytes(PNG_BYTES)
    check = media.validate_file_type(str(path))
    assert check.valid
    assert check.mime == "image/png"


def test_validate_webp(tmp_path):
    path = tmp_path / "receipt.webp"
    path.write_bytes(WEBP_BYTES)
    assert media.validate_file_type(str(path)).mime == "image/webp"


def test_validate_unknown_content(tmp_path):
    path = tmp_path / "receipt.png"
    path.write_bytes(b"plain text pretending to be an image")
    check = media.validate_file_type(str(path))
    assert not check.valid
    assert check.reason == "File type could not be determined."


def test_validate_disallowed_type(tmp_path):
    path = tmp_path / "receipt.png"
    path.write_bytes(PNG_BYTES)
    check = media.validate_file_type(str(path), allowed_mime_types=["image/jpeg"])
    assert not check.valid
    assert check.reason == "Unsupported file type: image/png"


def test_validate_missing_file(tmp_path):
    check = media.validate_file_type(str(tmp_path / "nope.png"))
    assert not check.valid
    assert check.reason.startswith("Error reading file:")


def test_save_upload_uses_random_name(upload_dir):
    upload = UploadFile(file=io.BytesIO(PNG_BYTES), filename="../../Receipt.PNG")
    path = media.save_upload(upload)

    assert path.startswith(str(upload_dir))
    assert path.endswith(".png")
    assert "Receipt" not in path
    with open(path, "rb") as stored:
        assert stored.read() == PNG_BYTES


def test_public_url_round_trip(upload_dir):
    path = str(upload_dir / "abc.png")
    url = media.public_url(path)
    assert url == f"{settings.PUBLIC_BASE_URL.rstrip('/')}/uploads/abc.png"
    assert media.local_path(url) == path


def test_remove_file_is_best_effort(upload_dir):
    upload_dir.mkdir()
    path = upload_dir / "abc.png"
    path.write_bytes(PNG_BYTES)

    assert media.remove_file(str(path)) is True
    assert not path.exists()
    assert media.remove_file(str(path)) is False
