import base64
from datetime import datetime
from unittest.mock import MagicMock

from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from notehub.drive import stamped_name, upload_image


def _http_error(status=403):
    resp = MagicMock(status=status, reason="Forbidden")
    return HttpError(resp, b'{"error": {"message": "denied"}}')


def _drive(existing_folder=True):
    svc = MagicMock()
    files = svc.files.return_value
    files.get.return_value.execute.return_value = {"parents": ["parent-1"]}
    files.list.return_value.execute.return_value = {
        "files": [{"id": "folder-1", "name": "notehub-images"}] if existing_folder else []
    }
    files.create.return_value.execute.side_effect = [
        *([] if existing_folder else [{"id": "folder-new", "name": "notehub-images"}]),
        {"id": "file-1"},
    ]
    return svc


def _upload(svc, domain=None, data=None):
    return upload_image(
        None,
        "sheet-1",
        "notehub-images",
        "photo.png",
        "image/png",
        data or base64.b64encode(b"png-bytes").decode(),
        share_domain=domain,
        service=svc,
    )


def test_stamped_name():
    now = datetime(2024, 1, 2, 3, 4, 5)
    assert stamped_name("photo.png", now) == "20240102_030405_photo.png"
    assert stamped_name("archive.tar.gz", now) == "20240102_030405_archive.tar.gz"
    assert stamped_name("README", now) == "20240102_030405_README"


def test_upload_into_existing_folder_with_domain_sharing():
    svc = _drive()

    result = _upload(svc, domain="example.com")

    assert result.success
    assert result.file_id == "file-1"
    assert result.file_url == "https://lh3.googleusercontent.com/d/file-1"
    assert result.file_path.startswith("notehub-images/")
    assert result.file_path.endswith("_photo.png")
    create = svc.files.return_value.create.call_args.kwargs
    assert create["body"]["parents"] == ["folder-1"]
    perms = svc.permissions.return_value.create.call_args_list
    assert len(perms) == 1
    assert perms[0].kwargs["body"]["type"] == "domain"


def test_missing_folder_is_created_next_to_spreadsheet():
    svc = _drive(existing_folder=False)

    result = _upload(svc)

    assert result.success
    folder_call = svc.files.return_value.create.call_args_list[0].kwargs
    assert folder_call["body"]["parents"] == ["parent-1"]
    assert folder_call["body"]["mimeType"] == "application/vnd.google-apps.folder"
    perms = svc.permissions.return_value.create.call_args_list
    assert [p.kwargs["body"]["type"] for p in perms] == ["anyone"]


def test_domain_sharing_falls_back_to_anyone():
    svc = _drive()
    svc.permissions.return_value.create.return_value.execute.side_effect = [_http_error(), {}]

    result = _upload(svc, domain="example.com")

    assert result.success
    perms = svc.permissions.return_value.create.call_args_list
    assert [p.kwargs["body"]["type"] for p in perms] == ["domain", "anyone"]


def test_sharing_failure_is_reported():
    svc = _drive()
    svc.permissions.return_value.create.return_value.execute.side_effect = _http_error()

    result = _upload(svc)

    assert not result.success
    assert "sharing" in result.error


def test_invalid_base64_is_rejected_without_calls():
    svc = _drive()

    result = _upload(svc, data="***not base64***")

    assert not result.success
    assert result.error.startswith("invalid image data")
    svc.files.assert_not_called()


def test_upload_error_is_reported():
    svc = _drive()
    svc.files.return_value.get.return_value.execute.side_effect = _http_error(404)

    result = _upload(svc)

    assert not result.success
    assert result.error.startswith("upload failed")


def test_expired_credentials_are_reported():
    svc = _drive()
    svc.files.return_value.get.return_value.execute.side_effect = RefreshError("invalid_grant")

    result = _upload(svc)

    assert not result.success
    assert "invalid_grant" in result.error


def test_socket_error_during_sharing_is_reported():
    svc = _drive()
    svc.permissions.return_value.create.return_value.execute.side_effect = ConnectionResetError("reset")

    result = _upload(svc)

    assert not result.success
    assert "sharing" in result.error


def test_response_without_file_id_is_reported():
    svc = _drive()
    svc.files.return_value.create.return_value.execute.side_effect = [{}]

    result = _upload(svc)

    assert not result.success
    assert result.error.startswith("upload failed")
