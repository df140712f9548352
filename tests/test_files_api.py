"""Tests for upload, rename, delete, download and preview endpoints."""

from tests.conftest import auth_headers

MiB = 1024 * 1024


def _upload(client, user, name="notes.txt", data=b"hello", mime="text/plain", folder_id=None):
    form = {"folder_id": str(folder_id)} if folder_id is not None else {}
    return client.post(
        "/api/files",
        files={"file": (name, data, mime)},
        data=form,
        headers=auth_headers(user),
    )


class TestUpload:

    def test_upload_to_root(self, client, alice, storage):
        resp = _upload(client, alice, "photo.jpg", b"x" * (5 * MiB), "image/jpeg")
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["file_path"].startswith("user_Alice_Martin/")
        assert data["file_path"].endswith("_photo.jpg")
        assert data["file_name"] == "photo.jpg"
        assert data["file_size"] == 5 * MiB
        assert data["file_type"] == "image/jpeg"
        assert data["folder_id"] is None
        assert data["file_url"] == f"http://testserver/storage/{data['file_path']}"
        assert storage.exists(data["file_path"])

    def test_same_name_twice(self, client, alice):
        first = _upload(client, alice, "dup.txt").json()
        second = _upload(client, alice, "dup.txt").json()
        assert first["file_path"] != second["file_path"]

    def test_upload_into_folder(self, client, alice):
        folder = client.post(
            "/api/folders", json={"folder_name": "Inbox"}, headers=auth_headers(alice)
        ).json()
        resp = _upload(client, alice, folder_id=folder["id"])
        assert resp.status_code == 201
        assert resp.json()["file_path"].startswith(folder["path"] + "/")

    def test_into_other_users_folder_is_400(self, client, alice, bob):
        theirs = client.post(
            "/api/folders", json={"folder_name": "Theirs"}, headers=auth_headers(bob)
        ).json()
        resp = _upload(client, alice, folder_id=theirs["id"])
        assert resp.status_code == 400

    def test_too_large_is_413(self, client, alice, storage, db):
        resp = _upload(client, alice, "huge.bin", b"x" * (11 * MiB), "application/octet-stream")
        assert resp.status_code == 413
        assert resp.json()["error"] == "FILE_TOO_LARGE"
        tree = client.get("/api/my-repository", headers=auth_headers(alice)).json()
        assert tree["files"] == []
        assert not storage.exists("user_Alice_Martin") or not any(
            (storage.root / "user_Alice_Martin").iterdir()
        )

    def test_missing_file_part_is_422(self, client, alice):
        resp = client.post("/api/files", data={}, headers=auth_headers(alice))
        assert resp.status_code == 422

    def test_public_locator_is_served(self, client, alice):
        data = _upload(client, alice, "public.txt", b"public bytes").json()
        resp = client.get(data["file_url"])
        assert resp.status_code == 200
        assert resp.content == b"public bytes"


class TestRenameAndDelete:

    def test_rename_keeps_stored_extension(self, client, alice, storage):
        data = _upload(client, alice, "draft.pdf", b"%PDF", "application/pdf").json()
        resp = client.post(
            f"/api/files/{data['id']}", json={"file_name": "Final"}, headers=auth_headers(alice)
        )
        assert resp.status_code == 200
        renamed = resp.json()
        assert renamed["file_name"] == "Final"
        assert renamed["file_path"].endswith("_Final.pdf")
        assert storage.exists(renamed["file_path"])
        assert not storage.exists(data["file_path"])

        download = client.get(f"/api/files/{data['id']}/download", headers=auth_headers(alice))
        assert 'filename="Final.pdf"' in download.headers["content-disposition"]

    def test_other_user_cannot_rename(self, client, alice, bob):
        data = _upload(client, alice, "mine.txt").json()
        resp = client.post(
            f"/api/files/{data['id']}", json={"file_name": "theirs"}, headers=auth_headers(bob)
        )
        assert resp.status_code == 404
        assert resp.json()["error"] == "FILE_NOT_FOUND"
        tree = client.get("/api/my-repository", headers=auth_headers(alice)).json()
        assert tree["files"][0]["file_path"] == data["file_path"]

    def test_delete(self, client, alice, storage):
        data = _upload(client, alice).json()
        resp = client.delete(f"/api/files/{data['id']}", headers=auth_headers(alice))
        assert resp.status_code == 204
        assert not storage.exists(data["file_path"])
        resp = client.delete(f"/api/files/{data['id']}", headers=auth_headers(alice))
        assert resp.status_code == 404


class TestDownloadAndPreview:

    def test_download_is_attachment(self, client, alice):
        data = _upload(client, alice, "report 2024.csv", b"a,b\n1,2\n", "text/csv").json()
        resp = client.get(f"/api/files/{data['id']}/download", headers=auth_headers(alice))
        assert resp.status_code == 200
        assert resp.content == b"a,b\n1,2\n"
        disposition = resp.headers["content-disposition"]
        assert disposition.startswith("attachment;")
        assert "report%202024.csv" in disposition

    def test_preview_is_inline_with_stored_type(self, client, alice):
        data = _upload(client, alice, "pic.png", b"\x89PNG", "image/png").json()
        resp = client.get(f"/api/files/{data['id']}/preview", headers=auth_headers(alice))
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert resp.headers["content-disposition"].startswith("inline;")

    def test_non_ascii_name_in_header(self, client, alice):
        data = _upload(client, alice, "résumé.txt", b"cv").json()
        resp = client.get(f"/api/files/{data['id']}/download", headers=auth_headers(alice))
        assert "filename*=UTF-8''r%C3%A9sum%C3%A9.txt" in resp.headers["content-disposition"]

    def test_principal_can_download(self, client, alice, principal):
        data = _upload(client, alice).json()
        resp = client.get(f"/api/files/{data['id']}/download", headers=auth_headers(principal))
        assert resp.status_code == 200

    def test_other_user_cannot_download(self, client, alice, bob):
        data = _upload(client, alice).json()
        resp = client.get(f"/api/files/{data['id']}/download", headers=auth_headers(bob))
        assert resp.status_code == 404
