"""Tests for the folder and repository tree endpoints."""

from tests.conftest import auth_headers


def _create(client, user, name, parent_id=None):
    resp = client.post(
        "/api/folders",
        json={"folder_name": name, "parent_id": parent_id},
        headers=auth_headers(user),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestAuthRequired:

    def test_my_repository_requires_token(self, client):
        resp = client.get("/api/my-repository")
        assert resp.status_code == 401
        assert resp.json()["error"] == "UNAUTHORIZED"

    def test_invalid_token_rejected(self, client):
        resp = client.get("/api/my-repository", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_create_folder_requires_token(self, client):
        resp = client.post("/api/folders", json={"folder_name": "X"})
        assert resp.status_code == 401


class TestFolderEndpoints:

    def test_create_folder(self, client, alice, storage):
        data = _create(client, alice, "Tax Returns")
        assert data["folder_name"] == "Tax Returns"
        assert data["path"] == "user_Alice_Martin/Tax_Returns"
        assert data["folder_url"] == "http://testserver/storage/user_Alice_Martin/Tax_Returns"
        assert storage.exists(data["path"])

    def test_blank_name_is_422(self, client, alice):
        resp = client.post("/api/folders", json={"folder_name": "  "}, headers=auth_headers(alice))
        assert resp.status_code == 422

    def test_parent_of_another_user_is_400(self, client, alice, bob):
        theirs = _create(client, bob, "Bob's")
        resp = client.post(
            "/api/folders",
            json={"folder_name": "Mine", "parent_id": theirs["id"]},
            headers=auth_headers(alice),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "VALIDATION_ERROR"

    def test_duplicate_is_409(self, client, alice):
        _create(client, alice, "Same")
        resp = client.post("/api/folders", json={"folder_name": "Same"}, headers=auth_headers(alice))
        assert resp.status_code == 409
        assert resp.json()["error"] == "CONFLICT"

    def test_rename_folder(self, client, alice, storage):
        folder = _create(client, alice, "Old")
        child = _create(client, alice, "Child", folder["id"])
        resp = client.post(
            f"/api/folders/{folder['id']}",
            json={"folder_name": "New"},
            headers=auth_headers(alice),
        )
        assert resp.status_code == 200
        assert resp.json()["path"] == "user_Alice_Martin/New"
        assert storage.exists("user_Alice_Martin/New/Child")
        assert not storage.exists(child["path"])

    def test_rename_other_users_folder_is_404(self, client, alice, bob):
        theirs = _create(client, bob, "Theirs")
        resp = client.post(
            f"/api/folders/{theirs['id']}",
            json={"folder_name": "Stolen"},
            headers=auth_headers(alice),
        )
        assert resp.status_code == 404
        assert resp.json()["error"] == "FOLDER_NOT_FOUND"

    def test_move_into_descendant_is_400(self, client, alice):
        parent = _create(client, alice, "Parent")
        child = _create(client, alice, "Child", parent["id"])
        resp = client.post(
            f"/api/folders/{parent['id']}",
            json={"folder_name": "Parent", "parent_id": child["id"]},
            headers=auth_headers(alice),
        )
        assert resp.status_code == 400

    def test_delete_folder(self, client, alice, storage):
        folder = _create(client, alice, "Doomed")
        _create(client, alice, "Inner", folder["id"])
        resp = client.delete(f"/api/folders/{folder['id']}", headers=auth_headers(alice))
        assert resp.status_code == 204
        assert not storage.exists(folder["path"])
        tree = client.get("/api/my-repository", headers=auth_headers(alice)).json()
        assert tree["folders"] == []

    def test_delete_missing_folder_is_404(self, client, alice):
        resp = client.delete("/api/folders/424242", headers=auth_headers(alice))
        assert resp.status_code == 404


class TestMyRepository:

    def test_round_trip(self, client, alice):
        created = _create(client, alice, "Photos")
        resp = client.get("/api/my-repository", headers=auth_headers(alice))
        assert resp.status_code == 200
        folders = resp.json()["folders"]
        assert len(folders) == 1
        assert folders[0]["id"] == created["id"]
        assert folders[0]["folder_url"].endswith("/" + created["path"])
        assert folders[0]["children"] == []
        assert folders[0]["files"] == []


class TestAllRepositories:

    def test_principal_only(self, client, alice):
        resp = client.get("/api/all-repositories", headers=auth_headers(alice))
        assert resp.status_code == 403
        assert resp.json()["error"] == "FORBIDDEN"

    def test_principal_sees_everyone(self, client, alice, bob, principal):
        _create(client, alice, "A")
        _create(client, bob, "B")
        resp = client.get("/api/all-repositories", headers=auth_headers(principal))
        assert resp.status_code == 200
        data = resp.json()
        assert [r["user_full_name"] for r in data["repositories"]] == ["Alice Martin", "Bob Stone"]
        assert data["per_page"] == 20
        assert data["next_cursor"] is None

    def test_search_and_paging_parameters(self, client, alice, bob, principal):
        _create(client, alice, "Invoices")
        _create(client, bob, "Music")
        resp = client.get(
            "/api/all-repositories",
            params={"search": "invoice", "per_page": 1},
            headers=auth_headers(principal),
        )
        data = resp.json()
        assert [r["user_full_name"] for r in data["repositories"]] == ["Alice Martin"]
        assert data["repositories"][0]["folders"][0]["user_full_name"] == "Alice Martin"

    def test_per_page_bounds(self, client, principal):
        resp = client.get("/api/all-repositories", params={"per_page": 0}, headers=auth_headers(principal))
        assert resp.status_code == 422
