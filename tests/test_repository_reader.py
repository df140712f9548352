"""Tests for RepositoryReader tree assembly, pagination and search."""

import io

import pytest

from filerepo.services import RepositoryReader, RepositoryTreeService

from tests.conftest import auth_context


@pytest.fixture()
def service(db, memory_storage) -> RepositoryTreeService:
    return RepositoryTreeService(db, memory_storage)


@pytest.fixture()
def reader(db, memory_storage) -> RepositoryReader:
    return RepositoryReader(db, memory_storage)


def _upload(service, owner, name, folder_id=None):
    return service.upload_file(owner, folder_id, name, "text/plain", io.BytesIO(b"x"))


class TestMyRepository:

    def test_empty_repository(self, reader, alice):
        result = reader.list_my_repository(alice.id)
        assert result.folders == []
        assert result.files == []

    def test_nests_folders_and_files_at_any_depth(self, service, reader, alice):
        owner = auth_context(alice)
        level = None
        chain = []
        for name in ["L1", "L2", "L3", "L4", "L5"]:
            level = service.create_folder(owner, name, level.id if level else None)
            chain.append(level)
        deep_file = _upload(service, owner, "deep.txt", chain[-1].id)
        root_file = _upload(service, owner, "root.txt")

        result = reader.list_my_repository(alice.id)

        assert [f.folder_name for f in result.folders] == ["L1"]
        assert [f.file_name for f in result.files] == ["root.txt"]
        node = result.folders[0]
        for expected in ["L2", "L3", "L4", "L5"]:
            assert [c.folder_name for c in node.children] == [expected]
            node = node.children[0]
        assert [f.file_name for f in node.files] == ["deep.txt"]
        assert node.files[0].file_url == f"memory://{deep_file.file_path}"
        assert result.files[0].file_url == f"memory://{root_file.file_path}"

    def test_folder_url_derived_from_path(self, service, reader, alice):
        folder = service.create_folder(auth_context(alice), "Photos")
        result = reader.list_my_repository(alice.id)
        assert result.folders[0].path == folder.path
        assert result.folders[0].folder_url == f"memory://{folder.path}"

    def test_only_the_owners_entries(self, service, reader, alice, bob):
        service.create_folder(auth_context(alice), "Mine")
        service.create_folder(auth_context(bob), "Theirs")
        _upload(service, auth_context(bob), "theirs.txt")
        result = reader.list_my_repository(alice.id)
        assert [f.folder_name for f in result.folders] == ["Mine"]
        assert result.files == []


class TestAllRepositories:

    def test_every_node_carries_owner_name(self, service, reader, alice):
        owner = auth_context(alice)
        folder = service.create_folder(owner, "Docs")
        _upload(service, owner, "a.txt", folder.id)
        _upload(service, owner, "b.txt")

        page = reader.list_all_repositories()

        assert len(page.repositories) == 1
        repo = page.repositories[0]
        assert repo.user_full_name == "Alice Martin"
        assert repo.folders[0].user_full_name == "Alice Martin"
        assert repo.folders[0].files[0].user_full_name == "Alice Martin"
        assert repo.files[0].user_full_name == "Alice Martin"

    def test_users_without_entries_are_skipped(self, service, reader, alice, bob):
        service.create_folder(auth_context(bob), "Only Bob")
        page = reader.list_all_repositories()
        assert [r.user_full_name for r in page.repositories] == ["Bob Stone"]

    def test_cursor_pagination(self, service, reader, make_user):
        users = [make_user(f"Owner {i}") for i in range(5)]
        for user in users:
            service.create_folder(auth_context(user), "F")

        first = reader.list_all_repositories(per_page=2)
        assert [r.user_id for r in first.repositories] == [users[0].id, users[1].id]
        assert first.next_cursor == users[1].id

        second = reader.list_all_repositories(cursor=first.next_cursor, per_page=2)
        assert [r.user_id for r in second.repositories] == [users[2].id, users[3].id]

        last = reader.list_all_repositories(cursor=second.next_cursor, per_page=2)
        assert [r.user_id for r in last.repositories] == [users[4].id]
        assert last.next_cursor is None

    def test_search_by_owner_name_returns_whole_tree(self, service, reader, alice, bob):
        owner = auth_context(alice)
        service.create_folder(owner, "One")
        service.create_folder(owner, "Two")
        service.create_folder(auth_context(bob), "Other")

        page = reader.list_all_repositories(search="aLiCe")

        assert [r.user_full_name for r in page.repositories] == ["Alice Martin"]
        assert {f.folder_name for f in page.repositories[0].folders} == {"One", "Two"}

    def test_search_prunes_to_matches_and_ancestors(self, service, reader, alice):
        owner = auth_context(alice)
        projects = service.create_folder(owner, "Projects")
        budget = service.create_folder(owner, "Budget", projects.id)
        service.create_folder(owner, "Unrelated", projects.id)
        _upload(service, owner, "budget-2024.xlsx", budget.id)
        _upload(service, owner, "holiday.jpg")
        reports = service.create_folder(owner, "Quarterly Reports")
        service.create_folder(owner, "Q1", reports.id)

        page = reader.list_all_repositories(search="budget")
        repo = page.repositories[0]

        assert [f.folder_name for f in repo.folders] == ["Projects"]
        assert [c.folder_name for c in repo.folders[0].children] == ["Budget"]
        assert [f.file_name for f in repo.folders[0].children[0].files] == ["budget-2024.xlsx"]
        assert repo.files == []

        page = reader.list_all_repositories(search="REPORTS")
        repo = page.repositories[0]
        assert [f.folder_name for f in repo.folders] == ["Quarterly Reports"]
        assert [c.folder_name for c in repo.folders[0].children] == ["Q1"]

    def test_search_without_match_returns_nothing(self, service, reader, alice):
        service.create_folder(auth_context(alice), "Docs")
        page = reader.list_all_repositories(search="zzz")
        assert page.repositories == []
        assert page.next_cursor is None

    def test_search_treats_wildcards_literally(self, service, reader, alice):
        service.create_folder(auth_context(alice), "Docs")
        page = reader.list_all_repositories(search="%")
        assert page.repositories == []
