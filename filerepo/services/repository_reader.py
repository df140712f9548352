"""Read-only assembly of repository trees for presentation.

Folders and files are loaded in two queries per request and nested in
memory, so tree depth never costs extra round trips. Every node gets its
public locator from the storage backend.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..models.file import File
from ..models.folder import Folder
from ..models.user import User
from ..repositories.file_repository import FileRepository
from ..repositories.folder_repository import FolderRepository
from ..schemas.repository import (
    AllRepositoriesResponse,
    FileNode,
    FolderNode,
    MyRepositoryResponse,
    UserRepository,
)
from ..storage.base import StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 20


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class RepositoryReader:
    """Builds nested folder/file trees. Never writes."""

    def __init__(self, db: Session, storage: StorageBackend):
        self.db = db
        self.storage = storage
        self.folder_repo = FolderRepository(db)
        self.file_repo = FileRepository(db)

    def list_my_repository(self, owner_id: int) -> MyRepositoryResponse:
        """The owner's top-level folders (fully nested) and root files."""
        folders = self.folder_repo.get_by_user(owner_id)
        files = self.file_repo.get_by_user(owner_id)
        roots, root_files = self._build_forest(folders, files)
        return MyRepositoryResponse(folders=roots, files=root_files)

    def list_all_repositories(
        self,
        search: Optional[str] = None,
        cursor: Optional[int] = None,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> AllRepositoriesResponse:
        """One page of owners with their trees, for principals.

        Pages over users that own at least one folder or file, ordered by id.
        With *search*, an owner whose name matches keeps the whole tree; other
        owners are included only if some folder or file name matches, and
        their tree is pruned to the matches and their ancestors.
        """
        term = (search or "").strip().lower()
        owners = self._owner_page(term, cursor, per_page + 1)
        has_more = len(owners) > per_page
        owners = owners[:per_page]

        owner_ids = [u.id for u in owners]
        folders_by_owner: Dict[int, List[Folder]] = {}
        for folder in self.folder_repo.get_by_users(owner_ids) if owner_ids else []:
            folders_by_owner.setdefault(folder.user_id, []).append(folder)
        files_by_owner: Dict[int, List[File]] = {}
        for record in self.file_repo.get_by_users(owner_ids) if owner_ids else []:
            files_by_owner.setdefault(record.user_id, []).append(record)

        repositories = []
        for user in owners:
            folders = folders_by_owner.get(user.id, [])
            files = files_by_owner.get(user.id, [])
            if term and term not in user.full_name.lower():
                folders, files = _prune_to_matches(folders, files, term)
            roots, root_files = self._build_forest(folders, files, user.full_name)
            repositories.append(UserRepository(
                user_id=user.id,
                user_full_name=user.full_name,
                folders=roots,
                files=root_files,
            ))

        next_cursor = owners[-1].id if has_more and owners else None
        logger.debug(
            "Listed %d repositories (search=%r, cursor=%s, next=%s)",
            len(repositories), term, cursor, next_cursor,
        )
        return AllRepositoriesResponse(
            repositories=repositories, per_page=per_page, next_cursor=next_cursor
        )

    # ------------------------------------------------------------------

    def _owner_page(self, term: str, cursor: Optional[int], limit: int) -> List[User]:
        owns_folder = select(Folder.user_id)
        owns_file = select(File.user_id)
        query = self.db.query(User).filter(
            or_(User.id.in_(owns_folder), User.id.in_(owns_file))
        )
        if term:
            pattern = f"%{_escape_like(term)}%"
            query = query.filter(
                or_(
                    User.full_name.ilike(pattern, escape="\\"),
                    User.id.in_(select(Folder.user_id).where(Folder.folder_name.ilike(pattern, escape="\\"))),
                    User.id.in_(select(File.user_id).where(File.file_name.ilike(pattern, escape="\\"))),
                )
            )
        if cursor is not None:
            query = query.filter(User.id > cursor)
        return query.order_by(User.id).limit(limit).all()

    def _build_forest(
        self,
        folders: List[Folder],
        files: List[File],
        owner_name: Optional[str] = None,
    ) -> Tuple[List[FolderNode], List[FileNode]]:
        """Nest *folders* and *files* into trees.

        A folder whose parent is not in *folders* becomes a root; so does a
        file whose folder is not present.
        """
        present = {f.id for f in folders}
        children: Dict[Optional[int], List[Folder]] = {}
        for folder in folders:
            parent = folder.parent_id if folder.parent_id in present else None
            children.setdefault(parent, []).append(folder)
        files_in: Dict[Optional[int], List[File]] = {}
        for record in files:
            key = record.folder_id if record.folder_id in present else None
            files_in.setdefault(key, []).append(record)

        def build(folder: Folder) -> FolderNode:
            return FolderNode(
                id=folder.id,
                user_id=folder.user_id,
                folder_name=folder.folder_name,
                parent_id=folder.parent_id,
                path=folder.path,
                is_archived=bool(folder.is_archived),
                created_at=folder.created_at,
                updated_at=folder.updated_at,
                folder_url=self.storage.public_locator(folder.path) if folder.path else None,
                user_full_name=owner_name,
                children=[build(child) for child in children.get(folder.id, [])],
                files=[self._file_node(r, owner_name) for r in files_in.get(folder.id, [])],
            )

        roots = [build(folder) for folder in children.get(None, [])]
        root_files = [self._file_node(r, owner_name) for r in files_in.get(None, [])]
        return roots, root_files

    def _file_node(self, record: File, owner_name: Optional[str]) -> FileNode:
        return FileNode(
            id=record.id,
            user_id=record.user_id,
            folder_id=record.folder_id,
            file_name=record.file_name,
            file_path=record.file_path,
            file_type=record.file_type,
            file_size=record.file_size,
            is_archived=bool(record.is_archived),
            created_at=record.created_at,
            updated_at=record.updated_at,
            file_url=self.storage.public_locator(record.file_path),
            user_full_name=owner_name,
        )


def _prune_to_matches(
    folders: Iterable[Folder], files: Iterable[File], term: str
) -> Tuple[List[Folder], List[File]]:
    """Keep matching nodes, their ancestors, and the full subtree of matching folders."""
    folders = list(folders)
    files = list(files)
    by_id = {f.id: f for f in folders}
    children: Dict[int, List[int]] = {}
    for f in folders:
        if f.parent_id is not None:
            children.setdefault(f.parent_id, []).append(f.id)

    def ancestors(folder_id: Optional[int]) -> Set[int]:
        found: Set[int] = set()
        while folder_id is not None and folder_id in by_id and folder_id not in found:
            found.add(folder_id)
            folder_id = by_id[folder_id].parent_id
        return found

    expanded: Set[int] = set()
    for f in folders:
        if term in f.folder_name.lower():
            stack = [f.id]
            while stack:
                current = stack.pop()
                if current not in expanded:
                    expanded.add(current)
                    stack.extend(children.get(current, []))

    kept_files = [
        r for r in files
        if term in r.file_name.lower() or r.folder_id in expanded
    ]

    keep: Set[int] = set()
    for folder_id in expanded:
        keep |= ancestors(folder_id)
    for r in kept_files:
        keep |= ancestors(r.folder_id)

    return [f for f in folders if f.id in keep], kept_files
