"""Repository for folder database operations."""

from typing import Dict, Iterable, List, Optional

from .base import BaseRepository
from ..exceptions import FolderNotFoundError
from ..models.file import File
from ..models.folder import Folder


class FolderRepository(BaseRepository[Folder]):
    """Data access layer for folders."""

    model_class = Folder
    not_found_error = FolderNotFoundError

    def create(self, user_id: int, folder_name: str, parent_id: Optional[int], path: str) -> Folder:
        folder = Folder(
            user_id=user_id,
            folder_name=folder_name,
            parent_id=parent_id,
            path=path,
            is_archived=False,
        )
        self.db.add(folder)
        self.db.flush()
        return folder

    def get_by_user(self, user_id: int) -> List[Folder]:
        return (
            self.db.query(Folder)
            .filter(Folder.user_id == user_id)
            .order_by(Folder.folder_name, Folder.id)
            .all()
        )

    def get_by_users(self, user_ids: Iterable[int]) -> List[Folder]:
        return (
            self.db.query(Folder)
            .filter(Folder.user_id.in_(list(user_ids)))
            .order_by(Folder.folder_name, Folder.id)
            .all()
        )

    def path_taken(self, path: str, exclude_id: Optional[int] = None) -> bool:
        """True if another folder, or any file, already uses *path*."""
        query = self.db.query(Folder.id).filter(Folder.path == path)
        if exclude_id is not None:
            query = query.filter(Folder.id != exclude_id)
        if query.first() is not None:
            return True
        return self.db.query(File.id).filter(File.file_path == path).first() is not None

    def load_subtree(self, root: Folder) -> List[Folder]:
        """Load *root* and all its descendants, parents before children.

        Loads the owner's folders once and walks the parent index in memory
        instead of issuing one query per level.
        """
        children_by_parent: Dict[Optional[int], List[Folder]] = {}
        for folder in self.get_by_user(root.user_id):
            children_by_parent.setdefault(folder.parent_id, []).append(folder)

        ordered: List[Folder] = []
        stack = [root]
        while stack:
            folder = stack.pop()
            ordered.append(folder)
            stack.extend(reversed(children_by_parent.get(folder.id, [])))
        return ordered

    def ancestor_ids(self, folder: Folder) -> List[int]:
        """IDs from *folder*'s parent up to its top-level ancestor."""
        ids: List[int] = []
        seen = {folder.id}
        parent_id = folder.parent_id
        while parent_id is not None and parent_id not in seen:
            ids.append(parent_id)
            seen.add(parent_id)
            parent = self.get_by_id_optional(parent_id)
            parent_id = parent.parent_id if parent else None
        return ids

    def root_id(self, folder: Folder) -> int:
        """ID of the top-level folder *folder* belongs to (itself if top-level)."""
        ancestors = self.ancestor_ids(folder)
        return ancestors[-1] if ancestors else folder.id
