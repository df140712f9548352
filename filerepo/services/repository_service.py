"""Repository tree service — every structural mutation of a user's repository.

This is the only writer of ``Folder.path`` and ``File.file_path``. Each public
operation checks ownership first, then takes the subtree lock, then performs
its physical and database steps in a fixed order:

    create folder   row committed, then directory created
    rename folder   directory moved, then paths rebased and committed
    delete folder   post-order; files, empty directory, then row, per node
    upload file     object written, then row committed (object removed on failure)
    rename file     object moved, then row committed (move undone on failure)
    delete file     object removed, then row

Storage failures never leave this module as storage exceptions: conflicts
become ``ConflictError`` and everything else ``OperationFailedError``.
"""

import logging
from contextlib import contextmanager
from typing import BinaryIO, Callable, Iterator, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import audit_service
from .path_resolver import (
    rebase_path,
    rename_file_path,
    resolve_file_path,
    resolve_folder_path,
    user_root,
)
from ..core.auth import AuthContext
from ..core.config import settings
from ..core.locking import subtree_locks
from ..exceptions import (
    ConflictError,
    DatabaseError,
    OperationFailedError,
    StoredFileNotFoundError,
    ValidationError,
)
from ..models.file import File
from ..models.folder import Folder
from ..repositories.file_repository import FileRepository
from ..repositories.folder_repository import FolderRepository
from ..schemas.folder import MAX_NAME_LENGTH
from ..storage.base import (
    StorageBackend,
    StorageConflictError,
    StorageError,
    StorageNotFoundError,
)

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

# How often a lock acquisition is retried when a concurrent reparent moved
# the target into another subtree while we were waiting.
MAX_LOCK_ATTEMPTS = 3

LockRoots = Tuple[Optional[int], ...]


class RepositoryTreeService:
    """Folder and file mutations, keeping database rows and storage in step.

    Public methods:
        create_folder     -- new empty folder under the root or a parent
        update_folder     -- rename and/or reparent, cascading paths
        delete_folder     -- recursive, bottom-up
        upload_file       -- stream an upload into a folder or the root
        rename_file       -- new display name, regenerated basename
        delete_file       -- object then row
        get_file_for_read -- row plus open stream, for owner or principal
    """

    def __init__(self, db: Session, storage: StorageBackend, max_upload_bytes: Optional[int] = None):
        self.db = db
        self.storage = storage
        self.max_upload_bytes = max_upload_bytes or settings.max_upload_bytes
        self.folder_repo = FolderRepository(db)
        self.file_repo = FileRepository(db)

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def create_folder(self, owner: AuthContext, folder_name: str, parent_id: Optional[int] = None) -> Folder:
        folder_name = _clean_name(folder_name, "folder_name")
        self._owned_folder_or_none(parent_id, owner.user_id, "parent_id")

        with self._locked(owner.user_id, lambda: (self._subtree_of(parent_id, owner.user_id, "parent_id"),)):
            parent = self._owned_folder_or_none(parent_id, owner.user_id, "parent_id")
            path = resolve_folder_path(
                folder_name, parent.path if parent else None, owner.display_name
            )
            if self.folder_repo.path_taken(path):
                raise ConflictError(path)

            try:
                folder = self.folder_repo.create(owner.user_id, folder_name, parent_id, path)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.exception("Failed to insert folder %r for user %s", folder_name, owner.user_id)
                raise DatabaseError("Failed to create folder", e)
            self.db.refresh(folder)

            # The committed row stays if mkdir fails; ensure_directory is
            # idempotent, so a later rename or upload repairs it. A stray
            # object occupying the path is not repairable, so the row goes.
            try:
                with self._storage_errors("create folder", path):
                    self.storage.ensure_directory(path)
            except ConflictError:
                self._drop_unusable_folder(folder)
                raise

        logger.info("Folder created: %s (id=%s)", path, folder.id)
        audit_service.log(self.db, owner.user_id, "create", "folder", folder.id, {"path": path})
        return folder

    def update_folder(
        self,
        folder_id: int,
        owner: AuthContext,
        folder_name: str,
        parent_id: Optional[int] = None,
    ) -> Folder:
        """Rename and/or reparent a folder.

        ``parent_id=None`` places the folder at the owner's root. Every
        descendant folder path and every file path in the subtree is rebased
        onto the new path; suffixes below the folder are kept verbatim.
        """
        folder_name = _clean_name(folder_name, "folder_name")
        self.folder_repo.get_owned(folder_id, owner.user_id)
        self._owned_folder_or_none(parent_id, owner.user_id, "parent_id")

        def roots() -> LockRoots:
            current = self.folder_repo.get_owned(folder_id, owner.user_id)
            return (
                self.folder_repo.root_id(current),
                self._subtree_of(parent_id, owner.user_id, "parent_id"),
            )

        with self._locked(owner.user_id, roots):
            folder = self.folder_repo.get_owned(folder_id, owner.user_id, for_update=True)
            parent = self._owned_folder_or_none(parent_id, owner.user_id, "parent_id")
            if parent is not None:
                self._reject_cycle(folder, parent)

            old_path = folder.path
            new_path = resolve_folder_path(
                folder_name, parent.path if parent else None, owner.display_name
            )
            path_changed = new_path != old_path
            if path_changed and self.folder_repo.path_taken(new_path, exclude_id=folder.id):
                raise ConflictError(new_path)

            subtree = self.folder_repo.load_subtree(folder)
            files = self.file_repo.get_by_folders(f.id for f in subtree)

            moved = False
            if path_changed:
                with self._storage_errors("rename folder", old_path, new_path):
                    if old_path and self.storage.exists(old_path):
                        self.storage.move(old_path, new_path)
                        moved = True
                    else:
                        logger.warning(
                            "Folder %s has no directory at %s, creating %s",
                            folder.id, old_path, new_path,
                        )
                        self.storage.ensure_directory(new_path)

            try:
                folder.folder_name = folder_name
                folder.parent_id = parent.id if parent else None
                if path_changed:
                    for node in subtree:
                        node.path = rebase_path(node.path, old_path, new_path)
                    for record in files:
                        record.file_path = rebase_path(record.file_path, old_path, new_path)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.exception("Failed to persist rename of folder %s", folder.id)
                if moved:
                    self._undo_move(new_path, old_path)
                raise DatabaseError("Failed to update folder", e)
            self.db.refresh(folder)

        if path_changed:
            logger.info(
                "Folder %s moved: %s -> %s (%d folders, %d files rebased)",
                folder.id, old_path, new_path, len(subtree), len(files),
            )
        audit_service.log(
            self.db, owner.user_id, "update", "folder", folder.id,
            {"old_path": old_path, "new_path": new_path, "parent_id": parent_id},
        )
        return folder

    def delete_folder(self, folder_id: int, owner: AuthContext) -> None:
        """Delete a folder with all its subfolders and files.

        The subtree is loaded once and removed bottom-up, committing after
        each folder. Missing objects and directories are tolerated. A database
        error stops the walk; folders already committed stay deleted.
        """
        self.folder_repo.get_owned(folder_id, owner.user_id)

        def roots() -> LockRoots:
            current = self.folder_repo.get_owned(folder_id, owner.user_id)
            return (self.folder_repo.root_id(current),)

        with self._locked(owner.user_id, roots):
            folder = self.folder_repo.get_owned(folder_id, owner.user_id, for_update=True)
            root_path = folder.path
            subtree = self.folder_repo.load_subtree(folder)
            files_by_folder: dict[int, list[File]] = {}
            for record in self.file_repo.get_by_folders(f.id for f in subtree):
                files_by_folder.setdefault(record.folder_id, []).append(record)

            deleted_files = 0
            # Reversed pre-order visits every child before its parent.
            for node in reversed(subtree):
                node_id, node_path = node.id, node.path
                for record in files_by_folder.get(node_id, []):
                    with self._storage_errors("delete folder", record.file_path):
                        self.storage.delete_file(record.file_path)
                    deleted_files += self.db.query(File).filter(File.id == record.id).delete(
                        synchronize_session=False
                    )

                if node_path:
                    self.storage.delete_empty_directory(node_path)

                try:
                    removed = self.db.query(Folder).filter(Folder.id == node_id).delete(
                        synchronize_session=False
                    )
                    self.db.commit()
                except SQLAlchemyError as e:
                    self.db.rollback()
                    logger.exception("Failed to delete folder %s (%s)", node_id, node_path)
                    raise DatabaseError(f"Failed to delete folder {node_id}", e)
                if not removed:
                    logger.warning("Folder %s was already gone", node_id)
                for gone in [node, *files_by_folder.get(node_id, [])]:
                    if gone in self.db:
                        self.db.expunge(gone)

        logger.info(
            "Folder deleted: %s (%d folders, %d files)", root_path, len(subtree), deleted_files
        )
        audit_service.log(
            self.db, owner.user_id, "delete", "folder", folder_id,
            {"path": root_path, "folders": len(subtree), "files": deleted_files},
        )

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def upload_file(
        self,
        owner: AuthContext,
        folder_id: Optional[int],
        file_name: Optional[str],
        mime_type: Optional[str],
        stream: BinaryIO,
    ) -> File:
        """Store an upload in *folder_id* (or the owner's root) and record it.

        Raises:
            ValidationError: Missing name, or folder not owned by the caller.
            FileTooLargeError: The stream exceeds the upload limit; nothing
                is left in storage and no row is written.
        """
        if not file_name or not file_name.strip():
            raise ValidationError("A file is required", field="file")
        file_name = _clean_name(file_name, "file")
        self._owned_folder_or_none(folder_id, owner.user_id, "folder_id")

        with self._locked(owner.user_id, lambda: (self._subtree_of(folder_id, owner.user_id, "folder_id"),)):
            folder = self._owned_folder_or_none(folder_id, owner.user_id, "folder_id")
            directory = folder.path if folder else user_root(owner.display_name)
            path = resolve_file_path(directory, file_name)

            with self._storage_errors("upload file", path):
                self.storage.ensure_directory(directory)
                stored = self.storage.write_uploaded_object(path, stream, self.max_upload_bytes)

            try:
                record = self.file_repo.create(
                    user_id=owner.user_id,
                    folder_id=folder.id if folder else None,
                    file_name=file_name,
                    file_path=stored.path,
                    file_type=mime_type or DEFAULT_MIME_TYPE,
                    file_size=stored.size,
                )
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.exception("Failed to record upload %s, removing stored object", stored.path)
                self._discard_object(stored.path)
                raise DatabaseError("Failed to save file record", e)
            self.db.refresh(record)

        logger.info("File uploaded: %s (%d bytes, id=%s)", record.file_path, record.file_size, record.id)
        audit_service.log(
            self.db, owner.user_id, "upload", "file", record.id,
            {"path": record.file_path, "size": record.file_size},
        )
        return record

    def rename_file(self, file_id: int, owner: AuthContext, file_name: str) -> File:
        """Rename a file. The display name is stored as typed; the on-disk basename
        is regenerated and keeps the stored extension.
        """
        file_name = _clean_name(file_name, "file_name")
        self.file_repo.get_owned(file_id, owner.user_id)

        with self._locked(owner.user_id, lambda: (self._subtree_of_file(file_id, owner.user_id),)):
            record = self.file_repo.get_owned(file_id, owner.user_id, for_update=True)
            old_path = record.file_path
            new_path = rename_file_path(old_path, file_name)

            moved = False
            with self._storage_errors("rename file", old_path, new_path):
                try:
                    self.storage.move(old_path, new_path)
                    moved = True
                except StorageNotFoundError:
                    logger.warning("Stored object missing for file %s: %s", record.id, old_path)

            try:
                record.file_name = file_name
                record.file_path = new_path
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.exception("Failed to persist rename of file %s", file_id)
                if moved:
                    self._undo_move(new_path, old_path)
                raise DatabaseError("Failed to rename file", e)
            self.db.refresh(record)

        logger.info("File renamed: %s -> %s", old_path, new_path)
        audit_service.log(
            self.db, owner.user_id, "rename", "file", record.id,
            {"old_path": old_path, "new_path": new_path},
        )
        return record

    def delete_file(self, file_id: int, owner: AuthContext) -> None:
        self.file_repo.get_owned(file_id, owner.user_id)

        with self._locked(owner.user_id, lambda: (self._subtree_of_file(file_id, owner.user_id),)):
            record = self.file_repo.get_owned(file_id, owner.user_id, for_update=True)
            path = record.file_path
            with self._storage_errors("delete file", path):
                self.storage.delete_file(path)
            try:
                self.db.delete(record)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.exception("Failed to delete file row %s", file_id)
                raise DatabaseError("Failed to delete file", e)

        logger.info("File deleted: %s (id=%s)", path, file_id)
        audit_service.log(self.db, owner.user_id, "delete", "file", file_id, {"path": path})

    def get_file_for_read(self, file_id: int, caller: AuthContext) -> Tuple[File, BinaryIO]:
        """The file row and an open stream of its content.

        Owners may read their own files, principals any file. Everyone else
        gets the same not-found error as for a missing id.
        """
        record = self.file_repo.get_by_id(file_id)
        if record.user_id != caller.user_id and not caller.is_principal:
            raise StoredFileNotFoundError(file_id)
        try:
            stream = self.storage.open_for_read(record.file_path)
        except StorageNotFoundError:
            logger.error("File %s has no stored object at %s", file_id, record.file_path)
            raise StoredFileNotFoundError(file_id)
        except StorageError as e:
            logger.exception("Failed to open %s for reading", record.file_path)
            raise OperationFailedError("read file") from e
        return record, stream

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _locked(self, owner_id: int, roots: Callable[[], LockRoots]) -> Iterator[None]:
        """Hold the subtree locks for the roots computed by *roots*.

        The roots are computed again once the locks are held; if a concurrent
        reparent changed them in the meantime the locks are released and the
        acquisition starts over.
        """
        for attempt in range(1, MAX_LOCK_ATTEMPTS + 1):
            expected = roots()
            with subtree_locks.hold(owner_id, *expected):
                self.db.expire_all()
                if roots() == expected:
                    yield
                    return
            logger.info(
                "Subtree roots changed while waiting for lock (attempt %d/%d)",
                attempt, MAX_LOCK_ATTEMPTS,
            )
        raise ConflictError(path="", message="Folder tree changed concurrently, please retry")

    @contextmanager
    def _storage_errors(self, operation: str, *paths: Optional[str]) -> Iterator[None]:
        """Translate storage exceptions raised in the block into API errors."""
        try:
            yield
        except StorageConflictError as e:
            logger.warning("Storage conflict during %s: %s", operation, e)
            raise ConflictError(e.path or (paths[-1] if paths else "")) from e
        except StorageError as e:
            logger.exception("Storage failure during %s (paths=%s)", operation, paths)
            raise OperationFailedError(operation) from e

    def _owned_folder_or_none(self, folder_id: Optional[int], user_id: int, field: str) -> Optional[Folder]:
        """The folder *folder_id* if it belongs to *user_id*; None for the root."""
        if folder_id is None:
            return None
        folder = self.folder_repo.get_by_id_optional(folder_id)
        if folder is None or folder.user_id != user_id:
            raise ValidationError("Folder does not exist or does not belong to you", field=field)
        return folder

    def _subtree_of(self, folder_id: Optional[int], user_id: int, field: str) -> Optional[int]:
        folder = self._owned_folder_or_none(folder_id, user_id, field)
        return self.folder_repo.root_id(folder) if folder else None

    def _subtree_of_file(self, file_id: int, user_id: int) -> Optional[int]:
        record = self.file_repo.get_owned(file_id, user_id)
        if record.folder_id is None:
            return None
        folder = self.folder_repo.get_by_id_optional(record.folder_id)
        return self.folder_repo.root_id(folder) if folder else None

    def _reject_cycle(self, folder: Folder, new_parent: Folder) -> None:
        """Refuse to place *folder* under itself or one of its descendants."""
        if new_parent.id == folder.id or folder.id in self.folder_repo.ancestor_ids(new_parent):
            raise ValidationError(
                "A folder cannot be moved into itself or one of its subfolders",
                field="parent_id",
            )

    def _undo_move(self, current_path: str, original_path: str) -> None:
        try:
            self.storage.move(current_path, original_path)
            logger.info("Reverted storage move %s -> %s", current_path, original_path)
        except StorageError:
            logger.exception(
                "Could not revert storage move; %s must be moved back to %s by hand",
                current_path, original_path,
            )

    def _drop_unusable_folder(self, folder: Folder) -> None:
        try:
            self.db.delete(folder)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Could not remove folder row %s after storage conflict", folder.id)

    def _discard_object(self, path: str) -> None:
        try:
            self.storage.delete_file(path)
        except StorageError:
            logger.exception("Could not remove orphaned object %s", path)


def _clean_name(name: str, field: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name cannot be empty", field=field)
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Name cannot exceed {MAX_NAME_LENGTH} characters", field=field)
    return name

