"""
Session-scoped in-memory file storage shared by the file tools.
Lets a writer agent draft, revise and list documents without touching disk.
"""

from typing import Any, Dict, Optional, List
from datetime import datetime
from dataclasses import dataclass, field
import threading
from loguru import logger

MAX_FILE_NAME_LENGTH = 255


class FileStoreError(Exception):
    """Raised for invalid file names and create/update/delete conflicts."""


@dataclass
class StoredFile:
    """Single file in a session's storage with metadata."""
    file_name: str
    content: str
    mime_type: str = "text/plain"
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def size(self) -> int:
        return len(self.content.encode("utf-8"))

    def to_dict(self, include_content: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "fileName": self.file_name,
            "mimeType": self.mime_type,
            "size": self.size,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
        if include_content:
            data["content"] = self.content
        return data


def validate_file_name(file_name: str) -> None:
    """Reject empty names, path separators and names longer than 255 characters."""
    if not file_name or not file_name.strip():
        raise FileStoreError("File name cannot be empty")
    if "/" in file_name or "\\" in file_name:
        raise FileStoreError("File name cannot contain path separators")
    if len(file_name) > MAX_FILE_NAME_LENGTH:
        raise FileStoreError(f"File name cannot exceed {MAX_FILE_NAME_LENGTH} characters")


class FileStore:
    """Thread-safe file storage partitioned by session id.

    Files live in memory for the lifetime of the store. Every operation takes
    a ``session_id`` so concurrent conversations never see each other's files.
    """

    def __init__(self):
        self._files: Dict[str, Dict[str, StoredFile]] = {}
        self._lock = threading.RLock()
        logger.debug("Initialized FileStore")

    def _bucket(self, session_id: str) -> Dict[str, StoredFile]:
        return self._files.setdefault(session_id, {})

    def create(
        self,
        session_id: str,
        file_name: str,
        content: str,
        mime_type: str = "text/plain",
    ) -> StoredFile:
        """Create a new file; fails if it already exists."""
        validate_file_name(file_name)
        with self._lock:
            bucket = self._bucket(session_id)
            if file_name in bucket:
                raise FileStoreError(f'File "{file_name}" already exists')
            stored = StoredFile(file_name=file_name, content=content, mime_type=mime_type)
            bucket[file_name] = stored
            logger.debug(f"Created file '{file_name}' in session {session_id} ({stored.size} bytes)")
            return stored

    def update(self, session_id: str, file_name: str, content: str, append: bool = False) -> StoredFile:
        """Replace (or append to) an existing file's content."""
        validate_file_name(file_name)
        with self._lock:
            stored = self._bucket(session_id).get(file_name)
            if stored is None:
                raise FileStoreError(f'File "{file_name}" not found')
            stored.content = stored.content + content if append else content
            stored.updated_at = datetime.now()
            logger.debug(f"Updated file '{file_name}' in session {session_id} (append={append})")
            return stored

    def upsert(self, session_id: str, file_name: str, content: str, mime_type: str = "text/plain") -> StoredFile:
        """Create the file or overwrite it if present."""
        with self._lock:
            if self.exists(session_id, file_name):
                return self.update(session_id, file_name, content)
            return self.create(session_id, file_name, content, mime_type)

    def read(self, session_id: str, file_name: str) -> Optional[StoredFile]:
        validate_file_name(file_name)
        with self._lock:
            return self._bucket(session_id).get(file_name)

    def delete(self, session_id: str, file_name: str) -> None:
        validate_file_name(file_name)
        with self._lock:
            bucket = self._bucket(session_id)
            if file_name not in bucket:
                raise FileStoreError(f'File "{file_name}" not found')
            del bucket[file_name]
            logger.debug(f"Deleted file '{file_name}' from session {session_id}")

    def exists(self, session_id: str, file_name: str) -> bool:
        with self._lock:
            return file_name in self._files.get(session_id, {})

    def list(self, session_id: str) -> List[StoredFile]:
        """Files of a session, newest first."""
        with self._lock:
            files = list(self._files.get(session_id, {}).values())
        return sorted(files, key=lambda f: f.created_at, reverse=True)

    def clear(self, session_id: Optional[str] = None) -> None:
        """Drop one session's files, or everything when no session is given."""
        with self._lock:
            if session_id is None:
                count = sum(len(b) for b in self._files.values())
                self._files.clear()
            else:
                count = len(self._files.pop(session_id, {}))
            logger.debug(f"Cleared {count} files from FileStore")
