"""Run-scoped context: execution context, cancellation and session file storage."""

from agentrelay.context.run_context import (
    RunCancelledError,
    RunContext,
    get_current_session,
    reset_current_session,
    set_current_session,
)
from agentrelay.context.file_store import FileStore, FileStoreError, StoredFile

__all__ = [
    "RunCancelledError",
    "RunContext",
    "get_current_session",
    "reset_current_session",
    "set_current_session",
    "FileStore",
    "FileStoreError",
    "StoredFile",
]
