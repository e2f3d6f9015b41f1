"""Session file tools backed by ``FileStore``.

Every tool returns a JSON payload; expected failures (bad names, missing or
duplicate files) come back as ``{"success": False, "error": ...}`` so the
model can correct itself.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List

from agentrelay.context.file_store import FileStore, FileStoreError
from agentrelay.context.run_context import RunContext, get_current_session
from agentrelay.tools.base import BaseTool, error_result

TODO_FILE_NAME = "todos.md"
DEFAULT_SESSION = "default"

_OPEN_TODO = re.compile(r"^\s*[-*]\s+\[ \]", re.MULTILINE)
_DONE_TODO = re.compile(r"^\s*[-*]\s+\[[xX]\]", re.MULTILINE)


def _session_id(context: RunContext) -> str:
    """Files are shared by the whole conversation, not a single agent session."""
    if context.session_id:
        return context.session_id
    session = get_current_session()
    return session.session_id if session is not None else DEFAULT_SESSION


def _file_name_schema(extra: Dict[str, Any] = None, required: List[str] = None) -> Dict[str, Any]:
    properties = {"fileName": {"type": "string", "description": "Name of the file, without path separators"}}
    properties.update(extra or {})
    return {"type": "object", "properties": properties, "required": ["fileName", *(required or [])]}


class _FileTool(BaseTool):
    def __init__(self, store: FileStore):
        self.store = store

    async def execute(self, args: Dict[str, Any], context: RunContext) -> Any:
        try:
            return self._run(args, _session_id(context))
        except FileStoreError as exc:
            return error_result(str(exc))

    def _run(self, args: Dict[str, Any], session_id: str) -> Dict[str, Any]:
        raise NotImplementedError


class CreateFileTool(_FileTool):
    name = "create_file"
    description = "Create a new file in the session workspace. Fails if the file already exists."
    schema = _file_name_schema(
        {
            "content": {"type": "string", "description": "File content"},
            "mimeType": {"type": "string", "description": "MIME type, default text/plain"},
        },
        ["content"],
    )

    def _run(self, args, session_id):
        stored = self.store.create(
            session_id, args.get("fileName", ""), args.get("content", ""), args.get("mimeType") or "text/plain",
        )
        return {"success": True, "file": stored.to_dict(include_content=False)}


class UpdateFileTool(_FileTool):
    name = "update_file"
    description = "Replace the content of an existing file, or append to it with append=true."
    schema = _file_name_schema(
        {
            "content": {"type": "string", "description": "New content"},
            "append": {"type": "boolean", "description": "Append instead of replacing"},
        },
        ["content"],
    )

    def _run(self, args, session_id):
        stored = self.store.update(
            session_id, args.get("fileName", ""), args.get("content", ""), append=bool(args.get("append")),
        )
        return {"success": True, "file": stored.to_dict(include_content=False)}


class ReadFileTool(_FileTool):
    name = "read_file"
    description = "Read a file from the session workspace."
    schema = _file_name_schema()

    def _run(self, args, session_id):
        file_name = args.get("fileName", "")
        stored = self.store.read(session_id, file_name)
        if stored is None:
            return error_result(f'File "{file_name}" not found')
        return {"success": True, "file": stored.to_dict()}


class DeleteFileTool(_FileTool):
    name = "delete_file"
    description = "Delete a file from the session workspace."
    schema = _file_name_schema()

    def _run(self, args, session_id):
        self.store.delete(session_id, args.get("fileName", ""))
        return {"success": True, "deleted": args.get("fileName")}


class ListFilesTool(_FileTool):
    name = "list_files"
    description = "List files in the session workspace, newest first."
    schema = {"type": "object", "properties": {}}

    def _run(self, args, session_id):
        files = [f.to_dict(include_content=False) for f in self.store.list(session_id)]
        return {"success": True, "files": files, "count": len(files)}


class UpdateTodoTool(_FileTool):
    name = "update_todo"
    description = (
        f"Write the task list to {TODO_FILE_NAME} as a markdown checklist "
        "('- [ ] open item', '- [x] done item'). Replaces the previous list."
    )
    schema = {
        "type": "object",
        "properties": {"todoList": {"type": "string", "description": "Full markdown checklist"}},
        "required": ["todoList"],
    }

    def _run(self, args, session_id):
        todo_list = args.get("todoList") or ""
        if not todo_list.strip():
            return error_result("todoList cannot be empty")
        self.store.upsert(session_id, TODO_FILE_NAME, todo_list, mime_type="text/markdown")
        open_count = len(_OPEN_TODO.findall(todo_list))
        done_count = len(_DONE_TODO.findall(todo_list))
        return {
            "success": True,
            "fileName": TODO_FILE_NAME,
            "total": open_count + done_count,
            "completed": done_count,
            "remaining": open_count,
        }


FILE_TOOL_CLASSES = (
    CreateFileTool,
    UpdateFileTool,
    ReadFileTool,
    DeleteFileTool,
    ListFilesTool,
    UpdateTodoTool,
)


def register_file_tools(registry, store: FileStore) -> List[str]:
    """Register all file tools sharing ``store``; returns their names."""
    names = []
    for tool_cls in FILE_TOOL_CLASSES:
        registry.register(tool_cls.name, lambda cls=tool_cls: cls(store))
        names.append(tool_cls.name)
    return names
