"""Session management UI and the editor-based history view."""

import os
import shutil
import subprocess

from . import fmt, prompts
from .errors import AgentError, ModelMismatchError
from .messages import ConversationState, Message
from .session import SessionStore

HISTORY_FILE_NAME = "ask_hist"
DELETE_ALL_OPTION = ">>> Delete All Conversations"
SESSION_ACTIONS = ["Delete", "Copy to Current Conversation", "Cancel"]


def last_message_text(state: ConversationState) -> str | None:
    last = state.last()
    return last.text if last is not None else None


def _horizontal_line(ch: str) -> str:
    columns = shutil.get_terminal_size((80, 24)).columns
    return ch * columns


def render_history(messages: list[Message]) -> str:
    chunks = []
    for message in messages:
        body = message.text
        if message.has_image:
            body += "\n[image attached]"
        chunks.append(
            "\n\n"
            + _horizontal_line("▃")
            + f"▍{message.role} ▐\n"
            + _horizontal_line("▀")
            + "\n"
            + body
        )
    return "".join(chunks)


def show_history(state: ConversationState, directory) -> None:
    """Open the conversation in $EDITOR (default: more), then clean up."""
    path = directory / HISTORY_FILE_NAME
    try:
        path.write_text(render_history(state.messages), encoding="utf-8")
    except OSError as e:
        raise AgentError(f"unable to write history file {path}: {e}")
    editor = os.environ.get("EDITOR") or "more"
    try:
        subprocess.run([editor, str(path)])
    except OSError as e:
        raise AgentError(f"failed to open editor {editor!r}: {e}")
    finally:
        path.unlink(missing_ok=True)


def _delete_all(store: SessionStore, keys: list[str]) -> None:
    if not prompts.confirm("Are you sure you want to delete all conversations?"):
        print("Operation cancelled.")
        return
    deleted = 0
    for key in keys:
        try:
            if store.delete(key):
                deleted += 1
        except OSError as e:
            fmt.error(f"failed to delete {store.path_for(key)}: {e}")
    print(f"Deleted {deleted} conversation(s).")


def manage_sessions(
    store: SessionStore, current_key: str, current: ConversationState
) -> None:
    sessions = store.list_sessions()
    if not sessions:
        print("No conversations to manage!")
        return

    options = [DELETE_ALL_OPTION] + [
        f"{info.path.name} => {info.preview}" for info in sessions
    ]
    index = prompts.select("Select an option to manage", options)
    if index is None:
        return
    if index == 0:
        _delete_all(store, [info.key for info in sessions])
        return

    selected = sessions[index - 1]
    action = prompts.select("Choose an action", SESSION_ACTIONS)
    if action == 0:
        try:
            store.delete(selected.key)
        except OSError as e:
            print(f"Failed to delete conversation: {e}")
        else:
            print("Conversation deleted successfully.")
    elif action == 1:
        other = store.load(selected.key)
        if other is None:
            print("Conversation no longer exists.")
            return
        try:
            store.merge(current, other)
        except ModelMismatchError:
            print("Cannot copy conversation: Model mismatch.")
            return
        store.save(current_key, current)
        print("Conversation copied successfully.")
    else:
        print("Action cancelled.")
