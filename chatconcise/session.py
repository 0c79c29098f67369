"""On-disk persistence for conversations, one JSON record per session key."""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from . import messages as _messages
from .errors import CorruptStateError, ModelMismatchError, SessionWriteError
from .messages import ConversationState

logger = logging.getLogger(__name__)

TRANSCRIPT_PREFIX = "gpt_transcript-"
PREVIEW_CHARS = 64


def default_session_key() -> str:
    """Key derived from the invoking shell, so each terminal gets its own session."""
    return str(os.getppid())


@dataclass
class SessionInfo:
    """One persisted session as seen by the management UI."""

    key: str
    path: Path
    preview: str


class SessionStore:
    """Loads and saves ConversationState records under a single directory.

    The directory defaults to the platform temp dir. Writes are atomic for
    this process (temp file + rename) but there is no cross-process locking:
    two invocations sharing a key race and the last writer wins.
    """

    initialize = staticmethod(_messages.initialize)

    def __init__(self, directory: "str | Path | None" = None, prefix: str = TRANSCRIPT_PREFIX):
        self.directory = Path(directory) if directory else Path(tempfile.gettempdir())
        self.prefix = prefix

    def path_for(self, key: str) -> Path:
        return self.directory / f"{self.prefix}{key}"

    def load(self, key: str) -> ConversationState | None:
        """Return the stored conversation, or None if the key has no record."""
        path = self.path_for(key)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CorruptStateError(f"unable to read session file {path}: {e}")
        return self._decode(data, path)

    def _decode(self, data: bytes, path: Path) -> ConversationState:
        try:
            raw = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptStateError(f"unable to parse session file {path}: {e}")
        try:
            return ConversationState.from_dict(raw)
        except CorruptStateError as e:
            raise CorruptStateError(f"{path}: {e}")

    def load_or_initialize(self, key: str, model: str, **init_kwargs) -> ConversationState:
        state = self.load(key)
        if state is None:
            state = self.initialize(model, **init_kwargs)
        return state

    def save(self, key: str, state: ConversationState) -> None:
        path = self.path_for(key)
        payload = json.dumps(state.to_dict())
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", dir=self.directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise SessionWriteError(f"unable to write session file {path}: {e}")

    def clear(self, key: str) -> bool:
        """Remove the record. False means there was nothing to clear."""
        return self.delete(key)

    def delete(self, key: str) -> bool:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            return False
        return True

    # -- Session management --------------------------------------------------

    def list_sessions(self) -> list[SessionInfo]:
        """All records in the directory, sorted by key.

        Unreadable records are still listed so they can be deleted.
        """
        if not self.directory.is_dir():
            return []
        sessions = []
        for path in sorted(self.directory.glob(f"{self.prefix}*")):
            if not path.is_file():
                continue
            key = path.name[len(self.prefix) :]
            try:
                state = self._decode(path.read_bytes(), path)
            except (OSError, CorruptStateError) as e:
                logger.warning("skipping preview for unreadable session %s: %s", path, e)
                preview = "(unreadable)"
            else:
                preview = _preview(state)
            sessions.append(SessionInfo(key=key, path=path, preview=preview))
        return sessions

    @staticmethod
    def merge(into: ConversationState, other: ConversationState) -> int:
        """Append other's turns (minus its priming message) to into.

        Returns the number of messages appended.
        """
        if into.model != other.model:
            raise ModelMismatchError(
                f"cannot merge a {other.model!r} conversation into a {into.model!r} one"
            )
        extra = other.messages[1:]
        into.messages.extend(extra)
        return len(extra)


def _preview(state: ConversationState) -> str:
    """First line of the first turn after the primer, truncated for menus."""
    if len(state.messages) < 2:
        return ""
    lines = state.messages[1].text.splitlines()
    first = lines[0] if lines else ""
    return first[:PREVIEW_CHARS]
