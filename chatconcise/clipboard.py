"""Attach a clipboard screenshot to a user turn."""

import base64
import subprocess

from .errors import AgentError, ConfigError
from .messages import VISION_DETAIL, ImagePart, Part, TextPart

CLIPBOARD_COMMAND_XORG = "xclip -selection clipboard -t image/png -o"
CLIPBOARD_COMMAND_WAYLAND = "wl-paste"


def detect_clipboard_command() -> str | None:
    """Pick the clipboard reader for the running display server, if any."""
    try:
        proc = subprocess.run(["ps", "-A"], capture_output=True)
    except OSError:
        return None
    processes = proc.stdout.decode("utf-8", errors="replace").lower()
    if "xorg" in processes:
        return CLIPBOARD_COMMAND_XORG
    if "wayland" in processes:
        return CLIPBOARD_COMMAND_WAYLAND
    return None


def attach_clipboard_image(
    text: str, command: str | None, detail: str = VISION_DETAIL
) -> list[Part]:
    if command is None:
        raise ConfigError(
            "unsupported OS/DE combination. Only Xorg and Wayland are supported."
        )
    try:
        proc = subprocess.run(
            ["/bin/sh", "-c", command], capture_output=True, stdin=subprocess.DEVNULL
        )
    except OSError as e:
        raise AgentError(f"failed to execute clipboard command: {e}")
    if proc.returncode != 0 or not proc.stdout:
        stderr = proc.stderr.decode("utf-8", errors="replace").strip()
        raise AgentError(f"clipboard holds no PNG image{': ' + stderr if stderr else ''}")
    data = base64.b64encode(proc.stdout).decode("ascii")
    return [TextPart(text), ImagePart(data=data, detail=detail)]
