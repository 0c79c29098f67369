import argparse
import enum
import subprocess
import sys
from dataclasses import dataclass
from importlib import metadata
from pathlib import Path

import tiktoken

from . import fmt
from .client import CompletionClient, require_api_key
from .config import _UNSET, apply_config_to_args, generate_config, load_config
from .directives import Completed, Directive, parse_reply
from .errors import AgentError, TransportError
from .messages import PRIMING_PROMPT, Content, ConversationState
from .session import SessionStore, default_session_key
from .shell import format_command_output, format_spawn_failure, run_shell_command

_encoder = tiktoken.get_encoding("cl100k_base")

DIRECTIVE_REQUEST = (
    "Original task: {task}. Suggest the next command to run. Format your response "
    "as: COMMAND: <command> followed by an explanation. Or say DONE if the task is "
    "complete."
)
REJECTION_MESSAGE = (
    "Command was rejected by user.\nFEEDBACK: {comment}\n\nPlease suggest an alternative."
)


class LoopState(enum.Enum):
    AWAITING_DIRECTIVE = "awaiting_directive"
    AWAITING_APPROVAL = "awaiting_approval"
    EXECUTING = "executing"
    DONE = "done"


@dataclass
class LoopResult:
    """Outcome of run_agent_loop.

    reason is "done", "max_iterations" or "transport"; final_state is where
    the loop was when it stopped.
    """

    completed: bool
    iterations: int
    reason: str
    final_state: LoopState


def estimate_tokens(state: ConversationState) -> int:
    """Rough token count of the conversation, for diagnostics only."""
    total = sum(len(_encoder.encode(m.text)) for m in state.messages)
    # Per-message overhead (role, separators), ~4 tokens each
    return total + 4 * len(state.messages)


def exchange(
    state: ConversationState,
    content: Content,
    *,
    client: CompletionClient,
    store: SessionStore,
    session_key: str,
    verbose: bool = False,
):
    """One request/response round trip, persisted once the reply is appended."""
    if isinstance(content, str) and not content.strip():
        raise AgentError("refusing to send an empty message")
    if verbose:
        with fmt.llm_spinner():
            reply = client.complete(state, content)
    else:
        reply = client.complete(state, content)
    store.save(session_key, state)
    return reply


def _latest_reply(state: ConversationState):
    last = state.last()
    if last is None or last.role != "assistant":
        return parse_reply("")
    return parse_reply(last.text)


def run_agent_loop(
    state: ConversationState,
    task: str,
    *,
    client: CompletionClient,
    store: SessionStore,
    session_key: str,
    approver,
    executor=run_shell_command,
    max_iterations: int | None = None,
    command_timeout: float | None = None,
    verbose: bool = True,
) -> LoopResult:
    """Drive the propose / approve / execute cycle until the model says DONE.

    Mutates `state` (every exchange appends a user and an assistant message)
    and persists it after each reply. With max_iterations=None the loop only
    ends on the completion marker or a transport failure.

    `approver` needs confirm(command) -> bool and comment() -> str.
    `executor(command, timeout=...)` returns an object with stdout/stderr and
    raises OSError when the command cannot be spawned.
    """
    iterations = 0

    def _send(content: str) -> None:
        exchange(
            state,
            content,
            client=client,
            store=store,
            session_key=session_key,
            verbose=verbose,
        )
        if verbose:
            fmt.assistant_text(state.messages[-1].text)

    loop_state = LoopState.AWAITING_DIRECTIVE
    try:
        while True:
            reply = _latest_reply(state)
            if isinstance(reply, Completed):
                loop_state = LoopState.DONE
                break
            if max_iterations is not None and iterations >= max_iterations:
                if verbose:
                    fmt.completion(iterations, "max_iterations")
                return LoopResult(False, iterations, "max_iterations", loop_state)

            iterations += 1
            if verbose:
                fmt.turn_header(iterations, max_iterations, estimate_tokens(state))

            loop_state = LoopState.AWAITING_DIRECTIVE
            if not isinstance(reply, Directive):
                _send(DIRECTIVE_REQUEST.format(task=task))
                reply = _latest_reply(state)
                if isinstance(reply, Completed):
                    loop_state = LoopState.DONE
                    break
                if not isinstance(reply, Directive):
                    fmt.warning("no COMMAND: line in the reply, asking again.")
                    continue

            loop_state = LoopState.AWAITING_APPROVAL
            command = reply.command
            if verbose:
                fmt.proposed_command(command)

            if not approver.confirm(command):
                comment = approver.comment()
                if verbose:
                    fmt.command_rejected(comment)
                _send(REJECTION_MESSAGE.format(comment=comment))
                continue

            loop_state = LoopState.EXECUTING
            try:
                result = executor(command, timeout=command_timeout)
            except (OSError, subprocess.TimeoutExpired) as e:
                fmt.spawn_failure(str(e))
                _send(format_spawn_failure(e))
                continue

            feedback = format_command_output(result)
            if verbose:
                fmt.command_output(feedback)
            _send(feedback)
    except TransportError as e:
        fmt.error(str(e))
        if verbose:
            fmt.completion(iterations, "transport")
        return LoopResult(False, iterations, "transport", loop_state)

    if verbose:
        fmt.completion(iterations, "ok")
    return LoopResult(True, iterations, "done", loop_state)


def perform_request(
    state: ConversationState,
    content: Content,
    *,
    client: CompletionClient,
    store: SessionStore,
    session_key: str,
    verbose: bool = False,
) -> str:
    """Single-shot request: send, persist, return the reply text."""
    reply = exchange(
        state,
        content,
        client=client,
        store=store,
        session_key=session_key,
        verbose=verbose,
    )
    return reply.text


def build_parser():
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ask",
        usage="%(prog)s [options] [input ...]",
        description="Terminal LLM caller with a persistent per-shell conversation.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print the version and exit.",
    )
    parser.add_argument(
        "input",
        nargs="*",
        help="The user turn. Read from stdin when omitted and stdin is piped.",
    )
    parser.add_argument(
        "-r",
        dest="recursive",
        action="store_true",
        help="Interactive agent mode: propose, approve and run commands for the task.",
    )
    parser.add_argument(
        "-l",
        dest="last",
        action="store_true",
        help="Print the last message of the current conversation.",
    )
    parser.add_argument(
        "-c",
        dest="clear",
        action="store_true",
        help="Clear the current conversation.",
    )
    parser.add_argument(
        "-o",
        dest="manage",
        action="store_true",
        help="Manage ongoing conversations.",
    )
    parser.add_argument(
        "-i",
        dest="image",
        action="store_true",
        help="Push an image from the clipboard into the request.",
    )
    parser.add_argument(
        "--session",
        default=None,
        metavar="KEY",
        help="Conversation key (default: the parent shell's PID).",
    )
    parser.add_argument(
        "--session-dir",
        default=_UNSET,
        metavar="DIR",
        help="Directory holding conversation files (default: system temp dir).",
    )
    parser.add_argument(
        "--model",
        default=_UNSET,
        help="Model for new conversations (default: o1-mini).",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=_UNSET,
        help="Stop agent mode after N iterations (default: no limit).",
    )
    parser.add_argument(
        "--command-timeout",
        type=int,
        default=_UNSET,
        metavar="SECONDS",
        help="Kill approved commands after SECONDS (default: no timeout).",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=_UNSET,
        help="Suppress diagnostics; only print replies.",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Print a commented config template and exit.",
    )

    color_group = parser.add_mutually_exclusive_group()
    color_group.add_argument(
        "--color",
        action="store_true",
        default=_UNSET,
        help="Force ANSI color even when stderr is not a TTY.",
    )
    color_group.add_argument(
        "--no-color",
        action="store_true",
        default=_UNSET,
        help="Disable ANSI color even when stderr is a TTY.",
    )

    return parser


def read_input(args) -> str | None:
    """Positional words joined by spaces, else piped stdin, else None.

    Blank input counts as no input.
    """
    if args.input:
        text = " ".join(args.input)
    elif not sys.stdin.isatty():
        text = sys.stdin.read()
    else:
        return None
    return text if text.strip() else None


def main():
    parser = build_parser()
    args = parser.parse_args()

    if args.version:
        try:
            version = metadata.version("chatconcise")
        except metadata.PackageNotFoundError:
            version = "unknown"
        print(version)
        sys.exit(0)

    if args.init_config:
        print(generate_config())
        sys.exit(0)

    try:
        apply_config_to_args(args, load_config(Path.cwd()))
        if args.max_iterations is not None and args.max_iterations < 1:
            parser.error("--max-iterations must be at least 1")
        if args.command_timeout is not None and args.command_timeout < 1:
            parser.error("--command-timeout must be at least 1")
        args.verbose = not args.quiet
        fmt.init(color=args.color, no_color=args.no_color)
        require_api_key()
        sys.exit(_run_main(args))
    except KeyboardInterrupt:
        fmt.warning("interrupted.")
        sys.exit(130)
    except AgentError as e:
        fmt.error(str(e))
        sys.exit(1)


def _run_main(args) -> int:
    from .clipboard import attach_clipboard_image, detect_clipboard_command
    from .manage import last_message_text, manage_sessions, show_history

    store = SessionStore(args.session_dir)
    session_key = args.session or default_session_key()
    user_input = read_input(args)
    no_input = user_input is None

    # -c must work on a record that no longer parses
    if args.clear and no_input and not args.recursive and not args.manage:
        if store.clear(session_key):
            print("Conversation cleared.")
        else:
            print("No conversation to clear.")
        return 0

    state = store.load_or_initialize(
        session_key,
        args.model,
        priming_prompt=args.priming_prompt or PRIMING_PROMPT,
        reasoning_markers=tuple(args.reasoning_markers),
    )
    client = CompletionClient(
        base_url=args.base_url,
        max_tokens=args.max_tokens,
        temperature=args.temperature,
        reasoning_markers=args.reasoning_markers,
        verbose=args.verbose,
    )

    if args.recursive:
        from .prompts import TerminalApprover

        result = run_agent_loop(
            state,
            user_input or "",
            client=client,
            store=store,
            session_key=session_key,
            approver=TerminalApprover(),
            max_iterations=args.max_iterations,
            command_timeout=args.command_timeout,
            verbose=args.verbose,
        )
        if result.completed:
            return 0
        if result.reason == "max_iterations":
            fmt.warning("max iterations reached, agent stopped.")
            return 2
        return 1
    if args.manage and no_input:
        manage_sessions(store, session_key, state)
        return 0
    if args.last and no_input:
        text = last_message_text(state)
        if text is not None:
            print(text)
        return 0

    if no_input:
        show_history(state, store.directory)
        return 0

    content: Content = user_input
    if args.image:
        content = attach_clipboard_image(
            user_input, detect_clipboard_command(), detail=args.vision_detail
        )

    try:
        answer = perform_request(
            state,
            content,
            client=client,
            store=store,
            session_key=session_key,
            verbose=args.verbose,
        )
    except TransportError as e:
        fmt.error(str(e))
        return 1
    print(answer)
    return 0


if __name__ == "__main__":
    main()
