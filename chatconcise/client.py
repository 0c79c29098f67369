"""Blocking chat-completion client for the OpenAI-compatible endpoint."""

import getpass
import os

import httpx

from . import fmt
from .errors import (
    ConfigError,
    EmptyResponseError,
    MalformedResponseError,
    TransportError,
)
from .messages import (
    REASONING_MARKERS,
    Content,
    ConversationState,
    Message,
    is_reasoning_model,
)

API_KEY_ENV = "OPENAI_API_KEY"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
MAX_TOKENS = 2048
TEMPERATURE = 0.6


def require_api_key(env_var: str = API_KEY_ENV) -> str:
    """Return the API key from the environment or raise ConfigError."""
    key = os.environ.get(env_var)
    if not key:
        raise ConfigError(
            f"missing API key! Set the {env_var} environment variable and try again."
        )
    return key


def _caller_identity() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


class CompletionClient:
    """Sends the whole conversation and appends the model's reply to it.

    Each complete() call appends two messages to the state: the outgoing user
    turn (before the request goes out) and the assistant reply. Persisting
    the state afterwards is the caller's job.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        max_tokens: int = MAX_TOKENS,
        temperature: float = TEMPERATURE,
        user: str | None = None,
        reasoning_markers=REASONING_MARKERS,
        api_key_env: str = API_KEY_ENV,
        verbose: bool = False,
    ):
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.user = user or _caller_identity()
        self.reasoning_markers = tuple(reasoning_markers)
        self.api_key_env = api_key_env
        self.verbose = verbose

    def build_request(self, state: ConversationState) -> dict:
        """Keyword arguments for litellm.completion, minus the API key."""
        request = dict(
            model=f"openai/{state.model}",
            messages=[m.to_dict() for m in state.messages],
            user=self.user,
            api_base=self.base_url,
        )
        # Reasoning models reject both parameters outright.
        if not is_reasoning_model(state.model, self.reasoning_markers):
            request["max_tokens"] = self.max_tokens
            request["temperature"] = self.temperature
        return request

    def complete(self, state: ConversationState, content: Content) -> Message:
        state.messages.append(Message("user", content))

        import litellm

        litellm.suppress_debug_info = True

        request = self.build_request(state)
        # Read at call time so a rotated key is picked up.
        api_key = require_api_key(self.api_key_env)
        if self.verbose:
            fmt.model_info(
                f"Calling model {request['model']} with {len(state.messages)} messages"
            )

        try:
            response = litellm.completion(**request, api_key=api_key)
        except (litellm.APIConnectionError, litellm.Timeout, httpx.TransportError) as e:
            raise TransportError(f"HTTP request error: {e}")
        except Exception as e:
            raise MalformedResponseError(f"error processing API return: {e}")

        reply = _first_reply(response)
        state.messages.append(reply)
        return reply


def _first_reply(response) -> Message:
    try:
        choices = list(response.choices)
    except (AttributeError, TypeError) as e:
        raise MalformedResponseError(f"completion response has no choices: {e}")
    if not choices:
        raise EmptyResponseError("completion returned no choices")
    try:
        content = choices[0].message.content
    except AttributeError as e:
        raise MalformedResponseError(f"completion choice has no message: {e}")
    if content is None or content == "":
        raise EmptyResponseError("completion returned an empty message")
    if not isinstance(content, str):
        raise MalformedResponseError(
            f"completion message content has type {type(content).__name__}"
        )
    return Message("assistant", content)
