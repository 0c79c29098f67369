"""chatconcise: a terminal LLM caller with a human-approved command loop."""

from .client import CompletionClient
from .errors import AgentError, ConfigError, TransportError
from .messages import ConversationState, Message
from .session import SessionStore

__all__ = [
    "AgentError",
    "CompletionClient",
    "ConfigError",
    "ConversationState",
    "Message",
    "SessionStore",
    "TransportError",
]
