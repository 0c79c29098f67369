"""Exception hierarchy for chatconcise."""


class AgentError(Exception):
    """Raised by the agent loop or setup helpers for reportable runtime failures."""


class ConfigError(AgentError):
    """Raised for invalid configuration (bad config file, missing API key, etc.)."""


class CorruptStateError(AgentError):
    """A persisted session record could not be parsed into a conversation."""


class SessionWriteError(AgentError):
    """A session record could not be written to disk."""


class ModelMismatchError(AgentError):
    """Two conversations for different models cannot be merged."""


class CompletionError(AgentError):
    """The completion endpoint returned something unusable."""


class EmptyResponseError(CompletionError):
    """The completion response carried no candidate reply."""


class MalformedResponseError(CompletionError):
    """The completion response could not be decoded into choices."""


class TransportError(AgentError):
    """Network-level failure talking to the completion endpoint.

    Unlike the other errors this one is recoverable: the conversation on disk
    is untouched, the caller just stops and tells the user.
    """
