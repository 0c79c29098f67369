"""Conversation data model: messages, content parts and session state."""

from dataclasses import dataclass, field

from .errors import CorruptStateError

DEFAULT_MODEL = "o1-mini"
REASONING_MARKERS = ("o1-",)
ROLES = ("system", "user", "assistant")
VISION_DETAIL = "high"

PRIMING_PROMPT = (
    "You are ChatConcise, a very advanced LLM designed for experienced users. "
    "As ChatConcise you oblige to adhere to the following directives UNLESS "
    "overridden by the user:\n"
    "Be concise, proactive, helpful and efficient. Do not say anything more than "
    "what needed, but also, DON'T BE LAZY. Provide ONLY code when an "
    "implementation is needed. DO NOT USE MARKDOWN."
)


@dataclass
class TextPart:
    text: str

    def to_dict(self) -> dict:
        return {"type": "text", "text": self.text}


@dataclass
class ImagePart:
    """Base64-encoded image attached to a user turn."""

    data: str
    media_type: str = "image/png"
    detail: str = VISION_DETAIL

    def to_dict(self) -> dict:
        return {
            "type": "image_url",
            "image_url": {
                "url": f"data:{self.media_type};base64,{self.data}",
                "detail": self.detail,
            },
        }


Part = TextPart | ImagePart
Content = str | list[Part]


def _part_from_dict(raw) -> Part:
    if not isinstance(raw, dict):
        raise ValueError(f"content part must be an object, got {type(raw).__name__}")
    kind = raw.get("type")
    if kind == "text":
        text = raw.get("text")
        if not isinstance(text, str):
            raise ValueError("text part is missing its text")
        return TextPart(text)
    if kind == "image_url":
        image = raw.get("image_url")
        if not isinstance(image, dict) or not isinstance(image.get("url"), str):
            raise ValueError("image part is missing its url")
        url = image["url"]
        header, sep, data = url.partition(";base64,")
        if not sep or not header.startswith("data:"):
            raise ValueError("image part url is not a base64 data url")
        return ImagePart(
            data=data,
            media_type=header.removeprefix("data:"),
            detail=image.get("detail", VISION_DETAIL),
        )
    raise ValueError(f"unknown content part type {kind!r}")


@dataclass
class Message:
    role: str
    content: Content

    @property
    def text(self) -> str:
        """Plain text of the message; image parts contribute nothing."""
        if isinstance(self.content, str):
            return self.content
        return "".join(p.text for p in self.content if isinstance(p, TextPart))

    @property
    def has_image(self) -> bool:
        return not isinstance(self.content, str) and any(
            isinstance(p, ImagePart) for p in self.content
        )

    def to_dict(self) -> dict:
        if isinstance(self.content, str):
            content = self.content
        else:
            content = [p.to_dict() for p in self.content]
        return {"role": self.role, "content": content}

    @classmethod
    def from_dict(cls, raw) -> "Message":
        """Build a Message from its JSON form, raising ValueError on bad shape."""
        if not isinstance(raw, dict):
            raise ValueError(f"message must be an object, got {type(raw).__name__}")
        role = raw.get("role")
        if role not in ROLES:
            raise ValueError(f"invalid role {role!r}")
        content = raw.get("content")
        if isinstance(content, str):
            if not content:
                raise ValueError(f"{role} message has empty content")
            return cls(role, content)
        if isinstance(content, list):
            if not content:
                raise ValueError(f"{role} message has no content parts")
            return cls(role, [_part_from_dict(p) for p in content])
        raise ValueError(f"{role} message content has type {type(content).__name__}")


@dataclass
class ConversationState:
    model: str
    messages: list[Message] = field(default_factory=list)

    def last(self) -> Message | None:
        return self.messages[-1] if self.messages else None

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, raw) -> "ConversationState":
        """Rebuild a conversation; any shape problem is a CorruptStateError."""
        if not isinstance(raw, dict):
            raise CorruptStateError("session record is not a JSON object")
        model = raw.get("model")
        messages = raw.get("messages")
        if not isinstance(model, str) or not model:
            raise CorruptStateError("session record has no model")
        if not isinstance(messages, list) or not messages:
            raise CorruptStateError("session record has no messages")
        try:
            parsed = [Message.from_dict(m) for m in messages]
        except ValueError as e:
            raise CorruptStateError(f"session record has an invalid message: {e}")
        return cls(model=model, messages=parsed)


def is_reasoning_model(model: str, markers=REASONING_MARKERS) -> bool:
    """Reasoning models reject sampling params and take the primer as a user turn."""
    return any(marker in model for marker in markers)


def initialize(
    model: str,
    *,
    priming_prompt: str = PRIMING_PROMPT,
    reasoning_markers=REASONING_MARKERS,
) -> ConversationState:
    """Fresh conversation holding only the priming message."""
    role = "user" if is_reasoning_model(model, reasoning_markers) else "system"
    return ConversationState(model=model, messages=[Message(role, priming_prompt)])
