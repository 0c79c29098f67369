"""Tests for the conversation data model."""

import pytest

from chatconcise.errors import CorruptStateError
from chatconcise.messages import (
    PRIMING_PROMPT,
    ConversationState,
    ImagePart,
    Message,
    TextPart,
    initialize,
    is_reasoning_model,
)


class TestInitialize:
    def test_reasoning_model_primes_as_user(self):
        state = initialize("o1-mini")
        assert len(state.messages) == 1
        assert state.messages[0].role == "user"
        assert state.messages[0].content == PRIMING_PROMPT

    def test_other_model_primes_as_system(self):
        state = initialize("gpt-x")
        assert len(state.messages) == 1
        assert state.messages[0].role == "system"

    def test_model_is_recorded(self):
        assert initialize("gpt-x").model == "gpt-x"

    def test_custom_markers(self):
        state = initialize("deep-think-1", reasoning_markers=("think",))
        assert state.messages[0].role == "user"

    def test_custom_priming_prompt(self):
        state = initialize("gpt-x", priming_prompt="be brief")
        assert state.messages[0].content == "be brief"


def test_is_reasoning_model():
    assert is_reasoning_model("o1-preview")
    assert not is_reasoning_model("gpt-4o")


class TestMessageText:
    def test_plain(self):
        assert Message("user", "hi").text == "hi"

    def test_multipart_skips_images(self):
        msg = Message("user", [TextPart("look"), ImagePart(data="AAAA")])
        assert msg.text == "look"
        assert msg.has_image

    def test_plain_has_no_image(self):
        assert not Message("user", "hi").has_image


class TestWireFormat:
    def test_image_part_dict(self):
        part = ImagePart(data="QUJD", detail="low")
        assert part.to_dict() == {
            "type": "image_url",
            "image_url": {"url": "data:image/png;base64,QUJD", "detail": "low"},
        }

    def test_multipart_message_survives_dict_form(self):
        msg = Message("user", [TextPart("see"), ImagePart(data="QUJD")])
        assert Message.from_dict(msg.to_dict()) == msg

    @pytest.mark.parametrize(
        "raw",
        [
            {"role": "tool", "content": "x"},
            {"role": "user", "content": ""},
            {"role": "user", "content": []},
            {"role": "user", "content": None},
            {"role": "user", "content": [{"type": "audio"}]},
            {"role": "user", "content": [{"type": "image_url", "image_url": {"url": "http://x"}}]},
            "not a dict",
        ],
    )
    def test_invalid_messages_rejected(self, raw):
        with pytest.raises(ValueError):
            Message.from_dict(raw)


class TestConversationStateFromDict:
    def test_valid(self):
        state = ConversationState.from_dict(
            {"model": "gpt-x", "messages": [{"role": "system", "content": "p"}]}
        )
        assert state == ConversationState("gpt-x", [Message("system", "p")])

    @pytest.mark.parametrize(
        "raw",
        [
            [],
            {"messages": [{"role": "system", "content": "p"}]},
            {"model": "gpt-x", "messages": []},
            {"model": "gpt-x", "messages": "nope"},
            {"model": "gpt-x", "messages": [{"role": "bot", "content": "p"}]},
        ],
    )
    def test_bad_shapes_are_corrupt(self, raw):
        with pytest.raises(CorruptStateError):
            ConversationState.from_dict(raw)
