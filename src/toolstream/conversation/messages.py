"""
Conversation data model: turns, content blocks and query results.

A ``Turn`` holds an ordered tuple of content blocks.  ``ContentBlock`` is a
closed union of four frozen dataclasses; every consumer in this package
dispatches on all four and rejects anything else.

All types convert to and from plain JSON-compatible dicts so that a
``ConversationResult`` can be persisted and later fed back as history::

    data = json.dumps(result.to_dict())
    restored = ConversationResult.from_dict(json.loads(data))
    assert restored == result
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

Role = Literal["user", "assistant"]
ToolStatus = Literal["success", "error"]

_ROLES = ("user", "assistant")
_STATUSES = ("success", "error")


# ---------------------------------------------------------------------------
# Tool-result content entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextContent:
    """A textual entry inside a tool result."""

    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class JsonContent:
    """A structured entry inside a tool result.

    ``value`` contains only JSON primitives, dicts and lists.
    """

    value: Any

    def to_dict(self) -> dict[str, Any]:
        return {"json": self.value}


ToolResultContent = Union[TextContent, JsonContent]


def _content_from_dict(data: dict[str, Any]) -> ToolResultContent:
    if "text" in data:
        return TextContent(text=data["text"])
    if "json" in data:
        return JsonContent(value=data["json"])
    raise ValueError(f"Unrecognised tool result content entry: {sorted(data)!r}")


# ---------------------------------------------------------------------------
# Content blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextBlock:
    """Plain text produced by the user or the model."""

    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class ToolUseBlock:
    """A model-issued request to run a tool.

    Attributes:
        tool_use_id: Opaque id assigned by the model; correlates the result.
        name: Name of the requested tool.
        input: Parsed JSON arguments.  When the streamed arguments were not
            valid JSON this is ``{"_raw": ..., "_parse_error": ...}``.
    """

    tool_use_id: str
    name: str
    input: Any = field(default_factory=dict)

    @property
    def is_malformed(self) -> bool:
        """True if the streamed arguments could not be parsed."""
        return isinstance(self.input, dict) and "_parse_error" in self.input

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool_use": {
                "tool_use_id": self.tool_use_id,
                "name": self.name,
                "input": self.input,
            }
        }


@dataclass(frozen=True)
class ToolResultBlock:
    """The outcome of executing one ``ToolUseBlock``."""

    tool_use_id: str
    content: tuple[ToolResultContent, ...] = ()
    status: ToolStatus = "success"

    @property
    def is_error(self) -> bool:
        return self.status == "error"

    @property
    def text(self) -> str:
        """Concatenated text entries (convenient for error results)."""
        return "".join(c.text for c in self.content if isinstance(c, TextContent))

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool_result": {
                "tool_use_id": self.tool_use_id,
                "content": [c.to_dict() for c in self.content],
                "status": self.status,
            }
        }


@dataclass(frozen=True)
class ReasoningBlock:
    """A reasoning/thinking block, optionally signed for later verification."""

    text: str
    signature: str | None = None

    def to_dict(self) -> dict[str, Any]:
        reasoning_text: dict[str, Any] = {"text": self.text}
        if self.signature is not None:
            reasoning_text["signature"] = self.signature
        return {"reasoning_content": {"reasoning_text": reasoning_text}}


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock, ReasoningBlock]


def block_to_dict(block: ContentBlock) -> dict[str, Any]:
    """Serialise any content block to its wire dict."""
    if isinstance(block, (TextBlock, ToolUseBlock, ToolResultBlock, ReasoningBlock)):
        return block.to_dict()
    raise TypeError(f"Not a content block: {type(block).__name__}")


def block_from_dict(data: dict[str, Any]) -> ContentBlock:
    """Rebuild a content block from its wire dict.

    Raises:
        ValueError: If the dict does not match any known block shape.
    """
    if "text" in data:
        return TextBlock(text=data["text"])
    if "tool_use" in data:
        tu = data["tool_use"]
        return ToolUseBlock(
            tool_use_id=tu["tool_use_id"],
            name=tu["name"],
            input=tu.get("input", {}),
        )
    if "tool_result" in data:
        tr = data["tool_result"]
        status = tr.get("status", "success")
        if status not in _STATUSES:
            raise ValueError(f"Invalid tool result status: {status!r}")
        return ToolResultBlock(
            tool_use_id=tr["tool_use_id"],
            content=tuple(_content_from_dict(c) for c in tr.get("content", [])),
            status=status,
        )
    if "reasoning_content" in data:
        rt = data["reasoning_content"]["reasoning_text"]
        return ReasoningBlock(text=rt.get("text", ""), signature=rt.get("signature"))
    raise ValueError(f"Unrecognised content block: {sorted(data)!r}")


# ---------------------------------------------------------------------------
# Turns
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Turn:
    """One role-tagged message in a conversation."""

    role: Role
    content: tuple[ContentBlock, ...] = ()

    def __post_init__(self) -> None:
        if self.role not in _ROLES:
            raise ValueError(f"Invalid role: {self.role!r}")
        # Accept any iterable but store an immutable tuple.
        object.__setattr__(self, "content", tuple(self.content))

    @classmethod
    def user_text(cls, text: str) -> Turn:
        return cls(role="user", content=(TextBlock(text),))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def tool_results(self) -> list[ToolResultBlock]:
        return [b for b in self.content if isinstance(b, ToolResultBlock)]

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": [block_to_dict(b) for b in self.content]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Turn:
        return cls(
            role=data["role"],
            content=tuple(block_from_dict(b) for b in data.get("content", [])),
        )


# ---------------------------------------------------------------------------
# Usage and results
# ---------------------------------------------------------------------------


@dataclass
class Usage:
    """Token counters; ``add`` only ever increases them."""

    input_tokens: int = 0
    output_tokens: int = 0

    def add(self, input_tokens: int = 0, output_tokens: int = 0) -> None:
        self.input_tokens += max(int(input_tokens or 0), 0)
        self.output_tokens += max(int(output_tokens or 0), 0)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> dict[str, int]:
        return {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}


@dataclass(frozen=True)
class ConversationResult:
    """Immutable outcome of one query.

    Attributes:
        text: The final pass's text only.  May legitimately be empty.
        messages: Every turn produced during the query, in order, starting
            with the user prompt.
        input_tokens: Input tokens summed over all passes.
        output_tokens: Output tokens summed over all passes.
    """

    text: str = ""
    messages: tuple[Turn, ...] = ()
    input_tokens: int = 0
    output_tokens: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "text", self.text or "")
        object.__setattr__(self, "messages", tuple(self.messages))

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __str__(self) -> str:
        return self.text

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "messages": [t.to_dict() for t in self.messages],
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationResult:
        return cls(
            text=data.get("text", ""),
            messages=tuple(Turn.from_dict(t) for t in data.get("messages", [])),
            input_tokens=int(data.get("input_tokens", 0)),
            output_tokens=int(data.get("output_tokens", 0)),
        )
