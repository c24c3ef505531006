"""
Incremental parser for tool-call markup in streamed model output

A tool invocation is written as nested tags embedded in free text:

    Some text
    <read_file>
    <path>src/main.py</path>
    </read_file>

Only tags whose names match a known tool (or, inside a tool, a known
parameter) are treated as markup. Input is consumed from a pending buffer
and a decision is only taken once enough characters have arrived to make
it, so splitting the same content differently across chunks always yields
the same finalized blocks.
"""

import logging
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .models import ContentBlock, TextContent, ToolUse

logger = logging.getLogger(__name__)


class _Mode(Enum):
    TEXT = "text"
    TOOL = "tool"
    PARAM = "param"


def _match_tag(buffer: str, tags: Iterable[str]) -> Tuple[Optional[str], bool]:
    """
    Check ``buffer`` (starting with '<') against candidate tags.

    Returns (tag, False) on a full match, (None, True) when more input could
    still complete a candidate, and (None, False) when nothing can match.
    """
    could_match = False
    for tag in tags:
        if buffer.startswith(tag):
            return tag, False
        if len(buffer) < len(tag) and tag.startswith(buffer):
            could_match = True
    return None, could_match


def _held_suffix(buffer: str, tags: Iterable[str]) -> int:
    """Length of the longest suffix of ``buffer`` that is a prefix of any tag"""
    longest = 0
    for tag in tags:
        for size in range(min(len(tag) - 1, len(buffer)), longest, -1):
            if tag.startswith(buffer[-size:]):
                longest = size
                break
    return longest


class AssistantMessageParser:
    """Streaming parser producing text and tool-use content blocks"""

    def __init__(self, tool_names: Iterable[str], param_names: Iterable[str]):
        self.tool_names = list(dict.fromkeys(tool_names))
        self.param_names = list(dict.fromkeys(param_names))
        self._tool_open = {f"<{name}>": name for name in self.tool_names}
        self._param_open = {f"<{name}>": name for name in self.param_names}
        self.reset()

    def reset(self) -> None:
        self._mode = _Mode.TEXT
        self._pending = ""
        self._blocks: List[ContentBlock] = []
        self._text = ""
        self._tool: Optional[ToolUse] = None
        self._param: Optional[str] = None
        self._value = ""

    # -----------------------------
    # Public API
    # -----------------------------

    def process_chunk(self, chunk: str) -> List[ContentBlock]:
        """Feed one fragment and return every block seen so far"""
        self._pending += chunk
        while self._pending:
            if self._mode is _Mode.TEXT:
                progressed = self._step_text()
            elif self._mode is _Mode.TOOL:
                progressed = self._step_tool()
            else:
                progressed = self._step_param()
            if not progressed:
                break
        return self.get_content_blocks()

    def finalize_content_blocks(self) -> None:
        """Resolve the stream end: flush text, drop any invocation never closed"""
        if self._mode is _Mode.TEXT:
            self._text += self._pending
            self._flush_text()
        elif self._tool is not None:
            logger.debug(f"[Parser] Dropping unclosed tool invocation: {self._tool.name}")
        self._mode = _Mode.TEXT
        self._pending = ""
        self._tool = None
        self._param = None
        self._value = ""

    def get_content_blocks(self) -> List[ContentBlock]:
        """Closed blocks plus the in-progress block flagged as partial"""
        blocks = list(self._blocks)
        if self._mode is _Mode.TEXT:
            text = (self._text + self._pending).strip()
            if text:
                blocks.append(TextContent(content=text, partial=True))
        elif self._tool is not None:
            blocks.append(self._tool)
        return blocks

    @staticmethod
    def get_display_text(blocks: List[ContentBlock]) -> str:
        texts = [block.content for block in blocks if isinstance(block, TextContent)]
        return "\n\n".join(text for text in texts if text.strip()).strip()

    # -----------------------------
    # State steps; each returns False when it needs more input
    # -----------------------------

    def _step_text(self) -> bool:
        start = self._pending.find("<")
        if start == -1:
            self._text += self._pending
            self._pending = ""
            return False
        self._text += self._pending[:start]
        self._pending = self._pending[start:]

        tag, could_match = _match_tag(self._pending, self._tool_open)
        if tag is not None:
            self._flush_text()
            self._tool = ToolUse(name=self._tool_open[tag], partial=True)
            self._pending = self._pending[len(tag):]
            self._mode = _Mode.TOOL
            return True
        if could_match:
            return False

        self._text += "<"
        self._pending = self._pending[1:]
        return True

    def _step_tool(self) -> bool:
        start = self._pending.find("<")
        if start == -1:
            # whitespace between parameter tags is not content
            self._pending = ""
            return False
        self._pending = self._pending[start:]

        close = f"</{self._tool.name}>"
        tag, could_match = _match_tag(self._pending, [close, *self._param_open])
        if tag == close:
            self._pending = self._pending[len(close):]
            self._close_tool()
            return True
        if tag is not None:
            self._param = self._param_open[tag]
            self._value = ""
            self._pending = self._pending[len(tag):]
            self._mode = _Mode.PARAM
            return True
        if could_match:
            return False

        self._pending = self._pending[1:]
        return True

    def _step_param(self) -> bool:
        close_param = f"</{self._param}>"
        close_tool = f"</{self._tool.name}>"

        found = [
            (index, tag)
            for tag in (close_param, close_tool)
            for index in [self._pending.find(tag)]
            if index != -1
        ]
        if not found:
            held = _held_suffix(self._pending, (close_param, close_tool))
            self._value += self._pending[:len(self._pending) - held]
            self._pending = self._pending[len(self._pending) - held:]
            self._tool.params[self._param] = self._value.strip()
            return False

        index, tag = min(found)
        self._value += self._pending[:index]
        self._pending = self._pending[index + len(tag):]
        self._tool.params[self._param] = self._value.strip()
        self._param = None
        self._value = ""
        if tag == close_param:
            self._mode = _Mode.TOOL
        else:
            self._close_tool()
        return True

    def _close_tool(self) -> None:
        self._tool.partial = False
        self._blocks.append(self._tool)
        self._tool = None
        self._mode = _Mode.TEXT

    def _flush_text(self) -> None:
        text = self._text.strip()
        if text:
            self._blocks.append(TextContent(content=text, partial=False))
        self._text = ""
