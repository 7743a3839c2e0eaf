"""Turn AI-authored text into safe display markup.

Generated bios and stories arrive with chatty preambles ("Here's a bio
for...:"), numbered section labels and echoed metadata lines. Those are
stripped first, then a tiny inline subset is recognised:

- ``**x**`` -> strong
- ``*x*`` -> emphasis (matched after strong, so it may wrap a strong span)
- newline -> line break

The result is a :class:`SafeMarkup` fragment of text runs and breaks.
Every renderer escapes the run text, so markup embedded in the source
never reaches the display as markup.
"""

import html
import re
from dataclasses import dataclass
from typing import Optional, Union

from rich.markup import escape as rich_escape
from rich.text import Text

# Applied in order, each once over the whole text.
PREAMBLE_PATTERNS = (
    (re.compile(r"^Okay,?\s*here'?s?\s+a\s+bio\s+for\s+the\s+crypto\s+wallet.*?:\s*", re.I), 1),
    (re.compile(r"^Here'?s?\s+a\s+.*?:\s*", re.I), 1),
    (re.compile(r"^Based\s+on\s+the\s+provided\s+information.*?:\s*", re.I), 1),
    (re.compile(r"^\d+\.\s*(?:Tagline|Story|Bio):\s*", re.I | re.M), 0),
    (
        re.compile(
            r"^(?:Address|Total Transactions|Portfolio Age|Badges|Timeline|Bio):\s*.*?\n",
            re.I | re.M,
        ),
        0,
    ),
)

STRONG_PATTERN = re.compile(r"\*\*(.+?)\*\*")
EMPHASIS_PATTERN = re.compile(r"\*(.+?)\*")

# Private-use markers standing in for open/close tags while the inline
# patterns run; they never survive into the output.
_STRONG_OPEN = "\ue000"
_STRONG_CLOSE = "\ue001"
_EM_OPEN = "\ue002"
_EM_CLOSE = "\ue003"
_MARKERS = re.compile("[\ue000-\ue003]")


@dataclass(frozen=True)
class TextRun:
    text: str
    bold: bool = False
    italic: bool = False


@dataclass(frozen=True)
class LineBreak:
    pass


Node = Union[TextRun, LineBreak]


@dataclass(frozen=True)
class SafeMarkup:
    """Structured display fragment; renderers escape all run text."""

    nodes: tuple = ()

    def __bool__(self) -> bool:
        return bool(self.nodes)

    def __str__(self) -> str:
        return self.to_html()

    @property
    def runs(self) -> list[TextRun]:
        return [node for node in self.nodes if isinstance(node, TextRun)]

    def plain_text(self) -> str:
        return "".join(
            "\n" if isinstance(node, LineBreak) else node.text for node in self.nodes
        )

    def to_html(self) -> str:
        parts: list[str] = []
        for node in self.nodes:
            if isinstance(node, LineBreak):
                parts.append("<br />")
                continue
            fragment = html.escape(node.text)
            if node.italic:
                fragment = f"<em>{fragment}</em>"
            if node.bold:
                fragment = f"<strong>{fragment}</strong>"
            parts.append(fragment)
        return "".join(parts)

    def to_rich(self) -> str:
        """Rich console markup (``[b]``/``[i]``) with run text escaped."""
        parts: list[str] = []
        for node in self.nodes:
            if isinstance(node, LineBreak):
                parts.append("\n")
                continue
            fragment = rich_escape(node.text)
            if node.italic:
                fragment = f"[i]{fragment}[/i]"
            if node.bold:
                fragment = f"[b]{fragment}[/b]"
            parts.append(fragment)
        return "".join(parts)

    def to_text(self) -> Text:
        text = Text()
        for node in self.nodes:
            if isinstance(node, LineBreak):
                text.append("\n")
                continue
            styles = [name for name, on in (("bold", node.bold), ("italic", node.italic)) if on]
            text.append(node.text, style=" ".join(styles) or None)
        return text


def strip_preambles(raw: str) -> str:
    text = raw
    for pattern, count in PREAMBLE_PATTERNS:
        text = pattern.sub("", text, count=count)
    return text.strip()


def _mark_inline(text: str) -> str:
    text = STRONG_PATTERN.sub(lambda m: f"{_STRONG_OPEN}{m.group(1)}{_STRONG_CLOSE}", text)
    return EMPHASIS_PATTERN.sub(lambda m: f"{_EM_OPEN}{m.group(1)}{_EM_CLOSE}", text)


def _to_nodes(marked: str) -> tuple:
    nodes: list[Node] = []
    buffer: list[str] = []
    bold = 0
    italic = 0

    def flush():
        if buffer:
            nodes.append(TextRun("".join(buffer), bold=bold > 0, italic=italic > 0))
            buffer.clear()

    for char in marked:
        if char == "\n":
            flush()
            nodes.append(LineBreak())
        elif char == _STRONG_OPEN:
            flush()
            bold += 1
        elif char == _STRONG_CLOSE:
            flush()
            bold = max(bold - 1, 0)
        elif char == _EM_OPEN:
            flush()
            italic += 1
        elif char == _EM_CLOSE:
            flush()
            italic = max(italic - 1, 0)
        else:
            buffer.append(char)
    flush()
    return tuple(nodes)


def normalize(raw: Optional[str]) -> SafeMarkup:
    """Clean ``raw`` and convert its inline markup. Empty input yields an empty fragment."""
    if not raw:
        return SafeMarkup()
    cleaned = strip_preambles(_MARKERS.sub("", raw.replace("\r\n", "\n")))
    if not cleaned:
        return SafeMarkup()
    return SafeMarkup(_to_nodes(_mark_inline(cleaned)))
