"""Extract per-slide narration from Marp-style markdown decks.

A deck is split into slides at top-level ``---`` separators. Every slide must
carry at least one non-empty ``<!-- ... -->`` comment; the comment bodies become
the narration that is sent to the speech backend.

Separators are recognised by a block scanner rather than naive line splitting:
``---`` lines inside fenced code blocks or inside HTML comment blocks are slide
content, not boundaries. A comment block only opens on a line that starts with
``<!--``; a ``<!--`` elsewhere in prose (for example inside an inline code span)
never swallows the lines after it. A decorative horizontal rule written as a bare
``---`` line in ordinary prose is still indistinguishable from a slide break.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from logging_utils import get_logger

logger = get_logger(__name__)

UNTITLED = "(untitled)"

_SEPARATOR_RE = re.compile(r"^ {0,3}---[ \t]*$")
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_HEADING_RE = re.compile(r"^ {0,3}(#{1,2})[ \t]+(.+?)[ \t#]*$")
_COMMENT_RE = re.compile(r"<!--(.*?)-->", re.DOTALL)
_COMMENT_OPEN_RE = re.compile(r"^ {0,3}<!--")
_CODE_SPAN_RE = re.compile(r"(?<!`)(`+)(?!`)(.+?)(?<!`)\1(?!`)")


class NoteParseError(ValueError):
    """Raised when a slide has no narration comment."""

    def __init__(self, slide_number: int, title: Optional[str], reason: str) -> None:
        self.slide_number = slide_number
        self.title = title or UNTITLED
        self.reason = reason
        super().__init__(f"slide {slide_number} [{self.title}]: {reason}")


@dataclass(frozen=True)
class SlideNote:
    slide_number: int
    text: str
    title: Optional[str] = None


@dataclass
class SlideSegment:
    """Raw lines of one slide plus what the scanner learned about them."""

    lines: List[str] = field(default_factory=list)
    # Whole comment blocks and single prose lines, in document order
    chunks: List[str] = field(default_factory=list)
    title: Optional[str] = None

    @property
    def is_blank(self) -> bool:
        return not any(line.strip() for line in self.lines)

    def comments(self) -> List[str]:
        # Fenced code never reaches the chunks; a comment cannot span two chunks
        bodies = (
            match.group(1).strip() for chunk in self.chunks for match in _COMMENT_RE.finditer(chunk)
        )
        return [body for body in bodies if body]


def strip_front_matter(content: str) -> str:
    """Drop a leading ``---`` ... ``---`` block; no closing delimiter means no-op."""
    lines = content.split("\n")
    if not lines or lines[0].strip() != "---":
        return content
    for index in range(1, len(lines)):
        if lines[index].strip() == "---":
            return "\n".join(lines[index + 1 :])
    return content


def split_slides(body: str) -> List[SlideSegment]:
    """Segment a front-matter-free body into slides.

    Leading and trailing blank segments are dropped; blank segments between two
    separators are kept so numbering matches the rendered slide images.
    """
    segments: List[SlideSegment] = [SlideSegment()]
    fence: Optional[str] = None
    comment: Optional[List[str]] = None

    for raw_line in body.split("\n"):
        line = raw_line.rstrip("\r")
        current = segments[-1]

        if fence is not None:
            current.lines.append(line)
            stripped = line.strip()
            if stripped.startswith(fence) and not stripped.strip(fence[0]):
                fence = None
            continue

        if comment is not None:
            current.lines.append(line)
            comment.append(line)
            if "-->" in line:
                current.chunks.append("\n".join(comment))
                comment = None
            continue

        if _COMMENT_OPEN_RE.match(line):
            current.lines.append(line)
            # The block ends on the first line holding -->, the opening line included
            if "-->" in line[line.index("<!--") + 4 :]:
                current.chunks.append(line)
            else:
                comment = [line]
            continue

        fence_match = _FENCE_RE.match(line)
        if fence_match:
            fence = fence_match.group(1)
            current.lines.append(line)
            continue
        if _SEPARATOR_RE.match(line):
            segments.append(SlideSegment())
            continue
        heading = _HEADING_RE.match(line)
        if heading and current.title is None:
            current.title = heading.group(2).strip()

        current.lines.append(line)
        # Inline code is literal text, so `<!--` there is not a comment
        current.chunks.append(_CODE_SPAN_RE.sub("", line))

    if comment is not None:
        # An unclosed block runs to the end of the document and yields no narration
        segments[-1].chunks.append("\n".join(comment))

    while segments and segments[0].is_blank:
        segments.pop(0)
    while segments and segments[-1].is_blank:
        segments.pop()
    return segments


def extract_notes(content: bytes | str) -> List[SlideNote]:
    """Return one ``SlideNote`` per slide, numbered from 1 in document order.

    Raises ``NoteParseError`` for the first slide without a non-empty comment;
    no partial result is returned.
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8-sig")
    body = strip_front_matter(content)

    notes: List[SlideNote] = []
    for number, segment in enumerate(split_slides(body), start=1):
        comments = segment.comments()
        if not comments:
            raise NoteParseError(
                number,
                segment.title,
                "no narration comment; every slide needs a non-empty <!-- --> comment",
            )
        notes.append(SlideNote(slide_number=number, text="\n".join(comments), title=segment.title))

    logger.debug("Extracted narration for %d slide(s)", len(notes))
    return notes


def load_notes(path: Path | str) -> List[SlideNote]:
    """Read a markdown deck from disk and extract its notes."""
    md_path = Path(path).expanduser()
    if not md_path.exists():
        raise FileNotFoundError(f"Markdown file not found: {md_path}")
    notes = extract_notes(md_path.read_bytes())
    logger.info("Parsed %s into %d slide(s)", md_path.name, len(notes))
    return notes


def describe(notes: Sequence[SlideNote]) -> str:
    """One line per slide, as printed by the ``notes`` command."""
    return "\n".join(
        f"{note.slide_number:03d} {note.title or UNTITLED} ({len(note.text)} chars)" for note in notes
    )
