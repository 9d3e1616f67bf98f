"""
Note Markup Rendering.

Converts the rich-text (HTML) content of a note into plain text or
Markdown and renders note exports. The server export endpoint and the
offline client use the same functions, so an export rendered locally
matches the one the backend would have produced.

Usage:
    from notesync.backend.core.markup import render_export

    document = render_export(note, ExportFormat.MARKDOWN)
    document.filename   # "Trip.md"
    document.body       # "# Trip\\n\\nPack bags"
"""

import re
from collections.abc import Iterable

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PageElement, PreformattedString, Tag

from notesync.backend.schemas.export import (
    EXPORT_EXTENSIONS,
    EXPORT_MEDIA_TYPES,
    ExportDocument,
    ExportFormat,
)
from notesync.backend.schemas.note import NoteWithTags

_HEADINGS = {f"h{level}": level for level in range(1, 7)}
_LISTS = {"ul", "ol"}
_BLOCKS = sorted(
    {
        "p", "div", "section", "article", "blockquote", "pre", "hr",
        "table", "thead", "tbody", "tr", "li", *_HEADINGS, *_LISTS,
    }
)
_CELLS = {"td", "th"}
_DROPPED = ["script", "style", "head", "title"]

# Inline tags and the Markdown markers that replace them.
_INLINE_MARKERS = {
    "strong": "**",
    "b": "**",
    "em": "*",
    "i": "*",
    "u": "_",
    "s": "~~",
    "strike": "~~",
    "del": "~~",
    "code": "`",
}

_WHITESPACE = re.compile(r"\s+")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_TRAILING_SPACE = re.compile(r"[ \t]+\n")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9]")


def _parse(content: str) -> BeautifulSoup:
    soup = BeautifulSoup(content, "html.parser")
    for element in soup(_DROPPED):
        element.decompose()
    return soup


def _tidy(text: str) -> str:
    text = _TRAILING_SPACE.sub("\n", text)
    return _EXCESS_NEWLINES.sub("\n\n", text).strip()


def _single_line(text: str) -> str:
    return " ".join(text.split())


def _inline(nodes: Iterable[PageElement]) -> str:
    """Markdown for a run of inline nodes. Only <br> produces a newline."""
    parts: list[str] = []
    for node in nodes:
        if isinstance(node, PreformattedString):
            continue
        if isinstance(node, NavigableString):
            parts.append(_WHITESPACE.sub(" ", str(node)))
            continue

        name = node.name
        if name == "br":
            parts.append("\n")
        elif name == "img":
            parts.append(f"![{node.get('alt', '')}]({node.get('src', '')})")
        elif name == "a":
            parts.append(f"[{_single_line(_inline(node.children))}]({node.get('href', '')})")
        elif name in _INLINE_MARKERS:
            inner = _inline(node.children)
            marker = _INLINE_MARKERS[name]
            parts.append(f"{marker}{inner.strip()}{marker}" if inner.strip() else inner)
        elif name in _CELLS or name in _BLOCKS:
            parts.append(f" {_inline(node.children)} ")
        else:
            parts.append(_inline(node.children))
    return "".join(parts)


def _blocks(parent: Tag) -> list[str]:
    """Markdown blocks for the children of parent, in document order."""
    blocks: list[str] = []
    run: list[PageElement] = []

    def close_run() -> None:
        text = "\n".join(line.strip() for line in _inline(run).split("\n")).strip()
        if text:
            blocks.append(text)
        run.clear()

    for node in parent.children:
        if isinstance(node, Tag) and node.name in _BLOCKS:
            close_run()
            block = _block(node)
            if block:
                blocks.append(block)
        else:
            run.append(node)
    close_run()
    return blocks


def _block(node: Tag) -> str:
    name = node.name
    if name in _HEADINGS:
        text = _single_line(_inline(node.children))
        return f"{'#' * _HEADINGS[name]} {text}" if text else ""
    if name in _LISTS:
        return _list(node, indent="")
    if name == "pre":
        code = node.get_text().strip("\n")
        return f"```\n{code}\n```"
    if name == "blockquote":
        inner = "\n\n".join(_blocks(node))
        if not inner:
            return ""
        return "\n".join(f"> {line}" if line else ">" for line in inner.split("\n"))
    if name == "hr":
        return "---"
    return "\n\n".join(_blocks(node))


def _list(node: Tag, indent: str) -> str:
    """An ordered or unordered list; nested lists are indented under their item."""
    ordered = node.name == "ol"
    lines: list[str] = []
    for index, item in enumerate(node.find_all("li", recursive=False), start=1):
        marker = f"{index}." if ordered else "-"
        text_nodes: list[PageElement] = []
        nested: list[Tag] = []
        for child in item.children:
            if isinstance(child, Tag) and child.name in _LISTS:
                nested.append(child)
            else:
                text_nodes.append(child)

        lines.append(f"{indent}{marker} {_single_line(_inline(text_nodes))}")
        for sublist in nested:
            lines.append(_list(sublist, indent=indent + " " * (len(marker) + 1)))
    return "\n".join(lines)


def html_to_markdown(content: str | None) -> str:
    """
    Convert note HTML to Markdown.

    Handles headings, bold/italic/underline/strikethrough, links, images,
    inline code, fenced code blocks, block quotes and nested ordered or
    unordered lists. Three or more consecutive newlines collapse to one
    blank line.
    """
    if not content:
        return ""
    return _tidy("\n\n".join(_blocks(_parse(content))))


def strip_html(content: str | None) -> str:
    """Plain text: markup removed, block boundaries kept as line breaks."""
    if not content:
        return ""
    soup = _parse(content)
    for line_break in soup.find_all("br"):
        line_break.replace_with("\n")
    for element in soup.find_all(_BLOCKS):
        element.append("\n" if element.name == "li" else "\n\n")
    return _tidy(soup.get_text())


def sanitize_filename(title: str) -> str:
    """Replace every character outside [A-Za-z0-9] with an underscore."""
    return _UNSAFE_FILENAME_CHARS.sub("_", title) or "untitled"


def render_export(note: NoteWithTags, export_format: ExportFormat | str) -> ExportDocument:
    """
    Render a note in one of the export formats.

    Raises:
        ValueError: If export_format is not a known format
    """
    export_format = ExportFormat(export_format)

    if export_format is ExportFormat.TEXT:
        body = f"{note.title}\n\n{strip_html(note.content)}"
    elif export_format is ExportFormat.MARKDOWN:
        body = f"# {note.title}\n\n{html_to_markdown(note.content)}"
    else:
        body = note.model_dump_json(by_alias=True, indent=2)

    return ExportDocument(
        filename=f"{sanitize_filename(note.title)}.{EXPORT_EXTENSIONS[export_format]}",
        media_type=EXPORT_MEDIA_TYPES[export_format],
        body=body,
    )
