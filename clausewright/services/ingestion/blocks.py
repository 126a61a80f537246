"""Block sources: turn a source document into a flat stream of heading/content blocks."""
import html
import logging
import re
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from markupsafe import escape

from clausewright.exceptions import SourceDecodeError

logger = logging.getLogger(__name__)

DOCX_SUFFIXES = {".docx"}
HTML_SUFFIXES = {".html", ".htm"}

# Block-level tags a mammoth-style conversion emits at the top level.
_BLOCK_TAG = re.compile(r"<(/?)(h[1-6]|p|table|ul|ol)\b[^>]*>", re.IGNORECASE)
_CONTAINER_TAGS = {"table", "ul", "ol"}
_HEADING_OPEN = re.compile(r"^\s*<h([1-6])\b", re.IGNORECASE)
_ANCHOR_ID = re.compile(r"<a\b[^>]*\b(?:id|name)=[\"']([^\"']+)[\"']", re.IGNORECASE)
_INTERNAL_LINK = re.compile(
    r"<a\b[^>]*\bhref=[\"']#([^\"']+)[\"'][^>]*>.*?</a>", re.IGNORECASE | re.DOTALL
)
_TAG = re.compile(r"<[^>]+>")
# What may sit beside the links in a table-of-contents entry: dot leaders and page numbers.
_TOC_LEADER = re.compile(r"^[\s.…\d]*$")
_DOCX_HEADING_STYLE = re.compile(r"^Heading\s+(\d+)$", re.IGNORECASE)

# Long "1.2 The Client shall..." paragraphs are body text, not headings.
_MAX_NUMBERED_HEADING_CHARS = 200

_NUMBERED_HEADINGS: list[tuple[re.Pattern, int]] = [
    (re.compile(r"^SECTION\s+\d+\.\s*\S.*", re.IGNORECASE), 1),
    (re.compile(r"^ARTICLE\s+(?:\d+|[IVXLC]+)[.:\s]+\S.*", re.IGNORECASE), 1),
    (re.compile(r"^EXHIBIT\s+[A-Z](?:[.:\s].*)?$", re.IGNORECASE), 1),
    (re.compile(r"^(?:RECITALS|DOCUMENT SUMMARY|ATTACHMENTS)$", re.IGNORECASE), 1),
    (re.compile(r"^\d+\.\d+\s+\S.*"), 2),
    (re.compile(r"^RECITAL\s+[A-Z](?:[.:\s].*)?$", re.IGNORECASE), 2),
]


class BlockKind(str, Enum):
    HEADING = "heading"
    CONTENT = "content"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Block:
    kind: BlockKind
    text: str = ""
    markup: str = ""
    depth: int | None = None
    anchor: str | None = None


def heading(depth: int, text: str, anchor: str | None = None) -> Block:
    return Block(kind=BlockKind.HEADING, text=text, depth=depth, anchor=anchor)


def content(markup: str) -> Block:
    return Block(kind=BlockKind.CONTENT, markup=markup)


def strip_tags(markup: str) -> str:
    return html.unescape(_TAG.sub("", markup)).replace("\xa0", " ").strip()


def toc_entry_targets(block: Block) -> list[str]:
    """Anchor targets of a content block made only of internal links.

    "<p><a href="#_Toc1">1. Definitions</a> 3</p>" is a table-of-contents
    entry; a paragraph with a link inside running text is not, and yields [].
    """
    if block.kind != BlockKind.CONTENT or not block.markup:
        return []
    targets = _INTERNAL_LINK.findall(block.markup)
    if not targets:
        return []
    remainder = strip_tags(_INTERNAL_LINK.sub(" ", block.markup))
    return targets if _TOC_LEADER.match(remainder) else []


def detect_numbered_heading(text: str) -> int | None:
    """Depth of a numbered section paragraph ("SECTION 3. PAYMENT" -> 1, "3.2 Fees" -> 2)."""
    if len(text) > _MAX_NUMBERED_HEADING_CHARS:
        return None
    for pattern, depth in _NUMBERED_HEADINGS:
        if pattern.match(text):
            return depth
    return None


def _split_top_level(source: str) -> list[str]:
    segments: list[str] = []
    start = 0
    depth = 0
    for match in _BLOCK_TAG.finditer(source):
        closing, tag = match.group(1), match.group(2).lower()
        if closing:
            if tag in _CONTAINER_TAGS:
                depth = max(depth - 1, 0)
            continue
        if depth == 0:
            if source[start:match.start()].strip():
                segments.append(source[start:match.start()].strip())
            start = match.start()
        if tag in _CONTAINER_TAGS:
            depth += 1
    if source[start:].strip():
        segments.append(source[start:].strip())
    return segments


def blocks_from_html(source: str, numbered_headings: bool = True) -> list[Block]:
    """Split converted HTML into blocks.

    `<h1>`..`<h6>` become heading blocks; other top-level elements become content.
    Text outside any block element is emitted as UNKNOWN and left for the parser
    to recover. With `numbered_headings`, paragraphs that read like numbered
    section titles are promoted to headings.
    """
    blocks: list[Block] = []
    for segment in _split_top_level(source):
        if not segment.startswith("<"):
            blocks.append(Block(kind=BlockKind.UNKNOWN, markup=segment))
            continue

        heading_match = _HEADING_OPEN.match(segment)
        if heading_match:
            anchor = _ANCHOR_ID.search(segment)
            blocks.append(heading(
                int(heading_match.group(1)),
                strip_tags(segment),
                anchor.group(1) if anchor else None,
            ))
            continue

        # A linked "SECTION 3. PAYMENT" is a table-of-contents entry, not the section itself.
        if numbered_headings and segment[:2].lower() == "<p" and not _INTERNAL_LINK.search(segment):
            text = strip_tags(segment)
            depth = detect_numbered_heading(text)
            if depth is not None:
                anchor = _ANCHOR_ID.search(segment)
                blocks.append(heading(depth, text, anchor.group(1) if anchor else None))
                continue

        blocks.append(content(segment))
    return blocks


def blocks_from_docx(file_path: str | Path) -> list[Block]:
    """Read a DOCX file into blocks, keeping paragraphs and tables in document order."""
    from docx import Document
    from docx.opc.exceptions import PackageNotFoundError
    from docx.table import Table
    from docx.text.paragraph import Paragraph

    try:
        document = Document(str(file_path))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
        raise SourceDecodeError(str(file_path), str(exc)) from exc

    blocks: list[Block] = []
    for child in document.element.body.iterchildren():
        tag = child.tag.rsplit("}", 1)[-1]
        if tag == "p":
            block = _docx_paragraph_block(Paragraph(child, document))
            if block is not None:
                blocks.append(block)
        elif tag == "tbl":
            blocks.append(content(_docx_table_markup(Table(child, document))))

    logger.info(f"Read {len(blocks)} blocks from DOCX: {file_path}")
    return blocks


def _docx_paragraph_block(paragraph) -> Block | None:
    text = paragraph.text.strip()
    if not text:
        return None

    style_name = paragraph.style.name if paragraph.style is not None else ""
    style_match = _DOCX_HEADING_STYLE.match(style_name)
    if style_match or style_name == "Title":
        bookmarks = [
            name for name in paragraph._p.xpath(".//w:bookmarkStart/@w:name")
            if name != "_GoBack"
        ]
        depth = int(style_match.group(1)) if style_match else 1
        return heading(depth, text, bookmarks[0] if bookmarks else None)

    return content(f"<p>{_docx_inline_markup(paragraph)}</p>")


def _docx_inline_markup(paragraph) -> str:
    """Escaped paragraph text in which only internal hyperlink runs become <a href="#...">."""
    from docx.text.hyperlink import Hyperlink

    parts = []
    for item in paragraph.iter_inner_content():
        text = escape(item.text)
        if isinstance(item, Hyperlink) and item.fragment and not item.address:
            parts.append(f'<a href="#{escape(item.fragment)}">{text}</a>')
        else:
            parts.append(str(text))
    return "".join(parts).strip()


def _docx_table_markup(table) -> str:
    rows = []
    for row in table.rows:
        cells = "".join(f"<td>{escape(cell.text.strip())}</td>" for cell in row.cells)
        rows.append(f"<tr>{cells}</tr>")
    return f"<table>{''.join(rows)}</table>"


def load_source_blocks(file_path: str | Path) -> list[Block]:
    path = Path(file_path)
    suffix = path.suffix.lower()
    if suffix in DOCX_SUFFIXES:
        return blocks_from_docx(path)
    if suffix in HTML_SUFFIXES:
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceDecodeError(str(path), str(exc)) from exc
        return blocks_from_html(source)
    raise SourceDecodeError(str(path), f"unsupported source type {suffix or '(none)'}")
