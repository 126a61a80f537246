import logging
import re
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field

from clausewright.services.ingestion.blocks import Block, BlockKind, strip_tags, toc_entry_targets
from clausewright.services.variables import extract_variables

logger = logging.getLogger(__name__)

# Deepest level with distinct behaviour; deeper headings share its bucket.
MAX_LEVEL = 3

# Ordering-key stride per level. Gaps leave room for manual insertions.
SORT_STRIDES = {1: 100, 2: 10, 3: 5}

_HEADING_CODE = [
    re.compile(r"^SECTION\s+(\d+)\.?\s*(.*)$", re.IGNORECASE),
    re.compile(r"^ARTICLE\s+(\d+|[IVXLC]+)[.:\s]+(.*)$", re.IGNORECASE),
    re.compile(r"^(\d+(?:\.\d+)*)\.?\s+(.+)$"),
]

_TOC_TITLE = re.compile(r"^(?:table\s+of\s+)?contents:?$", re.IGNORECASE)


@dataclass
class ParsedClause:
    slug: str
    clause_code: str | None
    name: str
    contract_type: str
    hierarchy_level: int
    sort_order: int
    parent_slug: str | None
    body_html: str = ""
    variables_used: list[str] = field(default_factory=list)

    def to_record(self) -> dict:
        """Column values for ClauseRepository.bulk_create (parent is linked after insert)."""
        record = asdict(self)
        record.pop("parent_slug")
        return record


@dataclass
class ParseResult:
    clauses: list[ParsedClause]
    warnings: list[str] = field(default_factory=list)
    skipped_toc_blocks: int = 0
    dropped_blocks: int = 0

    def by_slug(self) -> dict[str, ParsedClause]:
        return {clause.slug: clause for clause in self.clauses}


def slugify(text: str, contract_type: str, sort_order: int) -> str:
    base = re.sub(r"[^a-z0-9\s-]", "", text.lower())
    base = re.sub(r"\s+", "-", base.strip())[:50]
    return f"{contract_type.lower()}-{base}-{sort_order}"


def split_heading(text: str) -> tuple[str | None, str]:
    """'2.4 Insurance' -> ('2.4', 'Insurance'); 'SECTION 3. PAYMENT' -> ('3', 'PAYMENT')."""
    for pattern in _HEADING_CODE:
        match = pattern.match(text)
        if match and match.group(2).strip():
            return match.group(1), match.group(2).strip()
    return None, text


def _is_blank(text: str) -> bool:
    return not any(ch.isalnum() for ch in text)


def _is_toc_title(block: Block) -> bool:
    if block.kind == BlockKind.HEADING:
        return not block.anchor and bool(_TOC_TITLE.match(block.text.strip()))
    return block.kind == BlockKind.CONTENT and bool(_TOC_TITLE.match(strip_tags(block.markup or "")))


class ClauseTreeParser:
    """Build a flat, parent-linked clause list from a heading/content block stream.

    One parser call owns its open-clause array; nothing survives between calls.
    """

    def __init__(self, contract_type: str, toc_scan_blocks: int = 40):
        self.contract_type = contract_type
        self.toc_scan_blocks = toc_scan_blocks

    def parse(self, blocks: Iterable[Block]) -> ParseResult:
        blocks, skipped = self._skip_table_of_contents(list(blocks))
        result = ParseResult(clauses=[], skipped_toc_blocks=skipped)

        # open_clauses[d] is the clause opened by the latest heading of source depth d
        open_clauses: list[ParsedClause | None] = [None] * (MAX_LEVEL + 1)
        buffer: list[str] = []
        last_key = 0

        for position, block in enumerate(blocks):
            if self._is_heading(block, position, result):
                text = block.text.strip()
                if _is_blank(text):
                    continue

                result.dropped_blocks += self._flush(buffer, open_clauses)
                depth = min(block.depth, MAX_LEVEL)
                for level in range(depth, MAX_LEVEL + 1):
                    open_clauses[level] = None

                parent = next(
                    (open_clauses[level] for level in range(depth - 1, 0, -1) if open_clauses[level]),
                    None,
                )
                # Never more than one level below the parent, even if the source skips one.
                level = depth if parent is None else min(depth, parent.hierarchy_level + 1)

                stride = SORT_STRIDES[level]
                last_key = (last_key // stride + 1) * stride
                code, name = split_heading(text)
                clause = ParsedClause(
                    slug=slugify(text, self.contract_type, last_key),
                    clause_code=code,
                    name=name,
                    contract_type=self.contract_type,
                    hierarchy_level=level,
                    sort_order=last_key,
                    parent_slug=parent.slug if parent else None,
                )
                open_clauses[depth] = clause
                result.clauses.append(clause)
            else:
                buffer.append(self._content_markup(block))

        result.dropped_blocks += self._flush(buffer, open_clauses)

        logger.info(
            f"Parsed {len(result.clauses)} clauses for {self.contract_type} "
            f"(toc_skipped={result.skipped_toc_blocks}, dropped={result.dropped_blocks}, "
            f"warnings={len(result.warnings)})"
        )
        return result

    def _is_heading(self, block: Block, position: int, result: ParseResult) -> bool:
        if block.kind == BlockKind.HEADING and isinstance(block.depth, int) and block.depth >= 1:
            return True
        if block.kind == BlockKind.CONTENT:
            return False
        message = f"Block {position}: unclassified segment ({block.kind}) treated as content"
        result.warnings.append(message)
        logger.warning(message)
        return False

    @staticmethod
    def _content_markup(block: Block) -> str:
        markup = (block.markup or block.text).strip()
        if not markup.startswith("<"):
            markup = f"<p>{markup}</p>"
        return markup

    @staticmethod
    def _flush(buffer: list[str], open_clauses: list[ParsedClause | None]) -> int:
        """Attach buffered content to the deepest open clause. Returns blocks dropped."""
        if not buffer:
            return 0
        target = next((clause for clause in reversed(open_clauses) if clause is not None), None)
        count = len(buffer)
        if target is not None:
            pieces = [target.body_html] if target.body_html else []
            target.body_html = "\n".join(pieces + buffer)
            target.variables_used = extract_variables(target.body_html)
            count = 0
        buffer.clear()
        return count

    def _skip_table_of_contents(self, blocks: list[Block]) -> tuple[list[Block], int]:
        """Drop an internal hyperlinked table of contents.

        A TOC is a run of link-only paragraphs near the top of the document
        whose links point at anchored headings further down. It may sit under
        a "Contents" title; otherwise no heading may come before it. Only the
        run and its title are discarded, and links inside clause text never
        start a TOC.
        """
        first = next(
            (index for index, block in enumerate(blocks[: self.toc_scan_blocks]) if toc_entry_targets(block)),
            None,
        )
        if first is None:
            return blocks, 0

        if first > 0 and _is_toc_title(blocks[first - 1]):
            start = first - 1
        elif any(block.kind == BlockKind.HEADING for block in blocks[:first]):
            return blocks, 0
        else:
            start = first

        end = first
        targets: set[str] = set()
        while end < len(blocks):
            entry = toc_entry_targets(blocks[end])
            if entry:
                targets.update(entry)
            elif blocks[end].kind != BlockKind.CONTENT or strip_tags(blocks[end].markup):
                break
            end += 1

        anchors = {block.anchor for block in blocks[end:] if block.kind == BlockKind.HEADING and block.anchor}
        if not targets & anchors:
            logger.warning(
                f"{self.contract_type}: table of contents links found but no heading carries their anchors; "
                "keeping all blocks"
            )
            return blocks, 0

        skipped = end - start
        logger.info(f"{self.contract_type}: skipped {skipped} table-of-contents blocks")
        return blocks[:start] + blocks[end:], skipped
