import io
import logging

from clausewright.services.rendering.base import PageGeometry, RenderingDelegate

logger = logging.getLogger(__name__)

_BODY_OPEN = "<body>"
_CONTRACT_BODY = '<main class="contract-body">'


def split_cover(html: str) -> list[str]:
    """Split a contract page into cover and body documents sharing the same <head>.

    Story layout ignores @page and page-break CSS, so the cover page break is
    made by laying the two parts out as separate page runs.
    """
    start = html.find(_CONTRACT_BODY)
    body_open = html.find(_BODY_OPEN)
    if start < 0 or body_open < 0 or body_open > start:
        return [html]
    head = html[: body_open + len(_BODY_OPEN)]
    return [html[:start] + "</body>\n</html>", head + html[start:]]


class PyMuPDFRenderer(RenderingDelegate):
    """Paginate HTML into a PDF with pymupdf's Story layout engine.

    Each call owns one DocumentWriter for exactly one document and always
    closes it, even when layout fails half way. The contract body always
    starts on a fresh page after the cover.
    """

    def render(self, html: str, geometry: PageGeometry) -> bytes:
        import pymupdf

        mediabox = pymupdf.paper_rect(geometry.page_size)
        margin = geometry.margin_pt
        where = mediabox + (margin, margin, -margin, -margin)

        buffer = io.BytesIO()
        writer = pymupdf.DocumentWriter(buffer)
        pages = 0
        try:
            for part in split_cover(html):
                story = pymupdf.Story(html=part)
                more = 1
                while more:
                    device = writer.begin_page(mediabox)
                    more, _ = story.place(where)
                    story.draw(device)
                    writer.end_page()
                    pages += 1
        finally:
            writer.close()

        logger.debug(f"Rendered {pages} {geometry.page_size} pages ({buffer.tell()} bytes)")
        return buffer.getvalue()
