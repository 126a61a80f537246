from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PageGeometry:
    page_size: str = "letter"
    margin_pt: float = 72

    @classmethod
    def from_settings(cls, settings) -> "PageGeometry":
        return cls(page_size=settings.PAGE_SIZE, margin_pt=settings.PAGE_MARGIN_PT)


class RenderingDelegate(ABC):
    @abstractmethod
    def render(self, html: str, geometry: PageGeometry) -> bytes:
        """Lay out print-styled HTML on fixed-size pages and return the document bytes.

        Blocking; callers run it off the event loop and enforce the timeout.
        """
        ...
