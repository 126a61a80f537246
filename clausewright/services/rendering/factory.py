from clausewright.services.rendering.base import RenderingDelegate


def create_renderer(settings) -> RenderingDelegate:
    """Create and return the configured fixed-page rendering delegate.

    Reads RENDERER from settings. Adding an engine = one new elif block here.
    """
    if settings.RENDERER == "pymupdf":
        from clausewright.services.rendering.pymupdf_renderer import PyMuPDFRenderer
        return PyMuPDFRenderer()

    raise ValueError(f"Unsupported renderer: {settings.RENDERER!r}")
