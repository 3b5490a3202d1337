from signfast.compositor.exceptions import RenderException
from signfast.compositor.geometry import SignatureAnchor
from signfast.compositor.renderer import Placement, render_document

__all__ = ["Placement", "RenderException", "SignatureAnchor", "render_document"]
