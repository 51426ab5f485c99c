from siteflow.renderers.base import Renderer
from siteflow.renderers.svg import SvgRenderer

__all__ = ["Renderer", "SvgRenderer"]
