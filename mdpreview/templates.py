"""Page shell composition with Jinja2."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

DEFAULTS_DIR = Path(__file__).resolve().parent / "defaults"
TEMPLATES_DIR = DEFAULTS_DIR / "templates"
LAYOUT_TEMPLATE = "layout.html"


class CompositionError(RuntimeError):
    """Raised when the page template cannot be loaded or rendered."""


@dataclass(frozen=True, slots=True)
class RenderedPage:
    """Everything the layout template needs to produce one document."""

    content_html: str
    theme: str
    bounding_box: bool
    css_light: str
    css_dark: str
    title: str = ""

    def to_template_dict(self) -> dict[str, Any]:
        return asdict(self)


class PageComposer:
    """Wrap rendered fragments in the themed layout template."""

    def __init__(
        self,
        templates_dir: Path = TEMPLATES_DIR,
        *,
        template_name: str = LAYOUT_TEMPLATE,
    ) -> None:
        self._template_name = template_name
        self._environment = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
            auto_reload=False,
        )

    def compose(self, page: RenderedPage) -> str:
        try:
            template = self._environment.get_template(self._template_name)
            rendered = template.render(**page.to_template_dict())
        except (TemplateError, OSError) as exc:
            raise CompositionError(f"Unable to render template '{self._template_name}': {exc}") from exc
        return rendered
