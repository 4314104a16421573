"""
HTML email templates with {{PLACEHOLDER}} variables.

A single TemplateRenderer is built at startup (see main.lifespan), kept on
app.state and handed to routes through get_template_renderer. Template files
are static at deploy time, so loaded content is cached for the process lifetime.
"""

import html
import logging
import re
import threading
from pathlib import Path
from typing import Optional, Union

from fastapi import Request

logger = logging.getLogger(__name__)

TemplateVariables = dict[str, Union[str, int, float, None]]

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Z0-9_]+)\s*\}\}")


class TemplateRenderer:
    def __init__(self, templates_dir: Union[str, Path]):
        self.templates_dir = Path(templates_dir)
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()

    def _load(self, name: str) -> str:
        cached = self._cache.get(name)
        if cached is not None:
            return cached

        path = self.templates_dir / f"{name}.html"
        content = path.read_text(encoding="utf-8")
        with self._lock:
            self._cache.setdefault(name, content)
        logger.debug(f"Loaded template {name} from {path}")
        return content

    def render(
        self, name: str, variables: TemplateVariables, raw: Optional[set[str]] = None
    ) -> str:
        """
        Fill a template. Values are HTML-escaped unless their key is in raw;
        placeholders without a value render empty.
        """
        raw = raw or set()
        template = self._load(name)

        def substitute(match: re.Match) -> str:
            key = match.group(1)
            value = variables.get(key)
            if value is None:
                return ""
            return str(value) if key in raw else html.escape(str(value))

        return _PLACEHOLDER.sub(substitute, template)

    @property
    def cached_templates(self) -> list[str]:
        return sorted(self._cache)


def get_template_renderer(request: Request) -> TemplateRenderer:
    """Dependency returning the renderer built at startup"""
    return request.app.state.template_renderer
