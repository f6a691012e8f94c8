"""Template rendering and dictionary helpers."""

import logging
from typing import Any, Dict

from jinja2 import Environment, StrictUndefined, TemplateError


logger = logging.getLogger(__name__)


# Fodder scripts must keep their trailing newline and fail on unknown variables
_environment = Environment(undefined=StrictUndefined, keep_trailing_newline=True, autoescape=False)


def render_template(template_str: str, **context: Any) -> str:
    """Render a Jinja2 template string with given context."""
    try:
        return _environment.from_string(template_str).render(**context)
    except TemplateError as e:
        logger.error(f"Template rendering error: {e}")
        raise


def merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries; ``override`` wins, neither is modified."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_dicts(current, value)
        else:
            merged[key] = value
    return merged
