"""Jinja2-based prompt template loader for the extraction pipeline.

Templates live in the backend/prompts/ directory and are rendered with
context variables. Templates are reloaded on every call so prompts can be
edited without restarting the server.

Inline fallbacks are provided for deployments that ship without the
prompts directory.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import jinja2

logger = logging.getLogger(__name__)

# backend/src/services/prompt_loader.py -> backend/prompts/
DEFAULT_PROMPTS_DIR = Path(__file__).resolve().parent.parent.parent / "prompts"

EXTRACTION_SYSTEM_PROMPT = "extraction/system.md"

INLINE_PROMPTS: Dict[str, str] = {
    EXTRACTION_SYSTEM_PROMPT: """You are an intelligent content analyzer for a knowledge management tool.
Analyze the provided text and identify structured data that can be extracted into
Collections (typed tables of records) or Graphs (node/edge views).

EXTRACTION TYPES:
1. collection_with_records - lists of entities with shared attributes -> a Collection with Records and Fields
2. graph_nodes - content that maps to a visual view -> a Graph with Nodes
   Choose viewStyle: {{ view_styles | join(', ') }}
3. standalone_records - records that belong to an existing Collection

RULES:
1. Only suggest extractions when there is genuinely structured or list-like data.
2. Prefer reusing existing collections (listed below) over creating new ones when they match.
3. For tabular data, infer field types: {{ field_types | join(', ') }}.
4. For graph_nodes, always set viewStyle to the most appropriate view.
5. For flow graphs, include edges connecting sequential nodes.
6. For kanban graphs, use root nodes as column headers and child nodes as cards.
7. For timeline graphs, include startDate and endDate (YYYY-MM-DD) and progress in node metadata.
8. Keep names concise (under {{ max_name_length }} characters).
9. Generate an appropriate emoji icon for each suggestion.
10. For record field values, set "field" to the field NAME and "value" to its string value.
11. Set sourceHeading to the heading the data was found under.
12. Node parentIndex and edge sourceIndex/targetIndex are 0-based positions in the same suggestion's nodes array.
13. Fields that do not belong to a suggestion's type must be null.
14. If no extractable data is found, return an empty suggestions array.
{% if existing_collections %}
EXISTING COLLECTIONS (prefer adding records to these if they match):
{% for collection in existing_collections %}- {{ collection.icon }} {{ collection.name }} (id: {{ collection.id }})
{% endfor %}{% endif %}""",
}


class PromptLoaderError(Exception):
    """Raised when a prompt cannot be loaded."""

    pass


class PromptLoader:
    """Load and render Jinja2 prompt templates.

    Example:
        >>> loader = PromptLoader()
        >>> prompt = loader.load("extraction/system.md", {"existing_collections": []})
    """

    def __init__(self, prompts_dir: Optional[Path] = None) -> None:
        """Initialize the prompt loader.

        Args:
            prompts_dir: Directory containing prompt templates.
                        Defaults to backend/prompts/ relative to this file.
        """
        self.prompts_dir = prompts_dir or DEFAULT_PROMPTS_DIR

        if self.prompts_dir.is_dir():
            self.env = jinja2.Environment(
                loader=jinja2.FileSystemLoader(str(self.prompts_dir)),
                autoescape=False,  # Prompts are plain text, not HTML
                auto_reload=True,
                keep_trailing_newline=True,
            )
            logger.debug(
                "PromptLoader initialized with filesystem templates",
                extra={"prompts_dir": str(self.prompts_dir)},
            )
        else:
            self.env = None
            logger.warning(
                "Prompts directory not found, using inline fallbacks",
                extra={"prompts_dir": str(self.prompts_dir)},
            )

    def load(self, path: str, context: Optional[Dict[str, Any]] = None) -> str:
        """Load and render a prompt template.

        Args:
            path: Relative path to the template file (e.g., "extraction/system.md").
            context: Dictionary of variables to render into the template.

        Returns:
            The rendered prompt string.

        Raises:
            PromptLoaderError: If the template cannot be loaded or rendered.
        """
        context = context or {}

        if self.env is not None:
            try:
                template = self.env.get_template(path)
                return template.render(**context)
            except jinja2.TemplateNotFound:
                logger.debug(
                    "Template not found in filesystem, trying inline fallback",
                    extra={"path": path},
                )
            except jinja2.TemplateError as e:
                logger.error(
                    "Failed to render template",
                    extra={"path": path, "error": str(e)},
                )
                raise PromptLoaderError(f"Failed to render template {path}: {e}") from e

        return self._get_inline_prompt(path, context)

    def _get_inline_prompt(self, path: str, context: Dict[str, Any]) -> str:
        template_str = INLINE_PROMPTS.get(path)
        if template_str is None:
            logger.warning(
                "No inline fallback for prompt path",
                extra={"path": path, "available": list(INLINE_PROMPTS.keys())},
            )
            raise PromptLoaderError(
                f"Prompt not found: {path}. "
                f"Available inline prompts: {list(INLINE_PROMPTS.keys())}"
            )

        try:
            return jinja2.Template(template_str).render(**context)
        except jinja2.TemplateError as e:
            logger.error(
                "Failed to render inline template",
                extra={"path": path, "error": str(e)},
            )
            raise PromptLoaderError(f"Failed to render inline template {path}: {e}") from e

    def list_available(self) -> Dict[str, list[str]]:
        """List available prompt templates by origin."""
        result: Dict[str, list[str]] = {
            "filesystem": [],
            "inline": sorted(INLINE_PROMPTS.keys()),
        }
        if self.prompts_dir.is_dir():
            for md_file in self.prompts_dir.rglob("*.md"):
                result["filesystem"].append(md_file.relative_to(self.prompts_dir).as_posix())
        return result


__all__ = [
    "PromptLoader",
    "PromptLoaderError",
    "DEFAULT_PROMPTS_DIR",
    "EXTRACTION_SYSTEM_PROMPT",
    "INLINE_PROMPTS",
]
