"""
Sequence template library.

Templates are read-only starting points stored as .json / .yaml files in
the templates directory. A file holds one template object, or a list of
them under "templates":

    id: cold-intro
    name: Cold intro
    description: Connect, then follow up once
    category: cold-outreach
    icon: connection
    actions: [SEND_CONNECTION_REQUEST, SEND_MESSAGE]
    sequence: {action: {type: INITIATED, ...}}

Invalid files and entries are logged and skipped.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from sequence_graph.action_config import ActionConfig
from sequence_graph.config import resolve_path_setting
from sequence_graph.conversion import deserialize
from sequence_graph.graph import Graph
from sequence_graph.layout import arrange_graph

logger = logging.getLogger(__name__)

CATEGORIES = {
    "cold-outreach": "Cold Outreach",
    "follow-up": "Follow-up",
    "nurture": "Nurture",
    "engagement": "Engagement",
}

TEMPLATE_SUFFIXES = ('.json', '.yaml', '.yml')


@dataclass
class SequenceTemplate:
    id: str
    name: str
    description: str
    category: str
    sequence: Dict[str, Any]
    actions: List[str] = field(default_factory=list)
    icon: Optional[str] = None

    @property
    def category_label(self) -> str:
        return CATEGORIES.get(self.category, self.category)


def validate_template(raw: Any, source: str = "") -> List[str]:
    """Validate a raw template object. Returns list of error messages."""
    where = f"{source}: " if source else ""
    if not isinstance(raw, dict):
        return [f"{where}template must be an object"]

    errors = []
    for key in ('id', 'name', 'category'):
        if not isinstance(raw.get(key), str) or not raw.get(key):
            errors.append(f"{where}missing required '{key}'")
    if raw.get('category') and raw.get('category') not in CATEGORIES:
        errors.append(f"{where}invalid category '{raw['category']}' (must be: {', '.join(CATEGORIES)})")
    if not isinstance(raw.get('sequence'), dict):
        errors.append(f"{where}'sequence' must be an object")
    actions = raw.get('actions')
    if actions is not None and (not isinstance(actions, list) or not all(isinstance(a, str) for a in actions)):
        errors.append(f"{where}'actions' must be an array of strings")
    return errors


def _from_dict(raw: Dict[str, Any]) -> SequenceTemplate:
    return SequenceTemplate(
        id=raw['id'],
        name=raw['name'],
        description=raw.get('description') or '',
        category=raw['category'],
        sequence=raw['sequence'],
        actions=list(raw.get('actions') or []),
        icon=raw.get('icon'),
    )


class TemplateLibrary:
    """
    Loads templates from disk once and serves them by id and category.
    """

    def __init__(self, templates_dir: Path = None):
        self.templates_dir = Path(templates_dir) if templates_dir else resolve_path_setting("templates_dir")
        self._cache: Optional[Dict[str, SequenceTemplate]] = None

    def _read_file(self, path: Path) -> List[Any]:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() == '.json':
                content = json.load(f)
            else:
                content = yaml.safe_load(f)
        if isinstance(content, dict) and isinstance(content.get('templates'), list):
            return content['templates']
        return [content]

    def load(self, use_cache: bool = True) -> Dict[str, SequenceTemplate]:
        """Return all valid templates keyed by id."""
        if use_cache and self._cache is not None:
            return self._cache

        templates: Dict[str, SequenceTemplate] = {}
        if self.templates_dir.is_dir():
            files = sorted(p for p in self.templates_dir.iterdir() if p.suffix.lower() in TEMPLATE_SUFFIXES)
            for path in files:
                try:
                    entries = self._read_file(path)
                except (json.JSONDecodeError, yaml.YAMLError, OSError) as e:
                    logger.warning(f"Failed to read template file {path}: {e}")
                    continue
                for raw in entries:
                    errors = validate_template(raw, path.name)
                    if errors:
                        for error in errors:
                            logger.warning(f"Skipping invalid template: {error}")
                        continue
                    if raw['id'] in templates:
                        logger.warning(f"Duplicate template id '{raw['id']}' in {path.name}, keeping the first")
                        continue
                    templates[raw['id']] = _from_dict(raw)
        else:
            logger.warning(f"Templates directory not found: {self.templates_dir}")

        if use_cache:
            self._cache = templates
        return templates

    def clear_cache(self) -> None:
        self._cache = None

    def list_templates(self, category: Optional[str] = None) -> List[SequenceTemplate]:
        templates = list(self.load().values())
        if category is not None:
            templates = [t for t in templates if t.category == category]
        return templates

    def get_template(self, template_id: str) -> Optional[SequenceTemplate]:
        return self.load().get(template_id)

    def search(self, query: str) -> List[SequenceTemplate]:
        """Case-insensitive match on name, description or category label."""
        if not query:
            return self.list_templates()
        needle = query.lower()
        return [
            t for t in self.load().values()
            if needle in t.name.lower() or needle in t.description.lower() or needle in t.category_label.lower()
        ]

    def grouped(self) -> Dict[str, List[SequenceTemplate]]:
        """Templates grouped by category, in first-seen order."""
        groups: Dict[str, List[SequenceTemplate]] = {}
        for template in self.load().values():
            groups.setdefault(template.category, []).append(template)
        return groups


def preview_graph(template: SequenceTemplate, config: ActionConfig) -> Graph:
    """Read-only preview: every end is rendered as a terminal, then arranged."""
    return arrange_graph(deserialize(template.sequence, config, strict_end_kind=True))


# Global instance for convenience
_library: Optional[TemplateLibrary] = None


def get_template_library() -> TemplateLibrary:
    """Get the global TemplateLibrary instance."""
    global _library
    if _library is None:
        _library = TemplateLibrary()
    return _library
