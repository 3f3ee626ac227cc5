"""Load prompt templates from Markdown files with YAML frontmatter."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"


@dataclass
class PromptTemplate:
    """A parsed prompt from a markdown file."""

    name: str
    description: str
    body: str
    model_params: Dict[str, Any] = field(default_factory=dict)
    file_path: Optional[str] = None

    @property
    def temperature(self) -> Optional[float]:
        value = self.model_params.get("temperature")
        return float(value) if value is not None else None


def parse_prompt_file(path: Path) -> PromptTemplate:
    """Parse a single prompt markdown file.

    Expected format:
        ---
        prompt_name: ...
        description: ...
        model_params: {temperature: 0.8}
        ---
        Prompt body in markdown

    Raises ValueError on missing or malformed frontmatter.
    """
    text = path.read_text(encoding="utf-8")

    if not text.startswith("---"):
        raise ValueError(f"Prompt file {path} missing YAML frontmatter")

    parts = text.split("---", 2)
    if len(parts) < 3:
        raise ValueError(f"Prompt file {path} has malformed frontmatter")

    try:
        meta = yaml.safe_load(parts[1].strip())
    except yaml.YAMLError as exc:
        raise ValueError(f"Failed to parse YAML in {path}: {exc}") from exc

    if not isinstance(meta, dict):
        raise ValueError(f"Frontmatter in {path} is not a mapping")

    return PromptTemplate(
        name=meta.get("prompt_name", path.stem),
        description=meta.get("description", ""),
        body=parts[2].strip(),
        model_params=meta.get("model_params") or {},
        file_path=str(path),
    )


@lru_cache(maxsize=None)
def load_prompt(name: str, prompts_dir: Path = PROMPTS_DIR) -> PromptTemplate:
    """Load the prompt template ``<prompts_dir>/<name>.md``."""
    path = prompts_dir / f"{name}.md"
    template = parse_prompt_file(path)
    logger.debug("Loaded prompt: %s (%s)", template.name, path)
    return template
