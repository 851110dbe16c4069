"""Prompt registry: LLM prompts kept as Markdown files under prompts/.

Usage:
    from examadmin.prompts.registry import get_prompt

    prompt = get_prompt("extraction/user", pdf_text=text, answer_key_section="")
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

# Repository-root prompts directory
PROMPTS_DIR = Path(__file__).parent.parent.parent.parent / "prompts"


@lru_cache(maxsize=32)
def _load_prompt(key: str) -> str:
    """Read a prompt file by key, e.g. "extraction/system_scholarship".

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    file_path = PROMPTS_DIR / f"{key}.md"
    if not file_path.exists():
        raise FileNotFoundError(f"Prompt not found: {key} (looked at {file_path})")
    return file_path.read_text(encoding="utf-8")


def get_prompt(key: str, **variables: object) -> str:
    """Load a prompt and substitute {name} placeholders.

    Placeholders without a matching variable are left untouched, so
    literal JSON braces in a prompt survive.
    """
    content = _load_prompt(key)
    for name, value in variables.items():
        content = content.replace(f"{{{name}}}", str(value))
    return content


def list_prompts() -> list[str]:
    """Sorted keys of every available prompt."""
    if not PROMPTS_DIR.exists():
        logger.warning("prompts.dir_not_found", path=str(PROMPTS_DIR))
        return []

    return sorted(
        path.relative_to(PROMPTS_DIR).with_suffix("").as_posix()
        for path in PROMPTS_DIR.rglob("*.md")
    )


def clear_cache() -> None:
    """Forget cached prompt files."""
    _load_prompt.cache_clear()
