"""Loader for the planner's markdown prompt templates."""

import re
from functools import lru_cache
from pathlib import Path
from typing import Any

PROMPT_DIR = Path(__file__).parent

_VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


@lru_cache(maxsize=None)
def load_prompt(prompt_name: str) -> str:
    """Load a prompt template from ``{prompt_name}.md``.

    The leading ``# Title`` line of the file is documentation and is not part
    of the prompt.

    Raises:
        FileNotFoundError: If the prompt file doesn't exist
    """
    prompt_file = PROMPT_DIR / f"{prompt_name}.md"
    if not prompt_file.exists():
        raise FileNotFoundError(f"Prompt file not found: {prompt_file}")

    lines = prompt_file.read_text(encoding="utf-8").split("\n")
    if lines and lines[0].startswith("#"):
        lines = lines[1:]
    return "\n".join(lines).strip()


def extract_variables(prompt_template: str) -> set[str]:
    """Return the ``{{variable}}`` names used by a template."""
    return set(_VARIABLE_PATTERN.findall(prompt_template))


def format_prompt(prompt_template: str, variables: dict[str, Any]) -> str:
    """Substitute ``{{variable}}`` placeholders.

    The template and the provided variables must match exactly.

    Raises:
        ValueError: If provided variables don't exist in the template
        KeyError: If template variables are missing from provided values
    """
    expected = extract_variables(prompt_template)
    provided = set(variables)

    unused = provided - expected
    if unused:
        raise ValueError(
            f"Variables provided but not in template: {sorted(unused)}. Template expects: {sorted(expected)}"
        )

    missing = expected - provided
    if missing:
        raise KeyError(f"Missing required variables: {sorted(missing)}")

    # Single pass so substituted values containing {{...}} are left untouched
    return _VARIABLE_PATTERN.sub(lambda match: str(variables[match.group(1)]), prompt_template)
