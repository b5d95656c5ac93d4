from __future__ import annotations

from pathlib import Path
from string import Template
from typing import Optional


def load_prompt(prompt_path: Path) -> str:
    """Purpose: Load a prompt file as UTF-8 text and strip BOM if present.
    Inputs/Outputs: Input is a Path to the prompt file; output is the decoded string.
    Side Effects / State: None; pure function reading the filesystem.
    Dependencies: Uses Path.read_text/read_bytes; used by the chat pipeline.
    Failure Modes: UnicodeDecodeError triggers a fallback decode with errors ignored,
        which can drop invalid bytes. A missing file raises FileNotFoundError.
    If Removed: The generator is called without its formatting rules.
    Testing Notes: Validate BOM-stripping and fallback decoding on non-UTF8 files.
    """
    # Read as UTF-8 and fall back to a tolerant decode if needed.
    try:
        return prompt_path.read_text(encoding="utf-8").lstrip("\ufeff")
    except UnicodeDecodeError:
        raw = prompt_path.read_bytes()
        return raw.decode("utf-8", errors="ignore").lstrip("\ufeff")


def render_system_prompt(template_text: str, featured_url: str, preferred_tag: Optional[str]) -> str:
    """Fill the system prompt template; unknown $placeholders are left untouched."""
    if preferred_tag:
        hint = (
            f"The most relevant store tag for this message is likely: {preferred_tag}. "
            "Prefer it in placeholders when it fits."
        )
    else:
        hint = "No store tag was detected for this message; choose the nearest relevant tag."
    return Template(template_text).safe_substitute(
        featured_url=featured_url,
        preferred_tag_hint=hint,
    ).strip()
