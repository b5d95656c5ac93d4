from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

BASE_DIR = Path(__file__).resolve().parent

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Configuration container for the model, tag vocabulary, and reply limits."""
    gemini_api_key: str
    gemini_model: str
    gemini_auto_select: bool
    temperature: float
    max_output_tokens: int
    tags_path: Path
    tag_policy_path: Optional[Path]
    prompts_dir: Path
    footer_limit: int
    history_scan_limit: int
    watsu_url: Optional[str]
    port: int


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for default paths.
    Failure Modes: Invalid numeric env values (FOOTER_LIMIT, PORT, ...) raise ValueError.
    If Removed: App cannot configure the model or find the tag vocabulary at startup.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve vocabulary, policy, and prompt paths, then build Settings.
    tags_path = os.getenv("TAGS_PATH")
    if tags_path:
        tags_file = Path(tags_path)
    else:
        tags_file = (BASE_DIR / ".." / "resources" / "tags_unique.json").resolve()

    policy_path = os.getenv("TAG_POLICY_PATH")

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        gemini_auto_select=_env_flag("GEMINI_AUTO_SELECT", True),
        temperature=float(os.getenv("GEMINI_TEMPERATURE", "0.5")),
        max_output_tokens=int(os.getenv("MAX_OUTPUT_TOKENS", "4096")),
        tags_path=tags_file,
        tag_policy_path=Path(policy_path) if policy_path else None,
        prompts_dir=(BASE_DIR / "prompts").resolve(),
        footer_limit=int(os.getenv("FOOTER_LIMIT", "8")),
        history_scan_limit=int(os.getenv("HISTORY_SCAN_LIMIT", "12")),
        watsu_url=os.getenv("LINK_WATSU") or None,
        port=int(os.getenv("PORT", "10000")),
    )
