from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import google.generativeai as genai

from .config import Settings

logger = logging.getLogger("advisor.gemini")

DEFAULT_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_ONLY_HIGH"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_ONLY_HIGH"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_ONLY_HIGH"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_ONLY_HIGH"},
]

_VERSION_RE = re.compile(r"gemini-(\d+(?:\.\d+)?)")
_EXCLUDED_MODEL_MARKERS = ("exp", "preview", "tts", "image", "embedding", "vision", "live", "audio")


class GenerationError(RuntimeError):
    """The upstream generator failed or returned no usable text for this turn."""


class GeminiClient:
    """Thin wrapper around the Gemini SDK with model caching and selection."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Configure the Gemini SDK and initialize the model cache.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Configures SDK global API key and caches model instances.
        Dependencies: Uses google.generativeai and Settings from config.
        Failure Modes: Raises ValueError if API key or model name is missing.
        If Removed: The chat endpoint has no generator to call.
        Testing Notes: Validate missing key raises ValueError and models are cached.
        """
        # Configure API key and seed the default model.
        self._settings = settings
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required")
        self._model_name = _normalize_model_name(settings.gemini_model)
        if not self._model_name:
            raise ValueError("Gemini model name is required")
        genai.configure(api_key=settings.gemini_api_key)
        self._models: Dict[str, genai.GenerativeModel] = {}

    @property
    def model_name(self) -> str:
        return self._model_name

    def select_model(self) -> str:
        """Purpose: Pick the chat model from the models this key can use.
        Inputs/Outputs: No inputs; returns the model name now in use.
        Side Effects / State: Updates the instance's active model name.
        Dependencies: genai.list_models and rank_models.
        Failure Modes: Listing errors are logged and the configured model is kept.
        If Removed: The configured model is always used, even if retired.
        Testing Notes: Patch genai.list_models with stub entries and check the choice.
        """
        # The configured model wins whenever it is still offered.
        if not self._settings.gemini_auto_select:
            return self._model_name
        try:
            available = [
                _normalize_model_name(model.name)
                for model in genai.list_models()
                if "generateContent" in (getattr(model, "supported_generation_methods", None) or [])
            ]
        except Exception as exc:
            logger.error("Failed to fetch models: %s", exc)
            return self._model_name

        if self._model_name in available:
            logger.info("Using configured model: %s", self._model_name)
            return self._model_name
        ranked = rank_models(available)
        if ranked:
            self._model_name = ranked[0]
            logger.info("Auto-selected model: %s", self._model_name)
        else:
            logger.warning("No chat-capable Gemini models listed; keeping %s", self._model_name)
        return self._model_name

    def generate_reply(
        self,
        history: Sequence[Dict[str, str]],
        system_instruction: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        """Purpose: Generate the assistant reply for a conversation history.
        Inputs/Outputs: Input is a list of {"role", "content"} dicts and an optional
            system prompt; returns the reply text.
        Side Effects / State: May add a model to the internal cache.
        Dependencies: Uses genai.GenerativeModel.generate_content and flatten_contents.
        Failure Modes: Any SDK error or an empty reply raises GenerationError.
        If Removed: There is no reply to post-process.
        Testing Notes: Mock GenerativeModel and test the TypeError fallback path.
        """
        # Build Gemini contents, then call with system_instruction support if present.
        contents = to_contents(history)
        if not contents:
            raise GenerationError("conversation has no user or assistant content")
        generation_config = {
            "temperature": self._settings.temperature if temperature is None else temperature,
            "max_output_tokens": max_output_tokens or self._settings.max_output_tokens,
        }

        try:
            try:
                response = self._get_model(system_instruction).generate_content(
                    contents,
                    generation_config=generation_config,
                    safety_settings=DEFAULT_SAFETY_SETTINGS,
                )
            except TypeError:
                # Older SDKs lack system_instruction; send one flattened prompt instead.
                prompt = flatten_contents(contents)
                if system_instruction:
                    prompt = f"{system_instruction}\n\n{prompt}"
                response = self._get_model(None).generate_content(
                    prompt,
                    generation_config=generation_config,
                    safety_settings=DEFAULT_SAFETY_SETTINGS,
                )
            text: Optional[str] = getattr(response, "text", None)
        except Exception as exc:
            raise GenerationError(f"generation failed: {exc}") from exc

        text = (text or "").strip()
        if not text:
            raise GenerationError("generator returned no content")
        return text

    def _get_model(self, system_instruction: Optional[str]) -> "genai.GenerativeModel":
        # The system prompt varies per turn, so only bare models are cached.
        if system_instruction:
            return genai.GenerativeModel(self._model_name, system_instruction=system_instruction)
        if self._model_name not in self._models:
            self._models[self._model_name] = genai.GenerativeModel(self._model_name)
        return self._models[self._model_name]


def rank_models(names: Iterable[str]) -> List[str]:
    """Order candidate model names best-first: newest version, flash before pro."""
    def _key(name: str) -> Tuple[float, int, int, str]:
        match = _VERSION_RE.search(name)
        version = float(match.group(1)) if match else 0.0
        tier = 1 if "flash" in name else 0
        return (-version, -tier, len(name), name)

    candidates = {
        name
        for name in names
        if name.startswith("gemini-") and not any(marker in name for marker in _EXCLUDED_MODEL_MARKERS)
    }
    return sorted(candidates, key=_key)


def to_contents(history: Sequence[Dict[str, str]]) -> List[dict]:
    """Map chat-widget roles onto Gemini roles, dropping system and empty turns."""
    contents: List[dict] = []
    for message in history:
        role = message.get("role")
        content = (message.get("content") or "").strip()
        if not content or role not in ("user", "assistant"):
            continue
        contents.append({"role": "user" if role == "user" else "model", "parts": [{"text": content}]})
    return contents


def _normalize_model_name(name: Optional[str]) -> str:
    """Purpose: Normalize model names by stripping prefix and whitespace.
    Inputs/Outputs: Input is a model name string; output is normalized name.
    Side Effects / State: None.
    Dependencies: None; used by GeminiClient.
    Failure Modes: Returns empty string for falsy input.
    If Removed: Model caching and selection may use invalid names and fail.
    Testing Notes: Ensure "models/foo" becomes "foo" and whitespace is trimmed.
    """
    # Strip "models/" prefix and whitespace.
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned


def flatten_contents(contents: list) -> str:
    """Purpose: Convert structured contents into a plain text prompt.
    Inputs/Outputs: Input is a list of content dicts; output is combined text.
    Side Effects / State: None.
    Dependencies: Used by GeminiClient when structured contents are unsupported.
    Failure Modes: Non-dict entries are skipped; returns empty string if no text parts.
    If Removed: Fallback path for older SDKs fails and raises TypeError.
    Testing Notes: Verify roles are prefixed and parts are concatenated correctly.
    """
    parts: list[str] = []
    for entry in contents:
        if not isinstance(entry, dict):
            continue
        role = entry.get("role", "")
        texts = [
            str(segment.get("text"))
            for segment in entry.get("parts", []) or []
            if isinstance(segment, dict) and segment.get("text")
        ]
        if texts:
            prefix = f"{role.upper()}: " if role else ""
            parts.append(prefix + "\n".join(texts))
    return "\n\n".join(parts)
