"""Per-turn orchestration for the wellness advisor chat.

Role:
    Turns an inbound conversation into a finished reply. Owns the TurnContext
    contract and delegates every tag and link decision to the LinkEngine.

Turn data contract (fields passed across steps):
    - messages: inbound conversation with client system messages removed.
    - latest_user_message / user_messages: text the tag resolution reads.
    - preferred_tag: single tag for this turn, or None.
    - system_prompt: rendered instructions sent with the history.
    - raw_reply: generator output before post-processing.
    - reply / footer_tags: final text and the tags listed in its footer.

Step contracts:
    Intent Resolution:
        Reads latest_user_message; sets preferred_tag.
    Prompt Assembly:
        Renders the system prompt template with the featured link and tag hint.
    Generation:
        The only blocking call. Raises GenerationError when there is no reply.
    Post Processing:
        Runs the link engine pipeline over raw_reply; sets reply and footer_tags.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .featured_services import DEFAULT_WATSU_URL
from .gemini_client import GeminiClient
from .link_engine import LinkEngine
from .prompt_loader import load_prompt, render_system_prompt
from .step_runner import PipelineStep, StepRunner

logger = logging.getLogger("advisor.agent")

SYSTEM_PROMPT_FILE = "system_prompt.txt"


@dataclass
class TurnContext:
    """Mutable context passed through each turn step."""
    turn_id: str
    messages: List[Dict[str, str]]
    latest_user_message: str = ""
    user_messages: List[str] = field(default_factory=list)
    preferred_tag: Optional[str] = None
    system_prompt: str = ""
    raw_reply: str = ""
    reply: str = ""
    footer_tags: List[str] = field(default_factory=list)


def conversation_from_payload(messages: Sequence[Dict[str, str]]) -> List[Dict[str, str]]:
    """Keep user and assistant turns with string content; the server owns the system prompt."""
    history: List[Dict[str, str]] = []
    for message in messages:
        role = message.get("role")
        content = message.get("content")
        if role not in ("user", "assistant") or not isinstance(content, str):
            continue
        history.append({"role": role, "content": content})
    return history


class WellnessAdvisorAgent:
    def __init__(
        self,
        gemini: GeminiClient,
        engine: LinkEngine,
        prompts_dir: Path,
        featured_url: Optional[str] = None,
    ) -> None:
        """Purpose: Initialize the turn pipeline runner and dependencies.
        Inputs/Outputs: Inputs are the Gemini client, link engine, prompt directory, and
            featured service URL; no return value.
        Side Effects / State: Loads the system prompt template once and builds the runner.
        Dependencies: StepRunner/PipelineStep and the step methods on this class.
        Failure Modes: A missing prompt file raises FileNotFoundError at startup.
        If Removed: The chat endpoint cannot produce replies.
        Testing Notes: Instantiate with a mocked client and a real engine.
        """
        # Store dependencies and build the step runner.
        self._gemini = gemini
        self._engine = engine
        self._prompt_template = load_prompt(prompts_dir / SYSTEM_PROMPT_FILE)
        self._featured_url = featured_url or DEFAULT_WATSU_URL
        self._runner: StepRunner[TurnContext] = StepRunner(
            [
                PipelineStep("intent_resolution", self._step_intent_resolution),
                PipelineStep("prompt_assembly", self._step_prompt_assembly),
                PipelineStep("generation", self._step_generation),
                PipelineStep("post_processing", self._step_post_processing),
            ]
        )

    def handle_messages(self, messages: Sequence[Dict[str, str]]) -> TurnContext:
        """Purpose: Run the full turn pipeline for an inbound conversation.
        Inputs/Outputs: Input is the message list from the request; output is the
            populated TurnContext.
        Side Effects / State: Logging only; nothing is persisted between turns.
        Dependencies: StepRunner.run.
        Failure Modes: GenerationError from the generation step propagates.
        If Removed: The chat handler cannot execute the pipeline.
        Testing Notes: Mock generate_reply and check reply and footer_tags.
        """
        history = conversation_from_payload(messages)
        user_messages = [message["content"] for message in history if message["role"] == "user"]
        context = TurnContext(
            turn_id=uuid.uuid4().hex[:12],
            messages=history,
            latest_user_message=user_messages[-1] if user_messages else "",
            user_messages=user_messages,
        )
        logger.info("turn=%s messages=%d", context.turn_id, len(history))
        self._runner.run(context)
        return context

    def _step_intent_resolution(self, context: TurnContext) -> None:
        context.preferred_tag = self._engine.resolve_turn_tag(context.latest_user_message)
        logger.info("turn=%s preferred_tag=%s", context.turn_id, context.preferred_tag)

    def _step_prompt_assembly(self, context: TurnContext) -> None:
        context.system_prompt = render_system_prompt(
            self._prompt_template,
            featured_url=self._featured_url,
            preferred_tag=context.preferred_tag,
        )

    def _step_generation(self, context: TurnContext) -> None:
        """Purpose: Call the generator once and keep its raw reply.
        Inputs/Outputs: Input is TurnContext; sets raw_reply.
        Side Effects / State: One upstream request.
        Dependencies: GeminiClient.generate_reply.
        Failure Modes: GenerationError is not retried here; it ends the turn.
        If Removed: There is nothing to post-process.
        Testing Notes: Make the mock raise and confirm the error reaches the caller.
        """
        context.raw_reply = self._gemini.generate_reply(
            context.messages,
            system_instruction=context.system_prompt,
        )
        logger.debug("turn=%s raw_reply_chars=%d", context.turn_id, len(context.raw_reply))

    def _step_post_processing(self, context: TurnContext) -> None:
        state = self._engine.finalize_reply(
            context.raw_reply,
            context.preferred_tag,
            user_messages=context.user_messages,
        )
        context.reply = state.text
        context.footer_tags = state.footer_tags
        logger.info(
            "turn=%s step=post_processing footer_tags=%s",
            context.turn_id,
            ",".join(context.footer_tags) or "-",
        )
