"""Tag resolution and link injection engine.

Post-processing runs as an explicit, strictly ordered pipeline. Each stage is a pure
function of the reply text, the turn's preferred tag, and the shared read-only
registry, and each stage's output is valid input for the next:

    placeholders -> raw link repair -> one link per section -> featured services -> footer
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .config import Settings
from .featured_services import FeaturedService, apply_featured_services, watsu_service
from .intent_resolver import IntentResolver
from .link_sanitizer import sanitize_links
from .placeholders import resolve_placeholders
from .related_tags import DEFAULT_FOOTER_LIMIT, RelatedTagExpander, append_footer
from .section_enforcer import enforce_one_link_per_section
from .step_runner import PipelineStep, StepRunner
from .tag_extractor import TagExtractor
from .tag_policy import RegistryPolicy, load_policy
from .tag_registry import TagRegistry
from .tag_source import TagSource

logger = logging.getLogger("advisor.engine")


@dataclass
class ReplyState:
    """Request-scoped state threaded through the post-processing stages."""
    text: str
    preferred_tag: Optional[str] = None
    user_text: str = ""
    historical_tags: List[str] = field(default_factory=list)
    footer_tags: List[str] = field(default_factory=list)


class LinkEngine:
    """Facade over the registry and every post-processing stage."""

    def __init__(
        self,
        registry: TagRegistry,
        featured_services: Sequence[FeaturedService] = (),
        footer_limit: int = DEFAULT_FOOTER_LIMIT,
        history_scan_limit: int = 12,
    ) -> None:
        """Purpose: Wire the stages around one immutable registry.
        Inputs/Outputs: Inputs are the registry, featured entries, and footer/history caps.
        Side Effects / State: Compiles tag patterns once and builds the stage runner.
        Dependencies: TagExtractor, IntentResolver, RelatedTagExpander, StepRunner.
        Failure Modes: None; an empty registry makes every stage inert.
        If Removed: The chat pipeline has no way to post-process replies.
        Testing Notes: Build from a small allow-list and run finalize_reply.
        """
        self._registry = registry
        self._extractor = TagExtractor(registry)
        self._intent = IntentResolver(registry, self._extractor)
        self._expander = RelatedTagExpander(registry, self._extractor)
        self._featured = tuple(featured_services)
        self._footer_limit = footer_limit
        self._history_scan_limit = history_scan_limit
        self._runner: StepRunner[ReplyState] = StepRunner(
            [
                PipelineStep("placeholders", self._step_placeholders),
                PipelineStep("link_sanitizer", self._step_sanitize),
                PipelineStep("section_enforcer", self._step_sections),
                PipelineStep("featured_services", self._step_featured, skip_if=lambda _: not self._featured),
                PipelineStep("footer", self._step_footer),
            ]
        )

    @property
    def registry(self) -> TagRegistry:
        return self._registry

    @property
    def extractor(self) -> TagExtractor:
        return self._extractor

    def extract(self, text: str) -> List[str]:
        return self._extractor.extract(text)

    def resolve_turn_tag(self, message: str) -> Optional[str]:
        return self._intent.resolve_turn_tag(message)

    def resolve_placeholders(self, text: str, preferred_tag: Optional[str]) -> str:
        return resolve_placeholders(text, preferred_tag, self._registry)

    def sanitize_links(self, text: str, preferred_tag: Optional[str]) -> str:
        return sanitize_links(text, preferred_tag, self._registry)

    def enforce_one_link_per_section(self, text: str, preferred_tag: Optional[str]) -> str:
        return enforce_one_link_per_section(text, preferred_tag, self._registry)

    def historical_tags(self, user_messages: Sequence[str]) -> List[str]:
        return self._expander.historical_tags(user_messages, self._history_scan_limit)

    def expand_footer(
        self,
        preferred_tag: Optional[str],
        historical_tags: Sequence[str],
        reply_text: str,
        limit: Optional[int] = None,
    ) -> List[str]:
        return self._expander.expand_footer(
            preferred_tag,
            historical_tags,
            reply_text,
            self._footer_limit if limit is None else limit,
        )

    def finalize_reply(
        self,
        reply_text: str,
        preferred_tag: Optional[str],
        user_messages: Sequence[str] = (),
    ) -> ReplyState:
        """Purpose: Run the full post-processing pipeline over one generated reply.
        Inputs/Outputs: Inputs are reply text, preferred tag, and prior user messages;
            output is the final ReplyState (text plus footer tags).
        Side Effects / State: None outside the returned state; info/debug logging.
        Dependencies: StepRunner over the five stage methods.
        Failure Modes: Stages never raise for bad tags or links.
        If Removed: Replies would reach users with raw placeholders and invalid links.
        Testing Notes: Placeholders, duplicate links, and footer ordering in one pass.
        """
        state = ReplyState(
            text=reply_text or "",
            preferred_tag=self._registry.normalize(preferred_tag),
            user_text="\n\n".join(message for message in user_messages if message),
            historical_tags=self.historical_tags(user_messages),
        )
        self._runner.run(state)
        logger.info(
            "reply finalized preferred_tag=%s footer_tags=%d chars=%d",
            state.preferred_tag,
            len(state.footer_tags),
            len(state.text),
        )
        return state

    def _step_placeholders(self, state: ReplyState) -> None:
        state.text = self.resolve_placeholders(state.text, state.preferred_tag)

    def _step_sanitize(self, state: ReplyState) -> None:
        state.text = self.sanitize_links(state.text, state.preferred_tag)

    def _step_sections(self, state: ReplyState) -> None:
        state.text = self.enforce_one_link_per_section(state.text, state.preferred_tag)

    def _step_featured(self, state: ReplyState) -> None:
        state.text = apply_featured_services(state.text, state.user_text, self._featured)

    def _step_footer(self, state: ReplyState) -> None:
        state.footer_tags = self.expand_footer(state.preferred_tag, state.historical_tags, state.text)
        state.text = append_footer(state.text, state.footer_tags)


def build_engine(settings: Settings, policy: Optional[RegistryPolicy] = None) -> LinkEngine:
    """Load the vocabulary and policy named by settings and build the engine once."""
    tags, _meta = TagSource(settings.tags_path).load()
    registry = TagRegistry.build(tags, policy or load_policy(settings.tag_policy_path))
    featured = [watsu_service(settings.watsu_url)]
    return LinkEngine(
        registry,
        featured_services=featured,
        footer_limit=settings.footer_limit,
        history_scan_limit=settings.history_scan_limit,
    )
