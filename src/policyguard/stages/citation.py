"""
Citation stage.

When the policy requires citations, substantive responses must carry some
citation evidence and must not lean on blocked sources. Missing citations
are retried and then let through once the retry budget is spent; blocked
sources are retried and then refused.
"""

import logging
import re

from ..policy.schema import Policy
from .base import Abort, Continue, Message, Stage, StageContext, StageResult, last_text

logger = logging.getLogger(__name__)

SUBSTANTIVE_LENGTH = 200

KNOWN_SOURCE_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    "wikipedia": (re.compile(r"wikipedia\.org", re.I), re.compile(r"\bwikipedia\b", re.I)),
    "reddit": (re.compile(r"reddit\.com", re.I), re.compile(r"\breddit\b", re.I)),
    "social_media": (
        re.compile(r"twitter\.com|x\.com|facebook\.com|instagram\.com|tiktok\.com", re.I),
    ),
    "blogs": (re.compile(r"\bblog\b", re.I), re.compile(r"medium\.com", re.I), re.compile(r"wordpress\.com", re.I)),
}

CITATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bAct\s+\d{4}\b"),  # Housing Act 2004
    re.compile(r"\bs\.\d+"),  # s.213
    re.compile(r"\bss?\.\s*\d+"),  # ss. 213-215
    re.compile(r"\bSection\s+\d+", re.I),
    re.compile(r"\[?\d{4}\]?\s+[A-Z][A-Za-z]+(?:\s+[A-Za-z]+)*\s+\d+"),  # [2024] EWCA Civ 123
    re.compile(r"v\.\s+"),  # Smith v. Jones
    re.compile(r"legislation\.gov\.uk", re.I),
    re.compile(r"§\s*\d+"),
    re.compile(r"https?://[^\s]+"),
)

MSG_NO_AUTHORITATIVE = "I'm unable to provide a response using only authoritative sources for this query."
MSG_MISSING_CITATIONS = (
    "Response lacks citations. All substantive information must cite "
    "relevant legislation, case law, or authoritative sources."
)


def source_patterns(source: str) -> tuple[re.Pattern[str], ...]:
    """
    Detection patterns for a blocked source label.

    Args:
        source: Source label ("wikipedia", "blogs", "content_farms", ...)

    Returns:
        Known patterns, or one built from the label with underscores
        matching whitespace or underscores.
    """
    known = KNOWN_SOURCE_PATTERNS.get(source)
    if known is not None:
        return known
    return (re.compile(r"[\s_]".join(re.escape(part) for part in source.split("_")), re.I),)


def has_citation(text: str) -> bool:
    return any(p.search(text) for p in CITATION_PATTERNS)


class CitationStage(Stage):
    """Blocked-source and citation-evidence checks."""

    name = "citation"

    def __init__(self, policy: Policy) -> None:
        citations = policy.requirements.citations
        self.policy = policy
        self.required = citations.required
        self.allowed_sources = citations.allowed_sources
        self.blocked: list[tuple[str, tuple[re.Pattern[str], ...]]] = [
            (source, source_patterns(source)) for source in citations.blocked_sources
        ]

    def on_result(self, messages: list[Message], ctx: StageContext) -> StageResult:
        if not self.required:
            return Continue(messages)

        text = last_text(messages, "assistant")
        if text is None:
            return Continue(messages)

        for source, patterns in self.blocked:
            if any(p.search(text) for p in patterns):
                logger.warning(f"📚 Response references blocked source '{source}'")
                if ctx.retries_exhausted:
                    return Abort(MSG_NO_AUTHORITATIVE)
                return Abort(
                    f'Response references "{source}" which is a blocked source. '
                    f"Use authoritative sources only: {', '.join(self.allowed_sources)}",
                    retry=True,
                )

        if len(text) > SUBSTANTIVE_LENGTH and not has_citation(text):
            if ctx.retries_exhausted:
                logger.info("📚 Response still lacks citations after retries, letting it through")
                return Continue(messages)
            logger.warning("📚 Substantive response lacks citations")
            return Abort(MSG_MISSING_CITATIONS, retry=True)

        return Continue(messages)


def create_citation_stage(policy: Policy) -> CitationStage:
    return CitationStage(policy)
