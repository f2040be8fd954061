"""
Disclaimer stage.

Adds required disclaimers and the human-review prompt to the final
response. Never aborts, and never inserts the same text twice.
"""

import logging
import re

from ..policy.schema import DisclaimerRule, DisclaimerTrigger, Placement, Policy
from .base import Continue, Message, Stage, StageContext, StageResult, content_text, find_last, replace_content

logger = logging.getLogger(__name__)

DOCUMENT_LENGTH = 500

DOCUMENT_PATTERN = re.compile(r"\b(dear |to whom|re:|subject:)", re.I)
CLAIM_PATTERN = re.compile(r"\bunder\s+(section|§)|statute|legal right|regulation", re.I)

REVIEW_TRIGGER_PATTERNS: dict[str, re.Pattern[str]] = {
    "finalize_document": re.compile(
        r"\b(dear |to whom|re:|subject:|letter before action|formal grievance|cease and desist|DRAFT)",
        re.I,
    ),
    "send_correspondence": re.compile(
        r"\b(send|dispatch|email|post|deliver)\b.*\b(letter|correspondence|notice)\b", re.I
    ),
    "provide_deadline": re.compile(r"\b(deadline|expires?|time limit|within \d+ days|must act before)\b", re.I),
}


def format_start(disclaimer: str, text: str) -> str:
    return f"_{disclaimer}_\n\n---\n\n{text}"


def format_end(text: str, disclaimer: str) -> str:
    return f"{text}\n\n---\n_{disclaimer}_"


def format_review(text: str, prompt: str) -> str:
    return f"{text}\n\n---\n⚠️ **{prompt}**"


class DisclaimerStage(Stage):
    """Disclaimer and human-review injection."""

    name = "disclaimer"

    def __init__(self, policy: Policy) -> None:
        self.policy = policy
        self.rules = policy.requirements.disclaimers
        self.custom_patterns: dict[int, re.Pattern[str]] = {
            i: re.compile(rule.custom_pattern, re.I)
            for i, rule in enumerate(self.rules)
            if rule.trigger == DisclaimerTrigger.custom and rule.custom_pattern
        }
        review = policy.requirements.human_review
        self.review_prompt = review.review_prompt
        self.review_patterns = [
            REVIEW_TRIGGER_PATTERNS[label] for label in review.required_before if label in REVIEW_TRIGGER_PATTERNS
        ]

    def triggered(self, index: int, rule: DisclaimerRule, text: str) -> bool:
        """
        Whether a disclaimer rule applies to a response.

        Args:
            index: Position of the rule in the policy.
            rule: Disclaimer rule.
            text: Response text.

        Returns:
            True if the disclaimer must be shown.
        """
        if rule.trigger == DisclaimerTrigger.always:
            return True
        if rule.trigger == DisclaimerTrigger.on_document_generation:
            return len(text) > DOCUMENT_LENGTH or bool(DOCUMENT_PATTERN.search(text))
        if rule.trigger in (DisclaimerTrigger.on_claim, DisclaimerTrigger.on_legal_claim):
            return bool(CLAIM_PATTERN.search(text))
        pattern = self.custom_patterns.get(index)
        return bool(pattern and pattern.search(text))

    def on_result(self, messages: list[Message], ctx: StageContext) -> StageResult:
        index = find_last(messages, "assistant")
        if index == -1:
            return Continue(messages)

        original = content_text(messages[index])
        text = original

        for i, rule in enumerate(self.rules):
            if rule.text in text or not self.triggered(i, rule, text):
                continue
            if rule.placement in (Placement.start, Placement.both):
                text = format_start(rule.text, text)
            if rule.placement in (Placement.end, Placement.both):
                text = format_end(text, rule.text)
            logger.debug(f"  📎 Disclaimer added ({rule.trigger.value}, {rule.placement.value})")

        if (
            self.review_patterns
            and self.review_prompt not in text
            and any(p.search(text) for p in self.review_patterns)
        ):
            text = format_review(text, self.review_prompt)
            logger.info("👀 Human review prompt added")

        if text == original:
            return Continue(messages)
        return Continue(replace_content(messages, index, text))


def create_disclaimer_stage(policy: Policy) -> DisclaimerStage:
    return DisclaimerStage(policy)
