"""
UK law extension module.

Contributes UK legal vocabularies (escalation topics, jurisdiction scopes,
prohibited legal-advice phrasing), a jurisdiction input stage, a prompt
fragment and descriptors for the UK legal tools. Tool implementations live
with the host runtime.
"""

import logging

from ..policy.schema import Policy, UnsupportedScopeBehavior
from ..stages.base import (
    STATUS_ESCALATED,
    Abort,
    Continue,
    Message,
    Stage,
    StageContext,
    StageResult,
    compile_keyword,
    first_match,
    last_text,
)
from .base import ExtensionModule, ToolSpec

logger = logging.getLogger(__name__)

EXTENSION_ID = "uk-law"

UK_SCOPE_PREFIX = "GB-"

JURISDICTION_NAMES = {
    "GB-EAW": "England & Wales",
    "GB-SCT": "Scotland",
    "GB-NIR": "Northern Ireland",
}

ESCALATION_KEYWORDS: dict[str, list[str]] = {
    "criminal_defence": [
        "criminal", "arrested", "charged with", "magistrate", "crown court",
        "caution", "police station", "solicitor at the station",
    ],
    "family_law_custody": [
        "custody", "divorce", "child support", "visitation", "family court",
        "child arrangement", "contact order", "residence order",
    ],
    "immigration_asylum": [
        "deportation", "removal", "immigration", "asylum", "visa refusal",
        "home office", "indefinite leave", "right to remain",
    ],
    "bankruptcy_insolvency": [
        "bankruptcy", "insolvency", "IVA", "individual voluntary arrangement",
        "debt relief order", "DRO", "winding up", "sequestration",
    ],
}

SCOPE_KEYWORDS: dict[str, list[str]] = {
    "GB-EAW": ["england", "wales", "english law", "welsh law", "county court", "high court", "crown court"],
    "GB-SCT": ["scotland", "scottish law", "scots law", "sheriff court", "court of session", "edinburgh"],
    "GB-NIR": ["northern ireland", "northern irish law", "belfast", "stormont"],
}

ACTION_PATTERNS: dict[str, str] = {
    "provide_legal_advice": (
        r"\b(I advise you to|my legal advice is|as your (solicitor|barrister)"
        r"|you should (sue|file a claim|bring proceedings))\b"
    ),
    "represent_as_solicitor": (
        r"\b(as your (solicitor|barrister|counsel)"
        r"|I('m| am) (a |your )(solicitor|barrister|lawyer)|representing you)\b"
    ),
    "make_legal_determinations": (
        r"\b(you will (definitely )?win|this is (definitely |clearly )?(illegal|legal)"
        r"|guaranteed (outcome|result))\b"
    ),
    "file_court_documents": r"\b(I('ll| will) file |filing on your behalf|submitting to (the )?court)\b",
    "contact_opposing_party": (
        r"\b(I('ll| will) contact (your |the )?(landlord|employer|opposing)"
        r"|reaching out to the other (party|side))\b"
    ),
}

# Non-UK legal systems the jurisdiction stage redirects
FOREIGN_JURISDICTION_KEYWORDS: dict[str, list[str]] = {
    "US": [
        "united states", "USA", "american law", "state law", "federal law",
        "first amendment", "fifth amendment",
    ],
    "EU": ["european union", "eu law", "european court", "ECHR", "european convention"],
    "AU": ["australia", "australian law"],
    "CA": ["canada", "canadian law"],
}

TOOLS: dict[str, ToolSpec] = {
    "formal-letter": ToolSpec(
        id="formal-letter",
        description="Draft a formal letter (letter before action, grievance, complaint) for human review.",
    ),
    "legislation-lookup": ToolSpec(
        id="legislation-lookup",
        description="Look up UK primary and secondary legislation on legislation.gov.uk.",
    ),
    "deadline-calculator": ToolSpec(
        id="deadline-calculator",
        description="Calculate statutory deadlines and limitation periods from a start date.",
    ),
    "case-law-search": ToolSpec(
        id="case-law-search",
        description="Search court judgments in the National Archives Find Case Law service.",
    ),
}


class JurisdictionStage(Stage):
    """Redirect questions about legal systems outside the UK."""

    name = "uk_law_jurisdiction"

    def __init__(self, policy: Policy) -> None:
        self.policy = policy
        self.allowed = policy.scope.allowed
        self.behavior = policy.scope.behavior_on_unsupported
        self.keywords = {
            jurisdiction: [(kw, compile_keyword(kw)) for kw in kws]
            for jurisdiction, kws in FOREIGN_JURISDICTION_KEYWORDS.items()
        }

    def on_input(self, messages: list[Message], ctx: StageContext) -> StageResult:
        if self.behavior == UnsupportedScopeBehavior.warn_and_attempt:
            return Continue(messages)

        text = last_text(messages, "user")
        if text is None:
            return Continue(messages)
        for jurisdiction, patterns in self.keywords.items():
            if first_match(patterns, text) is not None:
                logger.warning(f"🇬🇧 Non-UK jurisdiction {jurisdiction} referenced")
                return Abort(
                    f"I'm specifically configured for UK law ({', '.join(self.allowed)}). "
                    f"I detected a reference to {jurisdiction} law, which I cannot reliably advise on. "
                    f"{self.policy.scope.escalation_message}",
                    status=STATUS_ESCALATED,
                )

        return Continue(messages)


def create_jurisdiction_stage(policy: Policy) -> JurisdictionStage:
    return JurisdictionStage(policy)


def build_prompt_fragment(policy: Policy) -> str:
    """
    UK legal domain context for the system prompt.

    Args:
        policy: Policy the agent runs under.

    Returns:
        Prompt fragment naming the covered jurisdictions.
    """
    covered = [
        JURISDICTION_NAMES.get(scope, scope)
        for scope in policy.scope.allowed
        if scope.startswith(UK_SCOPE_PREFIX)
    ]
    return f"""## UK Legal Domain Context

You are a legal information assistant covering: {", ".join(covered) or "UK"}.

### Important Distinctions
- You provide **legal information**, NOT **legal advice**.
- Legal information explains what the law says, what rights exist and what processes are available.
- Legal advice tells someone what they should do in their specific situation.

### UK Legal System Basics
- The UK has three separate legal systems: England & Wales, Scotland, and Northern Ireland.
- Most legislation applies to specific jurisdictions. Always check which one applies.
- Case law establishes precedent and interprets legislation.

### Citation Standards
- Legislation: cite the Act name, year and section number (e.g. "Housing Act 1988, s.21").
- Case law: use neutral citations where available (e.g. "[2023] UKSC 1").
- Link to legislation.gov.uk or Find Case Law where possible."""


def uk_law_extension() -> ExtensionModule:
    """
    Build the UK law extension module.

    Returns:
        Extension module ready to register.
    """
    return ExtensionModule(
        id=EXTENSION_ID,
        name="UK Law",
        description=(
            "Legal information tools for England & Wales, Scotland, and Northern Ireland, "
            "backed by legislation.gov.uk and Find Case Law."
        ),
        version="0.1.0",
        tools=dict(TOOLS),
        input_stages=[create_jurisdiction_stage],
        prompt_fragment=build_prompt_fragment,
        escalation_keywords=ESCALATION_KEYWORDS,
        scope_keywords=SCOPE_KEYWORDS,
        action_patterns=ACTION_PATTERNS,
    )
