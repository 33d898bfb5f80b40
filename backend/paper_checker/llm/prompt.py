"""
Structure analysis prompt.

The rule catalogue is loaded from `paragraph-rules.json` and
`document-rules.json` in settings.rules_dir when present; otherwise the
built-in catalogue below is used. File format:

    {"rules": [{"id": "1", "title": "...", "fullText": "...",
                "checkpoints": [{"description": "..."}]}]}
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class Rule:
    id:          str
    title:       str
    full_text:   str = ""
    checkpoints: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: dict) -> "Rule":
        return cls(
            id=str(raw.get("id", "")),
            title=raw.get("title", ""),
            full_text=raw.get("fullText", ""),
            checkpoints=[
                cp.get("description", "") if isinstance(cp, dict) else str(cp)
                for cp in raw.get("checkpoints", [])
            ],
        )


DEFAULT_PARAGRAPH_RULES: list[Rule] = [
    Rule("P1", "Context-Content-Conclusion structure",
         "Each paragraph opens with context, delivers one content point, and closes with a conclusion.",
         ["Opening sentence sets context", "Body develops a single message", "Final sentence concludes"]),
    Rule("P2", "Sentence length and quality",
         "Sentences are concise and carry one idea each.",
         ["Average sentence length is moderate", "No run-on sentences"]),
    Rule("P3", "Topic continuity",
         "Consecutive sentences stay on the paragraph topic.",
         ["No abrupt topic switches"]),
    Rule("P4", "Terminology consistency",
         "The same concept is always named the same way.",
         ["Key terms are not swapped for synonyms"]),
    Rule("P5", "Structural parallelism",
         "Parallel ideas are expressed in parallel grammatical form.",
         ["Lists and comparisons share structure"]),
]

DEFAULT_DOCUMENT_RULES: list[Rule] = [
    Rule("D1", "Title quality", "The title states the main finding or question.",
         ["Specific", "Informative"]),
    Rule("D2", "Abstract completeness", "The abstract covers context, gap, approach, results and impact.",
         ["All five elements present"]),
    Rule("D3", "Introduction structure", "The introduction moves from broad context to the specific gap.",
         ["Gap stated explicitly", "Aim stated explicitly"]),
    Rule("D4", "Results coherence", "Results build the argument step by step.",
         ["Logical ordering of findings"]),
    Rule("D5", "Discussion effectiveness", "The discussion interprets results and states limitations.",
         ["Limitations addressed", "Broader impact stated"]),
    Rule("D6", "Message focus", "The paper carries one central message.",
         ["Central message identifiable"]),
    Rule("D7", "Topic organization", "Related points are grouped rather than revisited.",
         ["No zig-zagging between topics"]),
]


def _load_rules_file(path: str) -> list[Rule] | None:
    if not os.path.isfile(path):
        return None
    try:
        with open(path, encoding="utf-8") as fh:
            payload = json.load(fh)
        rules = [Rule.from_dict(r) for r in payload.get("rules", [])]
    except (OSError, ValueError, AttributeError) as exc:
        logger.error("Failed to load rules file | path=%s error=%s", path, exc)
        return None
    logger.info("Loaded rules | path=%s count=%d", path, len(rules))
    return rules


def load_rules(rules_dir: str = "") -> tuple[list[Rule], list[Rule]]:
    """Return (paragraph_rules, document_rules), falling back to the built-ins."""
    paragraph = document = None
    if rules_dir:
        paragraph = _load_rules_file(os.path.join(rules_dir, "paragraph-rules.json"))
        document  = _load_rules_file(os.path.join(rules_dir, "document-rules.json"))
    return paragraph or DEFAULT_PARAGRAPH_RULES, document or DEFAULT_DOCUMENT_RULES


def _format_rules(kind: str, rules: list[Rule]) -> str:
    blocks = []
    for rule in rules:
        checkpoints = "\n".join(f"- {cp}" for cp in rule.checkpoints)
        blocks.append(
            f"### {kind} Rule {rule.id}: {rule.title}\n{rule.full_text}\n"
            f"**Checkpoints:**\n{checkpoints}\n"
        )
    return "\n".join(blocks)


SYSTEM_PROMPT = (
    "You are an expert scientific writing analyzer. "
    "Analyze the provided paper text based on established best practices. "
    "Return ONLY a single, valid JSON object."
)

_OUTPUT_CONTRACT = """\
**REQUIRED OUTPUT FORMAT:**
Return ONLY a single, valid JSON object with the top-level keys "title", "abstract",
"documentAssessment", "majorIssues", "overallRecommendations", "sections".
- "abstract" and every "sections[*].paragraphs[*]" object contain "text", "summary",
  "evaluations" (boolean flags cccStructure, sentenceQuality, topicContinuity,
  terminologyConsistency, structuralParallelism) and an "issues" array of
  {"issue", "severity" (critical|major|minor), "recommendation"}.
- "documentAssessment" contains titleQuality, abstractCompleteness, introductionStructure,
  resultsOrganization, discussionQuality, messageFocus, topicOrganization, each with
  "score" (1-10), "assessment" and "recommendation".
- "majorIssues" is an array of {"issue", "location", "severity", "recommendation"}.
- "overallRecommendations" is an array of strings.
- "sections" is an array of {"name", "paragraphs"}.
Extract all text content verbatim."""


def build_analysis_prompt(
    text: str,
    seed_title: str,
    paragraph_rules: list[Rule],
    document_rules: list[Rule],
    max_chars: int,
) -> str:
    truncated = text[:max_chars]
    if len(text) > max_chars:
        logger.warning("Prompt text truncated | from=%d to=%d", len(text), max_chars)

    return (
        "**TASK:**\n"
        "1. Structure Extraction: identify the title, abstract and sections (with paragraphs).\n"
        "2. Paragraph Evaluation: evaluate EACH paragraph, including the abstract, against the PARAGRAPH RULES.\n"
        "3. Document Assessment: score the whole paper against the DOCUMENT RULES.\n"
        "4. Major Issues & Recommendations: list the most significant structural problems.\n\n"
        f"The first line of the document suggests the title: {seed_title!r}.\n\n"
        f"**PAPER TEXT:**\n```\n{truncated}\n```\n\n"
        "--- START PARAGRAPH RULES ---\n"
        f"{_format_rules('Paragraph', paragraph_rules)}\n"
        "--- END PARAGRAPH RULES ---\n\n"
        "--- START DOCUMENT RULES ---\n"
        f"{_format_rules('Document', document_rules)}\n"
        "--- END DOCUMENT RULES ---\n\n"
        f"{_OUTPUT_CONTRACT}\n"
    )
