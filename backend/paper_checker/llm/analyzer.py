"""
Structure Analyzer — boundary to the external AI service

    analyze(seed, text) ──► one chat completion (JSON mode) ──► dict

Contract:
  - exactly one upstream call per submission, bounded by a timeout
  - no retry and no provider fallback: the call is billed and not idempotent,
    so a transient failure is reported to the caller instead
  - every failure (missing key, timeout, upstream error, empty or non-JSON
    content, missing "sections") surfaces as a single AnalysisError

Post-processing tolerates model drift: majorIssues, overallRecommendations
and sections are accepted at the top level or nested inside
documentAssessment, and issue statistics are computed here rather than
trusted from the model.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Protocol

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from paper_checker.core.config import Settings
from paper_checker.core.errors import AnalysisError
from paper_checker.llm.prompt import SYSTEM_PROMPT, build_analysis_prompt, load_rules
from paper_checker.schemas.submissions import BasicDocumentSeed

logger = logging.getLogger(__name__)

ASSESSMENT_KEYS: tuple[str, ...] = (
    "titleQuality",
    "abstractCompleteness",
    "introductionStructure",
    "resultsOrganization",
    "discussionQuality",
    "messageFocus",
    "topicOrganization",
)


class StructureAnalyzer(Protocol):
    """Anything that can turn raw text into an analysis payload."""

    async def analyze(self, seed: BasicDocumentSeed, text: str) -> dict[str, Any]: ...


# ---------------------------------------------------------------------------
# Result post-processing
# ---------------------------------------------------------------------------

def _locate(raw: dict, key: str, assessment: Any) -> Any:
    value = raw.get(key)
    if value is None and isinstance(assessment, dict):
        value = assessment.get(key)
    return value


def count_issue_severities(result: dict[str, Any]) -> dict[str, int]:
    """Tally critical / major / minor issues across abstract, major issues and paragraphs."""
    counts = {"critical": 0, "major": 0, "minor": 0}

    def _count(issues: Any) -> None:
        if not isinstance(issues, list):
            return
        for issue in issues:
            if isinstance(issue, dict) and issue.get("severity") in counts:
                counts[issue["severity"]] += 1

    abstract = result.get("abstract")
    if isinstance(abstract, dict):
        _count(abstract.get("issues"))

    # Document-level issues only ever count as critical or major
    for issue in result.get("majorIssues") or []:
        if isinstance(issue, dict) and issue.get("severity") in ("critical", "major"):
            counts[issue["severity"]] += 1

    for section in result.get("sections") or []:
        if isinstance(section, dict):
            for paragraph in section.get("paragraphs") or []:
                if isinstance(paragraph, dict):
                    _count(paragraph.get("issues"))
    return counts


def normalize_analysis(raw: Any) -> dict[str, Any]:
    """Shape the model output into the payload returned to clients."""
    if not isinstance(raw, dict):
        raise AnalysisError("AI analysis did not return a JSON object.")

    assessment = raw.get("documentAssessment")
    assessment = assessment if isinstance(assessment, dict) else {}

    sections = _locate(raw, "sections", assessment)
    if not isinstance(sections, list):
        raise AnalysisError("Failed to extract 'sections' array from the AI response structure.")

    result: dict[str, Any] = {
        "title": raw.get("title") or "Title Not Found",
        "abstract": raw.get("abstract") or {"text": "", "summary": "", "evaluations": {}, "issues": []},
        "documentAssessment": {key: assessment.get(key) for key in ASSESSMENT_KEYS},
        "majorIssues": _locate(raw, "majorIssues", assessment) or [],
        "overallRecommendations": _locate(raw, "overallRecommendations", assessment) or [],
        "sections": sections,
    }
    result["statistics"] = count_issue_severities(result)
    return result


# ---------------------------------------------------------------------------
# LLM-backed analyzer
# ---------------------------------------------------------------------------

class LLMStructureAnalyzer:
    """
    Single-call analyzer over a LangChain chat model.

    The chat model is built lazily from settings (ChatOpenAI in JSON mode);
    tests inject any BaseChatModel instead.
    """

    def __init__(self, settings: Settings, llm: BaseChatModel | None = None) -> None:
        self._settings = settings
        self._llm = llm
        self._paragraph_rules, self._document_rules = load_rules(settings.rules_dir)

    def _build_llm(self):
        if self._llm is not None:
            return self._llm
        if not self._settings.openai_api_key:
            raise AnalysisError("OpenAI API Key not configured")

        from langchain_openai import ChatOpenAI

        llm = ChatOpenAI(
            model=self._settings.openai_model,
            api_key=self._settings.openai_api_key,
            temperature=self._settings.llm_temperature,
            max_retries=0,
        )
        return llm.bind(response_format={"type": "json_object"})

    def build_messages(self, seed: BasicDocumentSeed, text: str) -> list:
        prompt = build_analysis_prompt(
            text,
            seed_title=seed.title,
            paragraph_rules=self._paragraph_rules,
            document_rules=self._document_rules,
            max_chars=self._settings.max_char_count,
        )
        return [SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=prompt)]

    async def analyze(self, seed: BasicDocumentSeed, text: str) -> dict[str, Any]:
        if not text or not text.strip():
            raise AnalysisError("Input document text is empty or invalid.")

        llm = self._build_llm()
        messages = self.build_messages(seed, text)
        timeout = self._settings.analysis_timeout_seconds

        t0 = time.perf_counter()
        try:
            response = await asyncio.wait_for(llm.ainvoke(messages), timeout=timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Analyzer timed out | timeout_s=%.0f", timeout)
            raise AnalysisError(f"Analysis timed out after {timeout:.0f} seconds") from exc
        except AnalysisError:
            raise
        except Exception as exc:
            logger.error("Analyzer upstream error | %s: %s", type(exc).__name__, exc)
            raise AnalysisError(f"{type(exc).__name__}: {exc}") from exc
        latency_ms = (time.perf_counter() - t0) * 1000

        content = getattr(response, "content", response)
        if not content or not isinstance(content, str):
            raise AnalysisError("OpenAI response content is empty or missing.")

        try:
            raw = json.loads(content)
        except json.JSONDecodeError as exc:
            logger.error("Analyzer returned non-JSON content | preview=%s", content[:200])
            raise AnalysisError(f"Failed to parse analysis results from AI: {exc}") from exc

        result = normalize_analysis(raw)
        logger.info(
            "Analyzer | model=%s latency_ms=%.1f sections=%d statistics=%s",
            self._settings.openai_model, latency_ms,
            len(result["sections"]), result["statistics"],
        )
        return result
