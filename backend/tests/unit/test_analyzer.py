"""
Unit Tests — LLMStructureAnalyzer and result normalization
═══════════════════════════════════════════════════════════
The chat model is always an AsyncMock; no request ever leaves the process.

Coverage targets:
  ✅ Happy path: JSON content parsed, normalized, statistics computed
  ✅ sections / majorIssues accepted nested under documentAssessment
  ✅ Missing key, timeout, upstream error, empty and non-JSON content → AnalysisError
  ✅ Exactly one upstream call (no retry)
  ✅ Prompt carries the seed title and truncated text
  ✅ Rules loaded from RULES_DIR with fallback to the built-ins
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from paper_checker.core.config import Settings
from paper_checker.core.errors import AnalysisError
from paper_checker.llm.analyzer import (
    LLMStructureAnalyzer,
    count_issue_severities,
    normalize_analysis,
)
from paper_checker.llm.prompt import DEFAULT_DOCUMENT_RULES, build_analysis_prompt, load_rules
from paper_checker.schemas.submissions import BasicDocumentSeed

TEXT = "A Study of Things\n\nAbstract\nThings were studied."


def _llm_returning(content) -> AsyncMock:
    llm = AsyncMock()
    llm.ainvoke = AsyncMock(return_value=AIMessage(content=content))
    return llm


def _settings(**overrides) -> Settings:
    base = {"openai_api_key": "sk-test-key", "analysis_timeout_seconds": 5.0}
    base.update(overrides)
    return Settings(**base)


@pytest.mark.unit
class TestNormalization:

    def test_statistics_computed_from_issues(self, sample_analysis):
        result = normalize_analysis(sample_analysis)
        assert result["statistics"] == {"critical": 1, "major": 1, "minor": 1}

    def test_major_issue_minor_severity_is_not_counted(self):
        counts = count_issue_severities({"majorIssues": [{"severity": "minor"}], "sections": []})
        assert counts == {"critical": 0, "major": 0, "minor": 0}

    def test_nested_sections_are_lifted(self):
        raw = {
            "title": "T",
            "documentAssessment": {
                "titleQuality": {"score": 7},
                "sections": [{"name": "Intro", "paragraphs": []}],
                "majorIssues": [{"issue": "x", "severity": "critical"}],
            },
        }
        result = normalize_analysis(raw)
        assert result["sections"] == [{"name": "Intro", "paragraphs": []}]
        assert result["majorIssues"][0]["issue"] == "x"
        assert result["documentAssessment"]["titleQuality"] == {"score": 7}
        assert "sections" not in result["documentAssessment"]

    def test_missing_title_defaults(self):
        assert normalize_analysis({"sections": []})["title"] == "Title Not Found"

    def test_missing_sections_raises(self):
        with pytest.raises(AnalysisError, match="sections"):
            normalize_analysis({"title": "T"})

    def test_non_object_raises(self):
        with pytest.raises(AnalysisError):
            normalize_analysis(["not", "a", "dict"])


@pytest.mark.unit
class TestAnalyze:

    async def test_happy_path(self, sample_analysis):
        llm = _llm_returning(json.dumps(sample_analysis))
        analyzer = LLMStructureAnalyzer(_settings(), llm=llm)

        result = await analyzer.analyze(BasicDocumentSeed.from_text(TEXT), TEXT)

        assert result["title"] == sample_analysis["title"]
        assert result["sections"] == sample_analysis["sections"]
        llm.ainvoke.assert_awaited_once()

    async def test_messages_include_seed_and_text(self, sample_analysis):
        llm = _llm_returning(json.dumps(sample_analysis))
        analyzer = LLMStructureAnalyzer(_settings(), llm=llm)

        await analyzer.analyze(BasicDocumentSeed.from_text(TEXT), TEXT)

        messages = llm.ainvoke.await_args.args[0]
        assert isinstance(messages[0], SystemMessage)
        assert isinstance(messages[1], HumanMessage)
        assert "'A Study of Things'" in messages[1].content
        assert "Things were studied." in messages[1].content

    async def test_missing_api_key_raises_before_any_call(self):
        analyzer = LLMStructureAnalyzer(_settings(openai_api_key=""))
        with pytest.raises(AnalysisError, match="OpenAI API Key not configured"):
            await analyzer.analyze(BasicDocumentSeed.from_text(TEXT), TEXT)

    async def test_empty_text_raises(self):
        analyzer = LLMStructureAnalyzer(_settings(), llm=_llm_returning("{}"))
        with pytest.raises(AnalysisError, match="empty"):
            await analyzer.analyze(BasicDocumentSeed.from_text(""), "   ")

    async def test_timeout_raises_analysis_error(self):
        async def _hang(*_args, **_kwargs):
            await asyncio.sleep(10)

        llm = AsyncMock()
        llm.ainvoke = AsyncMock(side_effect=_hang)
        analyzer = LLMStructureAnalyzer(_settings(analysis_timeout_seconds=0.05), llm=llm)

        with pytest.raises(AnalysisError, match="timed out"):
            await analyzer.analyze(BasicDocumentSeed.from_text(TEXT), TEXT)

    async def test_upstream_error_is_not_retried(self):
        llm = AsyncMock()
        llm.ainvoke = AsyncMock(side_effect=RuntimeError("rate limited"))
        analyzer = LLMStructureAnalyzer(_settings(), llm=llm)

        with pytest.raises(AnalysisError, match="rate limited"):
            await analyzer.analyze(BasicDocumentSeed.from_text(TEXT), TEXT)
        assert llm.ainvoke.await_count == 1

    @pytest.mark.parametrize("content", ["", "this is not json {"])
    async def test_bad_content_raises(self, content):
        analyzer = LLMStructureAnalyzer(_settings(), llm=_llm_returning(content))
        with pytest.raises(AnalysisError):
            await analyzer.analyze(BasicDocumentSeed.from_text(TEXT), TEXT)

    def test_default_llm_is_json_mode_without_retries(self):
        analyzer = LLMStructureAnalyzer(_settings())
        llm = analyzer._build_llm()
        assert llm.kwargs["response_format"] == {"type": "json_object"}
        assert llm.bound.max_retries == 0


@pytest.mark.unit
class TestPrompt:

    def test_text_truncated_to_max_chars(self):
        prompt = build_analysis_prompt(
            "abcdefghij", "T",
            paragraph_rules=[], document_rules=[], max_chars=4,
        )
        assert "abcd\n```" in prompt
        assert "abcde" not in prompt

    def test_rules_fall_back_to_defaults(self, tmp_path):
        paragraph, document = load_rules(str(tmp_path))
        assert document == DEFAULT_DOCUMENT_RULES
        assert paragraph

    def test_rules_loaded_from_directory(self, tmp_path):
        (tmp_path / "document-rules.json").write_text(json.dumps({
            "rules": [{"id": "9", "title": "Custom", "fullText": "Body",
                       "checkpoints": [{"description": "Check one"}]}],
        }))
        _, document = load_rules(str(tmp_path))
        assert len(document) == 1
        assert document[0].title == "Custom"
        assert document[0].checkpoints == ["Check one"]

    def test_corrupt_rules_file_falls_back(self, tmp_path):
        (tmp_path / "paragraph-rules.json").write_text("{broken")
        paragraph, _ = load_rules(str(tmp_path))
        assert paragraph[0].id == "P1"
