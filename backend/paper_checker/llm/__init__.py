"""
LLM Package — structure analysis boundary

Public API::

    from paper_checker.llm import LLMStructureAnalyzer

    analyzer = LLMStructureAnalyzer(settings)
    result = await analyzer.analyze(BasicDocumentSeed.from_text(text), text)
"""

from paper_checker.llm.analyzer import (
    LLMStructureAnalyzer,
    StructureAnalyzer,
    count_issue_severities,
    normalize_analysis,
)

__all__ = [
    "LLMStructureAnalyzer",
    "StructureAnalyzer",
    "count_issue_severities",
    "normalize_analysis",
]
