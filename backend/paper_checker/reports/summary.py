"""
Markdown summary report for a completed analysis.

The analysis payload is whatever the model returned, so every lookup here
tolerates gaps: missing or mistyped sections render a placeholder line instead of
failing the whole report.
"""

from __future__ import annotations

import re
from typing import Any

REPORT_HEADING = "# Scientific Paper Structure Assessment"

# Rendered in this order; anything else in documentAssessment is ignored
ASSESSMENT_ORDER: tuple[str, ...] = (
    "titleQuality",
    "abstractCompleteness",
    "introductionStructure",
    "resultsOrganization",
    "discussionQuality",
    "messageFocus",
    "topicOrganization",
)

# (evaluation key, label, text when true, text when false)
_STRUCTURE_FLAGS: tuple[tuple[str, str, str, str], ...] = (
    ("cccStructure",           "Context-Content-Conclusion", "✓ Yes",        "✗ No"),
    ("sentenceQuality",        "Sentence Quality",           "✓ Good",       "✗ Needs Work"),
    ("topicContinuity",        "Topic Continuity",           "✓ Good",       "✗ Fragmented"),
    ("terminologyConsistency", "Terminology Consistency",    "✓ Consistent", "✗ Inconsistent"),
    ("structuralParallelism",  "Structural Parallelism",     "✓ Good",       "✗ Needs Work"),
)


def format_assessment_key(key: str) -> str:
    """titleQuality -> Title Quality"""
    spaced = re.sub(r"([A-Z])", r" \1", key)
    return spaced[:1].upper() + spaced[1:]


def _or(value: Any, default: str) -> Any:
    return value if value else default


def _score(value: Any) -> Any:
    return "N/A" if value is None else value


def render_summary_report(analysis: dict[str, Any]) -> str:
    """Render the full Markdown report for one analysis payload."""
    if analysis.get("analysisError"):
        return (
            f"{REPORT_HEADING}\n\n## Analysis Error\n\n"
            "The analysis could not be completed successfully.\n"
            f"Error reported: {analysis['analysisError']}\n"
        )

    parts = [
        f"{REPORT_HEADING}\n\n",
        f"## Paper: {_or(analysis.get('title'), 'Title Not Provided')}\n\n",
        _render_overall_assessment(analysis.get("documentAssessment")),
        _render_issue_summary(analysis.get("statistics")),
        _render_recommendations(analysis.get("overallRecommendations")),
        _render_major_issues(analysis.get("majorIssues")),
        _render_abstract(analysis.get("abstract")),
        _render_sections(analysis.get("sections")),
    ]
    return "".join(parts)


def _render_overall_assessment(assessment: Any) -> str:
    out = "## Overall Assessment\n\n"
    if not isinstance(assessment, dict):
        return out + "Overall assessment data is missing or invalid.\n"

    for key in ASSESSMENT_ORDER:
        entry = assessment.get(key)
        label = format_assessment_key(key)
        if isinstance(entry, dict):
            out += (
                f"- **{label}**: {_score(entry.get('score'))}/10 - "
                f"{_or(entry.get('assessment'), 'No assessment text.')}\n"
            )
            if entry.get("recommendation"):
                out += f"  - *Recommendation*: {entry['recommendation']}\n"
        else:
            out += f"- **{label}**: Assessment data missing\n"
    return out


def _render_issue_summary(statistics: Any) -> str:
    stats = statistics if isinstance(statistics, dict) else {}
    return (
        "\n## Issue Summary\n\n"
        f"- Critical Issues: {_score(stats.get('critical', 0))}\n"
        f"- Major Issues: {_score(stats.get('major', 0))}\n"
        f"- Minor Issues: {_score(stats.get('minor', 0))}\n"
    )


def _render_recommendations(recommendations: Any) -> str:
    out = "\n## Top Recommendations\n\n"
    if not isinstance(recommendations, list) or not recommendations:
        return out + "No specific overall recommendations provided.\n"
    for index, rec in enumerate(recommendations, start=1):
        out += f"{index}. {_or(rec, 'N/A')}\n"
    return out


def _render_major_issues(issues: Any) -> str:
    out = "\n## Major Issues List\n\n"
    if not isinstance(issues, list) or not issues:
        return out + "No major issues listed.\n"
    for index, issue in enumerate(issues, start=1):
        if not isinstance(issue, dict):
            continue
        out += f"### {index}. {_or(issue.get('issue'), 'Issue description missing')}\n"
        out += f"- **Severity**: {_or(issue.get('severity'), 'N/A')}\n"
        out += f"- **Location**: {_or(issue.get('location'), 'N/A')}\n"
        out += f"- **Recommendation**: {_or(issue.get('recommendation'), 'N/A')}\n\n"
    return out


def _render_issue_list(issues: Any) -> str:
    if not isinstance(issues, list) or not issues:
        return "**Issues Found**: None\n\n"
    out = "**Issues Found**:\n\n"
    for index, issue in enumerate(issues, start=1):
        if not isinstance(issue, dict):
            continue
        severity = str(_or(issue.get("severity"), "N/A")).upper()
        out += f"{index}. **{severity}**: {_or(issue.get('issue'), 'Issue description missing.')}\n"
        out += f"   - *Recommendation*: {_or(issue.get('recommendation'), 'N/A')}\n\n"
    return out


def _render_abstract(abstract: Any) -> str:
    out = "\n## Abstract Analysis\n\n"
    if not isinstance(abstract, dict):
        return out + "Abstract data missing or invalid.\n"
    out += f"> {_or(abstract.get('text'), 'Abstract text not found.')}\n\n"
    out += f"**Summary**: {_or(abstract.get('summary'), 'No summary provided.')}\n\n"
    return out + _render_issue_list(abstract.get("issues"))


def _render_paragraph(index: int, paragraph: Any) -> str:
    if not isinstance(paragraph, dict):
        return f"#### Paragraph {index}\n\nInvalid paragraph data.\n\n"

    out = f"#### Paragraph {index}\n\n"
    out += f"{_or(paragraph.get('text'), 'Paragraph text missing.')}\n\n"
    out += f"**Summary**: {_or(paragraph.get('summary'), 'No summary provided.')}\n\n"

    evals = paragraph.get("evaluations")
    evals = evals if isinstance(evals, dict) else {}
    out += "**Structure Assessment**:\n"
    for key, label, good, bad in _STRUCTURE_FLAGS:
        out += f"- {label}: {good if evals.get(key) is True else bad}\n"
    out += "\n"
    return out + _render_issue_list(paragraph.get("issues"))


def _render_sections(sections: Any) -> str:
    out = "\n## Section Analysis\n\n"
    if not isinstance(sections, list) or not sections:
        return out + "No sections found or section data is invalid.\n"

    for s_index, section in enumerate(sections, start=1):
        valid = (
            isinstance(section, dict)
            and section.get("name")
            and isinstance(section.get("paragraphs"), list)
        )
        if not valid:
            out += f"### Section {s_index}\n\nInvalid section data or missing paragraphs.\n\n"
            continue
        out += f"### {section['name']}\n\n"
        for p_index, paragraph in enumerate(section["paragraphs"], start=1):
            out += _render_paragraph(p_index, paragraph)
    return out
