"""
Document Processing Package
════════════════════════════

Turns uploaded binaries into plain text for the analyzer.

Modules
───────
  extractor.py  Type detection + python-docx / pypdf / plain-text strategies

Design principles
─────────────────
  • The extractor is stateless and dependency-injected into the pipeline.
  • Blocking parser work runs in a thread executor, never on the event loop.
  • Every failure is an ExtractionError, reported to the client as a 400.
"""

from paper_checker.processing.extractor import TextExtractor, detect_kind

__all__ = [
    "TextExtractor",
    "detect_kind",
]
