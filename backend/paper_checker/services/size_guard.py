"""
Size guards for the analyze pipeline.

Two independent ceilings, both checked before the (billed) analyzer call:
  - request body bytes, from the declared Content-Length header
  - extracted document characters, after text is known
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def check_payload_size(declared_content_length: str | int | None, limit_bytes: int) -> bool:
    """
    True if the declared body length is within `limit_bytes`.

    A missing or non-numeric header passes; the multipart parser is left to
    enforce the real framing.
    """
    if declared_content_length is None or declared_content_length == "":
        return True
    try:
        length = int(declared_content_length)
    except (TypeError, ValueError):
        logger.debug("Ignoring unparseable Content-Length=%r", declared_content_length)
        return True
    return length <= limit_bytes


def check_document_size(text: str | None, max_chars: int) -> bool:
    length = len(text) if text else 0
    is_valid = length <= max_chars
    logger.debug("Document size | chars=%d max=%d valid=%s", length, max_chars, is_valid)
    return is_valid
