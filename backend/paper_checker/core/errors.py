"""
Submission pipeline error taxonomy.

Every failure the analyze pipeline can report maps to exactly one class here.
The route layer converts them to the uniform `{"error": message}` body using
`status_code`; nothing below the route ever builds an HTTP response.

  PayloadTooLarge   413  declared Content-Length above the request ceiling
  MissingFile       400  no usable `file` multipart field
  MalformedRequest  400  multipart body could not be parsed
  DocumentTooLarge  400  extracted text above MAX_CHAR_COUNT
  ExtractionError   400  empty, malformed or unsupported upload
  AnalysisError     500  upstream AI failure (timeout, bad payload, API error)
  PersistenceError  500  artifact could not be written
  UnknownError      500  catch-all; message is echoed to the caller
"""

from __future__ import annotations

from fastapi import status


class SubmissionError(Exception):
    """Base class; carries the HTTP status the route should respond with."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict:
        return {"error": self.message}


class PayloadTooLarge(SubmissionError):
    status_code = 413   # Content Too Large


class MissingFile(SubmissionError):
    status_code = status.HTTP_400_BAD_REQUEST


class MalformedRequest(SubmissionError):
    status_code = status.HTTP_400_BAD_REQUEST


class DocumentTooLarge(SubmissionError):
    status_code = status.HTTP_400_BAD_REQUEST


class ExtractionError(SubmissionError):
    status_code = status.HTTP_400_BAD_REQUEST


class AnalysisError(SubmissionError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class PersistenceError(SubmissionError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class UnknownError(SubmissionError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
