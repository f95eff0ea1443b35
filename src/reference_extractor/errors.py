"""Typed failures raised by the extraction pipeline."""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    FILE_READ_ERROR = 1001
    FILE_PARSE_ERROR = 1002
    INVALID_FILE_TYPE = 1003
    CORRUPTED_ZIP = 1004
    XML_PARSE_ERROR = 2001
    CITATION_PARSE_ERROR = 3001
    INVALID_JSON_FORMAT = 3002
    DEDUPLICATION_ERROR = 3003
    RENDERER_ERROR = 5001
    UNKNOWN_ERROR = 9999


_CATEGORIES = (
    (1000, 1999, "file"),
    (2000, 2999, "xml"),
    (3000, 3999, "citation"),
    (5000, 5999, "rendering"),
)

_USER_MESSAGES = {
    ErrorCode.FILE_READ_ERROR: "The file could not be read.",
    ErrorCode.INVALID_FILE_TYPE: "Unsupported document type. Use a .docx or .odt file.",
    ErrorCode.CORRUPTED_ZIP: "The document file is corrupted or invalid.",
    ErrorCode.XML_PARSE_ERROR: "Part of the document could not be parsed.",
    ErrorCode.DEDUPLICATION_ERROR: "Citations could not be consolidated.",
}


class ExtractorError(Exception):
    """Base class carrying an error code, context and the originating cause."""

    code: int = ErrorCode.UNKNOWN_ERROR
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context = dict(context or {})
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def category(self) -> str:
        for low, high, name in _CATEGORIES:
            if low <= self.code <= high:
                return name
        return "unknown"

    @property
    def user_message(self) -> str:
        return _USER_MESSAGES.get(self.code, self.message)

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class ContainerError(ExtractorError):
    """The package is missing, corrupt, too large or of an unknown variant."""

    code = ErrorCode.CORRUPTED_ZIP


class MarkupParseError(ExtractorError):
    """One content file holds malformed markup."""

    code = ErrorCode.XML_PARSE_ERROR
    recoverable = True

    def __init__(self, file_name: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(
            f"Failed to parse XML from {file_name}",
            context={"file_name": file_name},
            cause=cause,
        )
        self.file_name = file_name


class FieldParseError(ExtractorError):
    """A field code or its JSON payload is malformed."""

    code = ErrorCode.CITATION_PARSE_ERROR
    recoverable = True


class DeduplicationError(ExtractorError):
    code = ErrorCode.DEDUPLICATION_ERROR


class FormatError(ExtractorError):
    code = ErrorCode.RENDERER_ERROR
    recoverable = True


__all__ = [
    "ContainerError",
    "DeduplicationError",
    "ErrorCode",
    "ExtractorError",
    "FieldParseError",
    "FormatError",
    "MarkupParseError",
]
