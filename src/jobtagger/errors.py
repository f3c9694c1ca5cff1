"""
Exceptions raised while tokenizing and walking job metric documents.
"""

from typing import Optional


class ParseError(ValueError):
    """Base class for every error that aborts a parse."""

    code = "parse"

    def __init__(self, message: str, offset: Optional[int] = None, token_index: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.offset = offset
        self.token_index = token_index

    def __str__(self) -> str:
        if self.offset is not None:
            return f"{self.message} (at byte {self.offset})"
        if self.token_index is not None:
            return f"{self.message} (at token {self.token_index})"
        return self.message


class JSONSyntaxError(ParseError):
    code = "syntax"


class InvalidJSONError(JSONSyntaxError):
    """The bytes do not form valid JSON."""
    code = "syntax.invalid"


class TruncatedJSONError(JSONSyntaxError):
    """The input ended before the top-level value was complete."""
    code = "syntax.truncated"


class SchemaError(ParseError):
    code = "schema"


class UnexpectedRootError(SchemaError):
    code = "schema.unexpected_root"


class UnexpectedKeyTypeError(SchemaError):
    code = "schema.unexpected_key_type"


class UnexpectedValueTypeError(SchemaError):
    code = "schema.unexpected_value_type"
