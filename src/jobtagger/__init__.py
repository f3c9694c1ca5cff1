"""
Job Tagger - streaming inspection of per-node job performance data.

Job metric files map metric names to records whose "series" lists one record
per node, each carrying a "data" payload of samples. This package flattens such
a file into a token stream and walks it once to locate every payload, without
building an in-memory tree.
"""

from .config import WalkerConfig
from .errors import (
    InvalidJSONError,
    JSONSyntaxError,
    ParseError,
    SchemaError,
    TruncatedJSONError,
    UnexpectedKeyTypeError,
    UnexpectedRootError,
    UnexpectedValueTypeError,
)
from .reader import JobMetricData, MetricSummary, ParsedJob
from .tokenizer import Document, Token, TokenKind, tokenize
from .walker import ParseState, Payload, SchemaWalker, TraceEvent, TraversalCursor, parse, walk

__version__ = "0.1.0"

__all__ = [
    "Document",
    "InvalidJSONError",
    "JSONSyntaxError",
    "JobMetricData",
    "MetricSummary",
    "ParseError",
    "ParseState",
    "ParsedJob",
    "Payload",
    "SchemaError",
    "SchemaWalker",
    "Token",
    "TokenKind",
    "TraceEvent",
    "TraversalCursor",
    "TruncatedJSONError",
    "UnexpectedKeyTypeError",
    "UnexpectedRootError",
    "UnexpectedValueTypeError",
    "WalkerConfig",
    "parse",
    "tokenize",
    "walk",
    "__version__",
]
