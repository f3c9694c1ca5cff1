"""
Schema-driven walker over a tokenized job metric document.

The expected shape is::

    {
      "<metric>": {
        ...,
        "series": [
          {..., "data": [<samples>] | "<text>"},
          ...
        ]
      },
      ...
    }

The walker makes a single forward pass over the tokens. It never recurses and
keeps no stack: whether the document or a skipped subtree is complete is
decided by counting pending token slots. Every token settles one slot and
opens one slot per direct child, so the count drops to zero exactly after the
last token of the value. Members other than the recognized ones are skipped
with a second, independent counter, whatever their type or depth.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .config import DEFAULT_CONFIG, WalkerConfig
from .errors import (
    TruncatedJSONError,
    UnexpectedKeyTypeError,
    UnexpectedRootError,
    UnexpectedValueTypeError,
)
from .tokenizer import Buffer, Document, Token, TokenKind, tokenize

logger = logging.getLogger(__name__)


class ParseState(Enum):
    START = "START"
    METRIC_KEY = "METRIC_KEY"
    METRIC_VALUE = "METRIC_VALUE"
    METRIC_MEMBER = "METRIC_MEMBER"
    SERIES = "SERIES"
    NODE_ARRAY = "NODE_ARRAY"
    NODE_MEMBER = "NODE_MEMBER"
    DATA = "DATA"
    SKIP = "SKIP"


@dataclass
class Payload:
    """A "data" member found in a node record."""
    metric_name: str
    node_index: int
    token_index: int
    start: int
    end: int
    element_count: Optional[int] = None
    scalar_text: Optional[str] = None

    @property
    def is_scalar(self) -> bool:
        return self.scalar_text is not None

    def to_dict(self):
        result = {
            "metric": self.metric_name,
            "node_index": self.node_index,
        }
        if self.is_scalar:
            result["scalar_text"] = self.scalar_text
        else:
            result["element_count"] = self.element_count
        return result


@dataclass
class TraceEvent:
    """One visited token, reported with the state it was matched against."""
    index: int
    token: Token
    state: ParseState
    note: str = ""

    def format(self) -> str:
        t = self.token
        line = f"{t.kind.value}: S{t.start} E{t.end} C{t.child_count} {self.state.value}"
        if self.note:
            line += f" {self.note}"
        return line


@dataclass
class TraversalCursor:
    """
    Everything the walker knows at a given token.

    remaining counts token slots still owed by the top-level value and
    skip_remaining does the same for the subtree being skipped. The other
    counters track how much of the current root, metric record, series and
    node record is left.
    """
    state: ParseState = ParseState.START
    index: int = 0
    remaining: int = 1
    skip_remaining: int = 0
    resume: Optional[ParseState] = None
    pending_pairs: int = 0
    member_pairs: int = 0
    node_count: int = 0
    node_pairs: int = 0
    metric_name: Optional[str] = None
    node_index: int = 0

    @property
    def done(self) -> bool:
        return self.remaining == 0


TraceCallback = Callable[[TraceEvent], None]


class SchemaWalker:
    """
    Walks one Document and collects its payloads.

    Use walk() for a full pass, or new_cursor() and step() to advance one
    token at a time.
    """

    def __init__(self, document: Document, config: Optional[WalkerConfig] = None,
                 trace: Optional[TraceCallback] = None):
        self.document = document
        self.config = config or DEFAULT_CONFIG
        self.trace = trace
        self.payloads: List[Payload] = []

    def new_cursor(self) -> TraversalCursor:
        return TraversalCursor()

    def walk(self) -> List[Payload]:
        """
        Run a full pass and return the payloads in document order.

        Raises the first SchemaError encountered, or TruncatedJSONError when
        the token sequence ends before the top-level value is complete.
        """
        self.payloads = []
        cursor = self.new_cursor()
        while not cursor.done:
            self.step(cursor)
        logger.debug("walk finished after %d tokens, %d payloads", cursor.index, len(self.payloads))
        return self.payloads

    def step(self, cursor: TraversalCursor) -> Optional[Payload]:
        """Consume exactly one token. Returns the payload it produced, if any."""
        if cursor.done:
            raise RuntimeError("walk already complete")
        if cursor.index >= len(self.document):
            raise TruncatedJSONError(
                f"document ends with {cursor.remaining} token slots outstanding",
                token_index=cursor.index,
            )

        index = cursor.index
        token = self.document[index]
        state = cursor.state
        cursor.remaining += token.child_slots - 1
        cursor.index += 1

        handler = self._handlers[state]
        note, payload = handler(self, cursor, token, index)

        if self.trace is not None:
            self.trace(TraceEvent(index, token, state, note))
        if payload is not None:
            self.payloads.append(payload)
        return payload

    # -- states ------------------------------------------------------------

    def _start(self, cursor, token, index):
        if token.kind is not TokenKind.OBJECT:
            raise UnexpectedRootError(
                f"root element must be an object, got {token.kind.value.lower()}", token_index=index)
        cursor.pending_pairs = token.child_count
        cursor.state = ParseState.METRIC_KEY
        return f"{token.child_count} metrics", None

    def _metric_key(self, cursor, token, index):
        if token.kind is not TokenKind.STRING:
            raise UnexpectedKeyTypeError(
                f"metric key must be a string, got {token.kind.value.lower()}", token_index=index)
        cursor.metric_name = self.document.text(token)
        cursor.state = ParseState.METRIC_VALUE
        logger.debug("metric %s", cursor.metric_name)
        return f"metric {cursor.metric_name}", None

    def _metric_value(self, cursor, token, index):
        if token.kind is not TokenKind.OBJECT:
            raise UnexpectedValueTypeError(
                f"value of metric {cursor.metric_name!r} must be an object, "
                f"got {token.kind.value.lower()}", token_index=index)
        cursor.pending_pairs -= 1
        cursor.member_pairs = token.child_count
        cursor.state = ParseState.METRIC_MEMBER
        if cursor.member_pairs == 0:
            self._finish_metric(cursor)
        return f"{token.child_count} members", None

    def _metric_member(self, cursor, token, index):
        if token.kind is not TokenKind.STRING:
            raise UnexpectedKeyTypeError(
                f"member key of metric {cursor.metric_name!r} must be a string", token_index=index)
        cursor.member_pairs -= 1
        if self.document.equals(token, self.config.series_key):
            cursor.state = ParseState.SERIES
            return "series", None
        self._begin_skip(cursor, ParseState.METRIC_MEMBER, 1)
        return "skip value", None

    def _series(self, cursor, token, index):
        if token.kind is not TokenKind.ARRAY:
            raise UnexpectedValueTypeError(
                f"{self.config.series_key!r} of metric {cursor.metric_name!r} must be an array, "
                f"got {token.kind.value.lower()}", token_index=index)
        cursor.node_count = token.child_count
        cursor.node_index = 0
        if cursor.node_count == 0:
            self._finish_metric_member(cursor)
        else:
            cursor.state = ParseState.NODE_ARRAY
        return f"{token.child_count} nodes", None

    def _node_array(self, cursor, token, index):
        if token.kind is not TokenKind.OBJECT:
            raise UnexpectedValueTypeError(
                f"node {cursor.node_index} of metric {cursor.metric_name!r} must be an object, "
                f"got {token.kind.value.lower()}", token_index=index)
        note = f"node {cursor.node_index}"
        cursor.node_count -= 1
        cursor.node_pairs = token.child_count
        cursor.state = ParseState.NODE_MEMBER
        logger.debug("metric %s node %d", cursor.metric_name, cursor.node_index)
        if cursor.node_pairs == 0:
            self._finish_node(cursor)
        return note, None

    def _node_member(self, cursor, token, index):
        if token.kind is not TokenKind.STRING:
            raise UnexpectedKeyTypeError(
                f"member key of node {cursor.node_index} must be a string", token_index=index)
        cursor.node_pairs -= 1
        if self.document.equals(token, self.config.data_key):
            cursor.state = ParseState.DATA
            return "data", None
        self._begin_skip(cursor, ParseState.NODE_MEMBER, 1)
        return "skip value", None

    def _data(self, cursor, token, index):
        payload = Payload(
            metric_name=cursor.metric_name,
            node_index=cursor.node_index,
            token_index=index,
            start=token.start,
            end=token.end,
        )
        if token.kind is TokenKind.ARRAY:
            payload.element_count = token.child_count
            note = f"{token.child_count} elements"
            if token.child_count:
                self._begin_skip(cursor, ParseState.DATA, token.child_count)
            else:
                self._finish_node_member(cursor)
        elif token.kind is TokenKind.STRING:
            payload.scalar_text = self.document.text(token)
            note = f"scalar {payload.scalar_text!r}"
            self._finish_node_member(cursor)
        else:
            raise UnexpectedValueTypeError(
                f"{self.config.data_key!r} of node {cursor.node_index} in metric {cursor.metric_name!r} "
                f"must be an array or a string, got {token.kind.value.lower()}", token_index=index)
        logger.debug("metric %s node %d payload: %s", cursor.metric_name, cursor.node_index, note)
        return note, payload

    def _skip(self, cursor, token, index):
        cursor.skip_remaining += token.child_slots - 1
        if cursor.skip_remaining == 0:
            resume = cursor.resume
            cursor.resume = None
            if resume is ParseState.METRIC_MEMBER:
                self._finish_metric_member(cursor)
            else:
                self._finish_node_member(cursor)
        return "", None

    _handlers = {
        ParseState.START: _start,
        ParseState.METRIC_KEY: _metric_key,
        ParseState.METRIC_VALUE: _metric_value,
        ParseState.METRIC_MEMBER: _metric_member,
        ParseState.SERIES: _series,
        ParseState.NODE_ARRAY: _node_array,
        ParseState.NODE_MEMBER: _node_member,
        ParseState.DATA: _data,
        ParseState.SKIP: _skip,
    }

    # -- transitions -------------------------------------------------------

    def _begin_skip(self, cursor, requested_by, slots):
        cursor.skip_remaining = slots
        cursor.resume = requested_by
        cursor.state = ParseState.SKIP

    def _finish_metric(self, cursor):
        cursor.state = ParseState.METRIC_KEY

    def _finish_metric_member(self, cursor):
        if cursor.member_pairs == 0:
            self._finish_metric(cursor)
        else:
            cursor.state = ParseState.METRIC_MEMBER

    def _finish_node(self, cursor):
        cursor.node_index += 1
        if cursor.node_count == 0:
            self._finish_metric_member(cursor)
        else:
            cursor.state = ParseState.NODE_ARRAY

    def _finish_node_member(self, cursor):
        if cursor.node_pairs == 0:
            self._finish_node(cursor)
        else:
            cursor.state = ParseState.NODE_MEMBER


def walk(document: Document, config: Optional[WalkerConfig] = None,
         trace: Optional[TraceCallback] = None) -> List[Payload]:
    """Walk a tokenized document and return its payloads."""
    return SchemaWalker(document, config, trace).walk()


def parse(buffer: Buffer, config: Optional[WalkerConfig] = None,
          trace: Optional[TraceCallback] = None) -> List[Payload]:
    """Tokenize buffer and walk it in one call."""
    return walk(tokenize(buffer), config, trace)
