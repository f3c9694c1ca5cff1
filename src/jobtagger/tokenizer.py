"""
Flattens a JSON byte buffer into a preorder token stream.

Every JSON value becomes one Token holding its kind, the byte span it covers in
the source buffer and, for containers, the number of direct children. Nothing is
decoded up front: strings are only materialized on request through
Document.text(), and numbers and literals stay as raw spans.

Example::

    doc = tokenize(b'{"flops": {"series": []}}')
    [t.kind.value for t in doc]
    # ['OBJECT', 'STRING', 'OBJECT', 'STRING', 'ARRAY']
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Tuple, Union

from .errors import InvalidJSONError, TruncatedJSONError

Buffer = Union[bytes, bytearray, memoryview, str]


class TokenKind(Enum):
    OBJECT = "OBJECT"
    ARRAY = "ARRAY"
    STRING = "STRING"
    PRIMITIVE = "PRIMITIVE"


@dataclass(frozen=True)
class Token:
    """
    One flattened JSON value.

    String spans exclude the quotes, container spans include their brackets.
    child_count is the number of members of an object or elements of an array.
    """
    kind: TokenKind
    start: int
    end: int
    child_count: int = 0

    @property
    def span(self) -> Tuple[int, int]:
        return self.start, self.end

    @property
    def is_container(self) -> bool:
        return self.kind is TokenKind.OBJECT or self.kind is TokenKind.ARRAY

    @property
    def child_slots(self) -> int:
        """Number of tokens-worth of direct children: one per element, two per member."""
        if self.kind is TokenKind.OBJECT:
            return 2 * self.child_count
        if self.kind is TokenKind.ARRAY:
            return self.child_count
        return 0


class Document:
    """
    The immutable token sequence for one top-level JSON value together with the
    buffer it was cut from.
    """

    def __init__(self, tokens, buffer: bytes = b""):
        self.tokens: Tuple[Token, ...] = tuple(tokens)
        self.buffer = bytes(buffer)

    def __len__(self) -> int:
        return len(self.tokens)

    def __getitem__(self, index: int) -> Token:
        return self.tokens[index]

    def __iter__(self) -> Iterator[Token]:
        return iter(self.tokens)

    def __repr__(self) -> str:
        return f"Document({len(self.tokens)} tokens, {len(self.buffer)} bytes)"

    @property
    def root(self) -> Token:
        return self.tokens[0]

    def raw(self, token: Token) -> bytes:
        return self.buffer[token.start:token.end]

    def text(self, token: Token) -> str:
        """Materialize a String token, decoding JSON escapes."""
        if token.kind is not TokenKind.STRING:
            raise TypeError(f"cannot read {token.kind.value} token as text")
        raw = self.raw(token)
        try:
            if b"\\" not in raw:
                return raw.decode("utf-8")
            return json.loads(b'"' + raw + b'"')
        except ValueError as e:
            # UnicodeDecodeError and JSONDecodeError are both ValueErrors
            raise InvalidJSONError(f"undecodable string: {e}", offset=token.start) from None

    def equals(self, token: Token, key: str) -> bool:
        """True when token is a String whose text is exactly key."""
        if token.kind is not TokenKind.STRING:
            return False
        raw = self.raw(token)
        if b"\\" not in raw:
            return raw == key.encode("utf-8")
        return self.text(token) == key

    def subtree_end(self, index: int) -> int:
        """
        Index one past the last token of the subtree rooted at index.

        Each consumed token settles one pending slot and opens child_slots new
        ones; the subtree is complete when nothing is pending.
        """
        pending = 1
        i = index
        while pending:
            if i >= len(self.tokens):
                raise TruncatedJSONError("document ends inside the subtree", token_index=index)
            pending += self.tokens[i].child_slots - 1
            i += 1
        return i


# Context expectations while scanning
_VALUE = 0
_VALUE_OR_CLOSE = 1
_KEY = 2
_KEY_OR_CLOSE = 3
_COLON = 4
_COMMA_OR_CLOSE = 5

_WHITESPACE = re.compile(rb"[ \t\n\r]*")
_STRING_RUN = re.compile(rb'[^"\\\x00-\x1f]*')
_DIGITS = re.compile(rb"[0-9]*")
_HEX = frozenset(b"0123456789abcdefABCDEF")
_ESCAPES = frozenset(b'"\\/bfnrtu')
_LITERALS = {ord("t"): b"true", ord("f"): b"false", ord("n"): b"null"}

_QUOTE = ord('"')
_BACKSLASH = ord("\\")
_MINUS = ord("-")
_PLUS = ord("+")
_ZERO = ord("0")
_DOT = ord(".")


def _is_digit(c: int) -> bool:
    return 0x30 <= c <= 0x39


def _scan_string(data: bytes, i: int) -> int:
    """Return the index of the closing quote of a string whose body starts at i."""
    n = len(data)
    start = i
    while True:
        i = _STRING_RUN.match(data, i).end()
        if i >= n:
            raise TruncatedJSONError("unterminated string", offset=i)
        c = data[i]
        if c == _QUOTE:
            _check_utf8(data, start, i)
            return i
        if c != _BACKSLASH:
            raise InvalidJSONError(f"control character 0x{c:02x} in string", offset=i)
        if i + 1 >= n:
            raise TruncatedJSONError("unterminated escape sequence", offset=i)
        escape = data[i + 1]
        if escape not in _ESCAPES:
            raise InvalidJSONError(f"invalid escape \\{chr(escape)}", offset=i)
        i += 2
        if escape == ord("u"):
            digits = data[i:i + 4]
            if any(d not in _HEX for d in digits):
                raise InvalidJSONError("invalid \\u escape", offset=i - 2)
            if len(digits) < 4:
                raise TruncatedJSONError("unterminated \\u escape", offset=i - 2)
            i += 4


def _check_utf8(data: bytes, start: int, end: int):
    body = data[start:end]
    if body.isascii():
        return
    try:
        body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidJSONError("invalid UTF-8 in string", offset=start + e.start) from None


def _scan_number(data: bytes, i: int) -> int:
    """Return the index one past the number starting at i."""
    n = len(data)
    start = i
    if data[i] == _MINUS:
        i += 1
    if i >= n:
        raise TruncatedJSONError("number ends after sign", offset=start)
    if data[i] == _ZERO:
        i += 1
    elif _is_digit(data[i]):
        i = _DIGITS.match(data, i).end()
    else:
        raise InvalidJSONError("malformed number", offset=start)

    if i < n and data[i] == _DOT:
        i += 1
        if i >= n:
            raise TruncatedJSONError("number ends after decimal point", offset=start)
        if not _is_digit(data[i]):
            raise InvalidJSONError("malformed fraction", offset=start)
        i = _DIGITS.match(data, i).end()

    if i < n and data[i] in b"eE":
        i += 1
        if i < n and data[i] in (_PLUS, _MINUS):
            i += 1
        if i >= n:
            raise TruncatedJSONError("number ends inside exponent", offset=start)
        if not _is_digit(data[i]):
            raise InvalidJSONError("malformed exponent", offset=start)
        i = _DIGITS.match(data, i).end()
    return i


def _scan_literal(data: bytes, i: int) -> int:
    word = _LITERALS[data[i]]
    chunk = data[i:i + len(word)]
    if chunk == word:
        return i + len(word)
    if word.startswith(chunk) and i + len(chunk) == len(data):
        raise TruncatedJSONError(f"input ends inside literal {word.decode()}", offset=i)
    raise InvalidJSONError(f"malformed literal, expected {word.decode()}", offset=i)


def _as_bytes(buffer: Buffer) -> bytes:
    if isinstance(buffer, str):
        return buffer.encode("utf-8")
    return bytes(buffer)


def tokenize(buffer: Buffer) -> Document:
    """
    Tokenize the first JSON value in buffer.

    Anything after the end of that value is ignored.

    Raises:
        InvalidJSONError: the content is not valid JSON.
        TruncatedJSONError: the input ends before the value is complete.
    """
    data = _as_bytes(buffer)
    n = len(data)

    kinds = []
    starts = []
    ends = []
    counts = []
    # Indices of the containers that are still open, innermost last
    stack = []
    expect = _VALUE
    i = 0

    def open_token(kind, start, end=-1):
        kinds.append(kind)
        starts.append(start)
        ends.append(end)
        counts.append(0)

    while True:
        i = _WHITESPACE.match(data, i).end()
        if i >= n:
            if not kinds:
                raise TruncatedJSONError("input contains no JSON value", offset=i)
            raise TruncatedJSONError(f"input ends with {len(stack)} unclosed containers", offset=i)
        c = data[i]
        parent = stack[-1] if stack else None
        value_done = False

        if expect in (_KEY, _KEY_OR_CLOSE) and c == _QUOTE:
            close = _scan_string(data, i + 1)
            counts[parent] += 1
            open_token(TokenKind.STRING, i + 1, close)
            i = close + 1
            expect = _COLON
            continue

        if c in b"}]":
            if parent is None:
                raise InvalidJSONError(f"unexpected {chr(c)!r}", offset=i)
            is_object = kinds[parent] is TokenKind.OBJECT
            if (c == ord("}")) != is_object:
                raise InvalidJSONError(f"mismatched {chr(c)!r}", offset=i)
            allowed = (_KEY_OR_CLOSE, _COMMA_OR_CLOSE) if is_object else (_VALUE_OR_CLOSE, _COMMA_OR_CLOSE)
            if expect not in allowed:
                raise InvalidJSONError(f"unexpected {chr(c)!r} after separator", offset=i)
            ends[parent] = i + 1
            stack.pop()
            i += 1
            value_done = True

        elif expect == _COLON:
            if c != ord(":"):
                raise InvalidJSONError("expected ':' after object key", offset=i)
            i += 1
            expect = _VALUE
            continue

        elif expect == _COMMA_OR_CLOSE:
            if c != ord(","):
                raise InvalidJSONError(f"expected ',' or closing bracket, got {chr(c)!r}", offset=i)
            i += 1
            expect = _KEY if kinds[parent] is TokenKind.OBJECT else _VALUE
            continue

        elif expect in (_KEY, _KEY_OR_CLOSE):
            raise InvalidJSONError(f"object key must be a string, got {chr(c)!r}", offset=i)

        else:
            # A value is expected here
            if parent is not None and kinds[parent] is TokenKind.ARRAY:
                counts[parent] += 1
            if c == ord("{"):
                open_token(TokenKind.OBJECT, i)
                stack.append(len(kinds) - 1)
                expect = _KEY_OR_CLOSE
                i += 1
                continue
            if c == ord("["):
                open_token(TokenKind.ARRAY, i)
                stack.append(len(kinds) - 1)
                expect = _VALUE_OR_CLOSE
                i += 1
                continue
            if c == _QUOTE:
                close = _scan_string(data, i + 1)
                open_token(TokenKind.STRING, i + 1, close)
                i = close + 1
            elif c == _MINUS or _is_digit(c):
                end = _scan_number(data, i)
                open_token(TokenKind.PRIMITIVE, i, end)
                i = end
            elif c in _LITERALS:
                end = _scan_literal(data, i)
                open_token(TokenKind.PRIMITIVE, i, end)
                i = end
            else:
                raise InvalidJSONError(f"unexpected character {chr(c)!r}", offset=i)
            value_done = True

        if value_done:
            if not stack:
                break
            expect = _COMMA_OR_CLOSE

    tokens = [Token(kind, start, end, count) for kind, start, end, count in zip(kinds, starts, ends, counts)]
    return Document(tokens, data)
