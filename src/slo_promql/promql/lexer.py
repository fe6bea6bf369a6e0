"""Tokenizer for the PromQL subset understood by the parser."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from slo_promql.errors import PromQLParseError

# Token kinds
NUMBER = "NUMBER"
DURATION = "DURATION"
STRING = "STRING"
IDENT = "IDENT"
OP = "OP"
EOF = "EOF"

_TOKEN_SPEC = [
    ("WS", r"\s+"),
    ("COMMENT", r"#[^\n]*"),
    (DURATION, r"\d+(?:ms|[smhdwy])(?:\d+(?:ms|[smhdwy]))*(?![\w:.])"),
    (NUMBER, r"0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"),
    (STRING, r'"(?:[^"\\\n]|\\.)*"|\'(?:[^\'\\\n]|\\.)*\'|`[^`]*`'),
    (IDENT, r"[a-zA-Z_:][a-zA-Z0-9_:]*"),
    (OP, r"=~|!~|==|!=|<=|>=|[-+*/%^<>=,(){}\[\]]"),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))

_ESCAPES = {
    "a": "\a", "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t", "v": "\v",
    "\\": "\\", '"': '"', "'": "'",
}


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    pos: int


def unquote(raw: str, pos: int = -1) -> str:
    """Decode a quoted PromQL string literal."""
    quote_char, body = raw[0], raw[1:-1]
    if quote_char == "`":
        return body
    out: List[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        i += 1
        esc = body[i]
        if esc in _ESCAPES:
            out.append(_ESCAPES[esc])
            i += 1
        elif esc in "xuU":
            width = {"x": 2, "u": 4, "U": 8}[esc]
            digits = body[i + 1:i + 1 + width]
            try:
                out.append(chr(int(digits, 16)))
            except ValueError:
                raise PromQLParseError(f"invalid escape sequence \\{esc}{digits}", pos, raw) from None
            i += 1 + width
        else:
            raise PromQLParseError(f"unknown escape sequence \\{esc}", pos, raw)
    return "".join(out)


def tokenize(text: str) -> List[Token]:
    """Split PromQL text into tokens, ending with an EOF token."""
    tokens: List[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise PromQLParseError(f"unexpected character {text[pos]!r}", pos, text)
        kind = match.lastgroup or ""
        if kind not in ("WS", "COMMENT"):
            tokens.append(Token(kind, match.group(), pos))
        pos = match.end()
    tokens.append(Token(EOF, "", len(text)))
    return tokens
