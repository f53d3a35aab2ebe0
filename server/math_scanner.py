#!/usr/bin/env python3
"""
Math Delimiter Scanner
Locates $$...$$, \\[...\\], \\(...\\) and $...$ spans in prose that also
contains prices, and neutralizes "$50-$100" style ranges before scanning

The scanner is a pure function of (text, delimiter, cursor). Callers own the
splicing and decide where to resume, so no scan position survives between calls.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from currency_detector import classify, looks_like_currency

logger = logging.getLogger('mdpreview.math')


class DelimiterKind(Enum):
    DOUBLE_DOLLAR = 'double-dollar'
    BRACKET_DISPLAY = 'bracket-display'
    PAREN_INLINE = 'paren-inline'
    SINGLE_DOLLAR = 'single-dollar'


@dataclass(frozen=True)
class Delimiter:
    left: str
    right: str
    display: bool
    priority: int
    kind: DelimiterKind


# Single dollar is a prefix of double dollar, so it must be scanned last
DEFAULT_DELIMITERS: Tuple[Delimiter, ...] = (
    Delimiter('$$', '$$', True, 1, DelimiterKind.DOUBLE_DOLLAR),
    Delimiter('\\[', '\\]', True, 2, DelimiterKind.BRACKET_DISPLAY),
    Delimiter('\\(', '\\)', False, 3, DelimiterKind.PAREN_INLINE),
    Delimiter('$', '$', False, 4, DelimiterKind.SINGLE_DOLLAR),
)


def ordered_delimiters(delimiters: Optional[Iterable[Delimiter]] = None) -> List[Delimiter]:
    """Delimiters in ascending priority"""
    if delimiters is None:
        delimiters = DEFAULT_DELIMITERS
    return sorted(delimiters, key=lambda d: d.priority)


@dataclass
class MathSpan:
    """One protected expression, keyed by its token in the span table"""
    token: str
    original_text: str
    inner_content: str
    is_display: bool
    delimiter_kind: DelimiterKind
    is_pending: bool = False

    def as_record(self) -> Dict[str, object]:
        return {
            'token': self.token,
            'original_text': self.original_text,
            'inner_content': self.inner_content,
            'is_display': self.is_display,
            'is_pending': self.is_pending,
        }


@dataclass(frozen=True)
class SpanMatch:
    """A span accepted by the scanner: text[start:end] is the verbatim source"""
    start: int
    end: int
    inner: str
    delimiter: Delimiter
    pending: bool = False


# Reserved token formats
MATH_TOKEN = '::MATH_{}::'
PENDING_TOKEN = '::PENDINGMATH{}::'
CURRENCY_TOKEN = '::CUR{}::'

RESERVED_TOKEN_RE = re.compile(r'::(?:MATH_|PENDINGMATH|CUR)\d+::')
CURRENCY_TOKEN_RE = re.compile(r'::CUR\d+::')

PARAGRAPH_BREAK = '\n\n'
ESCAPE = '\\'
CODE_TICK = '`'

_CURRENCY_RANGE = re.compile(r'\$(\d[\d,]*(?:\.\d+)?)\s*-\s*\$(\d[\d,]*(?:\.\d+)?)')

# Content that makes an unterminated span worth holding back as pending math
_PENDING_CUES = re.compile(r'[\\^_{}]|begin|frac')


def mask_currency_ranges(text: str) -> Tuple[str, Dict[str, str]]:
    """
    Replace every two-sided price range with a ::CUR<n>:: token.
    The tokens carry none of the characters that mark pending math.
    """
    mask: Dict[str, str] = {}

    def replace(match):
        token = CURRENCY_TOKEN.format(len(mask))
        mask[token] = match.group(0)
        return token

    return _CURRENCY_RANGE.sub(replace, text), mask


def unmask_currency_ranges(text: str, mask: Dict[str, str]) -> str:
    """Put every masked range back"""
    for token, original in mask.items():
        text = text.replace(token, original)
    return text


def is_inside_inline_code(text: str, position: int) -> bool:
    """An odd number of backticks before position means we are inside code"""
    return text.count(CODE_TICK, 0, position) % 2 == 1


def _find_closer(text: str, delimiter: Delimiter, left: int) -> int:
    start = left + len(delimiter.left)
    if delimiter.kind is not DelimiterKind.SINGLE_DOLLAR:
        return text.find(delimiter.right, start)

    # $...$ never spans paragraphs, and \$ inside the body is a literal dollar
    paragraph_break = text.find(PARAGRAPH_BREAK, left)
    position = start
    while True:
        found = text.find(delimiter.right, position)
        if found == -1:
            return -1
        if paragraph_break != -1 and found > paragraph_break:
            return -1
        if text[found - 1] == ESCAPE:
            position = found + 1
            continue
        return found


def _pending_span(text: str, delimiter: Delimiter, left: int) -> Optional[SpanMatch]:
    """Match for an opener with no closer yet, if what follows looks like math"""
    body_start = left + len(delimiter.left)

    if delimiter.kind is DelimiterKind.SINGLE_DOLLAR:
        immediate = re.split(r'\s', text[body_start:], maxsplit=1)[0]
        if looks_like_currency(immediate):
            return None

    boundary = text.find(PARAGRAPH_BREAK, left)
    end = boundary if boundary != -1 else len(text)
    content = text[body_start:end]
    if not content:
        return None
    if not _PENDING_CUES.search(RESERVED_TOKEN_RE.sub('', content)):
        return None
    return SpanMatch(left, end, content, delimiter, pending=True)


def find_next_span(text: str, delimiter: Delimiter, cursor: int = 0) -> Optional[SpanMatch]:
    """
    Find the next math span of one delimiter kind at or after cursor.

    Returns None when the rest of the text holds no acceptable span. Candidates
    rejected as prices, empty bodies, multi-line inline bodies or bodies holding
    a masked range are skipped so later spans are still found.
    """
    if not text:
        return None
    single = delimiter.kind is DelimiterKind.SINGLE_DOLLAR

    while cursor < len(text):
        left = text.find(delimiter.left, cursor)
        if left == -1:
            return None

        if single and left > 0 and text[left - 1] == ESCAPE:
            cursor = left + 1
            continue
        if single and is_inside_inline_code(text, left):
            cursor = left + 1
            continue

        right = _find_closer(text, delimiter, left)
        if right == -1:
            pending = _pending_span(text, delimiter, left)
            if pending is not None:
                return pending
            cursor = left + 1
            continue

        inner = text[left + len(delimiter.left):right]
        end = right + len(delimiter.right)

        if not inner.strip():
            cursor = end
            continue
        if single and ('\n' in inner or '\r' in inner):
            cursor = left + 1
            continue
        if CURRENCY_TOKEN_RE.search(inner):
            cursor = left + 1
            continue
        if single:
            currency, rule = classify(inner)
            if currency:
                logger.debug(f"Skipped ${inner}$ as currency ({rule})")
                cursor = left + 1
                continue

        return SpanMatch(left, end, inner, delimiter)

    return None
