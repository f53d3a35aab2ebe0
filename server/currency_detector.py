#!/usr/bin/env python3
"""
Currency Detector
Decides whether the body of a $...$ candidate is a price or a math expression

The decision is an ordered chain of small predicates. Each one looks at a single
lexical cue and either decides (True = currency, False = math) or abstains
(None). The first predicate that decides wins, so the order below matters.
"""

import re
from typing import Callable, List, Optional, Tuple

# Names that look like English words but are LaTeX commands or Greek letters
LATEX_WORDS = frozenset([
    'frac', 'sqrt', 'sum', 'prod', 'int', 'lim', 'log', 'sin', 'cos', 'tan',
    'alpha', 'beta', 'gamma', 'delta', 'theta', 'lambda', 'sigma', 'omega',
    'infty', 'partial', 'nabla', 'cdot', 'times', 'div', 'pm', 'mp',
    'leq', 'geq', 'neq', 'approx', 'equiv', 'subset', 'supset',
    'mathbb', 'mathcal', 'mathrm', 'text', 'left', 'right', 'begin', 'end',
    'ln', 'exp', 'pi',
])

# Words that may sit between two prices: "$50, or $100"
CURRENCY_CONNECTORS = frozenset(['or', 'to', 'and', 'per', 'a', 'an', 'the'])

_LATEX_MARKERS = re.compile(r'[\\^_{}]')
_FUNCTION_CALL = re.compile(r'[a-zA-Z]\s*\(.*\)')
_COMPARISON = re.compile(r'[<>]')
_STRUCTURE_BREAK = re.compile(r'[\r\n]\s*[-*+#]')
_SENTENCE_BREAK = re.compile(r'[.!?]\s+[A-Z]')
_LONG_WORD = re.compile(r'\b[a-zA-Z]{3,}\b', re.ASCII)
_ANY_WORD = re.compile(r'\b[a-zA-Z]+\b', re.ASCII)
_MARKDOWN_MARKERS = re.compile(r'[*#`\[\]]')
_PURE_NUMBER = re.compile(r'[\d.,]+[,\s]*')
_NUMBER_WITH_RANGE_DASH = re.compile(r'[\d.,]+\s*-?\s*')
_NUMBER_WITH_SUFFIX = re.compile(r'[\d.,]+[kKmMbB]?(?:/\w+)?[,\s)]*', re.ASCII)
_NUMBER_PER_WORD = re.compile(r'\d+(?:\.\d+)?/\w+[,\s)]*', re.ASCII)
_INFIX_OPERATOR = re.compile(r'[a-zA-Z0-9]\s*[+\-*/]\s*[a-zA-Z0-9]')
_BARE_VARIABLE = re.compile(r'[a-z][0-9]*', re.IGNORECASE)
_BROAD_NUMERIC = re.compile(
    r'[\d.,\s$\-/]+(\s*(per|unit|each|k|m|b|million|billion|thousand))?',
    re.IGNORECASE,
)
_COMMA_WORD = re.compile(r',\s+[a-zA-Z]')
_LEADING_DIGIT = re.compile(r'[0-9]')


def is_empty(content: str) -> Optional[bool]:
    """Nothing between the dollars: never worth rendering"""
    if not content or not content.strip():
        return True
    return None


def has_latex_markers(content: str) -> Optional[bool]:
    """Backslash commands, sub/superscripts and braces only occur in math"""
    if _LATEX_MARKERS.search(content):
        return False
    return None


def has_function_call(content: str) -> Optional[bool]:
    """f(x), P(t): a letter applied to a parenthesized argument"""
    if _FUNCTION_CALL.search(content):
        return False
    return None


def has_equals(content: str) -> Optional[bool]:
    if '=' in content:
        return False
    return None


def has_comparison(content: str) -> Optional[bool]:
    if _COMPARISON.search(content):
        return False
    return None


def crosses_document_structure(content: str) -> Optional[bool]:
    """
    A line break followed by a list or heading marker means the span ran into
    the next markdown block. Checked before the operator rule because a list
    dash looks like subtraction.
    """
    if _STRUCTURE_BREAK.search(content):
        return True
    return None


def crosses_sentence(content: str) -> Optional[bool]:
    """'$50. For example ... $' spans the end of a sentence"""
    if _SENTENCE_BREAK.search(content):
        return True
    return None


def has_english_words(content: str) -> Optional[bool]:
    """Two or more real words (not LaTeX names) read as prose"""
    words = _LONG_WORD.findall(content)
    english = [w for w in words if w.lower() not in LATEX_WORDS]
    if len(english) >= 2:
        return True
    return None


def has_markdown_markers(content: str) -> Optional[bool]:
    """Emphasis, heading, code and link markers belong to the surrounding markdown"""
    if _MARKDOWN_MARKERS.search(content):
        return True
    return None


def is_plain_number(content: str) -> Optional[bool]:
    """50, 1,234.56 and the '50-' left half of a price range"""
    if _PURE_NUMBER.fullmatch(content) or _NUMBER_WITH_RANGE_DASH.fullmatch(content):
        return True
    return None


def is_number_with_suffix(content: str) -> Optional[bool]:
    """50k, 100.00, 50/unit, '50/unit),'"""
    if _NUMBER_WITH_SUFFIX.fullmatch(content):
        return True
    return None


def is_number_per_word(content: str) -> Optional[bool]:
    """'50/item' is a rate, not a division"""
    if _NUMBER_PER_WORD.fullmatch(content):
        return True
    return None


def has_variable_arithmetic(content: str) -> Optional[bool]:
    """
    An operator between operands with at least one letter around: 2x + 3, x - y.
    Must run after the number/unit rules so '50/unit' is not read as division.
    """
    if re.search(r'[a-zA-Z]', content) and _INFIX_OPERATOR.search(content):
        return False
    return None


def is_number_with_connectors(content: str) -> Optional[bool]:
    """'50, or ' from '$50, or $100'"""
    if not _LEADING_DIGIT.match(content):
        return None
    words = _ANY_WORD.findall(content)
    if words and all(w.lower() in CURRENCY_CONNECTORS for w in words):
        return True
    return None


def is_bare_variable(content: str) -> Optional[bool]:
    """x, y2, n1"""
    if _BARE_VARIABLE.fullmatch(content.strip()):
        return False
    return None


def is_numeric_amount(content: str) -> Optional[bool]:
    """Digits and separators, optionally followed by a unit or magnitude word"""
    if _BROAD_NUMERIC.fullmatch(content):
        return True
    return None


def is_number_then_prose(content: str) -> Optional[bool]:
    """'100, formula: ' from '$100, formula: $y = mx + b$'"""
    if not _LEADING_DIGIT.match(content):
        return None
    if _COMMA_WORD.search(content) or ':' in content:
        return True
    return None


def by_length(content: str) -> Optional[bool]:
    """Short content with little letter content is a price; long content is math"""
    if len(content) < 20:
        letters = re.sub(r'[^a-zA-Z]', '', content)
        if len(letters) <= 3:
            return True
    return len(content) < 10


Rule = Tuple[str, Callable[[str], Optional[bool]]]

CURRENCY_RULES: List[Rule] = [
    ('empty', is_empty),
    ('latex_markers', has_latex_markers),
    ('function_call', has_function_call),
    ('equals', has_equals),
    ('comparison', has_comparison),
    ('document_structure', crosses_document_structure),
    ('sentence_break', crosses_sentence),
    ('english_words', has_english_words),
    ('markdown_markers', has_markdown_markers),
    ('plain_number', is_plain_number),
    ('number_with_suffix', is_number_with_suffix),
    ('number_per_word', is_number_per_word),
    ('variable_arithmetic', has_variable_arithmetic),
    ('number_with_connectors', is_number_with_connectors),
    ('bare_variable', is_bare_variable),
    ('numeric_amount', is_numeric_amount),
    ('number_then_prose', is_number_then_prose),
    ('length', by_length),
]


def classify(content: str) -> Tuple[bool, str]:
    """Run the rule chain; returns (looks_like_currency, deciding rule name)"""
    for name, rule in CURRENCY_RULES:
        verdict = rule(content)
        if verdict is not None:
            return verdict, name
    # by_length always decides
    return False, 'length'


def looks_like_currency(content: str) -> bool:
    """True if the text between two $ signs reads as money rather than math"""
    return classify(content)[0]


def explain_classification(content: str) -> str:
    """Name of the rule that decided the classification of content"""
    return classify(content)[1]


_CURRENCY_RANGE = re.compile(r'\$[\d.,]+\s*-\s*\$[\d.,]+')


def is_currency_range(text: str) -> bool:
    """Whole-string check for '$50-$100' or '$25 - $50'"""
    return bool(text) and _CURRENCY_RANGE.fullmatch(text) is not None
