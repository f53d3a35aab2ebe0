import logging

import pytest

from math_scanner import (
    DEFAULT_DELIMITERS,
    Delimiter,
    DelimiterKind,
    find_next_span,
    is_inside_inline_code,
    mask_currency_ranges,
    ordered_delimiters,
    unmask_currency_ranges,
)

DOUBLE, BRACKET, PAREN, SINGLE = DEFAULT_DELIMITERS


def test_delimiters_ordered_by_priority():
    shuffled = [SINGLE, PAREN, DOUBLE, BRACKET]
    assert ordered_delimiters(shuffled) == [DOUBLE, BRACKET, PAREN, SINGLE]
    assert ordered_delimiters()[0].kind is DelimiterKind.DOUBLE_DOLLAR
    assert ordered_delimiters()[-1].kind is DelimiterKind.SINGLE_DOLLAR


def test_mask_currency_ranges():
    text = 'Budget $50-$100 or $1,000 - $2,000.50 total'
    masked, mask = mask_currency_ranges(text)
    assert masked == 'Budget ::CUR0:: or ::CUR1:: total'
    assert mask == {'::CUR0::': '$50-$100', '::CUR1::': '$1,000 - $2,000.50'}
    assert unmask_currency_ranges(masked, mask) == text


def test_mask_leaves_single_prices_alone():
    masked, mask = mask_currency_ranges('Only $50 here and $x$ there')
    assert masked == 'Only $50 here and $x$ there'
    assert mask == {}


def test_inside_inline_code():
    text = 'a `$x$` b $y$'
    assert is_inside_inline_code(text, text.index('$x'))
    assert not is_inside_inline_code(text, text.index('$y'))


def test_finds_single_dollar_span():
    match = find_next_span('Inline $x^2$ here', SINGLE)
    assert (match.start, match.end, match.inner) == (7, 12, 'x^2')
    assert not match.pending


def test_finds_display_spans():
    text = 'A $$\\int f$$ and \\[a+b\\] and \\(c\\)'
    assert find_next_span(text, DOUBLE).inner == '\\int f'
    assert find_next_span(text, BRACKET).inner == 'a+b'
    assert find_next_span(text, PAREN).inner == 'c'


def test_cursor_moves_past_earlier_spans():
    text = '$a^1$ and $b^2$'
    first = find_next_span(text, SINGLE)
    second = find_next_span(text, SINGLE, first.end)
    assert second.inner == 'b^2'
    assert find_next_span(text, SINGLE, second.end) is None


def test_currency_candidate_skipped_for_later_math():
    match = find_next_span('Costs $50 and then $x^2$ done', SINGLE)
    assert match.inner == 'x^2'


def test_escaped_dollar_is_not_an_opener():
    assert find_next_span('Price \\$5 and \\$6', SINGLE) is None


def test_escaped_closer_is_skipped():
    match = find_next_span('$a \\$ b^2$ end', SINGLE)
    assert match.inner == 'a \\$ b^2'


def test_dollar_inside_code_is_ignored():
    assert find_next_span('Use `$x^2$` literally', SINGLE) is None


def test_inline_span_does_not_cross_paragraphs():
    assert find_next_span('Cost $5\n\nthen x$ later', SINGLE) is None


def test_empty_body_is_skipped():
    match = find_next_span('$$$$ then $$y^2$$', DOUBLE)
    assert match.inner == 'y^2'


def test_masked_range_inside_body_rejects_span():
    text, _ = mask_currency_ranges('$a $10-$20 b$')
    assert find_next_span(text, SINGLE) is None


def test_unterminated_math_is_pending():
    match = find_next_span('Streaming $x^', SINGLE)
    assert match.pending
    assert match.inner == 'x^'
    assert (match.start, match.end) == (10, 14)


def test_pending_stops_at_paragraph_break():
    text = 'Start \\[\\frac{a}{b}\n\nNext paragraph'
    match = find_next_span(text, BRACKET)
    assert match.pending
    assert match.inner == '\\frac{a}{b}'
    assert match.end == text.index('\n\n')


def test_unterminated_price_is_not_pending():
    assert find_next_span('It costs $50 today', SINGLE) is None


def test_unterminated_prose_is_not_pending():
    assert find_next_span('Some \\( words only', PAREN) is None


def test_reserved_tokens_do_not_count_as_math_cues():
    assert find_next_span('see \\( more ::MATH_0:: text', PAREN) is None


@pytest.mark.parametrize('text', ['', '$', 'no math at all'])
def test_nothing_to_find(text):
    assert find_next_span(text, SINGLE) is None


def test_custom_delimiter():
    custom = Delimiter('@@', '@@', True, 1, DelimiterKind.DOUBLE_DOLLAR)
    assert find_next_span('x @@a+b@@ y', custom).inner == 'a+b'


def test_skipped_price_logs_deciding_rule(caplog):
    with caplog.at_level(logging.DEBUG, logger='mdpreview.math'):
        assert find_next_span('Costs $50 and $100 total', SINGLE) is None
    assert 'number_with_connectors' in caplog.text
