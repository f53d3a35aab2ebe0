#!/usr/bin/env python3
"""
Streaming Math Tracker
Decides, chunk by chunk, whether a streamed document holds formulas that have
not been rendered yet, so the in-place renderer only runs when it has work
"""

import logging
from typing import Iterable, List, NamedTuple, Optional

from hash_utils import hash_base36
from math_scanner import (
    MATH_TOKEN,
    Delimiter,
    DelimiterKind,
    find_next_span,
    mask_currency_ranges,
    ordered_delimiters,
)

logger = logging.getLogger('mdpreview.stream')


class FormulaSignature(NamedTuple):
    kind: DelimiterKind
    digest: str


def extract_formula_signatures(text: str,
                               delimiters: Optional[Iterable[Delimiter]] = None) -> List[FormulaSignature]:
    """
    Signatures of every complete formula in text, in delimiter-priority order.
    Uses the same range masking and scanning rules as protection; pending
    (unterminated) spans are not formulas yet and are left out.
    """
    if not text:
        return []

    signatures = []
    scanned, _ = mask_currency_ranges(text)

    for delimiter in ordered_delimiters(delimiters):
        cursor = 0
        count = 0
        while True:
            match = find_next_span(scanned, delimiter, cursor)
            if match is None:
                break
            if not match.pending:
                signatures.append(FormulaSignature(delimiter.kind, hash_base36(match.inner)))
            # Blank the span out so lower-priority delimiters cannot re-read it
            marker = MATH_TOKEN.format(count)
            count += 1
            scanned = scanned[:match.start] + marker + scanned[match.end:]
            cursor = match.start + len(marker)

    return signatures


class StreamingMathTracker:
    """
    Per-stream state: the text received so far, the formulas already rendered,
    and render counters. One tracker per stream; reset() between streams.
    """

    def __init__(self, renderer=None, delimiters: Optional[Iterable[Delimiter]] = None):
        self.renderer = renderer
        self.delimiters = ordered_delimiters(delimiters)
        self.reset()

    def process_chunk(self, chunk: str, target, prerendered: bool = False) -> bool:
        """
        Account for a new chunk and render in place if it completed any formula
        not seen before. Returns True when new formulas were rendered.

        prerendered means the caller's conversion already rendered every
        complete formula into target, so new ones are committed without
        another in-place pass.
        """
        self.stats['renders_attempted'] += 1
        self.accumulated_content += chunk or ''

        # The whole buffer is scanned so formulas split across chunks are found
        current = extract_formula_signatures(self.accumulated_content, self.delimiters)
        new_signatures = [sig for sig in dict.fromkeys(current) if sig not in self.seen_formulas]

        if not new_signatures:
            self.stats['renders_skipped'] += 1
            self.consecutive_skips += 1
            return False

        if not prerendered and not self._render(target):
            return False

        self.seen_formulas.update(new_signatures)
        self.consecutive_skips = 0
        self.stats['renders_executed'] += 1
        logger.debug(f"Rendered {len(new_signatures)} new formulas ({len(self.seen_formulas)} total)")
        return True

    def _render(self, target) -> bool:
        if self.renderer is None:
            return False
        try:
            return self.renderer.render_in_place(target, delimiters=self.delimiters) > 0
        except Exception as e:
            logger.error(f"In-place render error: {e}", exc_info=True)
            return False

    def final_render(self, target) -> bool:
        """One last render once the stream has ended"""
        return self._render(target)

    def reset(self):
        self.accumulated_content = ''
        self.seen_formulas = set()
        self.consecutive_skips = 0
        self.stats = {
            'renders_attempted': 0,
            'renders_skipped': 0,
            'renders_executed': 0,
        }

    def get_stats(self):
        total = self.stats['renders_attempted']
        skip_rate = (self.stats['renders_skipped'] / total * 100) if total > 0 else 0
        return {
            **self.stats,
            'skip_rate': f"{skip_rate:.1f}%",
            'formulas_seen': len(self.seen_formulas),
        }
