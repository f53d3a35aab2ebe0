#!/usr/bin/env python3
"""
Math Protector
Swaps LaTeX spans for placeholder tokens before markdown conversion and puts
them back (verbatim or rendered) afterwards
"""

import html
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from math_scanner import (
    CURRENCY_TOKEN_RE,
    MATH_TOKEN,
    PENDING_TOKEN,
    Delimiter,
    MathSpan,
    find_next_span,
    mask_currency_ranges,
    ordered_delimiters,
    unmask_currency_ranges,
)

logger = logging.getLogger('mdpreview.math')

DISPLAY_WRAPPER = '<div class="math-display-wrapper">{}</div>'


@dataclass
class ProtectResult:
    protected: str = ''
    spans: Dict[str, MathSpan] = field(default_factory=dict)


class MathProtector:
    """
    One protection pass per instance at a time: protect() resets the token
    counter and the currency masks, so overlapping passes on a shared
    instance would corrupt each other's span tables.
    """

    def __init__(self, render_on_restore: bool = True, debug: bool = False,
                 renderer=None, delimiters: Optional[Iterable[Delimiter]] = None):
        self.render_on_restore = render_on_restore
        self.debug = debug
        self.renderer = renderer
        self.delimiters = ordered_delimiters(delimiters)

        self.counter = 0
        self._currency_mask: Dict[str, str] = {}

    def protect(self, content: Optional[str]) -> ProtectResult:
        """Replace every math span with a token; returns the text and the span table"""
        if not content:
            return ProtectResult()

        self.reset()
        spans: Dict[str, MathSpan] = {}

        if self.debug:
            logger.debug(f"protect: {len(content)} chars, starts with {content[:100]!r}")

        # Step 1: hide price ranges so "$50-$100" cannot open a span
        text, self._currency_mask = mask_currency_ranges(content)
        if self.debug and self._currency_mask:
            logger.debug(f"Masked currency ranges: {list(self._currency_mask.values())}")

        # Step 2: each delimiter kind in priority order
        try:
            for delimiter in self.delimiters:
                text = self._protect_delimiter(text, delimiter, spans)
        except Exception as e:
            logger.error(f"Error during math protection: {e}", exc_info=True)

        # Step 3: ranges always go back to their source text
        text = unmask_currency_ranges(text, self._currency_mask)
        self._currency_mask = {}

        if CURRENCY_TOKEN_RE.search(text):
            logger.warning("Currency range placeholder leaked into protected text")

        if self.debug:
            logger.debug(f"protect: {len(spans)} spans -> {text[:200]!r}")

        return ProtectResult(text, spans)

    def _protect_delimiter(self, text: str, delimiter: Delimiter,
                           spans: Dict[str, MathSpan]) -> str:
        cursor = 0
        while True:
            match = find_next_span(text, delimiter, cursor)
            if match is None:
                return text

            template = PENDING_TOKEN if match.pending else MATH_TOKEN
            token = template.format(self.counter)
            self.counter += 1

            original = text[match.start:match.end]
            spans[token] = MathSpan(
                token=token,
                original_text=original,
                inner_content=match.inner,
                is_display=delimiter.display,
                delimiter_kind=delimiter.kind,
                is_pending=match.pending,
            )
            if self.debug:
                logger.debug(f"{token} <- {original!r}")

            text = text[:match.start] + token + text[match.end:]
            cursor = match.start + len(token)

    def restore(self, content: Optional[str], spans: Optional[Dict[str, MathSpan]],
                escape_source: bool = False) -> Optional[str]:
        """
        Swap tokens back for their math, rendered when a renderer is configured.
        With escape_source, math left as source is HTML-escaped for splicing
        into converted markup.
        """
        if not content or not spans:
            return content

        render = self.render_on_restore and self.renderer is not None
        restored = content

        # Longest-first among shared prefixes: ::MATH_10:: before ::MATH_1::
        for token in sorted(spans, reverse=True):
            if token not in restored:
                continue
            span = spans[token]
            source = html.escape(span.original_text, quote=False) if escape_source else span.original_text
            replacement = self.render_span(span, fallback=source) if render else source
            restored = restored.replace(token, replacement)

        return restored

    def render_span(self, span: MathSpan, fallback: Optional[str] = None) -> str:
        """Rendered markup for one span; fallback (the verbatim source by default) if rendering fails"""
        if fallback is None:
            fallback = span.original_text
        if not span.inner_content.strip():
            return fallback
        try:
            rendered = self.renderer.render_to_string(
                span.inner_content,
                display_mode=span.is_display,
                throw_on_error=True,
            )
        except Exception as e:
            logger.debug(f"Render failed for {span.token}, keeping source: {e}")
            return fallback

        if span.is_display:
            return DISPLAY_WRAPPER.format(rendered)
        return rendered

    def reset(self):
        """Clear per-pass state"""
        self.counter = 0
        self._currency_mask = {}
