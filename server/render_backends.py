#!/usr/bin/env python3
"""
Math Render Backends
Turns protected LaTeX into markup, either one formula at a time or in place
over an already converted HTML document
"""

import html
import logging
import re
from typing import Iterable, Optional, Tuple

from latex2mathml.converter import convert as latex_to_mathml

from math_protector import MathProtector
from math_scanner import Delimiter

logger = logging.getLogger('mdpreview.render')

# Elements whose text must never be treated as math source
_IGNORED_ELEMENTS = re.compile(
    r'<(pre|code|script|style|textarea|math)\b[^>]*>.*?</\1\s*>',
    re.DOTALL | re.IGNORECASE,
)


class RenderTarget:
    """Live HTML content that in-place rendering mutates"""

    def __init__(self, html: str = ''):
        self.html = html

    def __repr__(self):
        return f"RenderTarget({len(self.html)} chars)"


class MathRenderer:
    """Interface for render capabilities handed to the protector and the tracker"""

    def render_to_string(self, content: str, display_mode: bool = False,
                         throw_on_error: bool = True) -> str:
        raise NotImplementedError

    def render_in_place(self, target: RenderTarget,
                        delimiters: Optional[Iterable[Delimiter]] = None) -> int:
        raise NotImplementedError


class MathMLRenderer(MathRenderer):
    """MathML output through latex2mathml"""

    def render_to_string(self, content: str, display_mode: bool = False,
                         throw_on_error: bool = True) -> str:
        display = 'block' if display_mode else 'inline'
        try:
            return latex_to_mathml(content, display=display)
        except Exception as e:
            if throw_on_error:
                raise
            logger.debug(f"MathML conversion failed for {content!r}: {e}")
            return f'<span class="math-error" title="{html.escape(str(e))}">{html.escape(content)}</span>'

    def render_in_place(self, target: RenderTarget,
                        delimiters: Optional[Iterable[Delimiter]] = None) -> int:
        """
        Render every complete math span in target.html that is not already
        rendered. Returns how many formulas were newly rendered; running it
        twice over the same target renders nothing the second time.
        """
        source = target.html or ''
        pieces = []
        rendered_count = 0
        position = 0

        for match in _IGNORED_ELEMENTS.finditer(source):
            segment, count = self._render_segment(source[position:match.start()], delimiters)
            pieces.append(segment)
            pieces.append(match.group(0))
            rendered_count += count
            position = match.end()

        segment, count = self._render_segment(source[position:], delimiters)
        pieces.append(segment)
        rendered_count += count

        target.html = ''.join(pieces)
        return rendered_count

    def _render_segment(self, segment: str,
                        delimiters: Optional[Iterable[Delimiter]]) -> Tuple[str, int]:
        if not segment:
            return segment, 0

        protector = MathProtector(renderer=self, delimiters=delimiters)
        result = protector.protect(segment)
        text = result.protected
        count = 0

        for token in sorted(result.spans, reverse=True):
            span = result.spans[token]
            if span.is_pending:
                replacement = span.original_text
            else:
                # Formula bodies arrive HTML-escaped from the markdown converter
                span.inner_content = html.unescape(span.inner_content)
                replacement = protector.render_span(span)
                if replacement != span.original_text:
                    count += 1
            text = text.replace(token, replacement)

        return text, count
