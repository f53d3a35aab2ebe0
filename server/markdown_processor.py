#!/usr/bin/env python3
"""
Markdown Processor
Converts markdown to HTML with LaTeX math kept out of the markdown parser's
reach, then restored verbatim or rendered to MathML
Performance optimized with content-hash caching
"""

import logging
from typing import Dict, Optional, Tuple

import markdown

from hash_utils import content_hash
from latex_processor import LaTeXProcessor
from math_protector import MathProtector
from render_backends import MathMLRenderer

logger = logging.getLogger('mdpreview.markdown')

MARKDOWN_EXTENSIONS = [
    'markdown.extensions.tables',
    'markdown.extensions.fenced_code',
    'markdown.extensions.sane_lists',
    'markdown.extensions.toc',
]

CACHE_SIZE = 10


class MarkdownProcessor:
    def __init__(self, render_math: bool = True, renderer=None, debug: bool = False):
        self.render_math = render_math
        self.renderer = renderer if renderer is not None else MathMLRenderer()
        self.debug = debug
        self.latex_processor = LaTeXProcessor(self.renderer)

        # Performance caches
        self._content_cache: Dict[str, Tuple[str, str]] = {}  # hash -> (content, html)
        self._last_hash: Optional[str] = None
        self._incremental_enabled = True
        self.last_span_count = 0

    def convert(self, markdown_text: str, enable_latex: bool = True, force: bool = False,
                render_math: Optional[bool] = None) -> str:
        """
        Convert markdown to HTML
        Uses content hash for caching to avoid redundant processing
        """
        if not markdown_text:
            return ''
        if render_math is None:
            render_math = self.render_math

        key = content_hash(markdown_text, enable_latex, render_math)
        if not force and self._incremental_enabled and key in self._content_cache:
            self._last_hash = key
            return self._content_cache[key][1]

        text = markdown_text
        spans = {}

        # Step 1: fenced math blocks
        if enable_latex and self.latex_processor.has_blocks(text):
            text = self.latex_processor.protect(text)
        else:
            self.latex_processor.blocks = {}

        # Step 2: inline and display math become tokens
        protector = MathProtector(
            render_on_restore=render_math,
            debug=self.debug,
            renderer=self.renderer,
        )
        if enable_latex:
            result = protector.protect(text)
            text, spans = result.protected, result.spans

        # Step 3: markdown
        html = self.markdown_to_html(text)

        # Step 4: tokens back to math
        if spans:
            html = protector.restore(html, spans, escape_source=True)
        if self.latex_processor.blocks:
            self.latex_processor.renderer = self.renderer if render_math else None
            html = self.latex_processor.process(html)
        self.last_span_count = len(spans)

        # Update cache
        self._content_cache[key] = (markdown_text, html)
        self._last_hash = key
        if len(self._content_cache) > CACHE_SIZE:
            oldest_keys = list(self._content_cache.keys())[:-CACHE_SIZE]
            for old_key in oldest_keys:
                del self._content_cache[old_key]

        return html

    def markdown_to_html(self, text: str) -> str:
        md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS)
        return md.convert(text)

    def is_cached(self, markdown_text: str, enable_latex: bool = True,
                  render_math: Optional[bool] = None) -> bool:
        if render_math is None:
            render_math = self.render_math
        return content_hash(markdown_text, enable_latex, render_math) in self._content_cache

    def clear_cache(self):
        """Clear the conversion cache"""
        self._content_cache.clear()
        self._last_hash = None

    def enable_incremental(self, enabled: bool = True):
        """Enable or disable the conversion cache"""
        self._incremental_enabled = enabled
