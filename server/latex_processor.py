#!/usr/bin/env python3
"""
LaTeX Block Processor
Pulls ```katex / ```math fenced blocks out of markdown before conversion and
renders them as display math into the converted HTML
"""

import html
import logging
import re
from typing import Dict, Optional

from hash_utils import hash_code

logger = logging.getLogger('mdpreview.blocks')


class LaTeXProcessor:
    BLOCK_PATTERN = re.compile(r'```(?:katex|math)[ \t]*\n(.*?)```', re.DOTALL | re.IGNORECASE)
    PLACEHOLDER_PATTERN = re.compile(
        r'(?:<p>)?<div class="katex-placeholder" data-katex-id="(KATEX_[0-9a-f]+)"></div>(?:</p>)?'
    )

    def __init__(self, renderer=None):
        self.renderer = renderer
        self.blocks: Dict[str, str] = {}

    def has_blocks(self, text: str) -> bool:
        return bool(text) and self.BLOCK_PATTERN.search(text) is not None

    def protect(self, text: str) -> str:
        """
        Replace fenced math blocks with placeholder divs
        Identical blocks share one id
        """
        self.blocks = {}

        def save_block(match):
            code = match.group(1).strip()
            block_id = f"KATEX_{hash_code(code)}"
            self.blocks[block_id] = code
            return f'\n\n<div class="katex-placeholder" data-katex-id="{block_id}"></div>\n\n'

        return self.BLOCK_PATTERN.sub(save_block, text)

    def process(self, html_text: str, blocks: Optional[Dict[str, str]] = None) -> str:
        """Render placeholder divs in converted HTML"""
        blocks = self.blocks if blocks is None else blocks
        if not blocks:
            return html_text

        def render_block(match):
            code = blocks.get(match.group(1))
            if code is None:
                return match.group(0)
            return self.render_block(code)

        return self.PLACEHOLDER_PATTERN.sub(render_block, html_text)

    def render_block(self, code: str) -> str:
        if self.renderer is None:
            return f'<pre class="math-block"><code>{html.escape(code)}</code></pre>'
        try:
            rendered = self.renderer.render_to_string(code, display_mode=True, throw_on_error=True)
            return f'<div class="math-display-wrapper">{rendered}</div>'
        except Exception as e:
            logger.warning(f"Failed to render math block: {e}")
            return f'<pre class="math-error"><code>{html.escape(code)}</code></pre>'
