#!/usr/bin/env python3
"""
Stream Renderer
Renders a markdown document that arrives in chunks (e.g. from an LLM) into a
live target, re-converting the full text on every change
"""

import logging
import time

from markdown_processor import MarkdownProcessor
from render_backends import RenderTarget
from streaming_math import StreamingMathTracker

logger = logging.getLogger('mdpreview.stream')

STREAMING_CURSOR = '<span class="streaming-cursor"></span>'


class IncrementalContentRenderer:
    """Full replace of the target whenever the document text changed"""

    def __init__(self):
        self.reset()

    def reset(self):
        self.last_content = ''
        self.render_count = 0
        self._total_render_time = 0.0

    def append_new_content(self, target, full_content: str, render) -> bool:
        if target is None or not full_content:
            return False
        if full_content == self.last_content:
            return False

        self.render_count += 1
        start_time = time.time()

        target.html = render(full_content) + STREAMING_CURSOR
        self.last_content = full_content

        duration = time.time() - start_time
        self._total_render_time += duration
        if self.render_count % 10 == 0:
            logger.debug(f"Render #{self.render_count}: {duration * 1000:.2f}ms")
        return True

    def get_stats(self):
        avg_time = (self._total_render_time / self.render_count) if self.render_count > 0 else 0
        return {
            'render_count': self.render_count,
            'avg_render_time_ms': avg_time * 1000,
            'content_length': len(self.last_content),
        }


class StreamRenderer:
    """One streaming session: accumulated markdown, its live HTML, math tracking"""

    def __init__(self, target=None, processor=None, tracker=None):
        self.target = target if target is not None else RenderTarget()
        self.processor = processor if processor is not None else MarkdownProcessor()
        if tracker is None:
            # Verbatim math stays verbatim in the live view too; rendered math
            # comes out of convert() already, so the tracker only counts it
            tracker = StreamingMathTracker(
                renderer=self.processor.renderer if self.processor.render_math else None)
        self.tracker = tracker
        self.incremental_renderer = IncrementalContentRenderer()
        self.content = ''

    def _render(self, text: str) -> str:
        return self.processor.convert(text)

    def append_content(self, chunk: str) -> bool:
        """Append a chunk and re-render; True if the target changed"""
        if not chunk:
            return False

        self.content += chunk
        updated = self.incremental_renderer.append_new_content(self.target, self.content, self._render)
        if updated:
            self.tracker.process_chunk(chunk, self.target, prerendered=self.processor.render_math)
        return updated

    def set_content(self, content: str) -> bool:
        """Replace the whole document"""
        self.content = content or ''
        self.tracker.reset()
        updated = self.incremental_renderer.append_new_content(self.target, self.content, self._render)
        if updated:
            self.tracker.process_chunk(self.content, self.target, prerendered=self.processor.render_math)
        return updated

    def finalize(self) -> str:
        """Drop the streaming cursor and give math one last render pass"""
        self.target.html = self.target.html.replace(STREAMING_CURSOR, '')
        self.tracker.final_render(self.target)
        return self.target.html

    def reset(self):
        self.content = ''
        self.incremental_renderer.reset()
        self.tracker.reset()
        self.target.html = ''

    def get_content(self) -> str:
        return self.content

    def get_stats(self):
        return {
            'incremental': self.incremental_renderer.get_stats(),
            'math': self.tracker.get_stats(),
            'content_length': len(self.content),
        }
