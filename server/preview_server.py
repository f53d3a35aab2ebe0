#!/usr/bin/env python3
"""
Markdown Preview Server
HTTP server with WebSocket push for live markdown preview with safe math
Whole-document updates are debounced; streamed chunks are rendered as they arrive
"""

import sys
import argparse
import asyncio
import json
import time
import logging
from pathlib import Path
from http.server import BaseHTTPRequestHandler, HTTPServer
from threading import Thread, Lock
import websockets

from markdown_processor import MarkdownProcessor
from stream_renderer import StreamRenderer

DEFAULT_LOG_FILE = Path.home() / '.cache' / 'mdpreview' / 'mdpreview.log'

logger = logging.getLogger('mdpreview')


def setup_logging(log_file=DEFAULT_LOG_FILE, debug=False):
    """File + stderr logging for the server process"""
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stderr)
        ]
    )


class PreviewServer:
    def __init__(self, port=8765, ws_port=None, render_math=True, debug=False):
        logger.info(f"Initializing PreviewServer on port {port}, render_math={render_math}")
        self.port = port
        self.ws_port = ws_port if ws_port is not None else port + 1
        self.current_html = ""
        self.clients = set()
        self.loop = None  # Will be set to the asyncio event loop

        self.processor = MarkdownProcessor(render_math=render_math, debug=debug)
        # Streaming sessions get their own processor so they never evict the document cache
        self.stream = StreamRenderer(processor=MarkdownProcessor(render_math=render_math, debug=debug))

        # Debouncing state
        self._debounce_task = None
        self._debounce_delay = 0.3  # 300ms debounce
        self._pending_update = None
        self._update_lock = Lock()

        # Performance monitoring
        self._update_count = 0
        self._total_processing_time = 0.0
        self._cache_hits = 0
        self._chunk_count = 0

    async def websocket_handler(self, websocket):
        """Handle WebSocket connections"""
        logger.info(f"New WebSocket connection from {websocket.remote_address}")
        self.clients.add(websocket)
        try:
            if self.current_html:
                logger.debug(f"Sending current HTML ({len(self.current_html)} bytes) to new client")
                await websocket.send(json.dumps({'html': self.current_html, 'scroll_percent': None}))
            await websocket.wait_closed()
        except Exception as e:
            logger.error(f"WebSocket error: {e}", exc_info=True)
        finally:
            logger.info(f"WebSocket connection closed from {websocket.remote_address}")
            self.clients.discard(websocket)

    async def broadcast_update(self, html, scroll_percent=None):
        """Send update to all connected clients"""
        logger.debug(f"Broadcasting {len(html)} bytes to {len(self.clients)} clients")
        self.current_html = html
        if not self.clients:
            return

        message_str = json.dumps({'html': html, 'scroll_percent': scroll_percent})
        results = await asyncio.gather(
            *[client.send(message_str) for client in list(self.clients)],
            return_exceptions=True
        )
        for i, result in enumerate(results):
            if isinstance(result, Exception):
                logger.error(f"Failed to send to client {i}: {result}")

    def process_markdown(self, content, enable_latex=True):
        """Convert a whole document with performance tracking"""
        start_time = time.time()
        logger.debug(f"Processing markdown: {len(content)} bytes")

        try:
            if self.processor.is_cached(content, enable_latex):
                self._cache_hits += 1
            html = self.processor.convert(content, enable_latex)

            processing_time = time.time() - start_time
            self._total_processing_time += processing_time
            self._update_count += 1

            logger.info(f"Markdown processed in {processing_time:.3f}s "
                        f"({len(html)} bytes HTML, {self.processor.last_span_count} math spans)")
            return html
        except Exception as e:
            logger.error(f"Error processing markdown: {e}", exc_info=True)
            return f"<p style='color: red;'>Error processing markdown: {e}</p>"

    async def queue_update(self, content, enable_latex=True, scroll_percent=None):
        """Queue an update with debouncing"""
        with self._update_lock:
            self._pending_update = (content, enable_latex, scroll_percent)

            if self._debounce_task and not self._debounce_task.done():
                logger.debug("Cancelling previous debounce task")
                self._debounce_task.cancel()

            self._debounce_task = asyncio.create_task(self._debounced_update())

    async def _debounced_update(self):
        """Execute update after debounce delay"""
        try:
            await asyncio.sleep(self._debounce_delay)

            with self._update_lock:
                pending = self._pending_update
                self._pending_update = None
            if pending:
                content, enable_latex, scroll_percent = pending
                html = self.process_markdown(content, enable_latex)
                await self.broadcast_update(html, scroll_percent)
        except asyncio.CancelledError:
            logger.debug("Debounce task cancelled")
        except Exception as e:
            logger.error(f"Error in debounced update: {e}", exc_info=True)

    def append_stream_chunk(self, chunk):
        """Feed one streamed chunk; returns the live HTML"""
        with self._update_lock:
            self._chunk_count += 1
            self.stream.append_content(chunk)
            return self.stream.target.html

    def finalize_stream(self):
        with self._update_lock:
            return self.stream.finalize()

    def reset_stream(self):
        with self._update_lock:
            self.stream.reset()

    async def push_stream_chunk(self, chunk):
        await self.broadcast_update(self.append_stream_chunk(chunk))

    async def push_stream_final(self):
        await self.broadcast_update(self.finalize_stream())

    def get_stats(self):
        """Get performance statistics"""
        avg_time = (self._total_processing_time / self._update_count) if self._update_count > 0 else 0
        return {
            'updates': self._update_count,
            'avg_processing_time_ms': avg_time * 1000,
            'total_time_s': self._total_processing_time,
            'cache_hits': self._cache_hits,
            'stream_chunks': self._chunk_count,
            'stream': self.stream.get_stats(),
        }

    def get_template_html(self):
        """Preview page wired to this server's websocket port"""
        return TEMPLATE_HTML.replace("__WS_PORT__", str(self.ws_port))


TEMPLATE_HTML = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Markdown Preview</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
            line-height: 1.6;
            max-width: 900px;
            margin: 0 auto;
            padding: 20px;
        }
        code, pre { background: #f6f8fa; border-radius: 3px; }
        pre { padding: 16px; overflow-x: auto; }
        .math-display-wrapper { text-align: center; margin: 1em 0; overflow-x: auto; }
        .math-error { color: #dc3545; }
        .streaming-cursor::after { content: "\\258C"; animation: blink 1s step-start infinite; }
        @keyframes blink { 50% { opacity: 0; } }
    </style>
</head>
<body>
    <div id="content"></div>
    <script>
        function connect() {
            const ws = new WebSocket('ws://localhost:__WS_PORT__/ws');
            ws.onmessage = function(event) {
                const message = JSON.parse(event.data);
                document.getElementById('content').innerHTML = message.html;
                if (message.scroll_percent !== null) {
                    const height = document.body.scrollHeight - window.innerHeight;
                    window.scrollTo(0, height * message.scroll_percent / 100);
                }
            };
            ws.onclose = function() { setTimeout(connect, 2000); };
        }
        connect();
    </script>
</body>
</html>"""


class RequestHandler(BaseHTTPRequestHandler):
    server_instance = None

    def log_message(self, format, *args):
        """Custom logging to use our logger"""
        logger.debug(f"HTTP {format % args}")

    def _send_json(self, status, payload):
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.end_headers()
        self.wfile.write(json.dumps(payload, indent=2).encode())

    def _read_json(self):
        content_length = int(self.headers.get('Content-Length', 0))
        if not content_length:
            return {}
        return json.loads(self.rfile.read(content_length).decode())

    def _schedule(self, coroutine):
        loop = self.server_instance.loop
        if loop is None:
            logger.error("No event loop available!")
            coroutine.close()
            return
        asyncio.run_coroutine_threadsafe(coroutine, loop)

    def do_GET(self):
        """Handle GET requests"""
        if self.path == '/' or self.path == '/index.html':
            html = self.server_instance.get_template_html()
            self.send_response(200)
            self.send_header('Content-Type', 'text/html')
            self.end_headers()
            self.wfile.write(html.encode())
        elif self.path == '/stats':
            self._send_json(200, self.server_instance.get_stats())
        else:
            self.send_response(404)
            self.end_headers()
            logger.warning(f"404: {self.path}")

    def do_POST(self):
        """Handle document updates and streamed chunks"""
        logger.debug(f"POST {self.path}")
        server = self.server_instance
        try:
            if self.path == '/update':
                data = self._read_json()
                content = data.get('content', '')
                logger.info(f"Update request: {len(content)} bytes")
                self._schedule(server.queue_update(
                    content, data.get('enable_latex', True), data.get('scroll_percent')))
            elif self.path == '/stream':
                chunk = self._read_json().get('chunk', '')
                self._schedule(server.push_stream_chunk(chunk))
            elif self.path == '/stream/finalize':
                self._schedule(server.push_stream_final())
            elif self.path == '/stream/reset':
                server.reset_stream()
            elif self.path == '/stats':
                self._send_json(200, server.get_stats())
                return
            else:
                self.send_response(404)
                self.end_headers()
                return
            self._send_json(200, {'status': 'ok'})
        except Exception as e:
            logger.error(f"Error processing {self.path}: {e}", exc_info=True)
            self._send_json(500, {'status': 'error', 'message': str(e)})


async def start_websocket_server(server, ws_port):
    """Start WebSocket server"""
    server.loop = asyncio.get_running_loop()
    logger.info(f"Starting WebSocket server on port {ws_port}")

    async with websockets.serve(server.websocket_handler, 'localhost', ws_port):
        logger.info(f"WebSocket server listening on ws://localhost:{ws_port}")
        await asyncio.Future()  # run forever


def start_http_server(server, port):
    """Start HTTP server"""
    RequestHandler.server_instance = server
    httpd = HTTPServer(('localhost', port), RequestHandler)
    logger.info(f"HTTP server started on http://localhost:{port}")
    print(f"Server started on http://localhost:{port}", flush=True)
    httpd.serve_forever()


def build_parser():
    parser = argparse.ArgumentParser(description='Markdown Preview Server with math protection')
    parser.add_argument('--port', type=int, default=8765, help='HTTP server port')
    parser.add_argument('--ws-port', type=int, default=None,
                        help='WebSocket server port (default: HTTP port + 1)')
    parser.add_argument('--no-math-render', action='store_true',
                        help='Restore math verbatim instead of rendering MathML')
    parser.add_argument('--debug', action='store_true', help='Verbose math protection logging')
    parser.add_argument('--log-file', type=str, default=str(DEFAULT_LOG_FILE), help='Log file path')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    ws_port = args.ws_port if args.ws_port is not None else args.port + 1
    setup_logging(args.log_file, args.debug)

    logger.info("=" * 60)
    logger.info("Starting Markdown Preview Server")
    logger.info(f"HTTP port: {args.port}, WebSocket port: {ws_port}")
    logger.info(f"Log file: {args.log_file}")
    logger.info("=" * 60)

    server = PreviewServer(port=args.port, ws_port=ws_port,
                           render_math=not args.no_math_render, debug=args.debug)

    http_thread = Thread(target=start_http_server, args=(server, args.port), daemon=True)
    http_thread.start()

    try:
        asyncio.run(start_websocket_server(server, ws_port))
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        print("\nServer stopped", flush=True)
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        print(f"Error: {e}", flush=True)


if __name__ == '__main__':
    main()
