import pytest

from markdown_processor import MarkdownProcessor
from render_backends import RenderTarget
from stream_renderer import STREAMING_CURSOR, IncrementalContentRenderer, StreamRenderer


@pytest.fixture
def stream(fake_renderer):
    return StreamRenderer(processor=MarkdownProcessor(renderer=fake_renderer))


def test_incremental_renderer_skips_unchanged_content():
    renderer = IncrementalContentRenderer()
    target = RenderTarget()
    assert renderer.append_new_content(target, 'abc', str.upper) is True
    assert target.html == 'ABC' + STREAMING_CURSOR
    assert renderer.append_new_content(target, 'abc', str.upper) is False
    assert renderer.append_new_content(target, '', str.upper) is False
    assert renderer.append_new_content(None, 'abcd', str.upper) is False
    assert renderer.get_stats()['render_count'] == 1
    assert renderer.get_stats()['content_length'] == 3


def test_chunks_render_into_target(stream):
    assert stream.append_content('Hello ') is True
    assert stream.append_content('**world**') is True
    assert stream.get_content() == 'Hello **world**'
    assert stream.target.html == '<p>Hello <strong>world</strong></p>' + STREAMING_CURSOR


def test_empty_chunk_is_ignored(stream):
    assert stream.append_content('') is False
    assert stream.target.html == ''


def test_math_rendered_as_it_completes(stream, fake_renderer):
    stream.append_content('Value $x^')
    assert '<m>x^</m>' in stream.target.html

    stream.append_content('2$ costs $50')
    assert '<m>x^2</m>' in stream.target.html
    assert 'costs $50' in stream.target.html
    assert stream.tracker.get_stats()['formulas_seen'] == 1


def test_tracker_sees_every_chunk(stream, fake_renderer):
    for chunk in ['$a^2$', ' then ', 'more']:
        stream.append_content(chunk)
    stats = stream.get_stats()
    assert stats['math']['renders_attempted'] == 3
    assert stats['math']['renders_executed'] == 1
    assert stats['math']['renders_skipped'] == 2
    # convert() already rendered the formula, no extra in-place pass
    assert fake_renderer.in_place_calls == 0
    assert stats['incremental']['render_count'] == 3
    assert stats['content_length'] == len('$a^2$ then more')


def test_finalize_drops_cursor(stream, fake_renderer):
    stream.append_content('Done $y_1$')
    calls = fake_renderer.in_place_calls
    html = stream.finalize()
    assert STREAMING_CURSOR not in html
    assert html == stream.target.html
    assert fake_renderer.in_place_calls == calls + 1


def test_set_content_restarts_math_tracking(stream):
    stream.append_content('$a^2$')
    assert stream.set_content('$b^2$ only') is True
    assert stream.get_content() == '$b^2$ only'
    assert stream.tracker.get_stats()['renders_attempted'] == 1
    assert '<m>b^2</m>' in stream.target.html


def test_reset(stream):
    stream.append_content('$a^2$')
    stream.reset()
    assert stream.get_content() == ''
    assert stream.target.html == ''
    assert stream.get_stats()['math']['renders_attempted'] == 0
    # Same text renders again after a reset
    assert stream.append_content('$a^2$') is True


def test_default_pipeline_renders_mathml():
    stream = StreamRenderer()
    stream.append_content('Energy $E = mc^2$')
    html = stream.finalize()
    assert '<math' in html
    assert '$E' not in html


def test_default_pipeline_renders_each_formula_once():
    stream = StreamRenderer()
    for chunk in ['Energy $E = mc^2$', ' and more', ' prose here']:
        stream.append_content(chunk)
    math = stream.get_stats()['math']
    assert math['renders_attempted'] == 3
    assert math['renders_executed'] == 1
    assert math['renders_skipped'] == 2
    assert math['formulas_seen'] == 1
    assert '<math' in stream.target.html


def test_verbatim_stream_never_commits_formulas():
    stream = StreamRenderer(processor=MarkdownProcessor(render_math=False))
    stream.append_content('Energy $E = mc^2$')
    assert '$E = mc^2$' in stream.target.html
    assert stream.get_stats()['math']['formulas_seen'] == 0
