import pytest

from math_protector import MathProtector
from render_backends import MathRenderer


class FakeRenderer(MathRenderer):
    """Records calls; wraps content in <m> tags; fails on a marker substring"""

    def __init__(self, fail_on=None, in_place_result=1):
        self.fail_on = fail_on
        self.in_place_result = in_place_result
        self.calls = []
        self.in_place_calls = 0

    def render_to_string(self, content, display_mode=False, throw_on_error=True):
        self.calls.append((content, display_mode))
        if self.fail_on and self.fail_on in content:
            raise ValueError(f"cannot render {content!r}")
        return f"<m>{content}</m>"

    def render_in_place(self, target, delimiters=None):
        self.in_place_calls += 1
        if isinstance(self.in_place_result, Exception):
            raise self.in_place_result
        return self.in_place_result


@pytest.fixture
def fake_renderer():
    return FakeRenderer()


@pytest.fixture
def protector():
    return MathProtector(render_on_restore=False)


@pytest.fixture
def make_renderer():
    return FakeRenderer
