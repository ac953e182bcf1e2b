"""
Pytest configuration and fixtures for the PPP interpreter tests.
"""

import os
import sys

import pytest

# Modules live at the repository root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from interpreter import Interpreter


class Capture:
    """Output sink that records every chunk the interpreter writes."""

    def __init__(self):
        self.chunks = []

    def __call__(self, text):
        self.chunks.append(text)

    @property
    def text(self):
        return "".join(self.chunks)


@pytest.fixture
def run():
    """
    Run a PPP program and return ``(output, interpreter)``.

    Errors propagate; the captured output is available on the
    ``capture`` attribute of the interpreter for partial-output checks.
    """
    def _run(source, **options):
        capture = Capture()
        interpreter = Interpreter(source=source, filename="<string>", output_sink=capture, **options)
        interpreter.capture = capture
        interpreter.run()
        return capture.text, interpreter

    return _run


@pytest.fixture
def make_interpreter():
    def _make(source, **options):
        capture = Capture()
        interpreter = Interpreter(source=source, filename="<string>", output_sink=capture, **options)
        interpreter.capture = capture
        return interpreter

    return _make
