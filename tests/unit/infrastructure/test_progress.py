"""Unit tests for the stderr progress channel."""

import io

from sfa.infrastructure.config.env_resolver import ResolvedEnv
from sfa.infrastructure.logging.progress import StderrProgress


class TestStderrProgress:
    def test_format(self):
        stream = io.StringIO()
        StderrProgress(stream=stream).emit("echo", "starting")
        assert stream.getvalue() == "[agent:echo] starting\n"

    def test_quiet_suppresses(self):
        stream = io.StringIO()
        StderrProgress(quiet=True, stream=stream).emit("echo", "starting")
        assert stream.getvalue() == ""

    def test_secrets_masked(self):
        stream = io.StringIO()
        resolved = ResolvedEnv(values={"API_KEY": "sk-123"}, secrets=frozenset({"API_KEY"}))
        StderrProgress(resolved_env=resolved, stream=stream).emit("echo", "calling with sk-123")
        assert stream.getvalue() == "[agent:echo] calling with ***\n"

    def test_markup_is_literal(self):
        stream = io.StringIO()
        StderrProgress(stream=stream).emit("echo", "[bold]x[/bold]")
        assert "[bold]x[/bold]" in stream.getvalue()
