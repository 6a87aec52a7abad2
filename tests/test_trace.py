"""
gcplog — Trace Extractor Tests
================================

What:  X-Cloud-Trace-Context parsing, including malformed and missing input.
"""

from gcplog.trace import TraceContext, parse_trace_header, trace_from_request


class TestParseTraceHeader:
    def test_full_header(self):
        ctx = parse_trace_header("abc123/456;o=1")
        assert ctx == TraceContext(trace_id="abc123", span_id="456", sampled=True)

    def test_span_zero_is_no_span(self):
        ctx = parse_trace_header("abc123/0;o=0")
        assert ctx.trace_id == "abc123"
        assert ctx.span_id == ""
        assert ctx.sampled is False

    def test_trace_only(self):
        ctx = parse_trace_header("105445aa7843bc8bf206b12000100000")
        assert ctx.trace_id == "105445aa7843bc8bf206b12000100000"
        assert ctx.span_id == ""
        assert ctx.sampled is False

    def test_trace_and_span_without_flag(self):
        ctx = parse_trace_header("abc/12")
        assert (ctx.trace_id, ctx.span_id, ctx.sampled) == ("abc", "12", False)

    def test_missing_header(self):
        assert parse_trace_header(None) == TraceContext()

    def test_empty_header(self):
        ctx = parse_trace_header("")
        assert (ctx.trace_id, ctx.span_id, ctx.sampled) == ("", "", False)
        assert not ctx

    def test_malformed_header_is_not_an_error(self):
        ctx = parse_trace_header("not-a-trace!")
        assert ctx.trace_id == ""
        assert ctx.span_id == ""

    def test_trailing_garbage_yields_no_trace(self):
        assert parse_trace_header("abc123xyz!!") == TraceContext()

    def test_non_hex_span_yields_no_trace(self):
        assert parse_trace_header("abc/zz;o=1") == TraceContext()

    def test_surrounding_whitespace_is_ignored(self):
        assert parse_trace_header("  abc123/456;o=1 ").trace_id == "abc123"

    def test_project_namespacing(self):
        ctx = parse_trace_header("abc123/456;o=1", project_id="my-project")
        assert ctx.trace_id == "projects/my-project/traces/abc123"
        assert ctx.span_id == "456"

    def test_project_namespacing_skips_empty_trace(self):
        assert parse_trace_header("/456", project_id="my-project").trace_id == ""

    def test_idempotent(self):
        assert parse_trace_header("abc123/456;o=1") == parse_trace_header("abc123/456;o=1")


class TestTraceFromRequest:
    def test_reads_header(self, make_request):
        request = make_request(headers={"X-Cloud-Trace-Context": "feed/7;o=1"})
        ctx = trace_from_request(request, "proj")
        assert ctx == TraceContext("projects/proj/traces/feed", "7", True)

    def test_absent_header(self, make_request):
        assert trace_from_request(make_request()) == TraceContext()
