# Copyright The OpenTelemetry Authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Test fixtures for Application Insights exporter tests."""

import pytest

from opentelemetry.exporter.appinsights import (
    AppInsightsMapperConfig,
    SpanDataMapper,
)
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.util.instrumentation import InstrumentationScope
from opentelemetry.trace import SpanContext, SpanKind, TraceFlags, TraceState
from opentelemetry.trace.status import Status, StatusCode

TRACE_ID = 0x1234567890ABCDEF1234567890ABCDEF
SPAN_ID = 0x1234567890ABCDEF
PARENT_SPAN_ID = 0x0FEDCBA987654321
START_TIME = 1_700_000_000_000_000_000
END_TIME = START_TIME + 1_500_000_000

INSTRUMENTATION_KEY = "00000000-0000-0000-0000-000000000000"


def make_span_context(
    trace_id=TRACE_ID, span_id=SPAN_ID, trace_state=None
) -> SpanContext:
    return SpanContext(
        trace_id=trace_id,
        span_id=span_id,
        is_remote=False,
        trace_flags=TraceFlags(TraceFlags.SAMPLED),
        trace_state=trace_state,
    )


def make_span(
    name="span",
    kind=SpanKind.INTERNAL,
    attributes=None,
    events=(),
    links=(),
    parent=None,
    status_code=StatusCode.UNSET,
    scope_name="test.scope",
    sampling_percentage=None,
    start_time=START_TIME,
    end_time=END_TIME,
) -> ReadableSpan:
    trace_state = None
    if sampling_percentage is not None:
        trace_state = TraceState([("ai-internal-sp", sampling_percentage)])
    return ReadableSpan(
        name=name,
        context=make_span_context(trace_state=trace_state),
        parent=parent,
        attributes=attributes,
        events=events,
        links=links,
        kind=kind,
        status=Status(status_code),
        start_time=start_time,
        end_time=end_time,
        instrumentation_scope=InstrumentationScope(scope_name),
    )


@pytest.fixture
def span_factory():
    """Build finished spans with sensible defaults."""
    return make_span


@pytest.fixture
def parent_context():
    """A valid remote parent span context."""
    return SpanContext(
        trace_id=TRACE_ID,
        span_id=PARENT_SPAN_ID,
        is_remote=True,
        trace_flags=TraceFlags(TraceFlags.SAMPLED),
    )


@pytest.fixture
def mapper():
    """Mapper with default collaborators."""
    return SpanDataMapper()


@pytest.fixture
def config():
    """Create a test configuration."""
    return AppInsightsMapperConfig(
        connection_string=f"InstrumentationKey={INSTRUMENTATION_KEY}",
        capture_http_server_4xx_as_error=True,
        role_name="test-role",
        role_instance="test-instance",
        preaggregated_metrics=False,
    )
