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

"""Tests for span classification and mapping."""

from unittest.mock import MagicMock

import pytest

from opentelemetry.exporter.appinsights import (
    SpanDataMapper,
    UnsupportedSpanKindError,
)
from opentelemetry.exporter.appinsights.models import (
    ExceptionData,
    MessageData,
    MetricsData,
    RemoteDependencyData,
    RequestData,
)
from opentelemetry.sdk.trace import Event
from opentelemetry.trace import Link, SpanContext, SpanKind
from opentelemetry.trace.status import StatusCode

TRACE_ID_HEX = "1234567890abcdef1234567890abcdef"
SPAN_ID_HEX = "1234567890abcdef"
PARENT_ID_HEX = "0fedcba987654321"

STACKTRACE = """Traceback (most recent call last):
  File "/app/main.py", line 3, in run
    raise RuntimeError("boom")
RuntimeError: boom
"""


def _collect(mapper, span):
    items = []
    mapper.map_to_sink(span, items.append)
    return items


class TestClassification:
    """Tests for choosing between requests and dependencies."""

    @pytest.mark.parametrize(
        "kind", [SpanKind.CLIENT, SpanKind.PRODUCER, SpanKind.INTERNAL]
    )
    def test_dependency_kinds(self, mapper, span_factory, kind):
        item = mapper.map(span_factory(kind=kind))
        assert isinstance(item.data, RemoteDependencyData)

    @pytest.mark.parametrize("kind", [SpanKind.SERVER, SpanKind.CONSUMER])
    def test_request_kinds(self, mapper, span_factory, kind):
        item = mapper.map(span_factory(kind=kind))
        assert isinstance(item.data, RequestData)

    def test_consumer_receive_is_dependency(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.CONSUMER,
            attributes={
                "messaging.system": "kafka",
                "messaging.operation": "receive",
            },
        )
        item = mapper.map(span)
        assert isinstance(item.data, RemoteDependencyData)
        assert item.data.type == "kafka"

    def test_consumer_process_is_request(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.CONSUMER,
            attributes={
                "messaging.system": "kafka",
                "messaging.operation": "process",
            },
        )
        assert isinstance(mapper.map(span).data, RequestData)

    def test_internal_is_in_proc(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.INTERNAL,
            attributes={"http.method": "GET", "http.url": "https://x.com/"},
        )
        item = mapper.map(span)
        assert item.data.type == "InProc"
        assert item.data.target is None

    def test_scheduled_root_is_request(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.INTERNAL,
            scope_name="io.opentelemetry.spring-scheduling-3.1",
        )
        assert isinstance(mapper.map(span).data, RequestData)

    def test_scheduled_child_is_dependency(
        self, mapper, span_factory, parent_context
    ):
        span = span_factory(
            kind=SpanKind.INTERNAL,
            scope_name="io.opentelemetry.spring-scheduling-3.1",
            parent=parent_context,
        )
        item = mapper.map(span)
        assert isinstance(item.data, RemoteDependencyData)
        assert item.data.type == "InProc"

    def test_unsupported_kind(self, mapper):
        span = MagicMock()
        span.kind = "UNKNOWN"
        span.context.trace_state = None
        span.attributes = {}
        with pytest.raises(UnsupportedSpanKindError):
            mapper.map(span)

    def test_unsupported_kind_is_value_error(self):
        assert issubclass(UnsupportedSpanKindError, ValueError)


class TestRequestMapping:
    """Tests for Request items."""

    def test_http_server_span(self, mapper, span_factory, parent_context):
        span = span_factory(
            name="/users",
            kind=SpanKind.SERVER,
            parent=parent_context,
            attributes={
                "http.method": "GET",
                "http.scheme": "https",
                "http.host": "api.example.com",
                "http.target": "/users?page=2",
                "http.status_code": 200,
                "http.client_ip": "203.0.113.5",
                "customer": "acme",
            },
        )
        item = mapper.map(span)
        request = item.data

        assert item.name == "Microsoft.ApplicationInsights.Request"
        assert request.id == SPAN_ID_HEX
        assert request.name == "GET /users"
        assert request.duration == "00:00:01.500000"
        assert request.success is True
        assert request.response_code == "200"
        assert request.url == "https://api.example.com/users?page=2"
        assert item.time == "2023-11-14T22:13:20.000000Z"
        assert item.tags["ai.operation.id"] == TRACE_ID_HEX
        assert item.tags["ai.operation.parentId"] == PARENT_ID_HEX
        assert item.tags["ai.operation.name"] == "GET /users"
        assert item.tags["ai.location.ip"] == "203.0.113.5"
        assert item.properties == {"customer": "acme"}

    def test_http_url_preferred(self, mapper, span_factory):
        span = span_factory(
            name="GET /x",
            kind=SpanKind.SERVER,
            attributes={
                "http.method": "GET",
                "http.url": "http://host/x",
                "http.scheme": "https",
                "http.host": "other",
                "http.target": "/y",
            },
        )
        item = mapper.map(span)
        assert item.data.url == "http://host/x"
        assert item.data.name == "GET /x"

    def test_operation_name_attribute(self, mapper, span_factory):
        span = span_factory(
            name="/ignored",
            kind=SpanKind.SERVER,
            attributes={
                "http.method": "GET",
                "applicationinsights.internal.operation_name": "Home/Index",
            },
        )
        item = mapper.map(span)
        assert item.data.name == "Home/Index"
        assert item.tags["ai.operation.name"] == "Home/Index"

    def test_grpc_response_code(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.SERVER,
            attributes={"rpc.system": "grpc", "rpc.grpc.status_code": 5},
        )
        assert mapper.map(span).data.response_code == "5"

    def test_default_response_code(self, mapper, span_factory):
        item = mapper.map(span_factory(kind=SpanKind.SERVER))
        assert item.data.response_code == "0"

    def test_server_4xx(self, span_factory):
        span = span_factory(
            kind=SpanKind.SERVER, attributes={"http.status_code": 404}
        )
        assert SpanDataMapper().map(span).data.success is False
        lenient = SpanDataMapper(capture_http_server_4xx_as_error=False)
        assert lenient.map(span).data.success is True

    def test_error_status(self, mapper, span_factory):
        span = span_factory(kind=SpanKind.SERVER, status_code=StatusCode.ERROR)
        assert mapper.map(span).data.success is False

    def test_location_ip_from_net_peer_ip(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.SERVER, attributes={"net.peer.ip": "198.51.100.1"}
        )
        assert mapper.map(span).tags["ai.location.ip"] == "198.51.100.1"

    def test_legacy_ids(self, mapper, span_factory, parent_context):
        span = span_factory(
            kind=SpanKind.SERVER,
            parent=parent_context,
            attributes={
                "applicationinsights.internal.legacy_parent_id": "|abc.1.",
                "applicationinsights.internal.legacy_root_id": "abc",
            },
        )
        item = mapper.map(span)
        assert item.tags["ai.operation.parentId"] == "|abc.1."
        assert item.tags["ai_legacyRootID"] == "abc"
        assert item.properties == {}

    def test_session_and_device_tags(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.SERVER,
            attributes={
                "applicationinsights.internal.session_id": "session-1",
                "applicationinsights.internal.operating_system": "Linux",
                "applicationinsights.internal.operating_system_version": "6.1",
            },
        )
        tags = mapper.map(span).tags
        assert tags["ai.session.id"] == "session-1"
        assert tags["ai.device.os"] == "Linux"
        assert tags["ai.device.osVersion"] == "6.1"

    def test_source_from_internal_attribute(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.SERVER,
            attributes={"applicationinsights.internal.source": "upstream"},
        )
        assert mapper.map(span).data.source == "upstream"

    def test_source_from_messaging(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.CONSUMER,
            attributes={
                "messaging.system": "kafka",
                "messaging.destination": "orders",
            },
        )
        assert mapper.map(span).data.source == "orders"

    def test_time_since_enqueued(self, mapper, span_factory):
        enqueued_seconds = 1_700_000_000 - 2
        span = span_factory(
            kind=SpanKind.CONSUMER,
            attributes={
                "az.namespace": "Microsoft.EventHub",
                "x-opt-enqueued-time": enqueued_seconds,
            },
        )
        item = mapper.map(span)
        assert item.measurements == {"timeSinceEnqueued": 2000.0}
        assert item.properties == {}

    def test_time_since_enqueued_never_negative(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.CONSUMER,
            attributes={"x-opt-enqueued-time": 1_800_000_000},
        )
        assert mapper.map(span).measurements == {"timeSinceEnqueued": 0.0}

    def test_kafka_queue_time(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.CONSUMER,
            attributes={"kafka.record.queue_time_ms": 15},
        )
        assert mapper.map(span).measurements == {"timeSinceEnqueued": 15.0}

    def test_non_integer_enqueued_time_is_ignored(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.CONSUMER,
            attributes={
                "x-opt-enqueued-time": "1700000000",
                "kafka.record.queue_time_ms": 1.5,
            },
        )
        assert mapper.map(span).measurements == {}

    def test_non_integer_status_code(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.SERVER, attributes={"http.status_code": "404"}
        )
        request = mapper.map(span).data
        assert request.success is True
        assert request.response_code == "0"

    def test_non_string_server_url_parts(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.SERVER,
            attributes={
                "http.scheme": "https",
                "http.host": 8080,
                "http.target": "/cart",
            },
        )
        assert mapper.map(span).data.url is None


class TestDependencyMapping:
    """Tests for RemoteDependency items."""

    def test_http_client_span(self, mapper, span_factory, parent_context):
        span = span_factory(
            name="HTTP GET",
            kind=SpanKind.CLIENT,
            parent=parent_context,
            attributes={
                "http.method": "GET",
                "http.url": "https://api.example.com/items/7",
                "http.status_code": 500,
            },
        )
        item = mapper.map(span)
        dependency = item.data

        assert item.name == "Microsoft.ApplicationInsights.RemoteDependency"
        assert dependency.id == SPAN_ID_HEX
        assert dependency.name == "GET /items/7"
        assert dependency.type == "Http"
        assert dependency.target == "api.example.com"
        assert dependency.data == "https://api.example.com/items/7"
        assert dependency.result_code == "500"
        assert dependency.duration == "00:00:01.500000"
        assert item.tags["ai.operation.id"] == TRACE_ID_HEX
        assert item.tags["ai.operation.parentId"] == PARENT_ID_HEX

    def test_client_4xx_uses_same_rule(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.CLIENT,
            attributes={"http.method": "GET", "http.status_code": 404},
        )
        assert mapper.map(span).data.success is False

    def test_non_string_http_host(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.CLIENT,
            attributes={
                "http.method": "GET",
                "http.host": 42,
                "http.url": "https://api.example.com/items",
            },
        )
        assert mapper.map(span).data.target == "api.example.com"

    def test_app_id_supplier(self, span_factory):
        mapper = SpanDataMapper(app_id_supplier=lambda: "cid-v1:self")
        span = span_factory(
            kind=SpanKind.CLIENT,
            attributes={
                "http.method": "GET",
                "http.url": "https://other.example.com/",
                "http.response.header.request_context": ["appId=cid-v1:other"],
            },
        )
        item = mapper.map(span)
        assert item.data.type == "Http (tracked component)"
        assert item.data.target == "other.example.com | cid-v1:other"
        assert item.properties == {}

    def test_links(self, mapper, span_factory):
        link = Link(SpanContext(trace_id=0xA, span_id=0xB, is_remote=True))
        item = mapper.map(span_factory(kind=SpanKind.CLIENT, links=[link]))
        assert item.properties["_MS.links"] == (
            '[{"operation_Id":"%032x","id":"%016x"}]' % (0xA, 0xB)
        )


class TestSampling:
    """Tests for the sample rate."""

    def test_sample_rate_from_trace_state(self, mapper, span_factory):
        span = span_factory(kind=SpanKind.SERVER, sampling_percentage="10")
        assert mapper.map(span).sample_rate == 10.0

    def test_full_sampling_omitted(self, mapper, span_factory):
        span = span_factory(kind=SpanKind.SERVER, sampling_percentage="100")
        item = mapper.map(span)
        assert item.sample_rate is None
        assert "sampleRate" not in item.to_dict()

    def test_explicit_percentage(self, mapper, span_factory):
        span = span_factory(kind=SpanKind.CLIENT, sampling_percentage="10")
        assert mapper.map(span, 50.0).sample_rate == 50.0

    def test_events_share_sample_rate(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.SERVER,
            sampling_percentage="25",
            events=[Event("note", timestamp=1)],
        )
        items = _collect(mapper, span)
        assert [item.sample_rate for item in items] == [25.0, 25.0]


class TestInitializer:
    """Tests for the telemetry initializer hook."""

    def test_initializer_runs_before_span_fields(self, span_factory):
        def initializer(item):
            item.add_tag("ai.cloud.role", "default-role")
            item.add_tag("ai.operation.name", "placeholder")

        mapper = SpanDataMapper(telemetry_initializer=initializer)
        span = span_factory(
            name="/checkout",
            kind=SpanKind.SERVER,
            attributes={
                "http.method": "POST",
                "ai.preview.service_name": "checkout",
            },
        )
        item = mapper.map(span)
        assert item.tags["ai.cloud.role"] == "checkout"
        assert item.tags["ai.operation.name"] == "POST /checkout"

    def test_initializer_called_for_every_item(self, span_factory):
        initializer = MagicMock()
        mapper = SpanDataMapper(telemetry_initializer=initializer)
        span = span_factory(
            kind=SpanKind.SERVER,
            events=[Event("a", timestamp=1), Event("b", timestamp=2)],
        )
        _collect(mapper, span)
        assert initializer.call_count == 3


class TestEvents:
    """Tests for Message and Exception items from span events."""

    def test_messages(self, mapper, span_factory):
        span = span_factory(
            name="/orders",
            kind=SpanKind.SERVER,
            attributes={"http.method": "GET"},
            events=[
                Event(
                    "cache miss",
                    attributes={"key": "order-1", "http.method": "GET"},
                    timestamp=1_700_000_000_500_000_000,
                )
            ],
        )
        request, message = _collect(mapper, span)

        assert isinstance(request.data, RequestData)
        assert isinstance(message.data, MessageData)
        assert message.name == "Microsoft.ApplicationInsights.Message"
        assert message.data.message == "cache miss"
        assert message.time == "2023-11-14T22:13:20.500000Z"
        assert message.properties == {"key": "order-1"}
        assert message.tags == {
            "ai.operation.id": TRACE_ID_HEX,
            "ai.operation.parentId": SPAN_ID_HEX,
            "ai.operation.name": "GET /orders",
        }

    def test_dependency_events_use_operation_name_attribute(
        self, mapper, span_factory
    ):
        span = span_factory(
            kind=SpanKind.CLIENT,
            attributes={
                "applicationinsights.internal.operation_name": "Job/run"
            },
            events=[Event("step", timestamp=1)],
        )
        _, message = _collect(mapper, span)
        assert message.tags["ai.operation.name"] == "Job/run"

    def test_dependency_events_without_operation_name(
        self, mapper, span_factory
    ):
        span = span_factory(
            kind=SpanKind.CLIENT, events=[Event("step", timestamp=1)]
        )
        _, message = _collect(mapper, span)
        assert "ai.operation.name" not in message.tags

    def test_exception(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.SERVER,
            status_code=StatusCode.ERROR,
            events=[
                Event(
                    "exception",
                    attributes={
                        "exception.type": "RuntimeError",
                        "exception.message": "boom",
                        "exception.stacktrace": STACKTRACE,
                    },
                    timestamp=1,
                )
            ],
        )
        request, exception = _collect(mapper, span)

        assert request.data.success is False
        assert isinstance(exception.data, ExceptionData)
        assert exception.name == "Microsoft.ApplicationInsights.Exception"
        assert exception.time == "2023-11-14T22:13:21.500000Z"
        assert exception.tags["ai.operation.parentId"] == SPAN_ID_HEX
        (details,) = exception.data.exceptions
        assert details.type_name == "RuntimeError"
        assert details.message == "boom"
        assert details.stack == STACKTRACE

    def test_events_after_exception_are_dropped(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.SERVER,
            events=[
                Event("before", timestamp=1),
                Event(
                    "exception",
                    attributes={
                        "exception.type": "RuntimeError",
                        "exception.stacktrace": STACKTRACE,
                    },
                    timestamp=2,
                ),
                Event("after", timestamp=3),
                Event(
                    "exception",
                    attributes={
                        "exception.type": "KeyError",
                        "exception.stacktrace": STACKTRACE,
                    },
                    timestamp=4,
                ),
            ],
        )
        items = _collect(mapper, span)
        assert [type(item.data) for item in items] == [
            RequestData,
            MessageData,
            ExceptionData,
        ]

    def test_exception_without_stacktrace_stops_processing(
        self, mapper, span_factory
    ):
        span = span_factory(
            kind=SpanKind.SERVER,
            events=[
                Event(
                    "exception",
                    attributes={"exception.message": "no trace"},
                    timestamp=1,
                ),
                Event("after", timestamp=2),
            ],
        )
        items = _collect(mapper, span)
        assert [type(item.data) for item in items] == [RequestData]

    def test_event_suppressor(self, span_factory):
        suppressor = MagicMock(
            side_effect=lambda event, scope_name: event.name == "noise"
        )
        mapper = SpanDataMapper(event_suppressor=suppressor)
        span = span_factory(
            kind=SpanKind.SERVER,
            scope_name="my.library",
            events=[Event("noise", timestamp=1), Event("signal", timestamp=2)],
        )
        items = _collect(mapper, span)

        assert [item.data.message for item in items[1:]] == ["signal"]
        assert suppressor.call_count == 2
        _, scope_name = suppressor.call_args.args
        assert scope_name == "my.library"


class TestMetrics:
    """Tests for pre-aggregated metrics."""

    def test_request_metric(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.SERVER,
            attributes={"http.method": "GET", "http.status_code": 200},
        )
        metric = mapper.map_metric(span)
        assert isinstance(metric.data, MetricsData)
        (point,) = metric.data.metrics
        assert point.name == "http.server.duration"
        assert point.value == 1500.0
        assert metric.properties["_MS.MetricId"] == "requests/duration"
        assert metric.properties["request/resultCode"] == "200"
        assert metric.properties["request/success"] == "True"

    def test_rpc_dependency_metric(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.CLIENT,
            attributes={
                "rpc.system": "grpc",
                "rpc.service": "Users",
                "net.peer.name": "users",
                "net.peer.port": 50051,
            },
        )
        metric = mapper.map_metric(span)
        (point,) = metric.data.metrics
        assert point.name == "rpc.client.duration"
        assert metric.properties == {
            "rpc.system": "grpc",
            "net.peer.name": "users",
            "net.peer.port": "50051",
            "_MS.IsAutocollected": "True",
            "_MS.MetricId": "dependencies/duration",
            "dependency/success": "True",
            "dependency/type": "grpc",
            "dependency/target": "users:50051",
        }

    def test_no_metric_without_http_or_rpc(self, mapper, span_factory):
        assert mapper.map_metric(span_factory(kind=SpanKind.SERVER)) is None


class TestMapperProperties:
    """Properties every mapped item holds."""

    @pytest.mark.parametrize(
        "kind",
        [SpanKind.SERVER, SpanKind.CLIENT, SpanKind.PRODUCER, SpanKind.INTERNAL],
    )
    def test_mapping_is_repeatable(self, mapper, span_factory, kind):
        span = span_factory(
            kind=kind,
            attributes={"http.method": "GET", "http.url": "https://x.com/a"},
        )
        assert mapper.map(span).to_dict() == mapper.map(span).to_dict()

    def test_internal_keys_never_in_properties(self, mapper, span_factory):
        span = span_factory(
            kind=SpanKind.SERVER,
            attributes={
                "applicationinsights.internal.anything": "x",
                "applicationinsights.internal.source": "y",
                "plain": "z",
            },
        )
        assert mapper.map(span).properties == {"plain": "z"}
