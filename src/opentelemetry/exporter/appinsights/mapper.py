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

"""Span classification and mapping to Application Insights telemetry."""

from typing import Callable, Optional

from opentelemetry.exporter.appinsights._common import get_duration_nanos
from opentelemetry.exporter.appinsights._constants import (
    _MESSAGING_OPERATION_RECEIVE,
    _SCHEDULING_SCOPE_PREFIXES,
    HTTP_METHOD,
    HTTP_STATUS_CODE,
    MESSAGING_OPERATION,
    RPC_GRPC_STATUS_CODE,
    RPC_SYSTEM,
    ContextTagKeys,
)
from opentelemetry.exporter.appinsights._utils import (
    get_int_attribute,
    get_sampling_percentage,
    get_str_attribute,
)
from opentelemetry.exporter.appinsights.config import AppInsightsMapperConfig
from opentelemetry.exporter.appinsights.dependency import build_dependency
from opentelemetry.exporter.appinsights.events import (
    EventSuppressorT,
    SinkT,
    TelemetryInitializerT,
    map_events,
)
from opentelemetry.exporter.appinsights.models import (
    RemoteDependencyData,
    RequestData,
    TelemetryItem,
)
from opentelemetry.exporter.appinsights.preaggregated import (
    build_dependency_metric,
    build_request_metric,
)
from opentelemetry.exporter.appinsights.request import build_request
from opentelemetry.exporter.appinsights.views import (
    apply_client_view,
    apply_server_view,
)
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.trace import SpanKind

HTTP_SERVER_DURATION = "http.server.duration"
HTTP_CLIENT_DURATION = "http.client.duration"
RPC_SERVER_DURATION = "rpc.server.duration"
RPC_CLIENT_DURATION = "rpc.client.duration"

_NANOS_PER_MILLI = 1_000_000


class UnsupportedSpanKindError(ValueError):
    """Raised for a span whose kind has no telemetry mapping."""


def _noop_initializer(item: TelemetryItem) -> None:
    pass


def _suppress_nothing(event, scope_name) -> bool:
    return False


class SpanDataMapper:
    """Maps finished spans to Application Insights telemetry items.

    Args:
        capture_http_server_4xx_as_error: Whether spans with an UNSET status
            and an HTTP status code of 400 or above are unsuccessful.
        telemetry_initializer: Called on every new item before any span
            field is applied.
        event_suppressor: Returns ``True`` for span events that must not
            produce telemetry. Called with the event and the span's
            instrumentation scope name.
        app_id_supplier: Returns this component's application id, if known.
    """

    def __init__(
        self,
        capture_http_server_4xx_as_error: bool = True,
        telemetry_initializer: Optional[TelemetryInitializerT] = None,
        event_suppressor: Optional[EventSuppressorT] = None,
        app_id_supplier: Optional[Callable[[], Optional[str]]] = None,
    ):
        self._capture_http_server_4xx_as_error = (
            capture_http_server_4xx_as_error
        )
        self._telemetry_initializer = (
            telemetry_initializer or _noop_initializer
        )
        self._event_suppressor = event_suppressor or _suppress_nothing
        self._app_id_supplier = app_id_supplier or (lambda: None)

    @classmethod
    def from_config(
        cls,
        config: AppInsightsMapperConfig,
        telemetry_initializer: Optional[TelemetryInitializerT] = None,
        event_suppressor: Optional[EventSuppressorT] = None,
        app_id_supplier: Optional[Callable[[], Optional[str]]] = None,
    ) -> "SpanDataMapper":
        return cls(
            capture_http_server_4xx_as_error=(
                config.capture_http_server_4xx_as_error
            ),
            telemetry_initializer=telemetry_initializer,
            event_suppressor=event_suppressor,
            app_id_supplier=app_id_supplier,
        )

    def map(
        self,
        span: ReadableSpan,
        sampling_percentage: Optional[float] = None,
    ) -> TelemetryItem:
        """Maps ``span`` to a Request or RemoteDependency item.

        Raises:
            UnsupportedSpanKindError: if the span kind is not mappable.
        """
        if sampling_percentage is None:
            sampling_percentage = get_sampling_percentage(
                span.context.trace_state
            )

        kind = span.kind
        if kind == SpanKind.INTERNAL:
            if _is_scheduled_job(span):
                return self._build_request(span, sampling_percentage)
            return self._build_dependency(span, sampling_percentage, True)
        if kind in (SpanKind.CLIENT, SpanKind.PRODUCER):
            return self._build_dependency(span, sampling_percentage, False)
        if (
            kind == SpanKind.CONSUMER
            and get_str_attribute(span.attributes, MESSAGING_OPERATION)
            == _MESSAGING_OPERATION_RECEIVE
        ):
            return self._build_dependency(span, sampling_percentage, False)
        if kind in (SpanKind.SERVER, SpanKind.CONSUMER):
            return self._build_request(span, sampling_percentage)
        raise UnsupportedSpanKindError(f"Unsupported span kind: {kind}")

    def map_to_sink(self, span: ReadableSpan, sink: SinkT) -> None:
        """Hands the span's item to ``sink``, followed by its event items."""
        sampling_percentage = get_sampling_percentage(span.context.trace_state)
        item = self.map(span, sampling_percentage)
        sink(item)
        self.map_events(
            span,
            item.tags.get(ContextTagKeys.AI_OPERATION_NAME.value),
            sampling_percentage,
            sink,
        )

    def map_events(
        self,
        span: ReadableSpan,
        operation_name: Optional[str],
        sampling_percentage: float,
        sink: SinkT,
    ) -> None:
        map_events(
            span,
            operation_name,
            sampling_percentage,
            sink,
            self._telemetry_initializer,
            self._event_suppressor,
        )

    def map_metric(
        self,
        span: ReadableSpan,
        telemetry_item: Optional[TelemetryItem] = None,
    ) -> Optional[TelemetryItem]:
        """Returns the pre-aggregated duration metric for an HTTP or RPC span.

        ``telemetry_item`` is the span's already mapped item; the span is
        mapped again when it is not given. Returns ``None`` for spans that
        carry neither ``http.method`` nor ``rpc.system``.
        """
        attributes = span.attributes
        is_rpc = get_str_attribute(attributes, RPC_SYSTEM) is not None
        if not is_rpc and get_str_attribute(attributes, HTTP_METHOD) is None:
            return None
        if telemetry_item is None:
            telemetry_item = self.map(span)

        duration_ms = get_duration_nanos(span) / _NANOS_PER_MILLI
        status_code = get_int_attribute(attributes, HTTP_STATUS_CODE)
        if status_code is None:
            status_code = get_int_attribute(attributes, RPC_GRPC_STATUS_CODE)

        data = telemetry_item.data
        if isinstance(data, RequestData):
            return build_request_metric(
                RPC_SERVER_DURATION if is_rpc else HTTP_SERVER_DURATION,
                duration_ms,
                apply_server_view(attributes, None),
                status_code,
                data.success,
            )
        if isinstance(data, RemoteDependencyData):
            return build_dependency_metric(
                RPC_CLIENT_DURATION if is_rpc else HTTP_CLIENT_DURATION,
                duration_ms,
                apply_client_view(attributes, None),
                status_code,
                data.success,
                data.type,
                data.target,
            )
        return None

    def _build_request(
        self, span: ReadableSpan, sampling_percentage: float
    ) -> TelemetryItem:
        return build_request(
            span,
            sampling_percentage,
            self._telemetry_initializer,
            capture_http_server_4xx_as_error=(
                self._capture_http_server_4xx_as_error
            ),
            app_id=self._app_id_supplier(),
        )

    def _build_dependency(
        self, span: ReadableSpan, sampling_percentage: float, in_proc: bool
    ) -> TelemetryItem:
        return build_dependency(
            span,
            sampling_percentage,
            in_proc,
            self._telemetry_initializer,
            capture_http_server_4xx_as_error=(
                self._capture_http_server_4xx_as_error
            ),
            app_id=self._app_id_supplier(),
        )


def _is_scheduled_job(span: ReadableSpan) -> bool:
    scope = span.instrumentation_scope
    scope_name = scope.name if scope is not None else None
    if not scope_name or not scope_name.startswith(_SCHEDULING_SCOPE_PREFIXES):
        return False
    return span.parent is None or not span.parent.is_valid
