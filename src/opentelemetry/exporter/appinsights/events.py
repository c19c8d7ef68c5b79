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

"""Message and Exception telemetry from span events."""

from typing import Callable, Optional

from opentelemetry.exporter.appinsights._common import (
    set_extra_attributes,
    set_operation_id,
    set_operation_name,
    set_operation_name_from_attributes,
    set_operation_parent_id,
    set_sample_rate,
    set_time,
)
from opentelemetry.exporter.appinsights._utils import get_str_attribute
from opentelemetry.exporter.appinsights.exceptions import minimal_parse
from opentelemetry.exporter.appinsights.models import (
    ExceptionData,
    MessageData,
    TelemetryItem,
)
from opentelemetry.sdk.trace import Event, ReadableSpan
from opentelemetry.semconv.attributes.exception_attributes import (
    EXCEPTION_MESSAGE,
    EXCEPTION_STACKTRACE,
    EXCEPTION_TYPE,
)

TelemetryInitializerT = Callable[[TelemetryItem], None]
EventSuppressorT = Callable[[Event, Optional[str]], bool]
SinkT = Callable[[TelemetryItem], None]


def map_events(
    span: ReadableSpan,
    operation_name: Optional[str],
    sampling_percentage: float,
    sink: SinkT,
    telemetry_initializer: TelemetryInitializerT,
    event_suppressor: EventSuppressorT,
) -> None:
    """Hands one item per span event to ``sink``.

    The first event describing an exception ends processing of the span's
    events, whether or not it carries a stack trace. Only events with a
    stack trace produce an Exception item.
    """
    scope_name = (
        span.instrumentation_scope.name
        if span.instrumentation_scope is not None
        else None
    )
    for event in span.events:
        if event_suppressor(event, scope_name):
            continue

        attributes = event.attributes or {}
        if (
            get_str_attribute(attributes, EXCEPTION_TYPE) is not None
            or get_str_attribute(attributes, EXCEPTION_MESSAGE) is not None
        ):
            stacktrace = get_str_attribute(attributes, EXCEPTION_STACKTRACE)
            if stacktrace is not None:
                sink(
                    build_exception(
                        stacktrace,
                        span,
                        operation_name,
                        sampling_percentage,
                        telemetry_initializer,
                    )
                )
            return

        sink(
            build_message(
                event,
                span,
                operation_name,
                sampling_percentage,
                telemetry_initializer,
            )
        )


def build_message(
    event: Event,
    span: ReadableSpan,
    operation_name: Optional[str],
    sampling_percentage: float,
    telemetry_initializer: TelemetryInitializerT,
) -> TelemetryItem:
    item = TelemetryItem(data=MessageData(message=event.name))
    telemetry_initializer(item)

    _set_event_operation_tags(item, span, operation_name)
    set_time(item, event.timestamp)
    set_extra_attributes(item, event.attributes)
    set_sample_rate(item, sampling_percentage)
    return item


def build_exception(
    stacktrace: str,
    span: ReadableSpan,
    operation_name: Optional[str],
    sampling_percentage: float,
    telemetry_initializer: TelemetryInitializerT,
) -> TelemetryItem:
    item = TelemetryItem(data=ExceptionData())
    telemetry_initializer(item)

    _set_event_operation_tags(item, span, operation_name)
    set_time(item, span.end_time or 0)
    set_sample_rate(item, sampling_percentage)

    item.data.exceptions = minimal_parse(stacktrace)
    return item


def _set_event_operation_tags(
    item: TelemetryItem, span: ReadableSpan, operation_name: Optional[str]
) -> None:
    # events hang off the span that recorded them
    set_operation_id(item, span.context.trace_id)
    set_operation_parent_id(item, span.context.span_id)
    if operation_name is not None:
        set_operation_name(item, operation_name)
    else:
        set_operation_name_from_attributes(item, span.attributes)
