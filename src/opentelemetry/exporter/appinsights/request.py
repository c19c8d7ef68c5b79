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

"""Request telemetry for SERVER and CONSUMER spans."""

from typing import Any, Callable, Mapping, Optional

from opentelemetry.exporter.appinsights._common import (
    add_links,
    get_duration_nanos,
    get_success,
    set_extra_attributes,
    set_sample_rate,
    set_time,
)
from opentelemetry.exporter.appinsights._constants import (
    _AZURE_TRACE_STATE_APP_ID,
    _TIME_SINCE_ENQUEUED,
    AI_DEVICE_OS_KEY,
    AI_DEVICE_OS_VERSION_KEY,
    AI_LEGACY_PARENT_ID_KEY,
    AI_LEGACY_ROOT_ID_KEY,
    AI_OPERATION_NAME_KEY,
    AI_SESSION_ID_KEY,
    AI_SPAN_SOURCE_KEY,
    AZURE_SDK_ENQUEUED_TIME,
    HTTP_CLIENT_IP,
    HTTP_HOST,
    HTTP_METHOD,
    HTTP_SCHEME,
    HTTP_STATUS_CODE,
    HTTP_TARGET,
    HTTP_URL,
    KAFKA_RECORD_QUEUE_TIME_MS,
    NET_PEER_IP,
    RPC_GRPC_STATUS_CODE,
    ContextTagKeys,
)
from opentelemetry.exporter.appinsights._utils import (
    get_int_attribute,
    get_str_attribute,
    ns_to_duration,
)
from opentelemetry.exporter.appinsights.models import (
    RequestData,
    TelemetryItem,
)
from opentelemetry.exporter.appinsights.semantic import (
    get_messaging_target_source,
)
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.trace import format_span_id, format_trace_id

_NANOS_PER_MILLI = 1_000_000

# legacy attribute keys bridged to context tags
_BRIDGED_TAGS = (
    (AI_SESSION_ID_KEY, ContextTagKeys.AI_SESSION_ID),
    (AI_DEVICE_OS_KEY, ContextTagKeys.AI_DEVICE_OS),
    (AI_DEVICE_OS_VERSION_KEY, ContextTagKeys.AI_DEVICE_OS_VERSION),
)


def build_request(
    span: ReadableSpan,
    sampling_percentage: float,
    telemetry_initializer: Callable[[TelemetryItem], None],
    capture_http_server_4xx_as_error: bool = True,
    app_id: Optional[str] = None,
) -> TelemetryItem:
    request = RequestData()
    item = TelemetryItem(data=request)
    telemetry_initializer(item)

    attributes = span.attributes
    start_time = span.start_time or 0

    request.id = format_span_id(span.context.span_id)
    set_time(item, start_time)
    set_sample_rate(item, sampling_percentage)
    set_extra_attributes(item, attributes)
    add_links(item, span.links)

    operation_name = get_operation_name(span)
    item.add_tag(ContextTagKeys.AI_OPERATION_NAME, operation_name)
    item.add_tag(
        ContextTagKeys.AI_OPERATION_ID, format_trace_id(span.context.trace_id)
    )

    # https://github.com/microsoft/ApplicationInsights-Java/issues/1174
    legacy_parent_id = get_str_attribute(attributes, AI_LEGACY_PARENT_ID_KEY)
    if legacy_parent_id is not None:
        # the real parent id, which did not fit the span id format
        item.add_tag(ContextTagKeys.AI_OPERATION_PARENT_ID, legacy_parent_id)
    elif span.parent is not None and span.parent.is_valid:
        item.add_tag(
            ContextTagKeys.AI_OPERATION_PARENT_ID,
            format_span_id(span.parent.span_id),
        )
    legacy_root_id = get_str_attribute(attributes, AI_LEGACY_ROOT_ID_KEY)
    if legacy_root_id is not None:
        item.add_tag(ContextTagKeys.AI_LEGACY_ROOT_ID, legacy_root_id)

    request.name = operation_name
    request.duration = ns_to_duration(get_duration_nanos(span))
    request.success = get_success(span, capture_http_server_4xx_as_error)

    request.url = get_http_url_from_server_span(attributes)
    request.response_code = get_response_code(attributes)

    location_ip = get_str_attribute(attributes, HTTP_CLIENT_IP)
    if location_ip is None:
        location_ip = get_str_attribute(attributes, NET_PEER_IP)
    if location_ip is not None:
        item.add_tag(ContextTagKeys.AI_LOCATION_IP, location_ip)

    request.source = get_source(span, app_id)

    for key, tag in _BRIDGED_TAGS:
        value = get_str_attribute(attributes, key)
        if value is not None:
            item.add_tag(tag, value)

    time_since_enqueued = get_time_since_enqueued_millis(start_time, attributes)
    if time_since_enqueued is not None:
        item.add_measurement(_TIME_SINCE_ENQUEUED, time_since_enqueued)

    return item


def get_operation_name(span: ReadableSpan) -> str:
    operation_name = get_str_attribute(span.attributes, AI_OPERATION_NAME_KEY)
    if operation_name is not None:
        return operation_name
    http_method = get_str_attribute(span.attributes, HTTP_METHOD)
    if http_method and span.name.startswith("/"):
        return f"{http_method} {span.name}"
    return span.name


def get_http_url_from_server_span(
    attributes: Mapping[str, Any]
) -> Optional[str]:
    http_url = get_str_attribute(attributes, HTTP_URL)
    if http_url is not None:
        return http_url
    scheme = get_str_attribute(attributes, HTTP_SCHEME)
    host = get_str_attribute(attributes, HTTP_HOST)
    target = get_str_attribute(attributes, HTTP_TARGET)
    if scheme is None or host is None or target is None:
        return None
    return f"{scheme}://{host}{target}"


def get_response_code(attributes: Mapping[str, Any]) -> str:
    status_code = get_int_attribute(attributes, HTTP_STATUS_CODE)
    if status_code is None:
        status_code = get_int_attribute(attributes, RPC_GRPC_STATUS_CODE)
    if status_code is None:
        return "0"
    return str(status_code)


def get_source(span: ReadableSpan, app_id: Optional[str]) -> Optional[str]:
    # only set by the 2.x web interop bridge
    source = get_str_attribute(span.attributes, AI_SPAN_SOURCE_KEY)
    if source is not None:
        return source
    trace_state = span.context.trace_state
    if trace_state is not None:
        source = trace_state.get(_AZURE_TRACE_STATE_APP_ID)
    if source is not None and source != app_id:
        return source
    return get_messaging_target_source(span.attributes)


def get_time_since_enqueued_millis(
    start_time: int, attributes: Mapping[str, Any]
) -> Optional[float]:
    # TODO: for batch consumers, average the enqueued time across all links
    time_since_enqueued = None
    enqueued_time = get_int_attribute(attributes, AZURE_SDK_ENQUEUED_TIME)
    if enqueued_time is not None:
        time_since_enqueued = float(
            max(0, start_time // _NANOS_PER_MILLI - enqueued_time * 1000)
        )
    queue_time_ms = get_int_attribute(attributes, KAFKA_RECORD_QUEUE_TIME_MS)
    if queue_time_ms is not None:
        time_since_enqueued = float(queue_time_ms)
    return time_since_enqueued
