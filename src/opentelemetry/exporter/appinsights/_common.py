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

"""Fields shared by every telemetry kind produced from a span."""

import json
import logging
from typing import Any, Mapping, Optional, Sequence

from opentelemetry.exporter.appinsights._constants import (
    _HTTP_REQUEST_HEADER_PREFIX,
    _HTTP_RESPONSE_HEADER_PREFIX,
    _INTERNAL_ATTRIBUTE_PREFIX,
    _MS_LINKS,
    _STANDARD_ATTRIBUTE_PREFIXES,
    AI_OPERATION_NAME_KEY,
    AI_PREVIEW_INSTRUMENTATION_KEY,
    AI_PREVIEW_SERVICE_INSTANCE_ID,
    AI_PREVIEW_SERVICE_NAME,
    AI_PREVIEW_SERVICE_VERSION,
    AI_REQUEST_CONTEXT_KEY,
    AZURE_NAMESPACE,
    AZURE_SDK_ENQUEUED_TIME,
    AZURE_SDK_MESSAGE_BUS_DESTINATION,
    ENDUSER_ID,
    HTTP_STATUS_CODE,
    HTTP_USER_AGENT,
    KAFKA_OFFSET,
    KAFKA_RECORD_QUEUE_TIME_MS,
    ContextTagKeys,
)
from opentelemetry.exporter.appinsights._utils import (
    PrefixTrie,
    get_int_attribute,
    get_str_attribute,
    ns_to_iso_str,
)
from opentelemetry.exporter.appinsights.models import TelemetryItem
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.trace import Link, format_span_id, format_trace_id
from opentelemetry.trace.status import StatusCode

logger = logging.getLogger(__name__)

_STANDARD_ATTRIBUTE_PREFIX_TRIE = PrefixTrie(
    {prefix: True for prefix in _STANDARD_ATTRIBUTE_PREFIXES}
)

# peer.address is left out on purpose, the "peer." prefix already drops it
_IGNORED_ATTRIBUTES = frozenset(
    {
        AZURE_NAMESPACE,
        AZURE_SDK_MESSAGE_BUS_DESTINATION,
        AZURE_SDK_ENQUEUED_TIME,
        KAFKA_RECORD_QUEUE_TIME_MS,
        KAFKA_OFFSET,
        AI_REQUEST_CONTEXT_KEY,
    }
)

_STRING_ATTRIBUTE_TAGS = {
    ENDUSER_ID: ContextTagKeys.AI_USER_ID,
    HTTP_USER_AGENT: ContextTagKeys.AI_USER_AGENT,
    AI_PREVIEW_SERVICE_NAME: ContextTagKeys.AI_CLOUD_ROLE,
    AI_PREVIEW_SERVICE_INSTANCE_ID: ContextTagKeys.AI_CLOUD_ROLE_INSTANCE,
    AI_PREVIEW_SERVICE_VERSION: ContextTagKeys.AI_APPLICATION_VER,
}


def set_operation_tags(item: TelemetryItem, span: ReadableSpan) -> None:
    set_operation_id(item, span.context.trace_id)
    if span.parent is not None and span.parent.is_valid:
        set_operation_parent_id(item, span.parent.span_id)
    set_operation_name_from_attributes(item, span.attributes)


def set_operation_id(item: TelemetryItem, trace_id: int) -> None:
    item.add_tag(ContextTagKeys.AI_OPERATION_ID, format_trace_id(trace_id))


def set_operation_parent_id(item: TelemetryItem, span_id: int) -> None:
    item.add_tag(ContextTagKeys.AI_OPERATION_PARENT_ID, format_span_id(span_id))


def set_operation_name(item: TelemetryItem, operation_name: str) -> None:
    item.add_tag(ContextTagKeys.AI_OPERATION_NAME, operation_name)


def set_operation_name_from_attributes(
    item: TelemetryItem, attributes: Optional[Mapping[str, Any]]
) -> None:
    operation_name = get_str_attribute(attributes, AI_OPERATION_NAME_KEY)
    if operation_name is not None:
        set_operation_name(item, operation_name)


def get_success(
    span: ReadableSpan, capture_http_server_4xx_as_error: bool
) -> bool:
    status_code = span.status.status_code
    if status_code == StatusCode.ERROR:
        return False
    if status_code == StatusCode.OK:
        # instrumentations never set OK, it is an explicit user override
        return True
    if capture_http_server_4xx_as_error:
        http_status_code = get_int_attribute(span.attributes, HTTP_STATUS_CODE)
        return http_status_code is None or http_status_code < 400
    return True


def get_duration_nanos(span: ReadableSpan) -> int:
    return (span.end_time or 0) - (span.start_time or 0)


def set_time(item: TelemetryItem, epoch_nanos: int) -> None:
    item.time = ns_to_iso_str(epoch_nanos)


def set_sample_rate(item: TelemetryItem, sampling_percentage: float) -> None:
    if sampling_percentage != 100:
        item.sample_rate = sampling_percentage


def add_links(item: TelemetryItem, links: Sequence[Link]) -> None:
    if not links:
        return
    serialized = [
        {
            "operation_Id": format_trace_id(link.context.trace_id),
            "id": format_span_id(link.context.span_id),
        }
        for link in links
    ]
    item.add_property(_MS_LINKS, json.dumps(serialized, separators=(",", ":")))


def set_extra_attributes(
    item: TelemetryItem, attributes: Optional[Mapping[str, Any]]
) -> None:
    """Copies the attributes without a dedicated field into properties.

    Internal bridging keys and keys under a standard semantic convention
    prefix are dropped, except captured request/response headers. A few
    string attributes are promoted to context tags instead.
    """
    for key, value in (attributes or {}).items():
        if key.startswith(_INTERNAL_ATTRIBUTE_PREFIX):
            continue
        if key in _IGNORED_ATTRIBUTES:
            continue
        if isinstance(value, str):
            tag = _STRING_ATTRIBUTE_TAGS.get(key)
            if tag is not None:
                item.add_tag(tag, value)
                continue
            if key == AI_PREVIEW_INSTRUMENTATION_KEY:
                item.instrumentation_key = value
                continue
        if (
            _STANDARD_ATTRIBUTE_PREFIX_TRIE.get_or_default(key, False)
            and not key.startswith(_HTTP_REQUEST_HEADER_PREFIX)
            and not key.startswith(_HTTP_RESPONSE_HEADER_PREFIX)
        ):
            continue
        converted = convert_to_string(value)
        if converted is not None:
            item.add_property(key, converted)


def convert_to_string(value: Any) -> Optional[str]:
    """Renders an attribute value the way the ingestion endpoint expects.

    Sequences are joined with ``", "``. Returns ``None`` (and logs) for
    values that are not valid attribute types.
    """
    if isinstance(value, (str, bool, int, float)):
        return _scalar_to_string(value)
    if isinstance(value, (list, tuple)) and all(
        isinstance(element, (str, bool, int, float)) for element in value
    ):
        return ", ".join(_scalar_to_string(element) for element in value)
    logger.warning("unexpected attribute type: %s", type(value).__name__)
    return None


def _scalar_to_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
