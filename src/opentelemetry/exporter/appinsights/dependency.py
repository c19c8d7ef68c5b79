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

"""RemoteDependency telemetry for CLIENT, PRODUCER and INTERNAL spans."""

from typing import Callable, Optional

from opentelemetry.exporter.appinsights._common import (
    add_links,
    get_duration_nanos,
    get_success,
    set_extra_attributes,
    set_operation_tags,
    set_sample_rate,
    set_time,
)
from opentelemetry.exporter.appinsights._constants import (
    _DEPENDENCY_TYPE_IN_PROC,
)
from opentelemetry.exporter.appinsights._utils import ns_to_duration
from opentelemetry.exporter.appinsights.models import (
    RemoteDependencyData,
    TelemetryItem,
)
from opentelemetry.exporter.appinsights.semantic import (
    apply_semantic_conventions,
    get_dependency_name,
)
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.trace import format_span_id


def build_dependency(
    span: ReadableSpan,
    sampling_percentage: float,
    in_proc: bool,
    telemetry_initializer: Callable[[TelemetryItem], None],
    capture_http_server_4xx_as_error: bool = True,
    app_id: Optional[str] = None,
) -> TelemetryItem:
    dependency = RemoteDependencyData()
    item = TelemetryItem(data=dependency)
    telemetry_initializer(item)

    attributes = span.attributes

    set_operation_tags(item, span)
    set_time(item, span.start_time or 0)
    set_sample_rate(item, sampling_percentage)
    set_extra_attributes(item, attributes)
    add_links(item, span.links)

    dependency.id = format_span_id(span.context.span_id)
    dependency.name = get_dependency_name(span.name, attributes)
    dependency.duration = ns_to_duration(get_duration_nanos(span))
    dependency.success = get_success(span, capture_http_server_4xx_as_error)

    if in_proc:
        dependency.type = _DEPENDENCY_TYPE_IN_PROC
    else:
        apply_semantic_conventions(dependency, span.kind, attributes, app_id)

    return item
