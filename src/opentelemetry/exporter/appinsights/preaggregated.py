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

"""Pre-aggregated standard metrics for requests and dependencies."""

from typing import Any, Mapping, Optional

from opentelemetry.exporter.appinsights._common import convert_to_string
from opentelemetry.exporter.appinsights._constants import (
    _MS_IS_AUTOCOLLECTED,
    _MS_METRIC_ID,
)
from opentelemetry.exporter.appinsights.models import (
    MetricDataPoint,
    MetricsData,
    TelemetryItem,
)

TRUE = "True"
FALSE = "False"

OPERATION_SYNTHETIC = "operation/synthetic"

REQUESTS_DURATION = "requests/duration"
REQUEST_RESULT_CODE = "request/resultCode"
REQUEST_SUCCESS = "request/success"

DEPENDENCIES_DURATION = "dependencies/duration"
DEPENDENCY_RESULT_CODE = "dependency/resultCode"
DEPENDENCY_SUCCESS = "dependency/success"
DEPENDENCY_TYPE = "dependency/type"
DEPENDENCY_TARGET = "dependency/target"


def build_request_metric(
    metric_name: str,
    duration_ms: float,
    view_attributes: Mapping[str, Any],
    status_code: Optional[int],
    success: bool,
    is_synthetic: Optional[bool] = None,
) -> TelemetryItem:
    item = _build_metric(metric_name, duration_ms, view_attributes)
    _extract_common(item, is_synthetic)
    item.add_property(_MS_METRIC_ID, REQUESTS_DURATION)
    if status_code is not None:
        item.add_property(REQUEST_RESULT_CODE, str(status_code))
    item.add_property(REQUEST_SUCCESS, TRUE if success else FALSE)
    return item


def build_dependency_metric(
    metric_name: str,
    duration_ms: float,
    view_attributes: Mapping[str, Any],
    status_code: Optional[int],
    success: bool,
    dependency_type: Optional[str],
    target: Optional[str],
    is_synthetic: Optional[bool] = None,
) -> TelemetryItem:
    item = _build_metric(metric_name, duration_ms, view_attributes)
    _extract_common(item, is_synthetic)
    item.add_property(_MS_METRIC_ID, DEPENDENCIES_DURATION)
    if status_code is not None:
        item.add_property(DEPENDENCY_RESULT_CODE, str(status_code))
    item.add_property(DEPENDENCY_SUCCESS, TRUE if success else FALSE)
    if dependency_type is not None:
        item.add_property(DEPENDENCY_TYPE, dependency_type)
    if target is not None:
        item.add_property(DEPENDENCY_TARGET, target)
    return item


def _build_metric(
    metric_name: str, duration_ms: float, view_attributes: Mapping[str, Any]
) -> TelemetryItem:
    point = MetricDataPoint(
        name=metric_name,
        value=duration_ms,
        count=1,
        min=duration_ms,
        max=duration_ms,
    )
    item = TelemetryItem(data=MetricsData(metrics=[point]))
    for key, value in view_attributes.items():
        converted = convert_to_string(value)
        if converted is not None:
            item.add_property(key, converted)
    return item


def _extract_common(item: TelemetryItem, is_synthetic: Optional[bool]) -> None:
    item.add_property(_MS_IS_AUTOCOLLECTED, TRUE)
    if is_synthetic is not None:
        item.add_property(OPERATION_SYNTHETIC, TRUE if is_synthetic else FALSE)
