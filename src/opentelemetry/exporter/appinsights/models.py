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

"""Application Insights telemetry items.

A :class:`TelemetryItem` is the envelope shared by every telemetry kind. The
kind-specific payload lives in ``data`` and is one of :class:`RequestData`,
:class:`RemoteDependencyData`, :class:`MessageData`, :class:`ExceptionData`
or :class:`MetricsData`. ``to_dict`` renders the envelope in the shape the
ingestion endpoint accepts.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from opentelemetry.exporter.appinsights._constants import ContextTagKeys


def _drop_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


@dataclass
class RequestData:
    id: Optional[str] = None
    name: Optional[str] = None
    duration: Optional[str] = None
    success: bool = True
    response_code: Optional[str] = None
    url: Optional[str] = None
    source: Optional[str] = None
    properties: Dict[str, str] = field(default_factory=dict)
    measurements: Dict[str, float] = field(default_factory=dict)

    base_type = "RequestData"
    envelope_name = "Microsoft.ApplicationInsights.Request"

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "ver": 2,
                "id": self.id,
                "name": self.name,
                "duration": self.duration,
                "success": self.success,
                "responseCode": self.response_code,
                "url": self.url,
                "source": self.source,
                "properties": self.properties or None,
                "measurements": self.measurements or None,
            }
        )


@dataclass
class RemoteDependencyData:
    id: Optional[str] = None
    name: Optional[str] = None
    duration: Optional[str] = None
    success: bool = True
    type: Optional[str] = None
    target: Optional[str] = None
    data: Optional[str] = None
    result_code: Optional[str] = None
    properties: Dict[str, str] = field(default_factory=dict)
    measurements: Dict[str, float] = field(default_factory=dict)

    base_type = "RemoteDependencyData"
    envelope_name = "Microsoft.ApplicationInsights.RemoteDependency"

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "ver": 2,
                "id": self.id,
                "name": self.name,
                "duration": self.duration,
                "success": self.success,
                "type": self.type,
                "target": self.target,
                "data": self.data,
                "resultCode": self.result_code,
                "properties": self.properties or None,
                "measurements": self.measurements or None,
            }
        )


@dataclass
class MessageData:
    message: Optional[str] = None
    properties: Dict[str, str] = field(default_factory=dict)

    base_type = "MessageData"
    envelope_name = "Microsoft.ApplicationInsights.Message"

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "ver": 2,
                "message": self.message,
                "properties": self.properties or None,
            }
        )


@dataclass(frozen=True)
class StackFrame:
    level: int
    method: str
    file_name: Optional[str] = None
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "level": self.level,
                "method": self.method,
                "fileName": self.file_name,
                "line": self.line,
            }
        )


@dataclass
class ExceptionDetails:
    type_name: Optional[str] = None
    message: str = ""
    has_full_stack: bool = True
    stack: Optional[str] = None
    parsed_stack: List[StackFrame] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "typeName": self.type_name,
                "message": self.message,
                "hasFullStack": self.has_full_stack,
                "stack": self.stack,
                "parsedStack": [frame.to_dict() for frame in self.parsed_stack]
                or None,
            }
        )


@dataclass
class ExceptionData:
    exceptions: List[ExceptionDetails] = field(default_factory=list)
    properties: Dict[str, str] = field(default_factory=dict)

    base_type = "ExceptionData"
    envelope_name = "Microsoft.ApplicationInsights.Exception"

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "ver": 2,
                "exceptions": [
                    exception.to_dict() for exception in self.exceptions
                ],
                "properties": self.properties or None,
            }
        )


@dataclass
class MetricDataPoint:
    name: str
    value: float
    count: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    data_point_type: str = "Aggregation"

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "name": self.name,
                "value": self.value,
                "count": self.count,
                "min": self.min,
                "max": self.max,
                "dataPointType": self.data_point_type,
            }
        )


@dataclass
class MetricsData:
    metrics: List[MetricDataPoint] = field(default_factory=list)
    properties: Dict[str, str] = field(default_factory=dict)

    base_type = "MetricData"
    envelope_name = "Microsoft.ApplicationInsights.Metric"

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "ver": 2,
                "metrics": [metric.to_dict() for metric in self.metrics],
                "properties": self.properties or None,
            }
        )


TelemetryData = Union[
    RequestData,
    RemoteDependencyData,
    MessageData,
    ExceptionData,
    MetricsData,
]


@dataclass
class TelemetryItem:
    data: TelemetryData
    time: Optional[str] = None
    instrumentation_key: Optional[str] = None
    sample_rate: Optional[float] = None
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.data.envelope_name

    @property
    def properties(self) -> Dict[str, str]:
        return self.data.properties

    @property
    def measurements(self) -> Dict[str, float]:
        # only requests and dependencies carry measurements
        return getattr(self.data, "measurements", {})

    def add_tag(self, key: Union[ContextTagKeys, str], value: str) -> None:
        """Sets a context tag.

        Raises:
            ValueError: if ``key`` is not one of :class:`ContextTagKeys`.
        """
        self.tags[ContextTagKeys(key).value] = value

    def add_property(self, key: str, value: str) -> None:
        self.data.properties[key] = value

    def add_measurement(self, key: str, value: float) -> None:
        self.data.measurements[key] = value

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "ver": 1,
                "name": self.name,
                "time": self.time,
                "sampleRate": self.sample_rate,
                "iKey": self.instrumentation_key,
                "tags": dict(self.tags),
                "data": {
                    "baseType": self.data.base_type,
                    "baseData": self.data.to_dict(),
                },
            }
        )
