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

"""Configuration for the Application Insights span mapper."""

import socket
from dataclasses import dataclass, field
from os import environ
from typing import Callable, Dict, Optional

from opentelemetry.exporter.appinsights._constants import ContextTagKeys
from opentelemetry.exporter.appinsights.models import TelemetryItem
from opentelemetry.exporter.appinsights.version import __version__
from opentelemetry.sdk.resources import (
    SERVICE_INSTANCE_ID,
    SERVICE_NAME,
    SERVICE_NAMESPACE,
    Resource,
)

OTEL_APPLICATIONINSIGHTS_CONNECTION_STRING = (
    "APPLICATIONINSIGHTS_CONNECTION_STRING"
)
OTEL_APPLICATIONINSIGHTS_CAPTURE_HTTP_SERVER_4XX_AS_ERROR = (
    "APPLICATIONINSIGHTS_CAPTURE_HTTP_SERVER_4XX_AS_ERROR"
)
OTEL_APPLICATIONINSIGHTS_ROLE_NAME = "APPLICATIONINSIGHTS_ROLE_NAME"
OTEL_APPLICATIONINSIGHTS_ROLE_INSTANCE = "APPLICATIONINSIGHTS_ROLE_INSTANCE"
OTEL_APPLICATIONINSIGHTS_PREAGGREGATED_METRICS_ENABLED = (
    "APPLICATIONINSIGHTS_PREAGGREGATED_METRICS_ENABLED"
)

_INSTRUMENTATION_KEY = "instrumentationkey"
_SDK_VERSION_PREFIX = "otelpy"
_DEFAULT_SERVICE_NAME_PREFIX = "unknown_service"

TelemetryInitializerT = Callable[[TelemetryItem], None]


def _env_flag(name: str, default: str) -> bool:
    return environ.get(name, default).strip().lower() == "true"


def parse_connection_string(connection_string: str) -> Dict[str, str]:
    """Parses ``Key1=Value1;Key2=Value2`` into a dict with lower-cased keys.

    Raises:
        ValueError: if a segment is not a ``key=value`` pair.
    """
    settings = {}
    for segment in connection_string.split(";"):
        segment = segment.strip()
        if not segment:
            continue
        key, separator, value = segment.partition("=")
        if not separator or not key.strip():
            raise ValueError(f"Invalid connection string segment: {segment}")
        settings[key.strip().lower()] = value.strip()
    return settings


@dataclass
class AppInsightsMapperConfig:
    """Configuration for span mapping.

    Attributes:
        connection_string: Application Insights connection string; the
            instrumentation key is read from it.
        capture_http_server_4xx_as_error: Whether spans with an UNSET status
            and an HTTP status code of 400 or above are unsuccessful.
        role_name: Cloud role tag, overrides the one derived from the resource.
        role_instance: Cloud role instance tag, overrides the resource one.
        preaggregated_metrics: Whether the exporter also emits pre-aggregated
            request and dependency duration metrics.
    """

    connection_string: str = field(
        default_factory=lambda: environ.get(
            OTEL_APPLICATIONINSIGHTS_CONNECTION_STRING, ""
        )
    )
    capture_http_server_4xx_as_error: bool = field(
        default_factory=lambda: _env_flag(
            OTEL_APPLICATIONINSIGHTS_CAPTURE_HTTP_SERVER_4XX_AS_ERROR, "true"
        )
    )
    role_name: Optional[str] = field(
        default_factory=lambda: environ.get(OTEL_APPLICATIONINSIGHTS_ROLE_NAME)
    )
    role_instance: Optional[str] = field(
        default_factory=lambda: environ.get(
            OTEL_APPLICATIONINSIGHTS_ROLE_INSTANCE
        )
    )
    preaggregated_metrics: bool = field(
        default_factory=lambda: _env_flag(
            OTEL_APPLICATIONINSIGHTS_PREAGGREGATED_METRICS_ENABLED, "false"
        )
    )
    instrumentation_key: Optional[str] = field(init=False, default=None)

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.connection_string:
            settings = parse_connection_string(self.connection_string)
            self.instrumentation_key = settings.get(_INSTRUMENTATION_KEY)
            if not self.instrumentation_key:
                raise ValueError(
                    "Connection string is missing the InstrumentationKey"
                )


def _role_name_from_resource(resource: Resource) -> Optional[str]:
    service_name = resource.attributes.get(SERVICE_NAME)
    if not service_name:
        return None
    service_namespace = resource.attributes.get(SERVICE_NAMESPACE)
    if service_namespace:
        return f"{service_namespace}.{service_name}"
    return str(service_name)


def _role_instance_from_resource(resource: Resource) -> str:
    service_instance_id = resource.attributes.get(SERVICE_INSTANCE_ID)
    if service_instance_id:
        return str(service_instance_id)
    return socket.gethostname()


def create_telemetry_initializer(
    config: AppInsightsMapperConfig, resource: Optional[Resource] = None
) -> TelemetryInitializerT:
    """Returns an initializer stamping environment defaults on every item.

    Span attributes applied afterwards (e.g. ``ai.preview.service_name``)
    still override these values.
    """
    resource = resource if resource is not None else Resource.get_empty()

    tags = {ContextTagKeys.AI_INTERNAL_SDK_VERSION: _sdk_version()}
    role_name = config.role_name or _role_name_from_resource(resource)
    if role_name and not role_name.startswith(_DEFAULT_SERVICE_NAME_PREFIX):
        tags[ContextTagKeys.AI_CLOUD_ROLE] = role_name
    tags[ContextTagKeys.AI_CLOUD_ROLE_INSTANCE] = (
        config.role_instance or _role_instance_from_resource(resource)
    )
    instrumentation_key = config.instrumentation_key

    def initialize(item: TelemetryItem) -> None:
        if instrumentation_key:
            item.instrumentation_key = instrumentation_key
        for key, value in tags.items():
            item.add_tag(key, value)

    return initialize


def _sdk_version() -> str:
    return f"{_SDK_VERSION_PREFIX}:{__version__}"
