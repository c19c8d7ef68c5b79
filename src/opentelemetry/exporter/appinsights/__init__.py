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

"""
OpenTelemetry Application Insights Exporter
===========================================

This package maps finished OpenTelemetry spans to Application Insights
telemetry: Request, RemoteDependency, Message, Exception and pre-aggregated
Metric items.

Mapping rules:
- SERVER and CONSUMER spans become requests
- CLIENT, PRODUCER and "receive" CONSUMER spans become dependencies
- INTERNAL spans become in-process dependencies, except scheduled job roots
- Span events become messages, recorded exceptions become exceptions

Installation:
    pip install opentelemetry-exporter-appinsights

Basic usage:

    >>> from opentelemetry.sdk.trace import TracerProvider
    >>> from opentelemetry.sdk.trace.export import SimpleSpanProcessor
    >>> from opentelemetry.exporter.appinsights import (
    ...     AppInsightsMapperConfig,
    ...     AppInsightsSpanExporter,
    ... )
    >>>
    >>> items = []
    >>> config = AppInsightsMapperConfig(
    ...     connection_string="InstrumentationKey=00000000-0000-0000-0000-000000000000",
    ... )
    >>> provider = TracerProvider()
    >>> provider.add_span_processor(
    ...     SimpleSpanProcessor(AppInsightsSpanExporter(items.append, config))
    ... )

The mapper can also be used on its own:

    >>> mapper = SpanDataMapper(capture_http_server_4xx_as_error=False)
    >>> mapper.map_to_sink(span, items.append)

Configuration via environment variables:
    - APPLICATIONINSIGHTS_CONNECTION_STRING: Connection string (default: empty)
    - APPLICATIONINSIGHTS_CAPTURE_HTTP_SERVER_4XX_AS_ERROR: Whether 4xx server
      responses are failures (default: true)
    - APPLICATIONINSIGHTS_ROLE_NAME: Cloud role name (default: from resource)
    - APPLICATIONINSIGHTS_ROLE_INSTANCE: Cloud role instance (default: from
      resource, else host name)
    - APPLICATIONINSIGHTS_PREAGGREGATED_METRICS_ENABLED: Emit duration
      metrics (default: false)
"""

from opentelemetry.exporter.appinsights._constants import ContextTagKeys
from opentelemetry.exporter.appinsights.config import (
    AppInsightsMapperConfig,
    create_telemetry_initializer,
)
from opentelemetry.exporter.appinsights.exporter import (
    AppInsightsSpanExporter,
)
from opentelemetry.exporter.appinsights.mapper import (
    SpanDataMapper,
    UnsupportedSpanKindError,
)
from opentelemetry.exporter.appinsights.models import TelemetryItem
from opentelemetry.exporter.appinsights.version import __version__

__all__ = [
    "AppInsightsMapperConfig",
    "AppInsightsSpanExporter",
    "ContextTagKeys",
    "SpanDataMapper",
    "TelemetryItem",
    "UnsupportedSpanKindError",
    "create_telemetry_initializer",
    "__version__",
]
