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

"""Application Insights span exporter.

Maps every exported span to Application Insights telemetry items and hands
them to a sink callable. Transmission to the ingestion endpoint is the
sink's concern.
"""

import logging
from typing import Callable, List, Optional, Sequence

from opentelemetry.exporter.appinsights._constants import ContextTagKeys
from opentelemetry.exporter.appinsights._utils import get_sampling_percentage
from opentelemetry.exporter.appinsights.config import (
    AppInsightsMapperConfig,
    create_telemetry_initializer,
)
from opentelemetry.exporter.appinsights.events import EventSuppressorT, SinkT
from opentelemetry.exporter.appinsights.mapper import (
    SpanDataMapper,
    UnsupportedSpanKindError,
)
from opentelemetry.exporter.appinsights.models import TelemetryItem
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

logger = logging.getLogger(__name__)


class AppInsightsSpanExporter(SpanExporter):
    """Span exporter producing Application Insights telemetry.

    A span that cannot be mapped, including one of an unsupported kind, is
    logged and skipped; the rest of the batch is still exported. A failing
    sink fails the whole export call.

    Example usage:
        >>> from opentelemetry import trace
        >>> from opentelemetry.sdk.trace import TracerProvider
        >>> from opentelemetry.sdk.trace.export import BatchSpanProcessor
        >>> from opentelemetry.exporter.appinsights import (
        ...     AppInsightsMapperConfig,
        ...     AppInsightsSpanExporter,
        ... )
        >>>
        >>> items = []
        >>> config = AppInsightsMapperConfig(
        ...     connection_string="InstrumentationKey=00000000-0000-0000-0000-000000000000",
        ... )
        >>> exporter = AppInsightsSpanExporter(items.append, config)
        >>> provider = TracerProvider()
        >>> provider.add_span_processor(BatchSpanProcessor(exporter))
        >>> trace.set_tracer_provider(provider)
    """

    def __init__(
        self,
        sink: SinkT,
        config: Optional[AppInsightsMapperConfig] = None,
        resource: Optional[Resource] = None,
        mapper: Optional[SpanDataMapper] = None,
        event_suppressor: Optional[EventSuppressorT] = None,
        app_id_supplier: Optional[Callable[[], Optional[str]]] = None,
    ):
        """Initialize the exporter.

        Args:
            sink: Receives every telemetry item produced.
            config: Mapper configuration, read from the environment when
                not given.
            resource: Resource the cloud role tags are derived from.
            mapper: Replaces the mapper built from ``config``.
            event_suppressor: Predicate for span events to drop.
            app_id_supplier: Returns this component's application id.
        """
        self.config = config if config is not None else AppInsightsMapperConfig()
        self._sink = sink
        if mapper is None:
            mapper = SpanDataMapper.from_config(
                self.config,
                telemetry_initializer=create_telemetry_initializer(
                    self.config, resource
                ),
                event_suppressor=event_suppressor,
                app_id_supplier=app_id_supplier,
            )
        self._mapper = mapper
        self._shutdown = False

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """Map spans and hand the resulting items to the sink.

        Args:
            spans: Sequence of spans to export.

        Returns:
            SpanExportResult indicating success or failure.
        """
        if self._shutdown:
            logger.warning("Exporter already shutdown, ignoring batch")
            return SpanExportResult.FAILURE
        if not spans:
            return SpanExportResult.SUCCESS

        exported = 0
        try:
            for span in spans:
                items = self._map_span(span)
                if items is None:
                    continue
                for item in items:
                    self._sink(item)
                exported += 1
        except Exception as e:
            logger.error("Failed to export spans: %s", e)
            return SpanExportResult.FAILURE

        logger.debug("Exported %d spans", exported)
        return SpanExportResult.SUCCESS

    def _map_span(self, span: ReadableSpan) -> Optional[List[TelemetryItem]]:
        try:
            return self._build_items(span)
        except UnsupportedSpanKindError as e:
            logger.warning("Skipping span %s: %s", span.name, e)
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Failed to map span %s, skipping it", span.name)
        return None

    def _build_items(self, span: ReadableSpan) -> List[TelemetryItem]:
        sampling_percentage = get_sampling_percentage(span.context.trace_state)
        item = self._mapper.map(span, sampling_percentage)
        items = [item]
        self._mapper.map_events(
            span,
            item.tags.get(ContextTagKeys.AI_OPERATION_NAME.value),
            sampling_percentage,
            items.append,
        )
        if self.config.preaggregated_metrics:
            metric = self._mapper.map_metric(span, item)
            if metric is not None:
                items.append(metric)
        return items

    def shutdown(self) -> None:
        self._shutdown = True

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        # nothing is buffered
        return True
