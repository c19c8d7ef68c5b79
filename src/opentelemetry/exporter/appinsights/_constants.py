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

from enum import Enum

# cSpell:disable

# Semantic convention attributes read from spans. These are the pre-1.21
# names emitted by the instrumentations this mapper is paired with.

HTTP_METHOD = "http.method"
HTTP_URL = "http.url"
HTTP_SCHEME = "http.scheme"
HTTP_HOST = "http.host"
HTTP_TARGET = "http.target"
HTTP_STATUS_CODE = "http.status_code"
HTTP_CLIENT_IP = "http.client_ip"
HTTP_USER_AGENT = "http.user_agent"

NET_PEER_NAME = "net.peer.name"
NET_PEER_IP = "net.peer.ip"
NET_PEER_PORT = "net.peer.port"
NET_HOST_NAME = "net.host.name"
PEER_SERVICE = "peer.service"

RPC_SYSTEM = "rpc.system"
RPC_GRPC_STATUS_CODE = "rpc.grpc.status_code"

DB_SYSTEM = "db.system"
DB_STATEMENT = "db.statement"
DB_OPERATION = "db.operation"
DB_NAME = "db.name"

MESSAGING_SYSTEM = "messaging.system"
MESSAGING_DESTINATION = "messaging.destination"
MESSAGING_OPERATION = "messaging.operation"

ENDUSER_ID = "enduser.id"

# Azure SDK

AZURE_NAMESPACE = "az.namespace"
AZURE_SDK_PEER_ADDRESS = "peer.address"
AZURE_SDK_MESSAGE_BUS_DESTINATION = "message_bus.destination"
AZURE_SDK_ENQUEUED_TIME = "x-opt-enqueued-time"

_AZURE_SDK_MESSAGING_NAMESPACES = frozenset(
    {"Microsoft.EventHub", "Microsoft.ServiceBus"}
)

# Kafka

KAFKA_RECORD_QUEUE_TIME_MS = "kafka.record.queue_time_ms"
KAFKA_OFFSET = "kafka.offset"

# Internal bridging attributes

_INTERNAL_ATTRIBUTE_PREFIX = "applicationinsights.internal."

AI_OPERATION_NAME_KEY = "applicationinsights.internal.operation_name"
AI_LEGACY_PARENT_ID_KEY = "applicationinsights.internal.legacy_parent_id"
AI_LEGACY_ROOT_ID_KEY = "applicationinsights.internal.legacy_root_id"
AI_SPAN_SOURCE_KEY = "applicationinsights.internal.source"
AI_SESSION_ID_KEY = "applicationinsights.internal.session_id"
AI_DEVICE_OS_KEY = "applicationinsights.internal.operating_system"
AI_DEVICE_OS_VERSION_KEY = (
    "applicationinsights.internal.operating_system_version"
)

AI_REQUEST_CONTEXT_KEY = "http.response.header.request_context"

AI_PREVIEW_INSTRUMENTATION_KEY = "ai.preview.instrumentation_key"
AI_PREVIEW_SERVICE_NAME = "ai.preview.service_name"
AI_PREVIEW_SERVICE_INSTANCE_ID = "ai.preview.service_instance_id"
AI_PREVIEW_SERVICE_VERSION = "ai.preview.service_version"

_HTTP_REQUEST_HEADER_PREFIX = "http.request.header."
_HTTP_RESPONSE_HEADER_PREFIX = "http.response.header."

# Kept in sync with the semantic convention namespaces. Keys under these
# prefixes are mapped to dedicated fields, not properties.
_STANDARD_ATTRIBUTE_PREFIXES = (
    "http.",
    "db.",
    "message.",
    "messaging.",
    "rpc.",
    "enduser.",
    "net.",
    "peer.",
    "exception.",
    "thread.",
    "faas.",
    "code.",
)

# Trace state

_SAMPLING_PERCENTAGE_TRACE_STATE = "ai-internal-sp"
_AZURE_TRACE_STATE_APP_ID = "az"

# Span classification

# scope names of Java scheduling instrumentation, seen on spans bridged
# into this process from other runtimes
_SCHEDULING_SCOPE_PREFIXES = ("io.opentelemetry.spring-scheduling-",)

_MESSAGING_OPERATION_RECEIVE = "receive"

# Reserved property names

_MS_LINKS = "_MS.links"
_MS_METRIC_ID = "_MS.MetricId"
_MS_IS_AUTOCOLLECTED = "_MS.IsAutocollected"

_TIME_SINCE_ENQUEUED = "timeSinceEnqueued"

# Dependency types

_DEPENDENCY_TYPE_IN_PROC = "InProc"
_DEPENDENCY_TYPE_HTTP = "Http"
_DEPENDENCY_TYPE_HTTP_TRACKED = "Http (tracked component)"
_DEPENDENCY_TYPE_SQL = "SQL"
_QUEUE_MESSAGE_TYPE_PREFIX = "Queue Message | "

_DEFAULT_HTTP_SPAN_NAMES = frozenset(
    {
        "HTTP OPTIONS",
        "HTTP GET",
        "HTTP HEAD",
        "HTTP POST",
        "HTTP PUT",
        "HTTP DELETE",
        "HTTP TRACE",
        "HTTP CONNECT",
        "HTTP PATCH",
    }
)

_SQL_DB_SYSTEMS = frozenset(
    {
        "db2",
        "derby",
        "mariadb",
        "mssql",
        "mysql",
        "oracle",
        "postgresql",
        "sqlite",
        "other_sql",
        "hsqldb",
        "h2",
    }
)

# db.system values whose type keeps its own icon in the portal
_DB_SYSTEM_TYPE_OVERRIDES = {
    "mysql": "mysql",
    "postgresql": "postgresql",
}

_DB_SYSTEM_DEFAULT_PORTS = {
    "mongodb": 27017,
    "cassandra": 9042,
    "redis": 6379,
    "mariadb": 3306,
    "mysql": 3306,
    "mssql": 1433,
    "db2": 50000,
    "oracle": 1521,
    "h2": 8082,
    "derby": 1527,
    "postgresql": 5432,
}

_HTTP_DEFAULT_PORTS = {
    "http": 80,
    "https": 443,
}

# Used when the default port is unknown, so the port is always kept.
_ALWAYS_INCLUDE_PORT = 2**31 - 1


class ContextTagKeys(str, Enum):
    """Tag keys accepted by the ingestion endpoint."""

    AI_OPERATION_ID = "ai.operation.id"
    AI_OPERATION_PARENT_ID = "ai.operation.parentId"
    AI_OPERATION_NAME = "ai.operation.name"
    AI_OPERATION_SYNTHETIC_SOURCE = "ai.operation.syntheticSource"
    AI_USER_ID = "ai.user.id"
    AI_USER_AGENT = "ai.user.userAgent"
    AI_CLOUD_ROLE = "ai.cloud.role"
    AI_CLOUD_ROLE_INSTANCE = "ai.cloud.roleInstance"
    AI_APPLICATION_VER = "ai.application.ver"
    AI_LOCATION_IP = "ai.location.ip"
    AI_SESSION_ID = "ai.session.id"
    AI_DEVICE_OS = "ai.device.os"
    AI_DEVICE_OS_VERSION = "ai.device.osVersion"
    AI_INTERNAL_SDK_VERSION = "ai.internal.sdkVersion"
    # non-standard, read by the legacy 2.x correlation bridge
    AI_LEGACY_ROOT_ID = "ai_legacyRootID"
