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

"""Resolve dependency type, target and data from span attributes.

Protocol families are tried in a fixed order: HTTP, RPC, database,
messaging, then plain peer attributes. Each family walks its own fallback
chain; a missing attribute only moves the chain to the next candidate.
"""

from typing import Any, Mapping, Optional

from opentelemetry.exporter.appinsights._constants import (
    _ALWAYS_INCLUDE_PORT,
    _AZURE_SDK_MESSAGING_NAMESPACES,
    _DB_SYSTEM_DEFAULT_PORTS,
    _DB_SYSTEM_TYPE_OVERRIDES,
    _DEFAULT_HTTP_SPAN_NAMES,
    _DEPENDENCY_TYPE_HTTP,
    _DEPENDENCY_TYPE_HTTP_TRACKED,
    _DEPENDENCY_TYPE_IN_PROC,
    _DEPENDENCY_TYPE_SQL,
    _HTTP_DEFAULT_PORTS,
    _QUEUE_MESSAGE_TYPE_PREFIX,
    _SQL_DB_SYSTEMS,
    AI_REQUEST_CONTEXT_KEY,
    AZURE_NAMESPACE,
    AZURE_SDK_MESSAGE_BUS_DESTINATION,
    AZURE_SDK_PEER_ADDRESS,
    DB_NAME,
    DB_OPERATION,
    DB_STATEMENT,
    DB_SYSTEM,
    HTTP_HOST,
    HTTP_METHOD,
    HTTP_SCHEME,
    HTTP_STATUS_CODE,
    HTTP_URL,
    MESSAGING_DESTINATION,
    MESSAGING_SYSTEM,
    NET_PEER_IP,
    NET_PEER_NAME,
    NET_PEER_PORT,
    PEER_SERVICE,
    RPC_SYSTEM,
)
from opentelemetry.exporter.appinsights._utils import (
    get_int_attribute,
    get_path_from_url,
    get_str_attribute,
    get_target_from_url,
    null_aware_concat,
)
from opentelemetry.exporter.appinsights.models import RemoteDependencyData
from opentelemetry.trace import SpanKind

Attributes = Mapping[str, Any]


def apply_semantic_conventions(
    dependency: RemoteDependencyData,
    kind: SpanKind,
    attributes: Attributes,
    app_id: Optional[str] = None,
) -> None:
    if get_str_attribute(attributes, HTTP_METHOD) is not None:
        apply_http_client_span(dependency, attributes, app_id)
        return
    rpc_system = get_str_attribute(attributes, RPC_SYSTEM)
    if rpc_system is not None:
        apply_rpc_client_span(dependency, rpc_system, attributes)
        return
    db_system = get_str_attribute(attributes, DB_SYSTEM)
    if db_system is not None:
        apply_database_client_span(dependency, db_system, attributes)
        return
    messaging_system = get_messaging_system(attributes)
    if messaging_system is not None:
        apply_messaging_client_span(
            dependency, kind, messaging_system, attributes
        )
        return

    # the default port is unknown here, so keep whatever port is set
    target = get_target_from_peer_attributes(attributes, _ALWAYS_INCLUDE_PORT)
    if target is not None:
        dependency.target = target
        return

    # without a target the application map groups dependencies by name,
    # which joins unrelated components into one node
    dependency.type = _DEPENDENCY_TYPE_IN_PROC


def apply_http_client_span(
    dependency: RemoteDependencyData,
    attributes: Attributes,
    app_id: Optional[str] = None,
) -> None:
    target = get_target_for_http_client_span(attributes)
    target_app_id = get_target_app_id(attributes)

    if target_app_id is None or target_app_id == app_id:
        dependency.type = _DEPENDENCY_TYPE_HTTP
        dependency.target = target
    else:
        # the ingestion endpoint strips the app id from plain "Http" targets
        dependency.type = _DEPENDENCY_TYPE_HTTP_TRACKED
        dependency.target = f"{target} | {target_app_id}"

    status_code = get_int_attribute(attributes, HTTP_STATUS_CODE)
    if status_code is not None:
        dependency.result_code = str(status_code)

    dependency.data = get_str_attribute(attributes, HTTP_URL)


def get_target_app_id(attributes: Attributes) -> Optional[str]:
    request_context = attributes.get(AI_REQUEST_CONTEXT_KEY)
    if isinstance(request_context, (list, tuple)) and request_context:
        request_context = request_context[0]
    if not isinstance(request_context, str):
        return None
    _, separator, target_app_id = request_context.partition("=")
    if not separator:
        return None
    return target_app_id


def get_target_for_http_client_span(attributes: Attributes) -> str:
    # at least one of these sets is required on http client spans:
    # * http.url
    # * http.scheme, http.host, http.target
    # * http.scheme, net.peer.name, net.peer.port, http.target
    # * http.scheme, net.peer.ip, net.peer.port, http.target
    target = get_target_from_peer_service(attributes)
    if target is not None:
        return target

    scheme = get_str_attribute(attributes, HTTP_SCHEME)
    default_port = _HTTP_DEFAULT_PORTS.get(scheme, 0)

    # http.host carries the port when it is not the default one
    host = get_str_attribute(attributes, HTTP_HOST)
    if host is not None:
        suffix = f":{default_port}"
        if default_port and host.endswith(suffix):
            return host[: -len(suffix)]
        return host

    url = get_str_attribute(attributes, HTTP_URL)
    if url is not None:
        target = get_target_from_url(url)
        if target is not None:
            return target

    target = get_target_from_net_attributes(attributes, default_port)
    if target is not None:
        return target
    return _DEPENDENCY_TYPE_HTTP


def get_target_from_peer_attributes(
    attributes: Attributes, default_port: int
) -> Optional[str]:
    target = get_target_from_peer_service(attributes)
    if target is not None:
        return target
    return get_target_from_net_attributes(attributes, default_port)


def get_target_from_peer_service(attributes: Attributes) -> Optional[str]:
    # the port is never appended to peer.service
    return get_str_attribute(attributes, PEER_SERVICE)


def get_target_from_net_attributes(
    attributes: Attributes, default_port: int
) -> Optional[str]:
    host = get_str_attribute(attributes, NET_PEER_NAME)
    if host is None:
        host = get_str_attribute(attributes, NET_PEER_IP)
    if host is None:
        return None
    port = get_int_attribute(attributes, NET_PEER_PORT)
    if port is not None and port != default_port:
        return f"{host}:{port}"
    return host


def apply_rpc_client_span(
    dependency: RemoteDependencyData, rpc_system: str, attributes: Attributes
) -> None:
    dependency.type = rpc_system
    # rpc.service is not appended, it is too fine grained for a target
    target = get_target_from_peer_attributes(attributes, 0)
    dependency.target = target if target is not None else rpc_system


def apply_database_client_span(
    dependency: RemoteDependencyData, db_system: str, attributes: Attributes
) -> None:
    statement = get_str_attribute(attributes, DB_STATEMENT)
    if statement is None:
        statement = get_str_attribute(attributes, DB_OPERATION)
    dependency.type = get_database_type(db_system)
    dependency.data = statement
    target = null_aware_concat(
        get_target_from_peer_attributes(
            attributes, get_default_port_for_db_system(db_system)
        ),
        get_str_attribute(attributes, DB_NAME),
        " | ",
    )
    dependency.target = target if target is not None else db_system


def get_database_type(db_system: str) -> str:
    if db_system in _SQL_DB_SYSTEMS:
        return _DB_SYSTEM_TYPE_OVERRIDES.get(db_system, _DEPENDENCY_TYPE_SQL)
    return db_system


def get_default_port_for_db_system(db_system: str) -> int:
    return _DB_SYSTEM_DEFAULT_PORTS.get(db_system, 0)


def apply_messaging_client_span(
    dependency: RemoteDependencyData,
    kind: SpanKind,
    messaging_system: str,
    attributes: Attributes,
) -> None:
    if kind == SpanKind.PRODUCER:
        dependency.type = _QUEUE_MESSAGE_TYPE_PREFIX + messaging_system
    else:
        # e.g. CONSUMER receive spans and CLIENT spans
        dependency.type = messaging_system
    dependency.target = get_messaging_target_source(attributes)


def is_azure_sdk_messaging(namespace: Optional[str]) -> bool:
    return namespace in _AZURE_SDK_MESSAGING_NAMESPACES


def get_messaging_system(attributes: Attributes) -> Optional[str]:
    namespace = get_str_attribute(attributes, AZURE_NAMESPACE)
    if is_azure_sdk_messaging(namespace):
        # Azure SDK spans do not follow the messaging conventions yet
        return namespace
    return get_str_attribute(attributes, MESSAGING_SYSTEM)


def get_messaging_target_source(attributes: Attributes) -> Optional[str]:
    if is_azure_sdk_messaging(get_str_attribute(attributes, AZURE_NAMESPACE)):
        return null_aware_concat(
            get_str_attribute(attributes, AZURE_SDK_PEER_ADDRESS),
            get_str_attribute(attributes, AZURE_SDK_MESSAGE_BUS_DESTINATION),
            "/",
        )
    messaging_system = get_str_attribute(attributes, MESSAGING_SYSTEM)
    if messaging_system is None:
        return None
    source = null_aware_concat(
        get_target_from_peer_attributes(attributes, 0),
        get_str_attribute(attributes, MESSAGING_DESTINATION),
        "/",
    )
    if source is not None:
        return source
    return messaging_system


def get_dependency_name(name: str, attributes: Attributes) -> str:
    """Replaces the generic ``HTTP <METHOD>`` span names with method + path."""
    method = get_str_attribute(attributes, HTTP_METHOD)
    if method is None:
        return name
    if name not in _DEFAULT_HTTP_SPAN_NAMES:
        return name
    url = get_str_attribute(attributes, HTTP_URL)
    if url is None:
        return name
    path = get_path_from_url(url)
    if path is None:
        return name
    if not path:
        return f"{method} /"
    return f"{method} {path}"
