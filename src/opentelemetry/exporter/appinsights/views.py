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

"""Attribute views bounding the cardinality of pre-aggregated metrics.

Each view is an allow-list; applying a view merges the attributes captured
when a call starts with those captured when it ends and keeps only the
allow-listed keys.
"""

from types import MappingProxyType
from typing import Any, AbstractSet, Dict, Mapping, Optional

from opentelemetry.exporter.appinsights._constants import (
    NET_HOST_NAME,
    NET_PEER_NAME,
    NET_PEER_PORT,
    RPC_SYSTEM,
)

Attributes = Mapping[str, Any]

# rpc.service and rpc.method are left out to keep the metric cardinality low
_ALWAYS_INCLUDE = frozenset({RPC_SYSTEM})

CLIENT_VIEW = _ALWAYS_INCLUDE | {NET_PEER_NAME, NET_PEER_PORT}
SERVER_VIEW = _ALWAYS_INCLUDE
SERVER_FALLBACK_VIEW = _ALWAYS_INCLUDE


def apply_client_view(
    start_attributes: Optional[Attributes],
    end_attributes: Optional[Attributes],
) -> Mapping[str, Any]:
    return apply_view(CLIENT_VIEW, start_attributes, end_attributes)


def apply_server_view(
    start_attributes: Optional[Attributes],
    end_attributes: Optional[Attributes],
) -> Mapping[str, Any]:
    view = SERVER_VIEW
    if not _contains_attribute(NET_HOST_NAME, start_attributes, end_attributes):
        view = SERVER_FALLBACK_VIEW
    return apply_view(view, start_attributes, end_attributes)


def apply_view(
    view: AbstractSet[str],
    start_attributes: Optional[Attributes],
    end_attributes: Optional[Attributes],
) -> Mapping[str, Any]:
    filtered: Dict[str, Any] = {}
    for attributes in (start_attributes, end_attributes):
        for key, value in (attributes or {}).items():
            if key in view:
                filtered[key] = value
    return MappingProxyType(filtered)


def _contains_attribute(
    key: str,
    start_attributes: Optional[Attributes],
    end_attributes: Optional[Attributes],
) -> bool:
    return (start_attributes or {}).get(key) is not None or (
        end_attributes or {}
    ).get(key) is not None
