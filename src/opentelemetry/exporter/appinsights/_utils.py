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

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Generic, Mapping, Optional, TypeVar
from urllib.parse import urlsplit

from opentelemetry.exporter.appinsights._constants import (
    _HTTP_DEFAULT_PORTS,
    _SAMPLING_PERCENTAGE_TRACE_STATE,
)
from opentelemetry.trace import TraceState

logger = logging.getLogger(__name__)

_NANOS_PER_SECOND = 1_000_000_000
_NANOS_PER_MINUTE = 60 * _NANOS_PER_SECOND
_NANOS_PER_HOUR = 60 * _NANOS_PER_MINUTE
_NANOS_PER_DAY = 24 * _NANOS_PER_HOUR

_DEFAULT_SAMPLING_PERCENTAGE = 100.0

V = TypeVar("V")


def ns_to_duration(nanoseconds: int) -> str:
    """Formats a duration as ``[d.]hh:mm:ss.ffffff``.

    The day component is only present for durations of a day or more.
    """
    days, remaining = divmod(max(nanoseconds, 0), _NANOS_PER_DAY)
    hours, remaining = divmod(remaining, _NANOS_PER_HOUR)
    minutes, remaining = divmod(remaining, _NANOS_PER_MINUTE)
    seconds, remaining = divmod(remaining, _NANOS_PER_SECOND)
    formatted = (
        f"{hours:02d}:{minutes:02d}:{seconds:02d}.{remaining // 1000:06d}"
    )
    if days > 0:
        return f"{days}.{formatted}"
    return formatted


def ns_to_iso_str(nanoseconds: int) -> str:
    seconds, remaining = divmod(max(nanoseconds or 0, 0), _NANOS_PER_SECOND)
    moment = datetime.fromtimestamp(seconds, tz=timezone.utc).replace(
        microsecond=remaining // 1000
    )
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def get_target_from_url(url: str) -> Optional[str]:
    """Returns ``host[:port]`` from an absolute url.

    The port is dropped when it is the default port for the scheme.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    target = parts.netloc.rpartition("@")[2]
    if not target:
        return None
    default_port = _HTTP_DEFAULT_PORTS.get(parts.scheme.lower())
    if default_port is not None:
        suffix = f":{default_port}"
        if target.endswith(suffix):
            target = target[: -len(suffix)]
    return target


def get_path_from_url(url: str) -> Optional[str]:
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return parts.path


def get_sampling_percentage(
    trace_state: Optional[TraceState],
    default: float = _DEFAULT_SAMPLING_PERCENTAGE,
) -> float:
    if trace_state is None:
        return default
    value = trace_state.get(_SAMPLING_PERCENTAGE_TRACE_STATE)
    if value is None:
        return default
    parsed = _parse_sampling_percentage(value)
    if parsed is None:
        return default
    return parsed


@lru_cache(maxsize=100)
def _parse_sampling_percentage(value: str) -> Optional[float]:
    try:
        return float(value)
    except ValueError:
        logger.warning("error parsing sampling percentage trace state: %s", value)
        return None


def get_str_attribute(
    attributes: Optional[Mapping[str, Any]], key: str
) -> Optional[str]:
    """Returns the attribute when it is a string, ``None`` otherwise."""
    value = (attributes or {}).get(key)
    if isinstance(value, str):
        return value
    return None


def get_int_attribute(
    attributes: Optional[Mapping[str, Any]], key: str
) -> Optional[int]:
    """Returns the attribute when it is an integer, ``None`` otherwise.

    Booleans are not integers here.
    """
    value = (attributes or {}).get(key)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def null_aware_concat(
    first: Optional[str], second: Optional[str], separator: str
) -> Optional[str]:
    if first is None:
        return second
    if second is None:
        return first
    return first + separator + second


class PrefixTrie(Generic[V]):
    """Read-only trie answering "which registered prefix does a key start with".

    Built once from a mapping of prefix to value; there are no mutators, so a
    single instance can be shared between threads.
    """

    __slots__ = ("_root",)

    _VALUE = object()

    def __init__(self, entries: Mapping[str, V]):
        root: Dict[Any, Any] = {}
        for prefix, value in entries.items():
            node = root
            for char in prefix:
                node = node.setdefault(char, {})
            node[self._VALUE] = value
        self._root = root

    def get_or_default(self, key: str, default: V) -> V:
        """Returns the value of the longest registered prefix of ``key``."""
        node = self._root
        found = default
        for char in key:
            node = node.get(char)
            if node is None:
                break
            if self._VALUE in node:
                found = node[self._VALUE]
        return found
