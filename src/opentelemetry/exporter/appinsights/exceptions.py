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

import re
from typing import List, Optional, Tuple

from opentelemetry.exporter.appinsights.models import (
    ExceptionDetails,
    StackFrame,
)

_PYTHON_TRACEBACK_HEADER = "Traceback (most recent call last):"

_PYTHON_FRAME = re.compile(
    r'^\s*File "(?P<file>[^"]+)", line (?P<line>\d+), in (?P<method>.+)$'
)


def minimal_parse(stacktrace: str) -> List[ExceptionDetails]:
    """Builds exception details from a recorded ``exception.stacktrace``.

    Only the outermost exception is described. Python tracebacks name the
    exception on their last line and list the frames innermost-last; any
    other format is expected to name the exception on its first line.
    """
    lines = stacktrace.splitlines()
    parsed_stack: List[StackFrame] = []
    if lines and lines[0].startswith(_PYTHON_TRACEBACK_HEADER):
        summary = _last_non_indented_line(lines)
        parsed_stack = _parse_python_frames(lines)
    else:
        summary = lines[0] if lines else ""
    type_name, message = _split_summary(summary)
    return [
        ExceptionDetails(
            type_name=type_name,
            message=message,
            has_full_stack=True,
            stack=stacktrace,
            parsed_stack=parsed_stack,
        )
    ]


def _split_summary(summary: str) -> Tuple[Optional[str], str]:
    type_name, separator, message = summary.partition(": ")
    if not separator:
        return summary.strip() or None, ""
    return type_name.strip(), message


def _last_non_indented_line(lines: List[str]) -> str:
    for line in reversed(lines):
        if line and not line[0].isspace():
            return line
    return ""


def _parse_python_frames(lines: List[str]) -> List[StackFrame]:
    # chained exceptions repeat the header, the last traceback is the one raised
    start = max(
        index
        for index, line in enumerate(lines)
        if line.startswith(_PYTHON_TRACEBACK_HEADER)
    )
    frames = []
    for line in lines[start:]:
        match = _PYTHON_FRAME.match(line)
        if match is not None:
            frames.append(
                (match.group("method"), match.group("file"), int(match.group("line")))
            )
    # level 0 is the frame that raised
    return [
        StackFrame(level=level, method=method, file_name=file_name, line=line)
        for level, (method, file_name, line) in enumerate(reversed(frames))
    ]
