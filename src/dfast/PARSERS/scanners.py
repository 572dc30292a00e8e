# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
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
Scanners used by the lexer: flag parameters, quote-aware comment splitting
and heredoc blocks.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from ..UTILS.command_line import split_first_word

QUOTE_CHARS = "\"'`"
HEREDOC_MARKER = "<<"

_DELIMITER_PATTERN = re.compile(r"^[\w.-]+$")


def scan_params(text: str) -> Tuple[Dict[str, List[str]], str]:
    """
    Consumes leading ``--key=value`` and ``--key`` flags.

    Bare flags get the value ``"true"``. Repeated flags accumulate their
    values in order. Scanning stops at the first word not starting with ``--``.

    :param text: Instruction arguments following the keyword.
    :return: The flags and the remaining text.
    """
    params: Dict[str, List[str]] = {}
    rest = text.lstrip()

    while rest.startswith("--"):
        word, remainder = split_first_word(rest)
        key, sep, value = word[2:].partition("=")
        if not key:
            break
        params.setdefault(key, []).append(value if sep else "true")
        rest = remainder

    return params, rest


def _unquoted_positions(text: str) -> Iterator[int]:
    """
    Yields indices of characters that sit outside every quoted span.

    Open spans are kept on a stack. Inside single quotes nothing but the
    closing quote counts. Inside double quotes single quotes are literal.
    ``${`` opens a parameter expansion closed by ``}``, so ``${VAR#prefix}``
    does not start a comment. A backslash escapes the next character.
    """
    stack: List[str] = []
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        top = stack[-1] if stack else None

        if top == "'":
            if ch == "'":
                stack.pop()
            i += 1
            continue

        if ch == "\\":
            i += 2
            continue

        if ch == "$" and i + 1 < n and text[i + 1] == "{":
            stack.append("${")
            i += 2
            continue

        if top == "${" and ch == "}":
            stack.pop()
            i += 1
            continue

        if ch in QUOTE_CHARS:
            if ch == top:
                stack.pop()
            elif not (top == '"' and ch == "'"):
                stack.append(ch)
            i += 1
            continue

        if not stack:
            yield i
        i += 1


def split_inline_comment(text: str) -> Tuple[str, str]:
    """
    Splits a line into content and trailing comment.

    :param text: Instruction arguments after the flags.
    :return: The right-trimmed content and the text after the first unquoted
        ``#`` (empty if there is none).
    """
    for i in _unquoted_positions(text):
        if text[i] == "#":
            return text[:i].rstrip(), text[i + 1:]
    return text.rstrip(), ""


def find_unquoted(text: str, marker: str) -> int:
    """
    Finds the first occurrence of ``marker`` that starts outside quotes.

    :return: The index of the marker, or -1.
    """
    for i in _unquoted_positions(text):
        if text.startswith(marker, i):
            return i
    return -1


@dataclass
class HeredocBlock:
    """A heredoc captured from the logical lines."""

    delimiter: str
    strip_tabs: bool
    prefix: str
    lines: List[str] = field(default_factory=list)
    end_line: int = 0  # index of the last physical line consumed


class HeredocScanner:
    """
    Captures heredoc bodies out of a list of physical lines.
    """

    def __init__(self, lines: List[str]):
        """
        :param lines: The physical lines of the whole input.
        """
        self.lines = lines

    @staticmethod
    def read_marker(text: str, index: int) -> Optional[Tuple[bool, str, str]]:
        """
        Reads the ``<<`` / ``<<-`` marker and its delimiter word.

        :param text: Text containing the marker.
        :param index: Position of the marker.
        :return: Strip mode, delimiter and the text following the marker, or
            None if no usable delimiter follows.
        """
        pos = index + len(HEREDOC_MARKER)
        if text.startswith("<", pos):
            # here-string
            return None

        strip_tabs = text.startswith("-", pos)
        if strip_tabs:
            pos += 1

        remainder = text[pos:]
        word, _ = split_first_word(remainder)
        delimiter = word.strip("\"'")
        if not delimiter or not _DELIMITER_PATTERN.match(delimiter):
            return None
        return strip_tabs, delimiter, remainder

    def scan(self, text: str, start: int) -> Optional[HeredocBlock]:
        """
        Captures a heredoc whose body begins at physical line ``start``.

        Body lines are taken verbatim until one whose stripped form equals or
        starts with the delimiter; that line is included. Lines are never
        altered, ``<<-`` tab stripping is left to the build. Running out of
        input closes the block.

        :param text: Instruction arguments after the flags.
        :param start: Index of the first physical line after the opening line.
        :return: The captured block, or None if the text opens no heredoc.
        """
        index = find_unquoted(text, HEREDOC_MARKER)
        if index < 0:
            return None
        marker = self.read_marker(text, index)
        if marker is None:
            return None

        strip_tabs, delimiter, remainder = marker
        block = HeredocBlock(
            delimiter=delimiter,
            strip_tabs=strip_tabs,
            prefix=text[:index].strip(),
            lines=[remainder],
            end_line=start - 1,
        )

        for current in range(start, len(self.lines)):
            line = self.lines[current]
            block.lines.append(line)
            block.end_line = current
            if self.is_terminator(line, delimiter):
                break

        return block

    @staticmethod
    def is_terminator(line: str, delimiter: str) -> bool:
        return line.strip().startswith(delimiter)
