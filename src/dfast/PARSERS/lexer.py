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
Lexer turning Dockerfile lines into tokens.

Physical lines are first merged into logical lines (continuations joined),
then every logical line becomes one token. Heredoc instructions consume the
lines of their body as well.
"""
import logging
import re
from typing import List, Optional, Sequence, Tuple

from ..MODELS.token import HEREDOC_KINDS, Token, TokenKind, lookup_instruction
from ..UTILS.command_line import split_first_word
from .scanners import HeredocScanner, scan_params, split_inline_comment

logger = logging.getLogger(__name__)

DEFAULT_ESCAPE = "\\"

_DIRECTIVE_PATTERN = re.compile(r"^([A-Za-z][\w-]*)\s*=\s*(\S+)$")


class LexingError(ValueError):
    """
    Raised when a line starts with an unknown instruction keyword.
    """

    def __init__(self, line: int, tokens: Optional[List[Token]] = None):
        """
        :param line: Index of the offending logical line.
        :param tokens: Tokens produced before the failure.
        """
        super().__init__(f"Illegal instruction encountered (line: {line})")
        self.line = line
        self.tokens = tokens or []


def parse_directive(text: str) -> Optional[Tuple[str, str]]:
    """
    Parses the body of a comment as a parser directive.

    :param text: Comment text without the leading ``#``.
    :return: Key and value, or None if the comment is not a directive.
    """
    match = _DIRECTIVE_PATTERN.match(text.strip())
    if not match:
        return None
    return match.group(1), match.group(2)


def detect_escape(lines: Sequence[str]) -> str:
    """
    Looks for an ``# escape=`` directive in the leading directive block.
    """
    for raw in lines:
        line = raw.strip()
        directive = parse_directive(line[1:]) if line.startswith("#") else None
        if directive is None:
            break
        key, value = directive
        if key.lower() == "escape" and value in ("\\", "`"):
            return value
    return DEFAULT_ESCAPE


def read_logical_line(lines: Sequence[str], start: int, escape: str = DEFAULT_ESCAPE) -> Tuple[str, int]:
    """
    Reads one logical line beginning at physical line ``start``.

    Every line is trimmed. A line ending with the escape character is joined
    with the next one, without a separator. Comments and blank lines inside a
    continuation are dropped. A continuation still open at the end of input
    is returned as is.

    :param lines: Physical lines.
    :param start: Index of the first physical line to read.
    :param escape: Continuation character.
    :return: The logical line and the index of the next unread physical line.
    """
    pending: Optional[str] = None
    index = start

    while index < len(lines):
        line = lines[index].strip()
        index += 1
        if pending is not None:
            if not line or line.startswith("#"):
                continue
        elif line.startswith("#"):
            return line, index

        if line.endswith(escape):
            pending = (pending or "") + line[:-1]
            continue

        if pending is not None:
            return pending + line, index
        return line, index

    return pending or "", index


def merge_lines(lines: Sequence[str], escape: str = DEFAULT_ESCAPE) -> List[str]:
    """
    Joins continued physical lines into logical lines.

    :param lines: Physical lines.
    :param escape: Continuation character.
    :return: Logical lines.
    """
    merged: List[str] = []
    index = 0
    while index < len(lines):
        line, index = read_logical_line(lines, index, escape)
        merged.append(line)
    return merged


class Lexer:
    """
    Produces one token per logical line.

    Logical lines are read from the physical lines on demand, so that heredoc
    bodies can be taken from the physical lines unchanged.
    """

    def __init__(self, lines: Sequence[str]):
        """
        :param lines: Raw lines of a Dockerfile.
        """
        self.lines = list(lines)
        self.escape = detect_escape(self.lines)
        self.position = 0  # next unread physical line
        self.current_line = 0  # index of the next logical line
        self.heredocs = HeredocScanner(self.lines)

    @classmethod
    def from_file(cls, path: str) -> "Lexer":
        """
        Creates a lexer for a file on disk.

        :param path: Path to the Dockerfile.
        """
        with open(path, 'r') as f:
            return cls(f.read().splitlines())

    def reset(self):
        self.position = 0
        self.current_line = 0

    def lex(self) -> List[Token]:
        """
        Lexes all remaining lines.

        :return: The tokens, in source order.
        :raises LexingError: If a line holds an unknown instruction.
        """
        tokens: List[Token] = []
        while True:
            token = self.next_token()
            if token.kind == TokenKind.EOF:
                break
            if token.kind == TokenKind.ILLEGAL:
                raise LexingError(token.line, tokens)
            tokens.append(token)
        return tokens

    def next_token(self) -> Token:
        """
        Reads the token for the current logical line and advances past it.

        :return: The token, or an EOF token once the input is exhausted.
        """
        if self.position >= len(self.lines):
            return Token(kind=TokenKind.EOF, line=self.current_line)

        index = self.current_line
        line, self.position = read_logical_line(self.lines, self.position, self.escape)
        token = self._read_line(line, index)
        self.current_line += 1
        return token

    def _read_line(self, line: str, index: int) -> Token:
        if not line:
            return Token(kind=TokenKind.EMPTY_LINE, line=index)

        if line.startswith("#"):
            body = line[1:].strip()
            directive = parse_directive(body)
            if directive is not None:
                key, value = directive
                return Token(
                    kind=TokenKind.PARSER_DIRECTIVE,
                    content=f"{key}={value}",
                    line=index,
                    raw=line,
                )
            return Token(kind=TokenKind.COMMENT, content=body, line=index, raw=line)

        word, rest = split_first_word(line)
        kind = lookup_instruction(word)
        if kind == TokenKind.ILLEGAL:
            logger.debug("Unknown instruction %r on line %d", word, index)
            return Token(kind=TokenKind.ILLEGAL, content=line, line=index, raw=line)

        params, rest = scan_params(rest)

        if self._admits_heredoc(kind, rest):
            block = self.heredocs.scan(rest, self.position)
            if block is not None:
                logger.debug(
                    "Heredoc %r on line %d spans %d lines",
                    block.delimiter, index, len(block.lines),
                )
                # body lines count as logical lines of their own
                self.current_line += block.end_line + 1 - self.position
                self.position = block.end_line + 1
                return Token(
                    kind=kind,
                    params=params,
                    content=block.prefix,
                    multiline_content=block.lines,
                    heredoc_strip_mode=block.strip_tabs,
                    line=index,
                    raw=line,
                )

        content, comment = split_inline_comment(rest)
        return Token(
            kind=kind,
            params=params,
            content=content,
            inline_comment=comment,
            line=index,
            raw=line,
        )

    @staticmethod
    def _admits_heredoc(kind: TokenKind, rest: str) -> bool:
        if kind in HEREDOC_KINDS:
            return True
        if kind == TokenKind.ONBUILD:
            trigger, _ = split_first_word(rest)
            return lookup_instruction(trigger) in HEREDOC_KINDS
        return False


def lex(lines: Sequence[str]) -> List[Token]:
    """
    Lexes Dockerfile lines.

    :param lines: Raw lines.
    :return: The tokens.
    :raises LexingError: If a line holds an unknown instruction.
    """
    return Lexer(lines).lex()
