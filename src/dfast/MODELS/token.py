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
Tokens produced by the lexer, one per logical Dockerfile line.
"""
from typing import Dict, List, Optional
from enum import Enum
from pydantic import BaseModel


class TokenKind(str, Enum):
    """
    Kinds of tokens. Instruction keywords are taken from the Dockerfile reference.
    """
    ILLEGAL = "ILLEGAL"
    EOF = "EOF"

    ADD = "ADD"                    # Add local or remote files and directories.
    ARG = "ARG"                    # Use build-time variables.
    CMD = "CMD"                    # Specify default commands.
    COPY = "COPY"                  # Copy files and directories.
    ENTRYPOINT = "ENTRYPOINT"      # Specify default executable.
    ENV = "ENV"                    # Set environment variables.
    EXPOSE = "EXPOSE"              # Describe which ports the application listens on.
    FROM = "FROM"                  # Create a new build stage from a base image.
    HEALTHCHECK = "HEALTHCHECK"    # Check a container's health on startup.
    LABEL = "LABEL"                # Add metadata to an image.
    MAINTAINER = "MAINTAINER"      # Specify the author of an image.
    ONBUILD = "ONBUILD"            # Instructions for when the image is used in a build.
    RUN = "RUN"                    # Execute build commands.
    SHELL = "SHELL"                # Set the default shell of an image.
    STOPSIGNAL = "STOPSIGNAL"      # System call signal for exiting a container.
    USER = "USER"                  # Set user and group ID.
    VOLUME = "VOLUME"              # Create volume mounts.
    WORKDIR = "WORKDIR"            # Change working directory.

    COMMENT = "COMMENT"
    PARSER_DIRECTIVE = "PARSER_DIRECTIVE"
    EMPTY_LINE = "EMPTY_LINE"


INSTRUCTION_LOOKUP: Dict[str, TokenKind] = {
    kind.value: kind
    for kind in (
        TokenKind.ADD,
        TokenKind.ARG,
        TokenKind.CMD,
        TokenKind.COPY,
        TokenKind.ENTRYPOINT,
        TokenKind.ENV,
        TokenKind.EXPOSE,
        TokenKind.FROM,
        TokenKind.HEALTHCHECK,
        TokenKind.LABEL,
        TokenKind.MAINTAINER,
        TokenKind.ONBUILD,
        TokenKind.RUN,
        TokenKind.SHELL,
        TokenKind.STOPSIGNAL,
        TokenKind.USER,
        TokenKind.VOLUME,
        TokenKind.WORKDIR,
    )
}

# Instructions whose arguments may open a heredoc block.
HEREDOC_KINDS = (TokenKind.ADD, TokenKind.COPY, TokenKind.RUN)


def lookup_instruction(word: str) -> TokenKind:
    """
    Looks up an instruction keyword, ignoring case.

    :param word: The leading word of a line.
    :return: The matching kind, or ILLEGAL for unknown keywords.
    """
    return INSTRUCTION_LOOKUP.get(word.upper(), TokenKind.ILLEGAL)


class Token(BaseModel):
    """
    A single lexed instruction, comment, directive or empty line.
    """
    kind: TokenKind
    params: Dict[str, List[str]] = {}
    content: str = ""
    inline_comment: str = ""

    # Heredoc tokens only
    multiline_content: List[str] = []
    heredoc_strip_mode: bool = False

    # Where the token came from
    line: int = 0
    raw: str = ""

    def param(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Returns the last value given for a flag, or the default if it was never set.
        """
        values = self.params.get(key)
        if not values:
            return default
        return values[-1]

    def param_list(self, key: str) -> List[str]:
        """Returns every value given for a flag, in source order."""
        return list(self.params.get(key, []))

    @property
    def is_heredoc(self) -> bool:
        return bool(self.multiline_content)
