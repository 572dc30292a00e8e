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
Parsers for Dockerfiles, building the stage chain from lexed tokens.
"""
import logging
import re
from typing import Callable, Dict, List, Optional, Sequence

from ..MODELS.dockerfile_ast import (
    AddInstruction,
    ArgInstruction,
    CmdInstruction,
    CommentInstruction,
    CopyInstruction,
    EmptyLine,
    EntrypointInstruction,
    EnvInstruction,
    ExposeInstruction,
    HealthcheckInstruction,
    InstructionNode,
    LabelInstruction,
    MaintainerInstruction,
    OnbuildInstruction,
    PortSpec,
    RunInstruction,
    ShellInstruction,
    StageNode,
    StopsignalInstruction,
    UnknownInstruction,
    UserInstruction,
    VolumeInstruction,
    WorkdirInstruction,
)
from ..MODELS.parser_config import ParserConfig
from ..MODELS.token import Token, TokenKind
from ..UTILS.command_line import parse_assignments, parse_word_list, split_first_word
from .lexer import LexingError, lex

logger = logging.getLogger(__name__)

_STAGE_NAME_PATTERN = re.compile(r"^(.*?)\s+as\s+(\S+)$", re.IGNORECASE)
_DANGLING_AS_PATTERN = re.compile(r"^(.*?)\s+as$", re.IGNORECASE)


class Parser:
    """
    Builds the stage chain from a token stream.

    The root is a stage without a base image. Every FROM appends a new stage
    to the chain; all other tokens add an instruction to the current stage.
    """

    def __init__(
        self,
        tokens: Sequence[Token],
        config: Optional[ParserConfig] = None,
        depth: int = 0,
    ):
        """
        :param tokens: Tokens from the lexer.
        :param config: Parser settings.
        :param depth: ONBUILD nesting level of this parser.
        """
        self.tokens = list(tokens)
        self.config = config or ParserConfig()
        self.depth = depth
        self.root = StageNode()
        self._builders: Dict[TokenKind, Callable[[Token], InstructionNode]] = {
            TokenKind.ADD: self._parse_add,
            TokenKind.ARG: self._parse_arg,
            TokenKind.CMD: self._parse_cmd,
            TokenKind.COPY: self._parse_copy,
            TokenKind.ENTRYPOINT: self._parse_entrypoint,
            TokenKind.ENV: self._parse_env,
            TokenKind.EXPOSE: self._parse_expose,
            TokenKind.HEALTHCHECK: self._parse_healthcheck,
            TokenKind.LABEL: self._parse_label,
            TokenKind.MAINTAINER: self._parse_maintainer,
            TokenKind.ONBUILD: self._parse_onbuild,
            TokenKind.RUN: self._parse_run,
            TokenKind.SHELL: self._parse_shell,
            TokenKind.STOPSIGNAL: self._parse_stopsignal,
            TokenKind.USER: self._parse_user,
            TokenKind.VOLUME: self._parse_volume,
            TokenKind.WORKDIR: self._parse_workdir,
            TokenKind.COMMENT: self._parse_comment,
            TokenKind.EMPTY_LINE: self._parse_empty_line,
        }

    def parse(self) -> StageNode:
        """
        Parses the tokens given at construction.

        :return: The root of the stage chain.
        """
        current = self.root
        named_stages: Dict[str, StageNode] = {}

        for token in self.tokens:
            if token.kind == TokenKind.FROM:
                stage = self._parse_from(token)
                current.next = stage
                current = stage
                if stage.name:
                    named_stages[stage.name.lower()] = stage
                continue

            if token.kind == TokenKind.PARSER_DIRECTIVE:
                key, _, value = token.content.partition("=")
                current.directives[key] = value
                continue

            builder = self._builders.get(token.kind)
            if builder is None:
                logger.warning("Skipping token of kind %s (line %d)", token.kind.value, token.line)
                continue

            node = builder(token)

            if isinstance(node, CopyInstruction) and node.from_stage:
                self._link_stage(node.from_stage, current, named_stages)

            if (
                isinstance(node, ArgInstruction)
                and current.instructions
                and isinstance(current.instructions[-1], ArgInstruction)
            ):
                previous = current.instructions[-1]
                current.instructions[-1] = ArgInstruction(pairs={**previous.pairs, **node.pairs})
                continue

            current.instructions.append(node)

        return self.root

    def _link_stage(self, name: str, current: StageNode, named_stages: Dict[str, StageNode]):
        """
        Records that ``current`` copies from the stage called ``name``.
        Names that were not declared before are image references.
        """
        target = named_stages.get(name.lower())
        if target is None or target is current:
            return
        target.referenced_by.add(current.id)
        logger.debug("Stage %s references stage %s", current.id, name)

    def _parse_from(self, token: Token) -> StageNode:
        content = token.content.strip()
        name = None
        match = _STAGE_NAME_PATTERN.match(content)
        if match:
            content, name = match.group(1).strip(), match.group(2)
        else:
            match = _DANGLING_AS_PATTERN.match(content)
            if match:
                logger.warning("FROM with AS but no stage name (line %d)", token.line)
                content = match.group(1).strip()
        if not content:
            logger.warning("FROM without an image (line %d)", token.line)
        return StageNode(
            name=name,
            base_image=content,
            platform=token.param("platform", ""),
        )

    @staticmethod
    def _flag(token: Token, key: str) -> bool:
        return token.param(key, "false").lower() == "true"

    @staticmethod
    def _split_paths(token: Token):
        paths = parse_word_list(token.content)
        if not paths:
            return [], ""
        return paths[:-1], paths[-1]

    @staticmethod
    def _unsupported_heredoc(token: Token) -> InstructionNode:
        logger.warning(
            "Heredoc %s instructions are not supported, keeping text (line %d)",
            token.kind.value, token.line,
        )
        return UnknownInstruction(text="\n".join([token.raw] + token.multiline_content[1:]))

    def _parse_add(self, token: Token) -> InstructionNode:
        if token.is_heredoc:
            return self._unsupported_heredoc(token)
        sources, destination = self._split_paths(token)
        return AddInstruction(
            sources=sources,
            destination=destination,
            keep_git_dir=self._flag(token, "keep-git-dir"),
            checksum=token.param("checksum", ""),
            chown=token.param("chown", ""),
            chmod=token.param("chmod", ""),
            link=self._flag(token, "link"),
            exclude=token.param_list("exclude"),
        )

    def _parse_copy(self, token: Token) -> InstructionNode:
        if token.is_heredoc:
            return self._unsupported_heredoc(token)
        sources, destination = self._split_paths(token)
        return CopyInstruction(
            sources=sources,
            destination=destination,
            keep_git_dir=self._flag(token, "keep-git-dir"),
            chown=token.param("chown", ""),
            chmod=token.param("chmod", ""),
            link=self._flag(token, "link"),
            parents=self._flag(token, "parents"),
            exclude=token.param_list("exclude"),
            from_stage=token.param("from", ""),
        )

    def _parse_arg(self, token: Token) -> InstructionNode:
        return ArgInstruction(pairs=parse_assignments(token.content))

    def _parse_env(self, token: Token) -> InstructionNode:
        return EnvInstruction(pairs=parse_assignments(token.content))

    def _parse_label(self, token: Token) -> InstructionNode:
        return LabelInstruction(pairs=parse_assignments(token.content))

    def _parse_cmd(self, token: Token) -> InstructionNode:
        return CmdInstruction(command=parse_word_list(token.content))

    def _parse_entrypoint(self, token: Token) -> InstructionNode:
        return EntrypointInstruction(command=parse_word_list(token.content))

    def _parse_shell(self, token: Token) -> InstructionNode:
        return ShellInstruction(command=parse_word_list(token.content))

    def _parse_volume(self, token: Token) -> InstructionNode:
        return VolumeInstruction(mounts=parse_word_list(token.content))

    def _parse_expose(self, token: Token) -> InstructionNode:
        ports: List[PortSpec] = []
        for part in token.content.split():
            port, _, protocol = part.partition("/")
            protocol = protocol.lower() or "tcp"
            if protocol not in ("tcp", "udp"):
                logger.warning("EXPOSE protocol %r is neither tcp nor udp, using udp (line %d)", protocol, token.line)
                protocol = "udp"
            ports.append(PortSpec(port=port, protocol=protocol))
        return ExposeInstruction(ports=ports)

    def _parse_healthcheck(self, token: Token) -> InstructionNode:
        if token.content.strip().upper() == "NONE":
            return HealthcheckInstruction(cancelled=True)

        retries_text = token.param("retries", "3")
        try:
            retries = int(retries_text)
        except ValueError:
            logger.warning("Invalid HEALTHCHECK retries %r (line %d), using 3", retries_text, token.line)
            retries = 3

        return HealthcheckInstruction(
            interval=token.param("interval", "30s"),
            timeout=token.param("timeout", "30s"),
            start_period=token.param("start-period", "0s"),
            start_interval=token.param("start-interval", "5s"),
            retries=retries,
            command=parse_word_list(self._strip_cmd(token.content)),
        )

    @staticmethod
    def _strip_cmd(content: str) -> str:
        word, rest = split_first_word(content)
        return rest if word.upper() == "CMD" else content

    def _parse_maintainer(self, token: Token) -> InstructionNode:
        return MaintainerInstruction(name=token.content)

    def _parse_onbuild(self, token: Token) -> InstructionNode:
        """
        Runs the trigger through the lexer and a nested parser. Triggers that
        cannot be lexed, or that are nested too deep, are kept as free text.
        """
        if token.is_heredoc:
            _, opening = split_first_word(token.raw)
            lines = [opening] + token.multiline_content[1:]
        else:
            lines = [token.content]
        fallback = OnbuildInstruction(trigger=UnknownInstruction(text="\n".join(lines)))

        if self.depth >= self.config.max_onbuild_depth:
            logger.warning("ONBUILD nested deeper than %d levels (line %d)", self.config.max_onbuild_depth, token.line)
            return fallback

        try:
            tokens = lex(lines)
        except LexingError as e:
            logger.warning("Could not lex ONBUILD trigger %r: %s", lines[0], e)
            return fallback

        nested = Parser(tokens, self.config, self.depth + 1).parse()
        triggers = nested.instructions
        if nested.next is not None or not triggers or isinstance(triggers[0], (EmptyLine, CommentInstruction)):
            logger.warning("ONBUILD without a usable trigger (line %d)", token.line)
            return fallback
        return OnbuildInstruction(trigger=triggers[0])

    def _parse_run(self, token: Token) -> InstructionNode:
        flags = dict(
            mounts=token.param_list("mount"),
            network=token.param("network", ""),
            security=token.param("security", ""),
            device=token.param("device", ""),
        )
        if token.is_heredoc:
            return RunInstruction(
                command=list(token.multiline_content),
                is_heredoc=True,
                heredoc_strip=token.heredoc_strip_mode,
                heredoc_command=token.content,
                **flags,
            )
        return RunInstruction(command=parse_word_list(token.content), **flags)

    def _parse_stopsignal(self, token: Token) -> InstructionNode:
        return StopsignalInstruction(signal=token.content)

    def _parse_user(self, token: Token) -> InstructionNode:
        return UserInstruction(user=token.content)

    def _parse_workdir(self, token: Token) -> InstructionNode:
        return WorkdirInstruction(path=token.content)

    def _parse_comment(self, token: Token) -> InstructionNode:
        return CommentInstruction(text=token.content)

    def _parse_empty_line(self, token: Token) -> InstructionNode:
        return EmptyLine()


def parse(tokens: Sequence[Token], config: Optional[ParserConfig] = None) -> StageNode:
    """
    Parses lexed tokens into a stage chain.

    :param tokens: Tokens from the lexer.
    :param config: Parser settings.
    :return: The root stage.
    """
    return Parser(tokens, config).parse()


class DockerfileParser:
    """
    Parser for Dockerfiles on disk or in memory.
    """
    def __init__(self, config: Optional[ParserConfig] = None):
        """
        :param config: Parser settings.
        """
        self.config = config or ParserConfig()

    def parse(self, dockerfile_path: str) -> StageNode:
        """
        Parses a Dockerfile from a file path.

        Args:
            dockerfile_path (str): Path to the Dockerfile.

        Returns:
            StageNode: Root of the stage chain.

        Raises:
            LexingError: If the file holds an unknown instruction.
        """
        with open(dockerfile_path, 'r') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> StageNode:
        """
        Parses a Dockerfile from a string content.

        Args:
            content (str): Content of the Dockerfile.

        Returns:
            StageNode: Root of the stage chain.
        """
        return self.parse_lines(content.splitlines())

    def parse_lines(self, lines: Sequence[str]) -> StageNode:
        """Parses a Dockerfile given as a list of lines."""
        return parse(lex(lines), self.config)
