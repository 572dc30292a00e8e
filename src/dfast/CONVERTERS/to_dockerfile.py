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
Converters for turning a parsed stage chain back into Dockerfile text.
"""
import json
import logging
import os
from typing import Any, Callable, Dict, List

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
    Instruction,
    LabelInstruction,
    MaintainerInstruction,
    OnbuildInstruction,
    RunInstruction,
    ShellInstruction,
    StageNode,
    StopsignalInstruction,
    UnknownInstruction,
    UserInstruction,
    VolumeInstruction,
    WorkdirInstruction,
)
from ..UTILS.command_line import is_quoted

logger = logging.getLogger(__name__)


def format_if_value(flag: str, value: Any) -> str:
    """
    Formats ``--flag=value``, or returns an empty string for unset values
    (empty strings and False).
    """
    if value is None or value is False or value == "":
        return ""
    if value is True:
        value = "true"
    return f"--{flag}={value}"


def escape_list(values: List[str]) -> str:
    """Encodes a word list as a compact JSON array."""
    return json.dumps(values, separators=(",", ":"), ensure_ascii=False)


def _format_value(value: str) -> str:
    if any(ch.isspace() for ch in value) and not is_quoted(value):
        return '"' + value.replace('"', '\\"') + '"'
    return value


def _join(*parts: str) -> str:
    return " ".join(part for part in parts if part)


def _flags(*pairs) -> List[str]:
    flags = []
    for flag, value in pairs:
        if isinstance(value, list):
            flags.extend(format_if_value(flag, item) for item in value)
        else:
            flags.append(format_if_value(flag, value))
    return [flag for flag in flags if flag]


def _pairs(keyword: str, pairs: Dict[str, str], bare_keys: bool = False) -> List[str]:
    line = keyword
    for key in sorted(pairs):
        value = pairs[key]
        if bare_keys and value == "":
            line += f" {key}"
        else:
            line += f" {key}={_format_value(value)}"
    return [line]


def _add(node: AddInstruction) -> List[str]:
    flags = _flags(
        ("keep-git-dir", node.keep_git_dir),
        ("checksum", node.checksum),
        ("chown", node.chown),
        ("chmod", node.chmod),
        ("link", node.link),
        ("exclude", node.exclude),
    )
    return [_join("ADD", *flags, *node.sources, node.destination)]


def _copy(node: CopyInstruction) -> List[str]:
    flags = _flags(
        ("keep-git-dir", node.keep_git_dir),
        ("chown", node.chown),
        ("chmod", node.chmod),
        ("link", node.link),
        ("parents", node.parents),
        ("exclude", node.exclude),
        ("from", node.from_stage),
    )
    return [_join("COPY", *flags, *node.sources, node.destination)]


def _arg(node: ArgInstruction) -> List[str]:
    return _pairs("ARG", node.pairs, bare_keys=True)


def _env(node: EnvInstruction) -> List[str]:
    return _pairs("ENV", node.pairs)


def _label(node: LabelInstruction) -> List[str]:
    return _pairs("LABEL", node.pairs)


def _cmd(node: CmdInstruction) -> List[str]:
    return [f"CMD {escape_list(node.command)}"]


def _entrypoint(node: EntrypointInstruction) -> List[str]:
    return [f"ENTRYPOINT {escape_list(node.command)}"]


def _shell(node: ShellInstruction) -> List[str]:
    return [f"SHELL {escape_list(node.command)}"]


def _volume(node: VolumeInstruction) -> List[str]:
    return [f"VOLUME {escape_list(node.mounts)}"]


def _expose(node: ExposeInstruction) -> List[str]:
    line = "EXPOSE"
    for port in node.ports:
        line += f" {port.port}/{port.protocol}"
    return [line]


def _healthcheck(node: HealthcheckInstruction) -> List[str]:
    if node.cancelled:
        return ["HEALTHCHECK NONE"]
    flags = _flags(
        ("interval", node.interval),
        ("timeout", node.timeout),
        ("start-period", node.start_period),
        ("start-interval", node.start_interval),
        ("retries", str(node.retries)),
    )
    return [_join("HEALTHCHECK", *flags, "CMD", escape_list(node.command))]


def _run(node: RunInstruction) -> List[str]:
    flags = _flags(
        ("mount", node.mounts),
        ("network", node.network),
        ("security", node.security),
        ("device", node.device),
    )
    if not node.is_heredoc:
        return [_join("RUN", *flags, escape_list(node.command))]

    marker = "<<-" if node.heredoc_strip else "<<"
    head = _join("RUN", *flags, node.heredoc_command, marker)
    if not node.command:
        return [head]
    return [f"{head} {node.command[0].lstrip()}"] + list(node.command[1:])


def _onbuild(node: OnbuildInstruction) -> List[str]:
    nested = reconstruct_instruction(node.trigger)
    nested[0] = f"ONBUILD {nested[0]}"
    return nested


def _maintainer(node: MaintainerInstruction) -> List[str]:
    return [f"MAINTAINER {node.name}"]


def _stopsignal(node: StopsignalInstruction) -> List[str]:
    return [f"STOPSIGNAL {node.signal}"]


def _user(node: UserInstruction) -> List[str]:
    return [f"USER {node.user}"]


def _workdir(node: WorkdirInstruction) -> List[str]:
    return [f"WORKDIR {node.path}"]


def _unknown(node: UnknownInstruction) -> List[str]:
    return node.text.split("\n")


def _comment(node: CommentInstruction) -> List[str]:
    return [f"# {node.text.strip()}".rstrip()]


def _empty_line(node: EmptyLine) -> List[str]:
    return [""]


_FORMATTERS: Dict[type, Callable[[Any], List[str]]] = {
    AddInstruction: _add,
    CopyInstruction: _copy,
    ArgInstruction: _arg,
    EnvInstruction: _env,
    LabelInstruction: _label,
    CmdInstruction: _cmd,
    EntrypointInstruction: _entrypoint,
    ShellInstruction: _shell,
    VolumeInstruction: _volume,
    ExposeInstruction: _expose,
    HealthcheckInstruction: _healthcheck,
    RunInstruction: _run,
    OnbuildInstruction: _onbuild,
    MaintainerInstruction: _maintainer,
    StopsignalInstruction: _stopsignal,
    UserInstruction: _user,
    WorkdirInstruction: _workdir,
    UnknownInstruction: _unknown,
    CommentInstruction: _comment,
    EmptyLine: _empty_line,
}


def reconstruct_instruction(node: Instruction) -> List[str]:
    """
    Produces the source lines for a single instruction.

    :param node: The instruction node.
    :return: One or more lines (heredocs span several).
    :raises TypeError: For objects that are not instruction nodes.
    """
    formatter = _FORMATTERS.get(type(node))
    if formatter is None:
        raise TypeError(f"Cannot reconstruct {type(node).__name__}")
    return formatter(node)


def reconstruct_stage_header(stage: StageNode) -> List[str]:
    """
    Produces the FROM line and directive comments that open a stage.
    The root stage has no FROM line.
    """
    lines = []
    if stage.base_image:
        platform = format_if_value("platform", stage.platform)
        name = f"AS {stage.name}" if stage.name else ""
        lines.append(_join("FROM", platform, stage.base_image, name))
    for key, value in stage.directives.items():
        lines.append(f"# {key}={value}")
    return lines


def reconstruct(root: StageNode) -> List[str]:
    """
    Regenerates Dockerfile lines for a stage and every stage after it.

    :param root: The first stage to emit, usually the root returned by the parser.
    :return: Lines, to be joined with newlines.
    """
    lines: List[str] = []
    for stage in root.iter_stages():
        lines.extend(reconstruct_stage_header(stage))
        for instruction in stage.instructions:
            lines.extend(reconstruct_instruction(instruction))
    return lines


class DockerfileConverter:
    """
    Writes the reconstructed form of a parsed Dockerfile to disk.
    """

    def __init__(self, root: StageNode):
        """
        :param root: Root of the parsed stage chain.
        """
        self.root = root

    def to_string(self) -> str:
        return "\n".join(reconstruct(self.root))

    def convert(self, output_dir: str, filename: str) -> str:
        """
        Writes the reconstructed Dockerfile.

        :param output_dir: Directory to write into; created if missing.
        :param filename: Name of the written file.
        :return: The path of the written file.
        """
        os.makedirs(output_dir, exist_ok=True)
        path = os.path.join(output_dir, filename)
        with open(path, "w") as f:
            f.write(self.to_string())
        logger.debug("Reconstructed Dockerfile written to %s", path)
        return path
