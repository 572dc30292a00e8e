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
Models for the Dockerfile Abstract Syntax Tree.

A parsed Dockerfile is a chain of StageNode objects linked through ``next``.
The first node is a synthetic root without a base image that holds whatever
precedes the first FROM. Each stage owns its instructions, which are frozen
once the parser has built them.
"""
import uuid
from typing import Annotated, Dict, Iterator, List, Literal, Optional, Set, Union
from pydantic import BaseModel, ConfigDict, Field


class Instruction(BaseModel):
    """
    Base class of every instruction variant.
    """
    model_config = ConfigDict(frozen=True)


class AddInstruction(Instruction):
    """ADD [flags] <src>... <dest>"""
    kind: Literal["ADD"] = "ADD"
    sources: List[str] = []
    destination: str = ""
    keep_git_dir: bool = False
    checksum: str = ""
    chown: str = ""
    chmod: str = ""
    link: bool = False
    exclude: List[str] = []


class CopyInstruction(Instruction):
    """COPY [flags] <src>... <dest>"""
    kind: Literal["COPY"] = "COPY"
    sources: List[str] = []
    destination: str = ""
    keep_git_dir: bool = False
    chown: str = ""
    chmod: str = ""
    link: bool = False
    parents: bool = False
    exclude: List[str] = []
    from_stage: str = ""  # --from, either a stage name or an image


class ArgInstruction(Instruction):
    kind: Literal["ARG"] = "ARG"
    pairs: Dict[str, str] = {}


class EnvInstruction(Instruction):
    kind: Literal["ENV"] = "ENV"
    pairs: Dict[str, str] = {}


class LabelInstruction(Instruction):
    kind: Literal["LABEL"] = "LABEL"
    pairs: Dict[str, str] = {}


class CmdInstruction(Instruction):
    kind: Literal["CMD"] = "CMD"
    command: List[str] = []


class EntrypointInstruction(Instruction):
    kind: Literal["ENTRYPOINT"] = "ENTRYPOINT"
    command: List[str] = []


class ShellInstruction(Instruction):
    kind: Literal["SHELL"] = "SHELL"
    command: List[str] = []


class VolumeInstruction(Instruction):
    kind: Literal["VOLUME"] = "VOLUME"
    mounts: List[str] = []


class PortSpec(BaseModel):
    """
    A single exposed port, e.g. ``8080/udp``.
    """
    model_config = ConfigDict(frozen=True)

    port: str
    protocol: str = "tcp"


class ExposeInstruction(Instruction):
    kind: Literal["EXPOSE"] = "EXPOSE"
    ports: List[PortSpec] = []


class HealthcheckInstruction(Instruction):
    """
    HEALTHCHECK NONE, or HEALTHCHECK [flags] CMD <command>.
    ``command`` holds the words after CMD.
    """
    kind: Literal["HEALTHCHECK"] = "HEALTHCHECK"
    cancelled: bool = False
    interval: str = "30s"
    timeout: str = "30s"
    start_period: str = "0s"
    start_interval: str = "5s"
    retries: int = 3
    command: List[str] = []


class RunInstruction(Instruction):
    """
    RUN in exec/word form, or with a heredoc body.

    For heredocs ``command`` holds the captured lines verbatim: the remainder
    of the opening line after the ``<<`` marker, the body, and the terminator.
    ``heredoc_command`` is whatever preceded the marker (e.g. ``python3``).
    """
    kind: Literal["RUN"] = "RUN"
    command: List[str] = []
    is_heredoc: bool = False
    heredoc_strip: bool = False
    heredoc_command: str = ""
    mounts: List[str] = []
    network: str = ""
    security: str = ""
    device: str = ""


class MaintainerInstruction(Instruction):
    kind: Literal["MAINTAINER"] = "MAINTAINER"
    name: str = ""


class StopsignalInstruction(Instruction):
    kind: Literal["STOPSIGNAL"] = "STOPSIGNAL"
    signal: str = ""


class UserInstruction(Instruction):
    kind: Literal["USER"] = "USER"
    user: str = ""


class WorkdirInstruction(Instruction):
    kind: Literal["WORKDIR"] = "WORKDIR"
    path: str = ""


class OnbuildInstruction(Instruction):
    """
    ONBUILD wrapping exactly one trigger instruction.
    """
    kind: Literal["ONBUILD"] = "ONBUILD"
    trigger: "InstructionNode"


class UnknownInstruction(Instruction):
    """
    Free text kept verbatim when an instruction could not be understood.
    Multiple source lines are joined with newlines.
    """
    kind: Literal["UNKNOWN"] = "UNKNOWN"
    text: str = ""


class CommentInstruction(Instruction):
    kind: Literal["COMMENT"] = "COMMENT"
    text: str = ""


class EmptyLine(Instruction):
    kind: Literal["EMPTY_LINE"] = "EMPTY_LINE"


InstructionNode = Annotated[
    Union[
        AddInstruction,
        CopyInstruction,
        ArgInstruction,
        EnvInstruction,
        LabelInstruction,
        CmdInstruction,
        EntrypointInstruction,
        ShellInstruction,
        VolumeInstruction,
        ExposeInstruction,
        HealthcheckInstruction,
        RunInstruction,
        MaintainerInstruction,
        StopsignalInstruction,
        UserInstruction,
        WorkdirInstruction,
        OnbuildInstruction,
        UnknownInstruction,
        CommentInstruction,
        EmptyLine,
    ],
    Field(discriminator="kind"),
]

OnbuildInstruction.model_rebuild()


def _new_stage_id() -> str:
    return uuid.uuid4().hex


class StageNode(BaseModel):
    """
    One FROM-delimited build stage.
    """
    id: str = Field(default_factory=_new_stage_id)
    name: Optional[str] = None
    base_image: str = ""
    platform: str = ""  # FROM --platform
    instructions: List[InstructionNode] = []
    next: Optional["StageNode"] = None
    referenced_by: Set[str] = set()
    directives: Dict[str, str] = {}

    def iter_stages(self) -> Iterator["StageNode"]:
        """
        Walks this stage and every following stage in file order.
        """
        stage: Optional[StageNode] = self
        while stage is not None:
            yield stage
            stage = stage.next

    def find_stage(self, name: str) -> Optional["StageNode"]:
        """
        Finds a named stage in the chain, ignoring case.
        """
        for stage in self.iter_stages():
            if stage.name is not None and stage.name.lower() == name.lower():
                return stage
        return None

    @property
    def label(self) -> str:
        """Human readable description used by the tree display."""
        if not self.base_image:
            return "root"
        if self.name:
            return f"{self.base_image} AS {self.name}"
        return self.base_image


StageNode.model_rebuild()
