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
Converters for displaying a parsed stage chain as a text tree or as YAML.
"""
from typing import Any, Dict, List

import yaml
from jinja2 import Template

from ..MODELS.dockerfile_ast import Instruction, StageNode

TREE_TEMPLATE = """\
{% for stage in stages %}
Stage: {{ header(stage) }}
{% for key, value in stage.directives.items() %}
 # {{ key }}={{ value }}
{% endfor %}
{% for instruction in stage.instructions %}
 > {{ describe(instruction) }}
{% endfor %}
{% endfor %}
"""


def header(stage: StageNode) -> str:
    if stage.referenced_by:
        return f"{stage.label} (referenced by {len(stage.referenced_by)})"
    return stage.label


def describe(node: Instruction) -> str:
    """
    One-line summary of an instruction: its kind followed by its fields.
    """
    fields = " ".join(f"{name}={value!r}" for name, value in node if name != "kind")
    return f"{node.kind} {fields}".rstrip()


class TreeRenderer:
    """
    Renders the stage chain as an indented text tree.
    """

    def __init__(self):
        self.template = Template(TREE_TEMPLATE, trim_blocks=True, lstrip_blocks=True)

    def render(self, root: StageNode) -> str:
        """
        Renders every stage starting at ``root``.

        :param root: Root of the parsed stage chain.
        :return: The rendered tree.
        """
        return self.template.render(stages=list(root.iter_stages()), header=header, describe=describe)


def to_dict(root: StageNode) -> List[Dict[str, Any]]:
    """
    Flattens the stage chain into a list of plain dictionaries.
    The ``next`` link is replaced by list order.
    """
    stages = []
    for stage in root.iter_stages():
        data = stage.model_dump(mode="json", exclude={"next"})
        data["referenced_by"] = sorted(stage.referenced_by)
        stages.append(data)
    return stages


def to_yaml(root: StageNode) -> str:
    """
    Dumps the stage chain as YAML.
    """
    return yaml.safe_dump({"stages": to_dict(root)}, sort_keys=False)
