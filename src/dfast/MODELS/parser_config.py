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
Configuration shared by the parser, the file helpers and the CLI.
"""
from pydantic import BaseModel, Field


class ParserConfig(BaseModel):
    """
    Tunables for parsing Dockerfiles.
    """
    # ONBUILD triggers nested deeper than this are kept as free text.
    max_onbuild_depth: int = Field(default=8, ge=0)

    # Directory scans pick up files ending with this suffix (and plain "Dockerfile").
    dockerfile_suffix: str = ".Dockerfile"

    # Where reconstructed files are written by the CLI.
    output_dir: str = "out"
