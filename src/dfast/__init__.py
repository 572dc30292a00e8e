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
DFAST - Dockerfile Abstract Syntax Tree

Parses Dockerfiles into a chain of typed build stages and instructions,
and regenerates Dockerfile text from that tree.
"""

__version__ = "0.1.0"
__author__ = "Michael Maillet, Damien Davison, Sacha Davison"
__license__ = "Apache-2.0"

from .PARSERS.lexer import LexingError, lex
from .PARSERS.dockerfile_parser import DockerfileParser, parse
from .CONVERTERS.to_dockerfile import reconstruct

__all__ = ["LexingError", "lex", "parse", "reconstruct", "DockerfileParser"]
