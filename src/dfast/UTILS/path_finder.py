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
Utilities for finding Dockerfiles on disk.
"""
import os
from typing import List

DEFAULT_SUFFIX = ".Dockerfile"
DEFAULT_NAME = "Dockerfile"


def is_dockerfile_name(name: str, suffix: str = DEFAULT_SUFFIX) -> bool:
    """
    Checks if a file name looks like a Dockerfile.
    """
    return name == DEFAULT_NAME or name.endswith(suffix)


def find_dockerfiles(path: str, recursive: bool = False, suffix: str = DEFAULT_SUFFIX) -> List[str]:
    """
    Lists the Dockerfiles to parse for a path.

    A file is returned as is. For a directory, files named ``Dockerfile`` or
    ending with the suffix are returned in sorted order; sub-directories are
    only searched when ``recursive`` is set.

    :param path: File or directory.
    :param recursive: Descend into sub-directories.
    :param suffix: File name suffix identifying Dockerfiles.
    :return: Paths of the Dockerfiles found.
    :raises FileNotFoundError: If the path does not exist.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(path)
    if os.path.isfile(path):
        return [path]

    found = []
    pending = [path]
    while pending:
        directory = pending.pop()
        for entry in sorted(os.scandir(directory), key=lambda e: e.name):
            if entry.is_dir():
                if recursive:
                    pending.append(entry.path)
            elif is_dockerfile_name(entry.name, suffix):
                found.append(entry.path)
    return sorted(found)
