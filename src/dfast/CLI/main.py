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
Command Line Interface for DFAST.
"""
import logging
import os
import time

import click

from ..CONVERTERS.to_dockerfile import DockerfileConverter
from ..CONVERTERS.to_tree import TreeRenderer, to_yaml
from ..MODELS.parser_config import ParserConfig
from ..PARSERS.dockerfile_parser import DockerfileParser
from ..PARSERS.lexer import LexingError
from ..UTILS.path_finder import find_dockerfiles

DEFAULTS = ParserConfig()


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, verbose):
    """
    DFAST - Dockerfile syntax tree parser.

    Parses Dockerfiles into a chain of build stages and writes them back out.
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    ctx.ensure_object(dict)


@cli.command(name='parse')
@click.argument('path')
@click.option('--recursive', '-r', is_flag=True, help='Search sub-directories')
@click.option('--output', '-o', is_flag=True, help='Write reconstructed Dockerfiles')
@click.option('--out-dir', default=DEFAULTS.output_dir, help='Output directory for reconstructed files')
@click.option('--format', '-f', 'fmt', type=click.Choice(['tree', 'yaml', 'none']), default='tree')
@click.option('--suffix', default=DEFAULTS.dockerfile_suffix, help='Suffix of Dockerfiles in directories')
@click.option('--max-onbuild-depth', type=int, default=DEFAULTS.max_onbuild_depth)
@click.pass_context
def parse_command(ctx, path, recursive, output, out_dir, fmt, suffix, max_onbuild_depth):
    """Parse Dockerfiles and show their syntax tree."""
    start = time.perf_counter()
    config = ParserConfig(
        max_onbuild_depth=max_onbuild_depth,
        dockerfile_suffix=suffix,
        output_dir=out_dir,
    )

    try:
        paths = find_dockerfiles(path, recursive, config.dockerfile_suffix)
    except FileNotFoundError:
        click.echo(f"Error: {path} not found.")
        ctx.exit(1)

    parser = DockerfileParser(config)
    renderer = TreeRenderer()
    failed = 0

    for dockerfile in paths:
        click.echo(f"---\t{dockerfile}\t---")
        try:
            root = parser.parse(dockerfile)
        except (LexingError, OSError) as e:
            click.echo(f"Error: {e}")
            failed += 1
            continue

        if fmt == 'tree':
            click.echo(renderer.render(root), nl=False)
        elif fmt == 'yaml':
            click.echo(to_yaml(root), nl=False)

        if output:
            DockerfileConverter(root).convert(config.output_dir, os.path.basename(dockerfile))

    elapsed = time.perf_counter() - start
    click.echo(f"Parsing {len(paths)} files finished in {elapsed:.3f}s")
    if failed:
        ctx.exit(1)


@cli.command(name='reconstruct')
@click.argument('path')
@click.pass_context
def reconstruct_command(ctx, path):
    """Print the reconstructed form of a Dockerfile."""
    try:
        root = DockerfileParser().parse(path)
    except FileNotFoundError:
        click.echo(f"Error: {path} not found.")
        ctx.exit(1)
    except LexingError as e:
        click.echo(f"Error: {e}")
        ctx.exit(1)

    click.echo(DockerfileConverter(root).to_string())


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
