import pytest
from dfast.MODELS.dockerfile_ast import (
    AddInstruction,
    ArgInstruction,
    CommentInstruction,
    CopyInstruction,
    EmptyLine,
    HealthcheckInstruction,
    MaintainerInstruction,
    OnbuildInstruction,
    PortSpec,
    RunInstruction,
    UnknownInstruction,
)
from dfast.MODELS.parser_config import ParserConfig
from dfast.MODELS.token import Token, TokenKind
from dfast.PARSERS.dockerfile_parser import DockerfileParser, parse
from dfast.PARSERS.lexer import LexingError, lex


def parse_lines(lines, config=None):
    return parse(lex(lines), config)


def test_parse_from_string():
    content = (
        "\n"
        "    FROM python:3.9-slim\n"
        "    WORKDIR /app\n"
        "    COPY . .\n"
        "    RUN pip install -r requirements.txt \\\n"
        "        && echo \"done\"\n"
        "    ENV PORT=8080\n"
        "    CMD [\"python\", \"app.py\"]\n"
        "    "
    )
    parser = DockerfileParser()
    root = parser.parse_from_string(content)

    assert root.base_image == ""
    assert root.instructions == [EmptyLine()]

    stage = root.next
    assert stage.base_image == "python:3.9-slim"
    assert stage.next is None

    kinds = [i.kind for i in stage.instructions]
    assert kinds == ["WORKDIR", "COPY", "RUN", "ENV", "CMD", "EMPTY_LINE"]

    # Check CMD parsing (exec form)
    cmd_inst = stage.instructions[4]
    assert cmd_inst.command == ["python", "app.py"]

    # Check RUN with line continuation
    run_inst = stage.instructions[2]
    assert run_inst.command == ["pip", "install", "-r", "requirements.txt", "&&", "echo", '"done"']

    copy_inst = stage.instructions[1]
    assert copy_inst.sources == ["."]
    assert copy_inst.destination == "."

    assert stage.instructions[3].pairs == {"PORT": "8080"}


def test_parse_file(tmp_path):
    path = tmp_path / "Dockerfile"
    path.write_text("FROM alpine\nUSER app\n")
    root = DockerfileParser().parse(str(path))
    assert root.next.base_image == "alpine"
    assert root.next.instructions[0].user == "app"


def test_parse_propagates_lexing_error():
    with pytest.raises(LexingError):
        DockerfileParser().parse_from_string("FROM a\nBOGUS")


def test_empty_input():
    root = parse_lines([])
    assert root.base_image == ""
    assert root.instructions == []
    assert root.next is None


def test_named_stage():
    root = parse_lines(["FROM alpine:3.19 AS base"])
    assert root.next.name == "base"
    assert root.next.base_image == "alpine:3.19"


def test_stage_name_is_case_insensitive_keyword():
    root = parse_lines(["FROM alpine as builder"])
    assert root.next.name == "builder"
    assert root.next.base_image == "alpine"


def test_anonymous_stages_get_distinct_ids():
    root = parse_lines(["FROM alpine", "FROM alpine"])
    first, second = root.next, root.next.next
    assert first.name is None
    assert first.id != second.id
    assert root.id not in (first.id, second.id)


def test_platform():
    stage = parse_lines(["FROM --platform=linux/amd64 golang AS build"]).next
    assert stage.platform == "linux/amd64"
    assert stage.base_image == "golang"
    assert stage.name == "build"


def test_copy_from_links_stages():
    root = parse_lines([
        "FROM a AS base",
        "FROM b AS next",
        "COPY --from=base ./x ./y",
        "COPY --from=BASE ./z ./y",
    ])
    base, following = root.next, root.next.next
    assert base.referenced_by == {following.id}
    assert following.referenced_by == set()
    assert root.find_stage("NEXT") is following


def test_copy_from_later_stage_or_image_is_not_linked():
    root = parse_lines([
        "FROM a AS first",
        "COPY --from=later /x /y",
        "COPY --from=nginx:latest /etc/nginx /etc/nginx",
        "FROM b AS later",
    ])
    first = root.next
    assert first.instructions[0].from_stage == "later"
    assert first.instructions[1].from_stage == "nginx:latest"
    assert root.next.next.referenced_by == set()
    assert first.referenced_by == set()


def test_consecutive_args_are_folded():
    stage = parse_lines(["FROM a", "ARG xy=z", "ARG abc=def"]).next
    assert stage.instructions == [ArgInstruction(pairs={"xy": "z", "abc": "def"})]


def test_args_before_from_belong_to_root():
    root = parse_lines(["ARG VERSION=1", "FROM alpine:${VERSION}"])
    assert root.instructions == [ArgInstruction(pairs={"VERSION": "1"})]
    assert root.next.base_image == "alpine:${VERSION}"


def test_env_and_label():
    stage = parse_lines(["FROM a", 'ENV A=1 B="x y"', "LABEL version=1.0"]).next
    assert stage.instructions[0].pairs == {"A": "1", "B": '"x y"'}
    assert stage.instructions[1].pairs == {"version": "1.0"}


def test_add():
    stage = parse_lines(["FROM a", "ADD ./source1 ./source2 ../../dest"]).next
    assert stage.instructions == [
        AddInstruction(sources=["./source1", "./source2"], destination="../../dest")
    ]


def test_add_flags():
    stage = parse_lines([
        "FROM a",
        "ADD --keep-git-dir --checksum=sha256:abc --exclude=*.md --exclude=*.txt src /dst",
    ]).next
    node = stage.instructions[0]
    assert node.keep_git_dir is True
    assert node.checksum == "sha256:abc"
    assert node.exclude == ["*.md", "*.txt"]
    assert node.sources == ["src"]
    assert node.destination == "/dst"


def test_copy_flags():
    node = parse_lines(["FROM a", "COPY --chown=app:app --chmod=644 --link --parents a b /c"]).next.instructions[0]
    assert node == CopyInstruction(
        sources=["a", "b"],
        destination="/c",
        chown="app:app",
        chmod="644",
        link=True,
        parents=True,
    )


def test_copy_heredoc_is_kept_as_text():
    stage = parse_lines(["FROM a", "COPY <<EOF /app/x", "hello", "EOF"]).next
    assert stage.instructions == [UnknownInstruction(text="COPY <<EOF /app/x\nhello\nEOF")]


def test_expose():
    node = parse_lines(["FROM a", "EXPOSE 80 53/udp 443/TCP"]).next.instructions[0]
    assert node.ports == [
        PortSpec(port="80", protocol="tcp"),
        PortSpec(port="53", protocol="udp"),
        PortSpec(port="443", protocol="tcp"),
    ]


def test_healthcheck_none():
    node = parse_lines(["FROM a", "HEALTHCHECK none"]).next.instructions[0]
    assert node == HealthcheckInstruction(cancelled=True)


def test_healthcheck_flags():
    node = parse_lines([
        "FROM a",
        "HEALTHCHECK --interval=5m --retries=5 CMD curl -f http://localhost/",
    ]).next.instructions[0]
    assert node.cancelled is False
    assert node.interval == "5m"
    assert node.timeout == "30s"
    assert node.start_period == "0s"
    assert node.start_interval == "5s"
    assert node.retries == 5
    assert node.command == ["curl", "-f", "http://localhost/"]


def test_healthcheck_invalid_retries():
    node = parse_lines(["FROM a", "HEALTHCHECK --retries=abc CMD true"]).next.instructions[0]
    assert node.retries == 3


def test_run_flags():
    node = parse_lines([
        "FROM a",
        "RUN --mount=type=cache,target=/a --mount=type=secret,id=b --network=none --security=insecure make",
    ]).next.instructions[0]
    assert node.mounts == ["type=cache,target=/a", "type=secret,id=b"]
    assert node.network == "none"
    assert node.security == "insecure"
    assert node.command == ["make"]
    assert node.is_heredoc is False


def test_run_heredoc():
    node = parse_lines(["FROM a", "RUN python3 <<-EOF", "print(1)", "EOF"]).next.instructions[0]
    assert node == RunInstruction(
        command=["EOF", "print(1)", "EOF"],
        is_heredoc=True,
        heredoc_strip=True,
        heredoc_command="python3",
    )


def test_onbuild():
    node = parse_lines(["FROM a", "ONBUILD MAINTAINER R2D2"]).next.instructions[0]
    assert node == OnbuildInstruction(trigger=MaintainerInstruction(name="R2D2"))


def test_onbuild_unknown_trigger():
    node = parse_lines(["FROM a", "ONBUILD BOGUS x"]).next.instructions[0]
    assert node == OnbuildInstruction(trigger=UnknownInstruction(text="BOGUS x"))


def test_onbuild_from_is_not_a_trigger():
    node = parse_lines(["FROM a", "ONBUILD FROM b"]).next.instructions[0]
    assert node == OnbuildInstruction(trigger=UnknownInstruction(text="FROM b"))


def test_onbuild_heredoc():
    node = parse_lines(["FROM a", "ONBUILD RUN <<EOF", "echo hi", "EOF"]).next.instructions[0]
    assert isinstance(node, OnbuildInstruction)
    assert node.trigger == RunInstruction(command=["EOF", "echo hi", "EOF"], is_heredoc=True)


def test_onbuild_depth_limit():
    config = ParserConfig(max_onbuild_depth=1)
    node = parse_lines(["FROM a", "ONBUILD ONBUILD RUN x"], config).next.instructions[0]
    assert node == OnbuildInstruction(
        trigger=OnbuildInstruction(trigger=UnknownInstruction(text="RUN x"))
    )

    config = ParserConfig(max_onbuild_depth=0)
    node = parse_lines(["FROM a", "ONBUILD ONBUILD RUN x"], config).next.instructions[0]
    assert node == OnbuildInstruction(trigger=UnknownInstruction(text="ONBUILD RUN x"))


def test_comments_and_empty_lines():
    stage = parse_lines(["FROM a", "", "# hello", "RUN x"]).next
    assert stage.instructions[:2] == [EmptyLine(), CommentInstruction(text="hello")]


def test_parser_directives():
    root = parse_lines(["# syntax=docker/dockerfile:1", "FROM a", "# check=skip=all"])
    assert root.directives == {"syntax": "docker/dockerfile:1"}
    assert root.next.directives == {"check": "skip=all"}
    assert root.instructions == []


def test_unexpected_tokens_are_skipped():
    root = parse([Token(kind=TokenKind.EOF), Token(kind=TokenKind.FROM, content="a")])
    assert root.instructions == []
    assert root.next.base_image == "a"


def test_instructions_are_frozen():
    node = parse_lines(["FROM a", "USER app"]).next.instructions[0]
    with pytest.raises(Exception):
        node.user = "root"


@pytest.mark.parametrize("line", ["FROM img AS", "FROM img as"])
def test_from_with_as_but_no_name(line):
    stage = parse_lines([line]).next
    assert stage.name is None
    assert stage.base_image == "img"


def test_expose_other_protocols_become_udp():
    node = parse_lines(["FROM a", "EXPOSE 80/sctp 81/UDP"]).next.instructions[0]
    assert node.ports == [PortSpec(port="80", protocol="udp"), PortSpec(port="81", protocol="udp")]


def test_healthcheck_exec_form():
    node = parse_lines(["FROM a", 'HEALTHCHECK CMD ["curl", "-f", "http://localhost/"]']).next.instructions[0]
    assert node.command == ["curl", "-f", "http://localhost/"]


def test_run_heredoc_keeps_indentation():
    node = parse_lines(["FROM a", "RUN python3 <<EOF", "for i in range(2):", "    print(i)", "EOF"]).next.instructions[0]
    assert node.command == ["EOF", "for i in range(2):", "    print(i)", "EOF"]
