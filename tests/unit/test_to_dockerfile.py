import pytest
from dfast.CONVERTERS.to_dockerfile import (
    DockerfileConverter,
    format_if_value,
    reconstruct,
    reconstruct_instruction,
)
from dfast.MODELS.dockerfile_ast import (
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


@pytest.mark.parametrize(
    "flag, value, expected",
    [
        ("link", True, "--link=true"),
        ("link", False, ""),
        ("from", "", ""),
        ("from", "build", "--from=build"),
        ("retries", "0", "--retries=0"),
    ],
)
def test_format_if_value(flag, value, expected):
    assert format_if_value(flag, value) == expected


@pytest.mark.parametrize(
    "node, expected",
    [
        (
            AddInstruction(sources=["./abc", "./def"], destination="/home/new", keep_git_dir=True, checksum="checksum"),
            ["ADD --keep-git-dir=true --checksum=checksum ./abc ./def /home/new"],
        ),
        (
            AddInstruction(sources=["a"], destination="/b", chown="1:1", chmod="755", link=True, exclude=["*.md", "*.txt"]),
            ["ADD --chown=1:1 --chmod=755 --link=true --exclude=*.md --exclude=*.txt a /b"],
        ),
        (ArgInstruction(pairs={"xy": "z", "abc": "def"}), ["ARG abc=def xy=z"]),
        (ArgInstruction(pairs={"foo": ""}), ["ARG foo"]),
        (CmdInstruction(command=["curl", "ssh-coffee.dev", "&&", "whoami"]), ['CMD ["curl","ssh-coffee.dev","&&","whoami"]']),
        (
            CopyInstruction(sources=["./abc", "./def"], destination="/home/new", link=True, from_stage="build"),
            ["COPY --link=true --from=build ./abc ./def /home/new"],
        ),
        (
            CopyInstruction(sources=["a"], destination="/b", chown="app", parents=True, exclude=["*.log"]),
            ["COPY --chown=app --parents=true --exclude=*.log a /b"],
        ),
        (EntrypointInstruction(command=["/bin/sh", "-c"]), ['ENTRYPOINT ["/bin/sh","-c"]']),
        (EnvInstruction(pairs={"B": "2", "A": "1"}), ["ENV A=1 B=2"]),
        (EnvInstruction(pairs={"A": "x y"}), ['ENV A="x y"']),
        (EnvInstruction(pairs={"A": '"x y"'}), ['ENV A="x y"']),
        (
            ExposeInstruction(ports=[PortSpec(port="8080", protocol="udp"), PortSpec(port="3000")]),
            ["EXPOSE 8080/udp 3000/tcp"],
        ),
        (
            HealthcheckInstruction(
                interval="31s",
                timeout="32s",
                start_period="33s",
                start_interval="34s",
                retries=3,
                command=["curl", "localhost:8080/health"],
            ),
            ['HEALTHCHECK --interval=31s --timeout=32s --start-period=33s --start-interval=34s --retries=3 CMD ["curl","localhost:8080/health"]'],
        ),
        (HealthcheckInstruction(cancelled=True, command=["ignored"]), ["HEALTHCHECK NONE"]),
        (LabelInstruction(pairs={"version": "1.0"}), ["LABEL version=1.0"]),
        (MaintainerInstruction(name="Peter Lustig"), ["MAINTAINER Peter Lustig"]),
        (OnbuildInstruction(trigger=MaintainerInstruction(name="R2D2")), ["ONBUILD MAINTAINER R2D2"]),
        (
            OnbuildInstruction(
                trigger=RunInstruction(
                    command=["EOF", "apt install curl", "curl ssh-coffee.dev", "EOF"],
                    is_heredoc=True,
                )
            ),
            ["ONBUILD RUN << EOF", "apt install curl", "curl ssh-coffee.dev", "EOF"],
        ),
        (RunInstruction(command=["curl", "google.com"]), ['RUN ["curl","google.com"]']),
        (
            RunInstruction(command=["pip", "install", "x"], mounts=["type=cache,target=/root/.cache"], network="none"),
            ['RUN --mount=type=cache,target=/root/.cache --network=none ["pip","install","x"]'],
        ),
        (
            RunInstruction(command=["EOF", "echo hi", "EOF"], is_heredoc=True),
            ["RUN << EOF", "echo hi", "EOF"],
        ),
        (
            RunInstruction(command=["EOF", "print(1)", "EOF"], is_heredoc=True, heredoc_strip=True, heredoc_command="python3"),
            ["RUN python3 <<- EOF", "print(1)", "EOF"],
        ),
        (ShellInstruction(command=["/bin/bash", "-c"]), ['SHELL ["/bin/bash","-c"]']),
        (StopsignalInstruction(signal="SIGKILL"), ["STOPSIGNAL SIGKILL"]),
        (UserInstruction(user="app"), ["USER app"]),
        (VolumeInstruction(mounts=["/a", "/b"]), ['VOLUME ["/a","/b"]']),
        (WorkdirInstruction(path="/app"), ["WORKDIR /app"]),
        (CommentInstruction(text="Hello"), ["# Hello"]),
        (CommentInstruction(text=""), ["#"]),
        (UnknownInstruction(text="CUSTOM --flag command"), ["CUSTOM --flag command"]),
        (UnknownInstruction(text="COPY <<EOF /x\nhi\nEOF"), ["COPY <<EOF /x", "hi", "EOF"]),
        (EmptyLine(), [""]),
    ],
)
def test_reconstruct_instruction(node, expected):
    assert reconstruct_instruction(node) == expected


def test_reconstruct_instruction_rejects_other_objects():
    with pytest.raises(TypeError):
        reconstruct_instruction("RUN x")


def test_reconstruct_named_stage():
    root = StageNode()
    root.next = StageNode(name="base", base_image="img:latest")
    assert reconstruct(root) == ["FROM img:latest AS base"]


def test_reconstruct_stage_chain():
    root = StageNode(
        instructions=[ArgInstruction(pairs={"V": "1"})],
        directives={"syntax": "docker/dockerfile:1"},
    )
    stage = StageNode(base_image="golang", name="build", platform="linux/arm64")
    stage.instructions.extend([
        OnbuildInstruction(trigger=MaintainerInstruction(name="R2D2")),
        EmptyLine(),
        OnbuildInstruction(trigger=MaintainerInstruction(name="R2D2")),
    ])
    root.next = stage
    root.next.next = StageNode(base_image="scratch", directives={"check": "skip=all"})

    assert reconstruct(root) == [
        "# syntax=docker/dockerfile:1",
        "ARG V=1",
        "FROM --platform=linux/arm64 golang AS build",
        "ONBUILD MAINTAINER R2D2",
        "",
        "ONBUILD MAINTAINER R2D2",
        "FROM scratch",
        "# check=skip=all",
    ]


def test_reconstruct_empty_root():
    assert reconstruct(StageNode()) == []


def test_converter_writes_file(tmp_path):
    root = StageNode(next=StageNode(base_image="alpine", instructions=[UserInstruction(user="app")]))
    converter = DockerfileConverter(root)
    assert converter.to_string() == "FROM alpine\nUSER app"

    path = converter.convert(str(tmp_path / "out"), "app.Dockerfile")
    with open(path) as f:
        assert f.read() == "FROM alpine\nUSER app"
