import stat
from pathlib import Path
from typing import Callable

import pytest
from coreason_judger.exceptions import StagingError
from coreason_judger.models import (
    CheckerRequest,
    CompileRequest,
    FileIORunRequest,
    Phase,
    StdIORunRequest,
)
from coreason_judger.staging import IOStager
from coreason_judger.workspace import TaskWorkspace, WorkspaceHandle


@pytest.fixture
def handle(tmp_path: Path) -> WorkspaceHandle:
    return TaskWorkspace(tmp_path / "ws").create("task1")


def _mode(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


def test_stage_compile_copies_source(handle: WorkspaceHandle, write_file: Callable[..., Path]) -> None:
    source = write_file("add.cpp", "int main() { return 0; }")

    staged = IOStager().stage(CompileRequest(source_path=source, output_path=Path("out")), handle)

    assert staged.phase is Phase.COMPILE
    assert staged.source_name == "add.cpp"
    assert handle.work_path("add.cpp").read_text() == "int main() { return 0; }"
    assert staged.error_capture == handle.data_path("error.txt")
    assert staged.output_capture is None


def test_stage_stdio(handle: WorkspaceHandle, write_file: Callable[..., Path]) -> None:
    program = write_file("add", "#!/bin/sh\n")
    data = write_file("input.txt", "123 456\n")

    staged = IOStager().stage(StdIORunRequest(executable_path=program, input_path=data), handle)

    assert _mode(handle.work_path("program")) == 0o755
    assert handle.data_path("input.txt").read_text() == "123 456\n"
    assert handle.data_path("output.txt").read_text() == ""
    assert _mode(handle.data_path("output.txt")) == 0o666
    assert _mode(handle.data_path("error.txt")) == 0o666
    assert staged.output_capture == handle.data_path("output.txt")
    assert staged.error_capture == handle.data_path("error.txt")
    # Inputs never land in the mounted tree
    assert sorted(p.name for p in handle.work_dir.iterdir()) == ["program"]


def test_stage_fileio(handle: WorkspaceHandle, write_file: Callable[..., Path]) -> None:
    program = write_file("add", "#!/bin/sh\n")
    data = write_file("tests.in", "1 2\n")
    request = FileIORunRequest(
        executable_path=program,
        input_path=data,
        input_file_name="add.in",
        output_file_name="add.out",
    )

    staged = IOStager().stage(request, handle)

    assert handle.work_path("add.in").read_text() == "1 2\n"
    assert _mode(handle.work_path("program")) == 0o755
    assert _mode(handle.work_dir) == 0o777
    assert not handle.work_path("add.out").exists()
    assert staged.input_name == "add.in"
    assert staged.output_capture == handle.work_path("add.out")
    assert staged.error_capture == handle.data_path("error.txt")
    assert _mode(handle.data_path("error.txt")) == 0o666


def test_stage_checker(handle: WorkspaceHandle, write_file: Callable[..., Path]) -> None:
    request = CheckerRequest(
        checker_path=write_file("chk", "#!/bin/sh\n"),
        input_path=write_file("in", "1 2\n"),
        output_path=write_file("out", "3\n"),
        answer_path=write_file("ans", "3\n"),
    )

    staged = IOStager().stage(request, handle)

    assert sorted(p.name for p in handle.work_dir.iterdir()) == [
        "answer.txt",
        "checker",
        "input.txt",
        "output.txt",
    ]
    assert _mode(handle.work_path("checker")) == 0o755
    assert handle.work_path("output.txt").read_text() == "3\n"
    assert staged.output_capture == handle.data_path("output.txt")
    assert handle.data_path("error.txt").exists()


def test_missing_input_raises_staging_error(handle: WorkspaceHandle, tmp_path: Path) -> None:
    request = StdIORunRequest(executable_path=tmp_path / "missing", input_path=tmp_path / "missing.txt")

    with pytest.raises(StagingError, match="missing"):
        IOStager().stage(request, handle)


@pytest.mark.parametrize("name", ["", ".", "..", "../escape.txt", "dir/input.txt"])
def test_fileio_rejects_unsafe_names(handle: WorkspaceHandle, write_file: Callable[..., Path], name: str) -> None:
    request = FileIORunRequest(
        executable_path=write_file("add", "#!/bin/sh\n"),
        input_path=write_file("in", "1 2\n"),
        input_file_name=name,
        output_file_name="output.txt",
    )

    with pytest.raises(StagingError, match="Invalid file name"):
        IOStager().stage(request, handle)
