# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judger

"""Populates task workspaces with the artifacts each phase needs."""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from coreason_judger.exceptions import StagingError
from coreason_judger.models import (
    CheckerRequest,
    CompileRequest,
    FileIORunRequest,
    Phase,
    StdIORunRequest,
)
from coreason_judger.workspace import WorkspaceHandle

PROGRAM_NAME = "program"
CHECKER_NAME = "checker"
INPUT_NAME = "input.txt"
OUTPUT_NAME = "output.txt"
ANSWER_NAME = "answer.txt"
ERROR_NAME = "error.txt"

EXECUTABLE_MODE = 0o755
READABLE_MODE = 0o644
WRITABLE_MODE = 0o666
SHARED_DIR_MODE = 0o777


@dataclass(frozen=True)
class StagedTask:
    """What was placed in a workspace, and where results will appear.

    Attributes:
        phase: The phase the workspace was staged for.
        source_name: Source file name inside ``work/`` (compile only).
        input_name: Input file name the program sees (fileio only).
        output_capture: Host file holding the program output, if any.
        error_capture: Host file holding standard error.
    """

    phase: Phase
    source_name: str | None = None
    input_name: str | None = None
    output_capture: Path | None = None
    error_capture: Path | None = None


def _copy(src: Path, dst: Path, mode: int) -> None:
    try:
        shutil.copyfile(src, dst)
        os.chmod(dst, mode)
    except OSError as e:
        raise StagingError(f"Failed to stage {src} as {dst.name}: {e}") from e


def _touch(path: Path, mode: int) -> None:
    try:
        path.write_bytes(b"")
        os.chmod(path, mode)
    except OSError as e:
        raise StagingError(f"Failed to create placeholder {path}: {e}") from e


def _check_file_name(name: str) -> str:
    if not name or name in (".", "..") or "/" in name or "\0" in name:
        raise StagingError(f"Invalid file name for the sandbox: {name!r}")
    return name


class IOStager:
    """Copies phase inputs into a workspace and prepares output placeholders."""

    def stage(
        self,
        request: CompileRequest | StdIORunRequest | FileIORunRequest | CheckerRequest,
        handle: WorkspaceHandle,
    ) -> StagedTask:
        """Dispatch to the staging recipe of ``request.phase``.

        Raises:
            StagingError: If any artifact cannot be copied or created.
        """
        logger.debug(f"Staging {request.phase.value} task {handle.task_id}")
        if isinstance(request, CompileRequest):
            return self.stage_compile(request, handle)
        if isinstance(request, StdIORunRequest):
            return self.stage_stdio(request, handle)
        if isinstance(request, FileIORunRequest):
            return self.stage_fileio(request, handle)
        if isinstance(request, CheckerRequest):
            return self.stage_checker(request, handle)
        raise StagingError(f"Unsupported request: {type(request).__name__}")  # pragma: no cover

    def stage_compile(self, request: CompileRequest, handle: WorkspaceHandle) -> StagedTask:
        source_name = _check_file_name(request.source_path.name)
        _copy(request.source_path, handle.work_path(source_name), READABLE_MODE)

        error_path = handle.data_path(ERROR_NAME)
        _touch(error_path, WRITABLE_MODE)

        return StagedTask(phase=Phase.COMPILE, source_name=source_name, error_capture=error_path)

    def stage_stdio(self, request: StdIORunRequest, handle: WorkspaceHandle) -> StagedTask:
        _copy(request.executable_path, handle.work_path(PROGRAM_NAME), EXECUTABLE_MODE)
        _copy(request.input_path, handle.data_path(INPUT_NAME), READABLE_MODE)

        output_path = handle.data_path(OUTPUT_NAME)
        error_path = handle.data_path(ERROR_NAME)
        _touch(output_path, WRITABLE_MODE)
        _touch(error_path, WRITABLE_MODE)

        return StagedTask(
            phase=Phase.RUN_STDIO,
            output_capture=output_path,
            error_capture=error_path,
        )

    def stage_fileio(self, request: FileIORunRequest, handle: WorkspaceHandle) -> StagedTask:
        input_name = _check_file_name(request.input_file_name)
        output_name = _check_file_name(request.output_file_name)

        _copy(request.executable_path, handle.work_path(PROGRAM_NAME), EXECUTABLE_MODE)
        _copy(request.input_path, handle.work_path(input_name), READABLE_MODE)

        # The program creates its output file itself
        try:
            os.chmod(handle.work_dir, SHARED_DIR_MODE)
        except OSError as e:
            raise StagingError(f"Failed to open {handle.work_dir} for writing: {e}") from e

        error_path = handle.data_path(ERROR_NAME)
        _touch(error_path, WRITABLE_MODE)

        return StagedTask(
            phase=Phase.RUN_FILEIO,
            input_name=input_name,
            output_capture=handle.work_path(output_name),
            error_capture=error_path,
        )

    def stage_checker(self, request: CheckerRequest, handle: WorkspaceHandle) -> StagedTask:
        _copy(request.checker_path, handle.work_path(CHECKER_NAME), EXECUTABLE_MODE)
        _copy(request.input_path, handle.work_path(INPUT_NAME), READABLE_MODE)
        _copy(request.output_path, handle.work_path(OUTPUT_NAME), READABLE_MODE)
        _copy(request.answer_path, handle.work_path(ANSWER_NAME), READABLE_MODE)

        output_path = handle.data_path(OUTPUT_NAME)
        error_path = handle.data_path(ERROR_NAME)
        _touch(output_path, WRITABLE_MODE)
        _touch(error_path, WRITABLE_MODE)

        return StagedTask(
            phase=Phase.CHECK,
            output_capture=output_path,
            error_capture=error_path,
        )
