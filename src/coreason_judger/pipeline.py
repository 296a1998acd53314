# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judger

"""Sequences staging, invocation, normalization and cleanup for every phase."""

import os
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import anyio
from loguru import logger

from coreason_judger.config import JudgerConfig
from coreason_judger.exceptions import CollaboratorFailure, InvocationError, StagingError
from coreason_judger.identity import new_task_id
from coreason_judger.invocation import SandboxInvocationBuilder
from coreason_judger.models import (
    CheckerRequest,
    CheckerResult,
    CompileRequest,
    FileIORunRequest,
    InvocationSpec,
    NormalizedResult,
    Phase,
    RawOutcome,
    ResourceLimits,
    RunResult,
    StdIORunRequest,
    UserIdentity,
)
from coreason_judger.normalizer import CapturedStreams, ResultNormalizer
from coreason_judger.runtime import SandboxRunner
from coreason_judger.staging import EXECUTABLE_MODE, PROGRAM_NAME, IOStager, StagedTask
from coreason_judger.workspace import TaskWorkspace, WorkspaceHandle

Request = CompileRequest | StdIORunRequest | FileIORunRequest | CheckerRequest


class PipelineState(str, Enum):
    IDLE = "idle"
    STAGING = "staging"
    INVOKING = "invoking"
    NORMALIZING = "normalizing"
    CLEANUP = "cleanup"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[PipelineState, set[PipelineState]] = {
    PipelineState.IDLE: {PipelineState.STAGING},
    PipelineState.STAGING: {PipelineState.INVOKING, PipelineState.FAILED},
    PipelineState.INVOKING: {PipelineState.NORMALIZING, PipelineState.FAILED},
    PipelineState.NORMALIZING: {PipelineState.CLEANUP, PipelineState.FAILED},
    PipelineState.FAILED: {PipelineState.CLEANUP},
    PipelineState.CLEANUP: {PipelineState.DONE},
    PipelineState.DONE: set(),
}


@dataclass
class PipelineRun:
    """State of a single pipeline invocation. Never shared between invocations."""

    phase: Phase
    task_id: str = field(default_factory=new_task_id)
    state: PipelineState = PipelineState.IDLE
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])
    handle: WorkspaceHandle | None = None

    def transition(self, target: PipelineState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal pipeline transition {self.state.value} -> {target.value}")
        logger.debug(f"Task {self.task_id}: {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)


class ExecutionPipeline:
    """
    Orchestrates one confined execution per call and guarantees that the task
    workspace never outlives the call.
    """

    def __init__(
        self,
        config: JudgerConfig,
        runner: SandboxRunner,
        workspace: TaskWorkspace | None = None,
        stager: IOStager | None = None,
        builder: SandboxInvocationBuilder | None = None,
        normalizer: ResultNormalizer | None = None,
    ):
        self.config = config
        self.runner = runner
        self.workspace = workspace or TaskWorkspace(config.workspace_dir)
        self.stager = stager or IOStager()
        self.builder = builder or SandboxInvocationBuilder(config)
        self.normalizer = normalizer or ResultNormalizer(config.max_capture_bytes)

    async def compile(
        self,
        source_path: Path,
        output_path: Path,
        time_limit_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> NormalizedResult:
        """Compile ``source_path`` and, on success, store the binary at ``output_path``.

        Returns:
            NormalizedResult: The compiler outcome; ``error`` holds its diagnostics.
        """
        request = CompileRequest(source_path=source_path, output_path=output_path)
        limits = self.config.compile_limits(time_limit_ms, memory_limit_mb)
        result = await self.execute(request, limits)
        if result.succeeded:
            logger.info(f"Compiled {source_path.name} to {output_path}")
        else:
            logger.warning(f"Compilation of {source_path.name} failed with exit code {result.exit_code}")
        return result

    async def run_stdio(
        self,
        executable_path: Path,
        input_path: Path,
        time_limit_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> RunResult:
        """Run a program fed from ``input_path`` on stdin, capturing stdout."""
        request = StdIORunRequest(executable_path=executable_path, input_path=input_path)
        limits = self.config.run_limits(time_limit_ms, memory_limit_mb)
        return RunResult(result=await self.execute(request, limits))

    async def run_fileio(
        self,
        executable_path: Path,
        input_path: Path,
        input_file_name: str,
        output_file_name: str,
        time_limit_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> RunResult:
        """Run a program that opens ``input_file_name`` and writes ``output_file_name`` itself."""
        request = FileIORunRequest(
            executable_path=executable_path,
            input_path=input_path,
            input_file_name=input_file_name,
            output_file_name=output_file_name,
        )
        limits = self.config.run_limits(time_limit_ms, memory_limit_mb)
        return RunResult(result=await self.execute(request, limits))

    async def run_checker(
        self,
        checker_path: Path,
        input_path: Path,
        output_path: Path,
        answer_path: Path,
        time_limit_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> CheckerResult:
        """Run a testlib-style checker over a candidate output and the reference answer."""
        request = CheckerRequest(
            checker_path=checker_path,
            input_path=input_path,
            output_path=output_path,
            answer_path=answer_path,
        )
        limits = self.config.run_limits(time_limit_ms, memory_limit_mb)
        return CheckerResult(result=await self.execute(request, limits))

    async def execute(
        self,
        request: Request,
        limits: ResourceLimits,
        run: PipelineRun | None = None,
    ) -> NormalizedResult:
        """Drive one request through the pipeline.

        Args:
            request: The phase request.
            limits: Resource limits for the confined process.
            run: Optional pre-allocated run state. A run executes at most once.

        Returns:
            NormalizedResult: The normalized measurement.

        Raises:
            WorkspaceCreationError: If the task directory cannot be allocated.
            StagingError: If an input cannot be staged or the binary exported.
            InvocationError: If the invocation is rejected or the run was already used.
            CollaboratorFailure: If the sandbox runner fails.
            CaptureError: If a checker stream cannot be read.
        """
        run = run or PipelineRun(phase=request.phase)
        if run.state is not PipelineState.IDLE:
            raise InvocationError(f"Task {run.task_id} has already been executed")
        if run.phase is not request.phase:
            raise InvocationError(f"Task {run.task_id} is a {run.phase.value} task")

        logger.info("Starting pipeline", task_id=run.task_id, phase=request.phase.value)
        run.transition(PipelineState.STAGING)
        try:
            run.handle = await anyio.to_thread.run_sync(self.workspace.create, run.task_id)
            staged = await anyio.to_thread.run_sync(self.stager.stage, request, run.handle)
            user = await self._resolve_identity(request.phase)
            spec = self.builder.build(request.phase, run.handle, limits, user, staged)

            run.transition(PipelineState.INVOKING)
            raw = await self._invoke(run, spec)

            run.transition(PipelineState.NORMALIZING)
            result = await self._normalize(request.phase, staged, raw)
            if isinstance(request, CompileRequest) and result.succeeded:
                await anyio.to_thread.run_sync(self._export_binary, run.handle, request.output_path)
        except BaseException:
            run.transition(PipelineState.FAILED)
            raise
        finally:
            run.transition(PipelineState.CLEANUP)
            with anyio.CancelScope(shield=True):
                if run.handle is not None:
                    await anyio.to_thread.run_sync(self.workspace.destroy, run.handle)
            run.transition(PipelineState.DONE)

        logger.info(
            "Pipeline finished",
            task_id=run.task_id,
            status=result.status.name,
            exit_code=result.exit_code,
            time_ms=result.time_ms,
        )
        return result

    async def _resolve_identity(self, phase: Phase) -> UserIdentity:
        account = self.builder.account_for(phase)
        try:
            return await self.runner.resolve_identity(self.config.rootfs, account)
        except Exception as e:
            raise CollaboratorFailure(f"Failed to resolve sandbox account {account!r}: {e}") from e

    async def _invoke(self, run: PipelineRun, spec: InvocationSpec) -> RawOutcome:
        try:
            process = await self.runner.start(spec)
            return await process.wait_for_stop()
        except InvocationError:
            raise
        except Exception as e:
            logger.error(f"Sandbox runner failed for task {run.task_id}: {e}")
            raise CollaboratorFailure(f"Sandbox runner failed for task {run.task_id}: {e}") from e

    async def _normalize(self, phase: Phase, staged: StagedTask, raw: RawOutcome) -> NormalizedResult:
        # The checker's verdict lives in its streams; elsewhere the exit status already decided it.
        strict = phase is Phase.CHECK
        captured = CapturedStreams(
            output=await self.normalizer.capture(staged.output_capture, strict=strict),
            error=await self.normalizer.capture(staged.error_capture, strict=strict),
        )
        return self.normalizer.normalize(raw, captured)

    @staticmethod
    def _export_binary(handle: WorkspaceHandle, output_path: Path) -> None:
        try:
            shutil.copyfile(handle.work_path(PROGRAM_NAME), output_path)
            os.chmod(output_path, EXECUTABLE_MODE)
        except OSError as e:
            raise StagingError(f"Failed to export compiled program to {output_path}: {e}") from e
