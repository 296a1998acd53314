# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judger

from pathlib import Path

import anyio

from coreason_judger.config import JudgerConfig
from coreason_judger.factory import RunnerFactory
from coreason_judger.models import CheckerResult, NormalizedResult, RunResult
from coreason_judger.pipeline import ExecutionPipeline
from coreason_judger.runtime import SandboxRunner
from coreason_judger.utils.logger import setup_logger


class JudgerAsync:
    """Async-native judging service (The Core).

    Every call runs in its own task workspace, so calls may be awaited
    concurrently.
    """

    def __init__(self, config: JudgerConfig | None = None, runner: SandboxRunner | None = None):
        """Initializes the JudgerAsync service.

        Args:
            config: Configuration for the pipeline.
            runner: Sandbox runner; defaults to the one selected by ``config.runtime``.
        """
        self.config = config or JudgerConfig()
        if self.config.log_dir is not None:
            setup_logger(self.config.log_dir, self.config.log_level)
        self.runner = runner or RunnerFactory.get_runner(self.config)
        self.pipeline = ExecutionPipeline(self.config, self.runner)

    async def compile(
        self,
        source_path: Path,
        output_path: Path,
        time_limit_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> NormalizedResult:
        """Compiles a source file.

        Args:
            source_path: The source file on the host.
            output_path: Where to store the executable on success.
            time_limit_ms: Optional override of the compile time limit.
            memory_limit_mb: Optional override of the compile memory limit.

        Returns:
            NormalizedResult: The compiler outcome with diagnostics in ``error``.
        """
        return await self.pipeline.compile(source_path, output_path, time_limit_ms, memory_limit_mb)

    async def run_stdio(
        self,
        executable_path: Path,
        input_path: Path,
        time_limit_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> RunResult:
        """Runs a program with standard input/output redirection.

        Args:
            executable_path: The program on the host.
            input_path: File fed to standard input.
            time_limit_ms: Optional time limit override.
            memory_limit_mb: Optional memory limit override.

        Returns:
            RunResult: The measurement plus captured output and error.
        """
        return await self.pipeline.run_stdio(executable_path, input_path, time_limit_ms, memory_limit_mb)

    async def run_fileio(
        self,
        executable_path: Path,
        input_path: Path,
        input_file_name: str,
        output_file_name: str,
        time_limit_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> RunResult:
        """Runs a program that reads and writes named files in its working directory.

        Args:
            executable_path: The program on the host.
            input_path: File exposed to the program as ``input_file_name``.
            input_file_name: Name the program opens for reading.
            output_file_name: Name the program creates for its answer.
            time_limit_ms: Optional time limit override.
            memory_limit_mb: Optional memory limit override.

        Returns:
            RunResult: The measurement plus the output file contents and error.
        """
        return await self.pipeline.run_fileio(
            executable_path, input_path, input_file_name, output_file_name, time_limit_ms, memory_limit_mb
        )

    async def run_checker(
        self,
        checker_path: Path,
        input_path: Path,
        output_path: Path,
        answer_path: Path,
        time_limit_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> CheckerResult:
        """Runs a checker (special judge) over a candidate output.

        Args:
            checker_path: The checker program on the host.
            input_path: The test input.
            output_path: The candidate's output.
            answer_path: The reference answer.
            time_limit_ms: Optional time limit override.
            memory_limit_mb: Optional memory limit override.

        Returns:
            CheckerResult: The measurement, verdict and checker message.
        """
        return await self.pipeline.run_checker(
            checker_path, input_path, output_path, answer_path, time_limit_ms, memory_limit_mb
        )


class Judger:
    """Sync Facade for JudgerAsync (The Facade).

    Wraps JudgerAsync and executes methods via anyio.run.
    """

    def __init__(self, config: JudgerConfig | None = None, runner: SandboxRunner | None = None):
        self._async = JudgerAsync(config, runner)

    def compile(
        self,
        source_path: Path,
        output_path: Path,
        time_limit_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> NormalizedResult:
        return anyio.run(self._async.compile, source_path, output_path, time_limit_ms, memory_limit_mb)

    def run_stdio(
        self,
        executable_path: Path,
        input_path: Path,
        time_limit_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> RunResult:
        return anyio.run(self._async.run_stdio, executable_path, input_path, time_limit_ms, memory_limit_mb)

    def run_fileio(
        self,
        executable_path: Path,
        input_path: Path,
        input_file_name: str,
        output_file_name: str,
        time_limit_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> RunResult:
        return anyio.run(
            self._async.run_fileio,
            executable_path,
            input_path,
            input_file_name,
            output_file_name,
            time_limit_ms,
            memory_limit_mb,
        )

    def run_checker(
        self,
        checker_path: Path,
        input_path: Path,
        output_path: Path,
        answer_path: Path,
        time_limit_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> CheckerResult:
        return anyio.run(
            self._async.run_checker,
            checker_path,
            input_path,
            output_path,
            answer_path,
            time_limit_ms,
            memory_limit_mb,
        )
