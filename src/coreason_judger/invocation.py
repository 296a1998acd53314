# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judger

"""Translates a staged task into the sandbox invocation contract."""

from coreason_judger.config import JudgerConfig
from coreason_judger.exceptions import InvocationError
from coreason_judger.identity import cgroup_name, sandbox_hostname
from coreason_judger.models import (
    InvocationSpec,
    IOMode,
    MountSpec,
    Phase,
    ResourceLimits,
    UserIdentity,
)
from coreason_judger.staging import (
    ANSWER_NAME,
    CHECKER_NAME,
    ERROR_NAME,
    INPUT_NAME,
    OUTPUT_NAME,
    PROGRAM_NAME,
    StagedTask,
)
from coreason_judger.workspace import WorkspaceHandle

SANDBOX_WORK_DIR = "/work"
NULL_DEVICE = "/dev/null"

PRIVILEGED_ACCOUNT = "root"
UNPRIVILEGED_ACCOUNT = "sandbox"


class SandboxInvocationBuilder:
    """
    Builds InvocationSpec instances. Performs no I/O.
    """

    def __init__(self, config: JudgerConfig):
        self.config = config

    @staticmethod
    def account_for(phase: Phase) -> str:
        """The confined account a phase runs as.

        Only the compiler runs as root inside the chroot; candidate programs
        and checkers run unprivileged.
        """
        return PRIVILEGED_ACCOUNT if phase is Phase.COMPILE else UNPRIVILEGED_ACCOUNT

    def build(
        self,
        phase: Phase,
        workspace: WorkspaceHandle,
        limits: ResourceLimits,
        user: UserIdentity,
        staged: StagedTask,
    ) -> InvocationSpec:
        """Build the invocation for one confined process.

        Args:
            phase: The pipeline phase.
            workspace: The staged task workspace.
            limits: Time, memory and process caps.
            user: The resolved confined identity for ``account_for(phase)``.
            staged: What the stager placed in the workspace.

        Returns:
            InvocationSpec: The immutable parameter set.

        Raises:
            InvocationError: If the limits are not strictly positive or the
                staged task does not belong to ``phase``.
        """
        if not limits.is_valid():
            raise InvocationError(f"Resource limits must be positive: {limits}")
        if staged.phase is not phase:
            raise InvocationError(f"Workspace staged for {staged.phase.value}, not {phase.value}")

        executable, parameters = self._command(phase, staged)
        stdin, stdout, stderr = self._redirects(phase, workspace)

        return InvocationSpec(
            hostname=sandbox_hostname(self.config.hostname_prefix, phase.role, workspace.task_id),
            cgroup=cgroup_name(phase.role, workspace.task_id),
            chroot=str(self.config.rootfs),
            mounts=(
                MountSpec(
                    src=str(workspace.work_dir),
                    dst=SANDBOX_WORK_DIR,
                    limit=self.config.work_quota_bytes,
                ),
            ),
            executable=executable,
            parameters=tuple(parameters),
            environments=tuple(self.config.environments),
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            time=limits.time_ms,
            memory=limits.memory_bytes,
            process=limits.process_count,
            user=user,
            working_directory=SANDBOX_WORK_DIR,
            mount_proc=True,
            redirect_before_chroot=True,
        )

    def _command(self, phase: Phase, staged: StagedTask) -> tuple[str, list[str]]:
        if phase is Phase.COMPILE:
            if not staged.source_name:
                raise InvocationError("Compile task has no source file")
            compiler = self.config.compiler
            return compiler, [compiler, staged.source_name, "-o", PROGRAM_NAME, *self.config.compile_flags]

        if phase is Phase.CHECK:
            checker = f"{SANDBOX_WORK_DIR}/{CHECKER_NAME}"
            return checker, [checker, INPUT_NAME, OUTPUT_NAME, ANSWER_NAME]

        program = f"{SANDBOX_WORK_DIR}/{PROGRAM_NAME}"
        return program, [program]

    @staticmethod
    def _redirects(phase: Phase, workspace: WorkspaceHandle) -> tuple[str, str, str]:
        # Host paths; the sandbox opens them before entering the chroot.
        error = str(workspace.data_path(ERROR_NAME))

        if phase is Phase.COMPILE:
            return NULL_DEVICE, NULL_DEVICE, error
        if phase is Phase.CHECK:
            return NULL_DEVICE, str(workspace.data_path(OUTPUT_NAME)), error
        if phase.io_mode is IOMode.FILEIO:
            return NULL_DEVICE, NULL_DEVICE, error

        return str(workspace.data_path(INPUT_NAME)), str(workspace.data_path(OUTPUT_NAME)), error
