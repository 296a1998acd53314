import os
import stat
from pathlib import Path
from typing import Callable

import pytest
from coreason_judger.config import JudgerConfig
from coreason_judger.models import ExecutionStatus, InvocationSpec, RawOutcome, UserIdentity
from coreason_judger.runtime import SandboxProcess, SandboxRunner

NULL_DEVICE = "/dev/null"


class FakeProcess(SandboxProcess):
    def __init__(self, outcome: RawOutcome):
        self.outcome = outcome

    async def wait_for_stop(self) -> RawOutcome:
        return self.outcome


class FakeRunner(SandboxRunner):
    """Records invocations and plays the part of a confined process."""

    def __init__(self) -> None:
        self.outcome = RawOutcome(
            status=ExecutionStatus.SUCCEEDED, exit_code=0, time_ns=500_000_000, memory_bytes=4096
        )
        self.stdout = ""
        self.stderr = ""
        self.work_files: dict[str, str] = {}
        self.specs: list[InvocationSpec] = []
        self.accounts: list[str] = []
        self.work_listing: list[str] = []
        self.data_listing: list[str] = []
        self.task_roots: list[Path] = []

    async def resolve_identity(self, rootfs: Path, account: str) -> UserIdentity:
        self.accounts.append(account)
        uid = 0 if account == "root" else 1000
        return UserIdentity(uid=uid, gid=uid)

    async def start(self, spec: InvocationSpec) -> SandboxProcess:
        self.specs.append(spec)
        work_dir = Path(spec.mounts[0].src)
        data_dir = work_dir.parent / "data"
        self.task_roots.append(work_dir.parent)
        self.work_listing = sorted(os.listdir(work_dir))
        self.data_listing = sorted(os.listdir(data_dir))

        if spec.stdout and spec.stdout != NULL_DEVICE:
            Path(spec.stdout).write_text(self.stdout)
        if spec.stderr and spec.stderr != NULL_DEVICE:
            Path(spec.stderr).write_text(self.stderr)
        for name, content in self.work_files.items():
            (work_dir / name).write_text(content)

        return FakeProcess(self.outcome)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def rootfs(tmp_path: Path) -> Path:
    root = tmp_path / "rootfs"
    (root / "etc").mkdir(parents=True)
    (root / "etc" / "passwd").write_text(
        "root:x:0:0:root:/root:/bin/bash\n"
        "daemon:x:1:1:daemon:/usr/sbin:/usr/sbin/nologin\n"
        "sandbox:x:1111:1111::/sandbox:/bin/sh\n"
    )
    return root


@pytest.fixture
def config(tmp_path: Path, rootfs: Path) -> JudgerConfig:
    return JudgerConfig(rootfs=rootfs, workspace_dir=tmp_path / "sandbox_tmp")


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[..., Path]:
    def _write(name: str, content: str, executable: bool = False) -> Path:
        path = tmp_path / "host" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        if executable:
            path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _write
