import math
import os
import signal
import subprocess
import time
from pathlib import Path
from typing import IO, Any

import aiofiles  # type: ignore[import-untyped]
import anyio
import psutil
from loguru import logger

from coreason_judger.exceptions import InvocationError
from coreason_judger.models import ExecutionStatus, InvocationSpec, RawOutcome, UserIdentity
from coreason_judger.runtime import SandboxProcess, SandboxRunner

MEMORY_POLL_INTERVAL = 0.01

# The address-space cap only protects the host; the memory verdict comes from
# resident memory, which never reaches the limit if allocations fail first.
ADDRESS_SPACE_FACTOR = 4
ADDRESS_SPACE_MARGIN = 512 * 1024 * 1024


def _host_path(spec: InvocationSpec, path: str) -> str:
    """Map a path inside the confined root back onto its mount source."""
    for mount in spec.mounts:
        if path == mount.dst:
            return mount.src
        if path.startswith(mount.dst.rstrip("/") + "/"):
            return mount.src + path[len(mount.dst.rstrip("/")) :]
    return path


def _address_space_cap(memory_bytes: int) -> int:
    return max(memory_bytes * ADDRESS_SPACE_FACTOR, memory_bytes + ADDRESS_SPACE_MARGIN)


def _apply_rlimits(process: psutil.Process, memory_bytes: int, cpu_seconds: int) -> None:
    address_space = _address_space_cap(memory_bytes)
    process.rlimit(psutil.RLIMIT_AS, (address_space, address_space))
    process.rlimit(psutil.RLIMIT_CPU, (cpu_seconds, cpu_seconds))


class LocalProcess(SandboxProcess):
    """A child process of the judge itself.

    The process leads its own process group. The group is only signalled while
    the leader is unreaped, so its id cannot have been recycled.
    """

    def __init__(self, popen: subprocess.Popen[bytes], spec: InvocationSpec, started_ns: int):
        self.popen = popen
        self.spec = spec
        self.started_ns = started_ns
        self.process = psutil.Process(popen.pid)
        self.limit_hit: ExecutionStatus | None = None
        self.peak_rss = 0

    def _kill_group(self) -> None:
        try:
            os.killpg(self.popen.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    def _stop(self, status: ExecutionStatus) -> None:
        if self.limit_hit is None:
            self.limit_hit = status
        self._kill_group()

    async def _watchdog(self) -> None:
        await anyio.sleep(self.spec.time / 1000)
        logger.debug(f"Time limit of {self.spec.time} ms reached for {self.spec.cgroup}")
        self._stop(ExecutionStatus.TIME_LIMIT_EXCEEDED)

    def _resident_bytes(self) -> int:
        total = self.process.memory_info().rss
        for child in self.process.children(recursive=True):
            try:
                total += child.memory_info().rss
            except psutil.NoSuchProcess:
                continue
        return total

    async def _memory_monitor(self) -> None:
        while True:
            try:
                rss = self._resident_bytes()
            except psutil.NoSuchProcess:
                return
            self.peak_rss = max(self.peak_rss, rss)
            if rss >= self.spec.memory:
                logger.debug(f"Memory limit of {self.spec.memory} bytes reached for {self.spec.cgroup}")
                self._stop(ExecutionStatus.MEMORY_LIMIT_EXCEEDED)
                return
            await anyio.sleep(MEMORY_POLL_INTERVAL)

    def _wait_exited(self) -> None:
        # Leaves the child a zombie so that its process group stays ours
        os.waitid(os.P_PID, self.popen.pid, os.WEXITED | os.WNOWAIT)

    def _reap(self) -> tuple[int, Any]:
        _, wait_status, usage = os.wait4(self.popen.pid, 0)
        self.popen.returncode = os.waitstatus_to_exitcode(wait_status)
        return wait_status, usage

    async def wait_for_stop(self) -> RawOutcome:
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._watchdog)
                tg.start_soon(self._memory_monitor)
                await anyio.to_thread.run_sync(self._wait_exited, abandon_on_cancel=True)
                tg.cancel_scope.cancel()
        except anyio.get_cancelled_exc_class():
            with anyio.CancelScope(shield=True):
                logger.debug(f"Wait cancelled, killing {self.spec.cgroup}")
                self._kill_group()
                await anyio.to_thread.run_sync(self._reap)
            raise

        elapsed_ns = time.monotonic_ns() - self.started_ns
        # Helpers the process left behind share its process group
        self._kill_group()
        wait_status, usage = await anyio.to_thread.run_sync(self._reap)

        memory_bytes = max(usage.ru_maxrss * 1024, self.peak_rss)
        over_memory = memory_bytes >= self.spec.memory

        if os.WIFSIGNALED(wait_status):
            exit_code = os.WTERMSIG(wait_status)
        else:
            exit_code = os.WEXITSTATUS(wait_status)

        if self.limit_hit is not None:
            status = self.limit_hit
        elif os.WIFSIGNALED(wait_status) and exit_code == signal.SIGXCPU:
            status = ExecutionStatus.TIME_LIMIT_EXCEEDED
        elif over_memory:
            status = ExecutionStatus.MEMORY_LIMIT_EXCEEDED
        elif os.WIFSIGNALED(wait_status):
            status = ExecutionStatus.RUNTIME_ERROR
        else:
            status = ExecutionStatus.SUCCEEDED

        return RawOutcome(
            status=status,
            exit_code=exit_code,
            time_ns=elapsed_ns,
            memory_bytes=memory_bytes,
        )


class LocalRuntime(SandboxRunner):
    """
    Development runner executing directly on the host.

    It does not confine anything: no chroot, namespaces, cgroup or identity
    switch. Paths under mount destinations are mapped back to their host
    sources. Wall-clock time is enforced by a watchdog and memory by polling
    the resident size of the process tree; either kills the process group.
    RLIMIT_CPU and a loose RLIMIT_AS stay as backstops. The process-count cap
    is not enforced because RLIMIT_NPROC counts every process of the host user.
    """

    async def resolve_identity(self, rootfs: Path, account: str) -> UserIdentity:
        passwd = rootfs / "etc" / "passwd"
        try:
            async with aiofiles.open(passwd, "r", encoding="utf-8") as f:
                content = await f.read()
        except OSError as e:
            raise LookupError(f"Cannot read user database {passwd}: {e}") from e

        for line in content.splitlines():
            fields = line.split(":")
            if len(fields) >= 4 and fields[0] == account:
                return UserIdentity(uid=int(fields[2]), gid=int(fields[3]))

        raise LookupError(f"Account {account!r} not found in {passwd}")

    async def start(self, spec: InvocationSpec) -> SandboxProcess:
        if not Path(spec.chroot).is_dir():
            raise InvocationError(f"Invalid chroot: {spec.chroot}")
        if spec.time <= 0 or spec.memory <= 0 or spec.process <= 0:
            raise InvocationError("Resource limits must be positive")

        executable = _host_path(spec, spec.executable)
        argv = [executable, *spec.parameters[1:]]
        cwd = _host_path(spec, spec.working_directory)
        env = dict(item.split("=", 1) for item in spec.environments if "=" in item)
        cpu_seconds = math.ceil(spec.time / 1000) + 1

        logger.info(f"Starting {spec.hostname}: {' '.join(spec.parameters)}")
        if spec.user.uid != os.geteuid():
            logger.debug(f"Local runtime ignores confined identity {spec.user.uid}:{spec.user.gid}")

        streams: list[IO[Any]] = []
        try:
            stdin = self._open(spec.stdin, "rb", streams)
            stdout = self._open(spec.stdout, "wb", streams)
            stderr = self._open(spec.stderr, "wb", streams)

            started_ns = time.monotonic_ns()
            popen = subprocess.Popen(
                argv,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
                cwd=cwd,
                env=env,
                start_new_session=True,
            )
        finally:
            for stream in streams:
                stream.close()

        process = LocalProcess(popen, spec, started_ns)
        try:
            _apply_rlimits(process.process, spec.memory, cpu_seconds)
        except psutil.NoSuchProcess:
            # Already finished; there is nothing left to limit
            pass
        except psutil.Error:
            process._kill_group()
            await anyio.to_thread.run_sync(process._reap)
            raise
        return process

    @staticmethod
    def _open(path: str | None, mode: str, streams: list[IO[Any]]) -> IO[Any] | int:
        if path is None:
            return subprocess.DEVNULL
        stream = open(path, mode)
        streams.append(stream)
        return stream
