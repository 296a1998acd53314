from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from coreason_judger.models import ResourceLimits

MEGABYTE = 1024 * 1024


class JudgerConfig(BaseSettings):
    """
    Configuration for the judging pipeline.
    """

    runtime: Literal["local"] = "local"

    # Pre-existing chroot image and the host directory holding task workspaces
    rootfs: Path = Path("/opt/sandbox/rootfs")
    workspace_dir: Path = Path("sandbox_tmp")
    hostname_prefix: str = "chiko"

    # Candidate program and checker defaults
    time_limit_ms: int = 1000
    memory_limit_mb: int = 256

    # Compiler profile
    compile_time_limit_ms: int = 10000
    compile_memory_limit_mb: int = 512
    compile_process_limit: int = 64
    compiler: str = "g++"
    compile_flags: list[str] = ["-O2", "-std=c++17", "-Wall"]

    work_quota_bytes: int = 100 * MEGABYTE
    max_capture_bytes: int = MEGABYTE
    environments: list[str] = ["PATH=/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"]

    log_dir: Path | None = None
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="COREASON_JUDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def compile_limits(self, time_limit_ms: int | None = None, memory_limit_mb: int | None = None) -> ResourceLimits:
        """Limit profile for the compiler; toolchains spawn helper processes."""
        return ResourceLimits(
            time_ms=self.compile_time_limit_ms if time_limit_ms is None else time_limit_ms,
            memory_bytes=(self.compile_memory_limit_mb if memory_limit_mb is None else memory_limit_mb) * MEGABYTE,
            process_count=self.compile_process_limit,
        )

    def run_limits(self, time_limit_ms: int | None = None, memory_limit_mb: int | None = None) -> ResourceLimits:
        """Limit profile for candidate programs and checkers, single process."""
        return ResourceLimits(
            time_ms=self.time_limit_ms if time_limit_ms is None else time_limit_ms,
            memory_bytes=(self.memory_limit_mb if memory_limit_mb is None else memory_limit_mb) * MEGABYTE,
            process_count=1,
        )
