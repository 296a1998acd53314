from pathlib import Path

import pytest
from coreason_judger.config import MEGABYTE, JudgerConfig
from pydantic import ValidationError


def test_defaults() -> None:
    config = JudgerConfig()

    assert config.runtime == "local"
    assert config.rootfs == Path("/opt/sandbox/rootfs")
    assert config.hostname_prefix == "chiko"
    assert config.compile_flags == ["-O2", "-std=c++17", "-Wall"]
    assert config.work_quota_bytes == 100 * MEGABYTE
    assert config.max_capture_bytes == MEGABYTE
    assert config.environments == ["PATH=/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"]
    assert config.log_dir is None


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COREASON_JUDGER_TIME_LIMIT_MS", "2500")
    monkeypatch.setenv("COREASON_JUDGER_ROOTFS", "/srv/rootfs")
    monkeypatch.setenv("COREASON_JUDGER_COMPILE_FLAGS", '["-O0", "-g"]')

    config = JudgerConfig()

    assert config.time_limit_ms == 2500
    assert config.rootfs == Path("/srv/rootfs")
    assert config.compile_flags == ["-O0", "-g"]


def test_unknown_runtime_rejected() -> None:
    with pytest.raises(ValidationError):
        JudgerConfig(runtime="docker")  # type: ignore[arg-type]


def test_compile_limits() -> None:
    limits = JudgerConfig().compile_limits()

    assert limits.time_ms == 10000
    assert limits.memory_bytes == 512 * MEGABYTE
    assert limits.process_count == 64


def test_run_limits_are_single_process() -> None:
    limits = JudgerConfig(time_limit_ms=2000, memory_limit_mb=128).run_limits()

    assert limits.time_ms == 2000
    assert limits.memory_bytes == 128 * MEGABYTE
    assert limits.process_count == 1


def test_limit_overrides_fall_back_per_field() -> None:
    config = JudgerConfig()

    assert config.run_limits(time_limit_ms=3000).memory_bytes == 256 * MEGABYTE
    assert config.run_limits(memory_limit_mb=32).time_ms == 1000
    assert config.compile_limits(time_limit_ms=20000).time_ms == 20000


def test_zero_override_is_kept_for_validation() -> None:
    limits = JudgerConfig().run_limits(time_limit_ms=0)

    assert limits.time_ms == 0
    assert not limits.is_valid()
