# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judger

from abc import ABC, abstractmethod
from pathlib import Path

from coreason_judger.models import InvocationSpec, RawOutcome, UserIdentity


class SandboxProcess(ABC):
    """A confined process started by a SandboxRunner."""

    @abstractmethod
    async def wait_for_stop(self) -> RawOutcome:
        """Wait until the confined process has stopped.

        Returns when the process exits by itself, is killed for exceeding a
        limit, or is terminated externally.

        Returns:
            RawOutcome: Status, exit code, elapsed time (ns) and peak memory (bytes).
        """
        pass  # pragma: no cover


class SandboxRunner(ABC):
    """
    Abstract base class for sandbox runners (the confined execution engine).
    Follows the Strategy Pattern.
    """

    @abstractmethod
    async def resolve_identity(self, rootfs: Path, account: str) -> UserIdentity:
        """Resolve an account of the confined root to a numeric identity.

        Args:
            rootfs: The chroot image.
            account: The account name, e.g. 'root' or 'sandbox'.

        Returns:
            UserIdentity: The uid/gid pair usable for process creation.

        Raises:
            LookupError: If the account is absent from the rootfs user database.
        """
        pass  # pragma: no cover

    @abstractmethod
    async def start(self, spec: InvocationSpec) -> SandboxProcess:
        """Start a confined process.

        Args:
            spec: The full invocation parameters.

        Returns:
            SandboxProcess: A handle to await completion on.

        Raises:
            InvocationError: If the chroot path is invalid or limits are not positive.
        """
        pass  # pragma: no cover
