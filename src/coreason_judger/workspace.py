# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judger

import shutil
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from coreason_judger.exceptions import WorkspaceCreationError


@dataclass(frozen=True)
class WorkspaceHandle:
    """Paths of one task workspace.

    ``work_dir`` is mounted inside the sandbox; ``data_dir`` stays on the host.
    """

    task_id: str
    root: Path
    work_dir: Path
    data_dir: Path

    def work_path(self, name: str) -> Path:
        return self.work_dir / name

    def data_path(self, name: str) -> Path:
        return self.data_dir / name


class TaskWorkspace:
    """Creates and destroys per-task directory trees under a base directory."""

    def __init__(self, base_dir: Path):
        """Initializes the TaskWorkspace.

        Args:
            base_dir: Directory holding all task workspaces. Relative paths are
                resolved against the current directory.
        """
        self.base_dir = base_dir.resolve()

    def create(self, task_id: str) -> WorkspaceHandle:
        """Allocate ``<base>/<task_id>/{work,data}``.

        Args:
            task_id: The unique task identity.

        Returns:
            WorkspaceHandle: Paths of the new workspace.

        Raises:
            WorkspaceCreationError: If the task directory already exists or the
                filesystem refuses to create it.
        """
        root = self.base_dir / task_id
        handle = WorkspaceHandle(
            task_id=task_id,
            root=root,
            work_dir=root / "work",
            data_dir=root / "data",
        )

        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            root.mkdir()
        except FileExistsError as e:
            raise WorkspaceCreationError(f"Workspace already exists: {root}") from e
        except OSError as e:
            raise WorkspaceCreationError(f"Failed to create workspace {root}: {e}") from e

        try:
            handle.work_dir.mkdir()
            handle.data_dir.mkdir()
        except OSError as e:
            shutil.rmtree(root, ignore_errors=True)
            raise WorkspaceCreationError(f"Failed to create workspace {root}: {e}") from e

        logger.debug(f"Created workspace {root}")
        return handle

    def destroy(self, handle: WorkspaceHandle) -> None:
        """Remove the whole task tree.

        Missing paths are ignored. Any other failure is logged and swallowed
        so that it never masks the result or the original error.
        """
        try:
            shutil.rmtree(handle.root)
        except FileNotFoundError:
            # Part of the tree vanished underneath us; sweep what is left.
            if handle.root.exists():
                shutil.rmtree(handle.root, ignore_errors=True)
            logger.debug(f"Workspace already removed: {handle.root}")
            return
        except OSError as e:
            logger.error(f"Failed to remove workspace {handle.root}: {e}")
            return

        logger.debug(f"Removed workspace {handle.root}")
