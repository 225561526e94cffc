"""Best-effort dependency bootstrap for a fresh workspace.

Picks one package-manager command from marker files in the workspace root
and runs it there.  Failure is reported in the result and logged; it never
aborts workspace creation.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from loguru import logger

from grove.workspaces.models.workspace import BootstrapResult


def _node_command(root: Path) -> list[str]:
    if (root / "bun.lock").exists() or (root / "bun.lockb").exists():
        return ["bun", "install"]
    if (root / "package-lock.json").exists():
        return ["npm", "install"]
    if (root / "yarn.lock").exists():
        return ["yarn", "install"]
    if (root / "pnpm-lock.yaml").exists():
        return ["pnpm", "install"]
    return ["npm", "install"]


def _python_project_command(root: Path) -> list[str] | None:
    if (root / "uv.lock").exists():
        return ["uv", "sync"]
    if (root / "poetry.lock").exists():
        return ["poetry", "install"]
    return None


def detect_command(root: Path) -> list[str] | None:
    """Bootstrap command for the project at ``root``, first marker wins."""
    if (root / "package.json").exists():
        return _node_command(root)
    if (root / "Cargo.toml").exists():
        return ["cargo", "build"]
    if (root / "requirements.txt").exists():
        return ["pip", "install", "-r", "requirements.txt"]
    if (root / "pyproject.toml").exists():
        return _python_project_command(root)
    if (root / "go.mod").exists():
        return ["go", "mod", "download"]
    return None


def run_bootstrap(root: Path) -> BootstrapResult | None:
    """Run the detected command in ``root``; ``None`` when nothing applies."""
    command = detect_command(root)
    if command is None:
        return None

    logger.info("Bootstrap: running {} in {}", " ".join(command), root)
    try:
        proc = subprocess.run(  # noqa: S603
            command,
            cwd=root,
            text=True,
            capture_output=True,
            check=False,
        )
    except OSError as exc:
        logger.warning("Bootstrap: {} could not start: {}", command[0], exc)
        return BootstrapResult(command=command, ok=False, output=str(exc))

    output = (proc.stdout + proc.stderr).strip()
    if proc.returncode != 0:
        logger.warning("Bootstrap: {} exited with {}", " ".join(command), proc.returncode)
        return BootstrapResult(command=command, ok=False, output=output)
    return BootstrapResult(command=command, ok=True, output=output)
