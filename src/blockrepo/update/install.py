from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import Protocol, Sequence, Union

from ..errors import InstallFailed

LOCKFILES = (
    ("bun.lockb", "bun"),
    ("bun.lock", "bun"),
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
)


def _log(message: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(f"[install] {message}", file=sys.stderr, flush=True)


class Installer(Protocol):
    def install(
        self,
        dependencies: Sequence[str],
        dev_dependencies: Sequence[str],
        cwd: Union[str, Path],
    ) -> None: ...


def detect_package_manager(cwd: Union[str, Path]) -> str:
    root = Path(cwd)
    for lockfile, manager in LOCKFILES:
        if (root / lockfile).exists():
            return manager
    return "npm"


def install_command(manager: str, packages: Sequence[str], *, dev: bool) -> list[str]:
    if manager == "npm":
        command = ["npm", "install"]
        flag = "-D"
    elif manager == "bun":
        command = ["bun", "add"]
        flag = "-d"
    elif manager in ("pnpm", "yarn"):
        command = [manager, "add"]
        flag = "-D"
    else:
        raise ValueError(f"Unknown package manager: {manager}")
    if dev:
        command.append(flag)
    return command + list(packages)


class PackageManagerInstaller:
    def __init__(self, manager: str | None = None):
        self.manager = manager

    def install(
        self,
        dependencies: Sequence[str],
        dev_dependencies: Sequence[str],
        cwd: Union[str, Path],
    ) -> None:
        manager = self.manager or detect_package_manager(cwd)
        for packages, dev in ((dependencies, False), (dev_dependencies, True)):
            if not packages:
                continue
            command = install_command(manager, packages, dev=dev)
            _log(" ".join(command))
            try:
                subprocess.run(
                    command, check=True, capture_output=True, text=True, cwd=cwd
                )
            except FileNotFoundError as exc:
                raise InstallFailed(f"{manager} is not installed") from exc
            except subprocess.CalledProcessError as exc:
                detail = (exc.stderr or exc.stdout or "").strip()
                raise InstallFailed(
                    f"Failed to install dependencies with {manager}: {detail}"
                ) from exc
