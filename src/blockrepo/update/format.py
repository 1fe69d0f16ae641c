from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import Protocol, Union


def _log(message: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(f"[format] {message}", file=sys.stderr, flush=True)


class Formatter(Protocol):
    def format(self, content: str, dest_path: Path) -> str: ...


def formatter_command(formatter: str, dest_path: Path) -> list[str]:
    if formatter == "prettier":
        return ["npx", "--no-install", "prettier", "--stdin-filepath", str(dest_path)]
    if formatter == "biome":
        return [
            "npx",
            "--no-install",
            "@biomejs/biome",
            "format",
            f"--stdin-file-path={dest_path}",
        ]
    raise ValueError(f"Unknown formatter: {formatter}")


class SubprocessFormatter:
    """Pipe file content through the project's formatter via ``npx``.

    A formatter that is missing or rejects the input leaves the content as
    it was; formatting never blocks an update.
    """

    def __init__(self, formatter: str, cwd: Union[str, Path] = "."):
        self.formatter = formatter
        self.cwd = Path(cwd)

    def format(self, content: str, dest_path: Path) -> str:
        command = formatter_command(self.formatter, dest_path)
        try:
            result = subprocess.run(
                command,
                input=content,
                capture_output=True,
                text=True,
                check=True,
                cwd=self.cwd,
            )
        except FileNotFoundError:
            _log(f"{self.formatter} unavailable, leaving {dest_path.name} unformatted")
            return content
        except subprocess.CalledProcessError as exc:
            _log(f"{self.formatter} failed on {dest_path.name}: {exc.stderr.strip()}")
            return content
        return result.stdout or content


def get_formatter(name: str | None, cwd: Union[str, Path] = ".") -> Formatter | None:
    if name is None:
        return None
    return SubprocessFormatter(name, cwd)
