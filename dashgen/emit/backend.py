"""Invocation of the external document tool for one page at a time."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..errors import BackendError
from ..logging import get_logger

_LOGGER = get_logger("emit.backend")


class QuartoBackend:
    """Runs ``quarto render`` for a page; the runner is injectable for tests."""

    def __init__(
        self,
        executable: str = "quarto",
        runner: Callable[..., str] | None = None,
        extra_args: Iterable[str] = (),
    ) -> None:
        self.executable = executable
        self.extra_args = list(extra_args)
        self._runner = runner or self._default_runner

    def render(self, output_dir: Path, page_file: Path) -> None:
        """Render ``page_file`` inside ``output_dir``; raise ``BackendError`` on failure."""
        relative = _relative(output_dir, page_file)
        args = [self.executable, "render", relative, *self.extra_args]
        _LOGGER.debug("Running %s", " ".join(args))
        try:
            self._runner(args, cwd=output_dir)
        except FileNotFoundError as exc:
            raise BackendError(
                f"'{self.executable}' was not found on PATH; install Quarto or disable rendering"
            ) from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or exc.stdout or "").strip().splitlines()
            tail = detail[-1] if detail else f"exit status {exc.returncode}"
            raise BackendError(f"quarto render failed for {relative}: {tail}") from exc

    @staticmethod
    def _default_runner(args: Iterable[str], *, cwd: Path, env: Optional[dict] = None) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            env=env,
            check=True,
            text=True,
            capture_output=True,
        )
        return completed.stdout


def _relative(root: Path, path: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


__all__ = ["QuartoBackend"]
