"""Build runner for buildable applications.

Runs dependency installation and then the package.json build script in the
working tree, each as a shell command in its own process group so a timeout
or cancellation takes down the whole toolchain, not just the shell.

Only the tail of the combined output is kept (``output_limit`` bytes); it is
attached to ``BuildFailed`` so the user sees why the build broke.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from pathlib import Path

from sitecast.build.detector import OUTPUT_DIRS, build_script, read_json
from sitecast.core.errors import BuildFailed, NoBuildScript
from sitecast.models.classification import ProjectClassification

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_LIMIT = 10 * 1024 * 1024

# Lockfile -> install command; the first present lockfile decides.
LOCKFILE_COMMANDS: tuple[tuple[str, str], ...] = (("yarn.lock", "yarn install"),)
FALLBACK_INSTALL_COMMAND = "npm install"

# Only this script is ever run; `build:prod` merely marks a project buildable.
RUN_SCRIPT_KEYS: tuple[str, ...] = ("build",)


class OutputTail:
    """Bounded buffer that keeps the last *limit* bytes written to it."""

    def __init__(self, limit: int) -> None:
        self._limit = max(limit, 0)
        self._buf = bytearray()
        self.truncated = False

    def write(self, data: bytes) -> None:
        self._buf.extend(data)
        overflow = len(self._buf) - self._limit
        if overflow > 0:
            del self._buf[:overflow]
            self.truncated = True

    def text(self) -> str:
        return self._buf.decode("utf-8", errors="replace")


def select_install_command(tree: Path) -> str:
    """Pick the package-manager invocation from the lockfile present."""
    for lockfile, command in LOCKFILE_COMMANDS:
        if (Path(tree) / lockfile).is_file():
            return command
    return FALLBACK_INSTALL_COMMAND


def locate_publish_dir(tree: Path) -> Path:
    """First existing conventional output directory, else the tree root."""
    for name in OUTPUT_DIRS:
        candidate = Path(tree) / name
        if candidate.is_dir():
            return candidate
    return Path(tree)


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


class Builder:
    """Install dependencies and run the build script of a working tree.

    Parameters
    ----------
    install_command:
        Overrides lockfile-based package-manager selection.
    output_limit:
        Bytes of combined stdout/stderr kept per step.
    timeout:
        Seconds allowed per step; ``None`` for unbounded.
    """

    def __init__(
        self,
        install_command: str | None = None,
        *,
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
        timeout: float | None = None,
    ) -> None:
        self.install_command = install_command
        self.output_limit = output_limit
        self.timeout = timeout

    async def build(self, tree: Path) -> Path:
        """Build *tree* and return the directory of publishable files."""
        tree = Path(tree)
        script = build_script(read_json(tree / "package.json"), RUN_SCRIPT_KEYS)
        if script is None:
            raise NoBuildScript(f"No build script found in {tree.name}/package.json")

        install = self.install_command or select_install_command(tree)
        await self._run("install", install, tree)
        await self._run("build", script, tree)

        publish_dir = locate_publish_dir(tree)
        logger.info("Build finished; publishing %s", publish_dir)
        return publish_dir

    async def _run(self, step: str, command: str, cwd: Path) -> str:
        env = dict(os.environ)
        bin_dir = cwd / "node_modules" / ".bin"
        env["PATH"] = os.pathsep.join([str(bin_dir), env.get("PATH", "")])

        logger.info("Running %s step: %s", step, command)
        proc = await asyncio.create_subprocess_shell(
            command,
            cwd=str(cwd),
            env=env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            start_new_session=True,
        )
        tail = OutputTail(self.output_limit)
        try:
            async with asyncio.timeout(self.timeout):
                assert proc.stdout is not None
                while chunk := await proc.stdout.read(64 * 1024):
                    tail.write(chunk)
                returncode = await proc.wait()
        except TimeoutError as exc:
            _kill(proc)
            await proc.wait()
            raise BuildFailed(
                f"{step} step timed out after {self.timeout}s: {command}",
                output=tail.text(),
            ) from exc
        except BaseException:
            _kill(proc)
            raise

        output = tail.text()
        if tail.truncated:
            logger.debug("%s output truncated to last %d bytes", step, self.output_limit)
        if returncode != 0:
            label = "Failed to install dependencies" if step == "install" else "Build failed"
            raise BuildFailed(
                f"{label}: `{command}` exited with status {returncode}", output=output
            )
        return output


async def resolve_publish_dir(
    tree: Path, classification: ProjectClassification, builder: Builder
) -> Path:
    """Turn a classification into the directory to publish, building if needed."""
    if classification.needs_build:
        return await builder.build(tree)
    return Path(tree) / (classification.publish_dir or ".")
