"""Sandboxed execution of generated scripts.

Responsibility:
- `UvExecutor`: throwaway uv project on the host (venv + deps), runs
  `test.py` with its interpreter.
- `ContainerExecutor`: runs `test.py` inside a docker/podman container; uv
  in the image resolves the PEP 723 dependencies of the script.

Both return `ExecutionResult` for pass / fail / timeout and only raise when
the sandbox itself cannot be prepared.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Sequence

from core.config import ContainerConfig
from core.domain.exceptions import ExecutionEnvironmentError, UnsafeDependencyError
from core.domain.models import ExecutionResult
from core.interfaces.executor import ExecutionEnv

logger = logging.getLogger(__name__)

UV_SYNC_TIMEOUT_SECONDS = 120
_DEP_NAME_RE = re.compile(r"^[A-Za-z0-9\-_./\[\],@><=!~^]+$")


def sanitize_dep_name(dep: str) -> str:
    """Reject dependency strings that could smuggle flags or shell syntax."""

    if not dep:
        raise UnsafeDependencyError(dep, "empty dependency name")
    if dep.startswith("-"):
        raise UnsafeDependencyError(dep, "starts with '-' (possible flag injection)")
    if not _DEP_NAME_RE.match(dep):
        bad = next(ch for ch in dep if not _DEP_NAME_RE.match(ch))
        raise UnsafeDependencyError(dep, f"invalid character {bad!r}")
    return dep


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def is_tool_available(executable: str) -> bool:
    try:
        completed = subprocess.run(
            [executable, "--version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=15,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return completed.returncode == 0


class UvExecutor:
    def __init__(self, *, timeout: int = 60):
        self.timeout = timeout

    def setup_environment(self, dependencies: Sequence[str]) -> ExecutionEnv:
        logger.info("Setting up Python environment with %d dependencies", len(dependencies))
        if not is_tool_available("uv"):
            raise ExecutionEnvironmentError("uv is not installed or not in PATH. Install with: pip install uv")

        deps = [sanitize_dep_name(dep) for dep in dependencies]
        workdir = Path(tempfile.mkdtemp(prefix="skilldo-"))
        dep_lines = "\n".join(f'    "{dep}",' for dep in deps)
        (workdir / "pyproject.toml").write_text(
            "[project]\n"
            'name = "skilldo-test"\n'
            'version = "0.1.0"\n'
            'requires-python = ">=3.8"\n'
            f"dependencies = [\n{dep_lines}\n]\n",
            encoding="utf-8",
        )

        logger.info("Running uv sync to install dependencies...")
        try:
            completed = subprocess.run(
                ["uv", "sync", "--no-dev"],
                cwd=workdir,
                capture_output=True,
                timeout=UV_SYNC_TIMEOUT_SECONDS,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            shutil.rmtree(workdir, ignore_errors=True)
            raise ExecutionEnvironmentError(f"uv sync timed out after {UV_SYNC_TIMEOUT_SECONDS} seconds") from exc
        if completed.returncode != 0:
            shutil.rmtree(workdir, ignore_errors=True)
            raise ExecutionEnvironmentError(
                f"Failed to setup environment with uv sync: {_decode(completed.stderr)}"
            )

        scripts = "Scripts" if os.name == "nt" else "bin"
        python_bin = workdir / ".venv" / scripts / ("python.exe" if os.name == "nt" else "python")
        if not python_bin.exists():
            shutil.rmtree(workdir, ignore_errors=True)
            raise ExecutionEnvironmentError(f"Python executable not found at expected path: {python_bin}")

        return ExecutionEnv(workdir=workdir, dependencies=deps, python_bin=python_bin)

    def run_code(self, env: ExecutionEnv, code: str) -> ExecutionResult:
        if env.python_bin is None:
            raise ExecutionEnvironmentError("Python path not set in execution environment")
        script = env.workdir / "test.py"
        script.write_text(code, encoding="utf-8")
        try:
            completed = subprocess.run(
                [str(env.python_bin), str(script)],
                cwd=env.workdir,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Code execution timed out after %d seconds", self.timeout)
            return ExecutionResult.timed_out(self.timeout)

        if completed.returncode == 0:
            return ExecutionResult.passed(_decode(completed.stdout))
        return ExecutionResult.failed(_decode(completed.stderr))

    def cleanup(self, env: ExecutionEnv) -> None:
        logger.debug("Cleaning up environment at %s", env.workdir)
        shutil.rmtree(env.workdir, ignore_errors=True)


class ContainerExecutor:
    """Python scripts in a container; `install_source` decides where the package comes from."""

    def __init__(self, config: ContainerConfig, *, language: str = "python"):
        self.config = config
        self.language = language

    @property
    def image(self) -> str:
        return self.config.image_for(self.language)

    def setup_environment(self, dependencies: Sequence[str]) -> ExecutionEnv:
        logger.info("Setting up %s container environment", self.language)
        if not is_tool_available(self.config.runtime):
            raise ExecutionEnvironmentError(
                f"{self.config.runtime} runtime not found. Please install {self.config.runtime} first."
            )
        deps = [sanitize_dep_name(dep) for dep in dependencies]
        workdir = Path(tempfile.mkdtemp(prefix="skilldo-"))
        container_name = "skilldo-test-" + workdir.name.replace(".", "")
        logger.debug("Container name: %s", container_name)
        return ExecutionEnv(workdir=workdir, dependencies=deps, container_name=container_name)

    def build_command(self, env: ExecutionEnv) -> list[str]:
        if env.container_name is None:
            raise ExecutionEnvironmentError("Container name not set in execution environment")

        cmd = [self.config.runtime, "run"]
        if self.config.cleanup:
            cmd.append("--rm")
        cmd += ["--name", env.container_name, "-v", f"{env.workdir}:/workspace"]

        if self.config.install_source != "registry":
            if not self.config.source_path:
                raise ExecutionEnvironmentError(
                    f"source_path is required when install_source is '{self.config.install_source}'"
                )
            cmd += ["-v", f"{self.config.source_path}:/src:ro"]
        if self.config.install_source == "local-mount":
            cmd += ["-e", "PYTHONPATH=/src"]
        for key, value in self.config.extra_env.items():
            cmd += ["-e", f"{key}={value}"]

        cmd += ["-w", "/workspace", self.image]
        if self.config.install_source == "local-install":
            cmd += ["sh", "-c", "cd /workspace && uv pip install --system /src && uv run test.py"]
        else:
            cmd += ["uv", "run", "test.py"]
        return cmd

    def _remove_container(self, name: str, action: str = "rm") -> None:
        args = [self.config.runtime, action, name] if action == "kill" else [self.config.runtime, "rm", "-f", name]
        try:
            subprocess.run(args, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, timeout=30, check=False)
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("Could not %s container %s: %s", action, name, exc)

    def run_code(self, env: ExecutionEnv, code: str) -> ExecutionResult:
        (env.workdir / "test.py").write_text(code, encoding="utf-8")
        cmd = self.build_command(env)
        assert env.container_name is not None

        self._remove_container(env.container_name)
        if self.config.extra_env:
            logger.debug("Executing container command (extra env keys: %s)", sorted(self.config.extra_env))
        else:
            logger.debug("Executing: %s", " ".join(cmd))

        try:
            completed = subprocess.run(cmd, capture_output=True, timeout=self.config.timeout, check=False)
        except subprocess.TimeoutExpired:
            logger.warning("Container execution timed out after %d seconds", self.config.timeout)
            self._remove_container(env.container_name, action="kill")
            return ExecutionResult.timed_out(self.config.timeout)

        stdout = _decode(completed.stdout)
        if completed.returncode == 0:
            return ExecutionResult.passed(stdout)
        return ExecutionResult.failed(f"stdout:\n{stdout}\nstderr:\n{_decode(completed.stderr)}")

    def cleanup(self, env: ExecutionEnv) -> None:
        if self.config.cleanup and env.container_name:
            self._remove_container(env.container_name)
            logger.debug("Container %s cleaned up", env.container_name)
        shutil.rmtree(env.workdir, ignore_errors=True)
