import subprocess
from types import SimpleNamespace

import pytest

from adapters import executors
from adapters.executors import ContainerExecutor, UvExecutor, is_tool_available, sanitize_dep_name
from core.config import ContainerConfig
from core.domain.exceptions import ExecutionEnvironmentError, UnsafeDependencyError
from core.domain.models import ExecutionStatus
from core.interfaces.executor import ExecutionEnv


@pytest.fixture
def env(tmp_path):
    return ExecutionEnv(workdir=tmp_path, container_name="skilldo-test-abc")


class FakeRun:
    """Stands in for `subprocess.run`, recording every argv."""

    def __init__(self, returncode=0, stdout=b"", stderr=b"", timeout_on=None):
        self.calls: list[list[str]] = []
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.timeout_on = timeout_on

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        if self.timeout_on and args[1] == self.timeout_on:
            raise subprocess.TimeoutExpired(args, kwargs.get("timeout"))
        return SimpleNamespace(returncode=self.returncode, stdout=self.stdout, stderr=self.stderr)


class TestSanitizeDepName:
    @pytest.mark.parametrize("dep", ["requests", "httpx[http2]", "pydantic>=2.0", "numpy~=1.26"])
    def test_accepts_specifiers(self, dep):
        assert sanitize_dep_name(dep) == dep

    @pytest.mark.parametrize(
        "dep, reason",
        [("", "empty"), ("--index-url=evil", "flag injection"), ("requests; rm -rf /", "invalid character ';'")],
    )
    def test_rejects(self, dep, reason):
        with pytest.raises(UnsafeDependencyError, match=reason):
            sanitize_dep_name(dep)


class TestBuildCommand:
    """Container argv per install source."""

    def test_registry(self, env, tmp_path):
        cmd = ContainerExecutor(ContainerConfig()).build_command(env)
        assert cmd == [
            "docker", "run", "--rm",
            "--name", "skilldo-test-abc",
            "-v", f"{tmp_path}:/workspace",
            "-w", "/workspace",
            "ghcr.io/astral-sh/uv:python3.11-bookworm-slim",
            "uv", "run", "test.py",
        ]  # fmt: skip

    def test_local_install(self, env):
        config = ContainerConfig(runtime="podman", cleanup=False, install_source="local-install", source_path="/repo")
        cmd = ContainerExecutor(config).build_command(env)
        assert cmd[:2] == ["podman", "run"]
        assert "--rm" not in cmd
        assert "/repo:/src:ro" in cmd
        assert cmd[-3:] == ["sh", "-c", "cd /workspace && uv pip install --system /src && uv run test.py"]

    def test_local_mount_and_extra_env(self, env):
        config = ContainerConfig(install_source="local-mount", source_path="/repo", extra_env={"TOKEN": "t"})
        cmd = ContainerExecutor(config).build_command(env)
        assert "PYTHONPATH=/src" in cmd
        assert "TOKEN=t" in cmd
        assert cmd[-3:] == ["uv", "run", "test.py"]

    def test_local_source_requires_path(self, env):
        with pytest.raises(ExecutionEnvironmentError, match="source_path is required"):
            ContainerExecutor(ContainerConfig(install_source="local-mount")).build_command(env)

    def test_missing_container_name(self, tmp_path):
        with pytest.raises(ExecutionEnvironmentError):
            ContainerExecutor(ContainerConfig()).build_command(ExecutionEnv(workdir=tmp_path))

    def test_image_per_language(self):
        assert ContainerExecutor(ContainerConfig(), language="go").image == "golang:1.21-alpine"


class TestContainerRun:
    def test_pass(self, monkeypatch, env, tmp_path):
        fake = FakeRun(stdout=b"\xe2\x9c\x93 Test passed\n")
        monkeypatch.setattr(executors.subprocess, "run", fake)

        result = ContainerExecutor(ContainerConfig()).run_code(env, "print('hi')")

        assert result.status is ExecutionStatus.PASS
        assert result.output == "✓ Test passed\n"
        assert (tmp_path / "test.py").read_text() == "print('hi')"
        assert fake.calls[0] == ["docker", "rm", "-f", "skilldo-test-abc"]

    def test_failure_keeps_both_streams(self, monkeypatch, env):
        monkeypatch.setattr(executors.subprocess, "run", FakeRun(returncode=1, stdout=b"out", stderr=b"boom"))
        result = ContainerExecutor(ContainerConfig()).run_code(env, "raise SystemExit(1)")
        assert result.status is ExecutionStatus.FAIL
        assert result.output == "stdout:\nout\nstderr:\nboom"

    def test_timeout_kills_container(self, monkeypatch, env):
        fake = FakeRun(timeout_on="run")
        monkeypatch.setattr(executors.subprocess, "run", fake)

        result = ContainerExecutor(ContainerConfig(timeout=5)).run_code(env, "while True: pass")

        assert result.status is ExecutionStatus.TIMEOUT
        assert "5 seconds" in result.output
        assert fake.calls[-1] == ["docker", "kill", "skilldo-test-abc"]

    def test_setup_without_runtime(self, monkeypatch):
        monkeypatch.setattr(executors, "is_tool_available", lambda name: False)
        with pytest.raises(ExecutionEnvironmentError, match="podman runtime not found"):
            ContainerExecutor(ContainerConfig(runtime="podman")).setup_environment(["requests"])

    def test_setup_and_cleanup(self, monkeypatch):
        monkeypatch.setattr(executors, "is_tool_available", lambda name: True)
        fake = FakeRun()
        monkeypatch.setattr(executors.subprocess, "run", fake)
        executor = ContainerExecutor(ContainerConfig())

        env = executor.setup_environment(["requests", "rich"])
        assert env.dependencies == ["requests", "rich"]
        assert env.container_name.startswith("skilldo-test-")
        assert env.workdir.is_dir()

        executor.cleanup(env)
        assert not env.workdir.exists()
        assert fake.calls == [["docker", "rm", "-f", env.container_name]]

    def test_setup_rejects_unsafe_deps(self, monkeypatch):
        monkeypatch.setattr(executors, "is_tool_available", lambda name: True)
        with pytest.raises(UnsafeDependencyError):
            ContainerExecutor(ContainerConfig()).setup_environment(["-e ."])


class TestUvExecutor:
    def test_run_requires_python(self, env):
        with pytest.raises(ExecutionEnvironmentError, match="Python path not set"):
            UvExecutor().run_code(env, "print(1)")

    def test_run_failure_reports_stderr(self, monkeypatch, tmp_path):
        monkeypatch.setattr(executors.subprocess, "run", FakeRun(returncode=1, stderr=b"Traceback"))
        env = ExecutionEnv(workdir=tmp_path, python_bin=tmp_path / "python")
        result = UvExecutor().run_code(env, "raise RuntimeError")
        assert result.status is ExecutionStatus.FAIL
        assert result.output == "Traceback"

    def test_setup_without_uv(self, monkeypatch):
        monkeypatch.setattr(executors, "is_tool_available", lambda name: False)
        with pytest.raises(ExecutionEnvironmentError, match="uv is not installed"):
            UvExecutor().setup_environment([])


class TestIsToolAvailable:
    def test_missing_binary(self, monkeypatch):
        def boom(*args, **kwargs):
            raise FileNotFoundError("nope")

        monkeypatch.setattr(executors.subprocess, "run", boom)
        assert is_tool_available("docker") is False

    def test_exit_code_decides(self, monkeypatch):
        monkeypatch.setattr(executors.subprocess, "run", FakeRun(returncode=0))
        assert is_tool_available("docker") is True
        monkeypatch.setattr(executors.subprocess, "run", FakeRun(returncode=127))
        assert is_tool_available("docker") is False
