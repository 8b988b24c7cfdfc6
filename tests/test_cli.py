"""Tests for the memstack command line entry points."""

from unittest.mock import patch

import pytest

from memstack.cli import MemstackCLI, cleanup_main, main, services_main


@pytest.fixture(autouse=True)
def sandbox_home(tmp_path, monkeypatch):
    # Default data directories live under the user's home
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in ("QDRANT_PORT", "OLLAMA_HOST", "OLLAMA_PORT", "MEM0_PORT", "MEMSTACK_PREFIX", "CLAUDE_HOME"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def docker(engine):
    with patch("memstack.cli.DockerEngine", return_value=engine):
        yield engine


@pytest.fixture
def home(config):
    return str(config.home)


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage: memstack" in capsys.readouterr().out

    def test_help_command(self, capsys):
        assert main(["help"]) == 0
        assert "install" in capsys.readouterr().out

    def test_status_when_not_installed(self, docker, home):
        assert main(["--home", home, "status"]) == 0

    def test_stop_when_not_installed_fails(self, docker, home):
        assert main(["--home", home, "stop"]) == 1

    def test_start_without_docker_fails(self, docker, home, installed_config):
        docker.available = False
        assert main(["--home", home, "start"]) == 1
        assert not any(c[0] == "compose_up" for c in docker.calls)

    @patch("memstack.readiness.run_probe", return_value=True)
    def test_install(self, mock_probe, docker, home, config):
        assert main(["--home", home, "install"]) == 0

        assert config.compose_file.exists()
        assert config.env_file.exists()
        assert set(docker.containers) == set(config.container_names)
        assert "mxbai-embed-large:latest" in docker.models

    @patch("memstack.cli.confirm_action", return_value=False)
    def test_declined_clean_changes_nothing(self, mock_confirm, docker, home, config):
        docker.containers = {"claude-qdrant": "running"}

        assert main(["--home", home, "clean"]) == 0

        assert docker.containers == {"claude-qdrant": "running"}
        mock_confirm.assert_called_once()

    def test_uninstall_with_yes(self, docker, home, installed_config):
        assert main(["--home", home, "--yes", "uninstall"]) == 0
        assert not installed_config.home.exists()

    @patch.object(MemstackCLI, "status", side_effect=KeyboardInterrupt)
    def test_interrupt_exit_code(self, mock_status, docker, home):
        assert main(["--home", home, "status"]) == 130


class TestCleanupMain:
    def test_default_is_docker(self, docker, home, config):
        docker.containers = {name: "running" for name in config.container_names}
        docker.volumes = set(config.volume_names)

        assert cleanup_main(["--home", home]) == 0

        assert docker.containers == {}
        assert docker.volumes == set(config.volume_names)

    @patch("memstack.confirm.sys.stdin")
    def test_emergency_requires_confirmation(self, mock_stdin, docker, home, installed_config):
        mock_stdin.isatty.return_value = False
        assert cleanup_main(["--home", home, "emergency"]) == 0
        assert installed_config.home.exists()

    def test_emergency_with_yes(self, docker, home, installed_config):
        docker.containers = {"claude-qdrant": "running", "claude-stale": "exited"}

        assert cleanup_main(["--home", home, "--yes", "emergency"]) == 0

        assert docker.containers == {}
        assert not installed_config.home.exists()

    def test_data_does_not_need_docker(self, docker, home, config):
        docker.available = False
        config.data_dir.mkdir(parents=True)

        assert cleanup_main(["--home", home, "data"]) == 0
        assert not config.data_dir.exists()

    def test_unknown_command(self, home):
        with pytest.raises(SystemExit) as exc:
            cleanup_main(["--home", home, "everything"])
        assert exc.value.code == 2


class TestServicesMain:
    def test_default_is_status(self, docker, home):
        assert services_main(["--home", home]) == 0

    def test_out_of_range_retry_setting_exits_1(self, docker, home, monkeypatch):
        monkeypatch.setenv("MEMSTACK_READY_MAX_ATTEMPTS", "0")
        assert services_main(["--home", home, "status"]) == 1

    def test_service_only_for_logs(self, docker, home):
        with pytest.raises(SystemExit) as exc:
            services_main(["--home", home, "status", "mem0"])
        assert exc.value.code == 2

    def test_logs_for_service(self, docker, home, installed_config):
        assert services_main(["--home", home, "logs", "mem0"]) == 0
        assert ("compose_logs", "mem0", 100, True) in docker.calls

    def test_logs_unknown_service(self, docker, home, installed_config):
        assert services_main(["--home", home, "logs", "redis"]) == 1

    def test_stop(self, docker, home, installed_config):
        docker.containers = {name: "running" for name in installed_config.container_names}
        assert services_main(["--home", home, "stop"]) == 0
        assert docker.containers == {}
