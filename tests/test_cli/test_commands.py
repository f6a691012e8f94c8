"""Tests for CLI command implementations."""

from contextlib import asynccontextmanager
from unittest.mock import Mock

import pytest

from catlet.cli.commands import (
    CatletSession,
    StateStore,
    create_project,
    destroy_catlet,
    list_projects,
    remove_project,
    run_action,
    set_network_config,
    show_network_config,
    show_status,
    ssh_info,
    up_catlets,
)
from catlet.errors import CatletError, ConfigurationError, OperationTimeoutError
from catlet.lifecycle.orchestrator import Action
from catlet.models.catlet import CatletDefinition
from catlet.models.config import SpawnConfig
from catlet.models.status import ReconciledState


class StubSession(CatletSession):
    """Session over in-memory definitions and the fake API."""

    def __init__(self, state_dir, api, definitions, **operations):
        self.manager = Mock(catlets=definitions, load_errors={})
        self.manager.get_definition = definitions.get
        self.config = SpawnConfig(operations={"poll_interval": 0.01, **operations})
        self.state = StateStore(state_dir)
        self.api = api

    def client(self):
        @asynccontextmanager
        async def _client():
            yield self.api
        return _client()


def _definitions(*names, **fields):
    return {
        name: CatletDefinition(name=name, parent="dbosoft/ubuntu-22.04/starter", **fields)
        for name in names
    }


class TestStateStore:
    """Test local identifier persistence."""

    def test_round_trip(self, tmp_path):
        """Test that identifiers survive a reload."""
        store = StateStore(tmp_path / "state")
        store.set("web", "c1")

        assert StateStore(tmp_path / "state").get("web") == "c1"

    def test_forget(self, tmp_path):
        """Test that clearing an identifier removes it."""
        store = StateStore(tmp_path)
        store.set("web", "c1")
        store.set("web", None)

        assert StateStore(tmp_path).get("web") is None

    def test_corrupt_file(self, tmp_path):
        """Test that an unreadable state file is reported."""
        (tmp_path / "catlets.json").write_text("{not json")

        with pytest.raises(ConfigurationError):
            StateStore(tmp_path)


class TestCommands:
    """Test command handlers against the fake API."""

    def test_up_persists_identifier(self, tmp_path, fake_api, capsys):
        """Test that up stores the created catlet id."""
        session = StubSession(tmp_path, fake_api, _definitions("web"))

        result = run_action(session, "web", Action.UP)

        assert result.state == ReconciledState.RUNNING
        assert session.state.get("web") == result.local_id
        assert "created-running" in capsys.readouterr().out

    def test_unknown_catlet(self, tmp_path, fake_api):
        """Test acting on a catlet that is not configured."""
        session = StubSession(tmp_path, fake_api, _definitions("web"))

        with pytest.raises(ConfigurationError):
            run_action(session, "db", Action.UP)

    def test_destroy_forgets_identifier(self, tmp_path, fake_api):
        """Test that destroy clears the stored id."""
        web = fake_api.add_catlet("web", status="running")
        session = StubSession(tmp_path, fake_api, _definitions("web"))
        session.state.set("web", web.id)

        destroy_catlet(session, "web")

        assert session.state.get("web") is None
        assert fake_api.catlets == {}

    @pytest.mark.parametrize("parallel", [False, True])
    def test_up_all(self, tmp_path, fake_api, capsys, parallel):
        """Test bringing every configured catlet up."""
        session = StubSession(tmp_path, fake_api, _definitions("web", "db"))

        up_catlets(session, None, all_catlets=True, parallel=parallel)

        assert session.state.get("web") and session.state.get("db")
        assert len(fake_api.calls_named("create")) == 2
        assert "2/2 catlets up" in capsys.readouterr().out

    def test_up_all_reports_failures(self, tmp_path, fake_api, capsys):
        """Test that one failing catlet does not stop the others."""
        definitions = _definitions("web")
        definitions["broken"] = CatletDefinition(name="broken")
        session = StubSession(tmp_path, fake_api, definitions)

        with pytest.raises(CatletError) as exc_info:
            up_catlets(session, None, all_catlets=True, parallel=True)

        assert "1 of 2 catlets failed" in str(exc_info.value)
        assert session.state.get("web")
        assert "broken" in capsys.readouterr().out

    def test_timeout_keeps_identifier(self, tmp_path, fake_api):
        """Test that a timed out create leaves the id for the next run."""
        fake_api.create_pending_polls = 1000
        session = StubSession(tmp_path, fake_api, _definitions("web"), timeout=0.05)

        with pytest.raises(OperationTimeoutError):
            run_action(session, "web", Action.UP, quiet=True)

        assert session.state.get("web") == next(iter(fake_api.catlets))

    def test_status_table(self, tmp_path, fake_api, capsys):
        """Test the status overview."""
        web = fake_api.add_catlet("web", status="running", address="192.168.1.20")
        session = StubSession(tmp_path, fake_api, _definitions("web", "db"))
        session.state.set("web", web.id)

        show_status(session)

        out = capsys.readouterr().out
        assert "created-running" in out
        assert "192.168.1.20" in out
        assert "absent" in out

    def test_ssh_info(self, tmp_path, fake_api, capsys):
        """Test printing connection details."""
        web = fake_api.add_catlet("web", status="running", address="192.168.1.20")
        session = StubSession(tmp_path, fake_api, _definitions("web"))
        session.state.set("web", web.id)

        ssh_info(session, "web")

        out = capsys.readouterr().out
        assert "Host: 192.168.1.20" in out
        assert "Port: 22" in out
        assert "********" in out

    def test_ssh_info_not_reachable(self, tmp_path, fake_api, capsys):
        """Test ssh-info for a catlet that is not running."""
        session = StubSession(tmp_path, fake_api, _definitions("web"))

        ssh_info(session, "web")

        assert "not reachable yet" in capsys.readouterr().out


class TestProjectCommands:
    """Test project and network handlers against the fake API."""

    def test_list_projects(self, tmp_path, fake_api, capsys):
        """Test the project table."""
        session = StubSession(tmp_path, fake_api, {})

        create_project(session, "lab")
        list_projects(session)

        out = capsys.readouterr().out
        assert "Project lab created" in out
        assert "default" in out
        assert fake_api.projects["lab"].id in out

    def test_remove_project(self, tmp_path, fake_api, capsys):
        """Test removing a project by name."""
        session = StubSession(tmp_path, fake_api, {})
        create_project(session, "lab")

        remove_project(session, "lab")

        assert "lab" not in fake_api.projects
        assert "Project lab removed" in capsys.readouterr().out

    def test_remove_unknown_project(self, tmp_path, fake_api):
        """Test that a missing project is reported as a configuration error."""
        session = StubSession(tmp_path, fake_api, {})

        with pytest.raises(ConfigurationError):
            remove_project(session, "nope")

    def test_network_config(self, tmp_path, fake_api, capsys):
        """Test setting a network configuration from a file and printing it."""
        session = StubSession(tmp_path, fake_api, {})
        config_file = tmp_path / "network.yaml"
        config_file.write_text("version: '1.0'\nnetworks:\n  - name: default\n    address: 10.10.0.0/16\n")

        set_network_config(session, "default", config_file)
        show_network_config(session, "default")

        out = capsys.readouterr().out
        assert "Network configuration of project default updated" in out
        assert "address: 10.10.0.0/16" in out
        assert fake_api.network_configs["project-default"]["version"] == "1.0"

    def test_network_config_missing_file(self, tmp_path, fake_api):
        """Test that a missing configuration file fails before any remote call."""
        session = StubSession(tmp_path, fake_api, {})

        with pytest.raises(ConfigurationError):
            set_network_config(session, "default", tmp_path / "missing.yaml")

        assert fake_api.calls == []
