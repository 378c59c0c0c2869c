"""
Settings and application factory tests.
"""

import json

import pytest
from pydantic import ValidationError

from brigade.config import Settings
from brigade.main import create_app, load_setup
from brigade.projects.errors import ProjectLoadError, ProjectNotFoundError
from brigade.projects.models import Project, project_id_for
from brigade.projects.registry import ProjectRegistry


def test_settings_from_env():
    settings = Settings.from_env({
        "BRIGADE_PORT": "8080",
        "BRIGADE_POLL_INTERVAL": "0.5",
        "BRIGADE_DEFAULT_IMAGE": "alpine:3.19",
        "BRIGADE_LOG_LEVEL": "",
        "UNRELATED": "ignored",
    })

    assert settings.port == 8080
    assert settings.poll_interval == 0.5
    assert settings.default_image == "alpine:3.19"
    assert settings.log_level == "INFO"


def test_settings_reject_bad_values():
    with pytest.raises(ValidationError):
        Settings.from_env({"BRIGADE_PORT": "not-a-port"})


def test_project_id_derived_from_name():
    project = Project(name="deis/empty-testbed")
    assert project.id == project_id_for("deis/empty-testbed")
    assert project.id.startswith("brigade-")
    assert len(project.id) == len("brigade-") + 54


def test_project_secrets_hidden_from_repr():
    project = Project(name="deis/empty-testbed", shared_secret="MySecret", secrets={"k": "v"})
    assert "MySecret" not in repr(project)


def test_registry_lookup():
    project = Project(name="deis/empty-testbed")
    registry = ProjectRegistry([project])

    assert registry.get_or_raise(project.id) is project
    assert registry.find_by_name("deis/empty-testbed") is project
    with pytest.raises(ProjectNotFoundError):
        registry.find_by_name("deis/other")


def test_registry_load_file(tmp_path):
    path = tmp_path / "projects.json"
    path.write_text(json.dumps([
        {"name": "deis/empty-testbed", "shared_secret": "MySecret"},
        {"name": "deis/dind", "allow_privileged_jobs": True},
    ]))

    registry = ProjectRegistry()
    assert registry.load_file(path) == 2
    assert [p.name for p in registry.list_projects()] == ["deis/dind", "deis/empty-testbed"]


def test_registry_load_file_invalid(tmp_path):
    path = tmp_path / "projects.json"
    path.write_text(json.dumps([{"name": "x", "unknown_field": 1}]))
    with pytest.raises(ProjectLoadError):
        ProjectRegistry().load_file(path)


def test_create_app_from_settings(tmp_path):
    projects_file = tmp_path / "projects.json"
    projects_file.write_text(json.dumps([{"name": "deis/empty-testbed"}]))
    settings = Settings(
        db_path=str(tmp_path / "brigade.db"),
        projects_file=str(projects_file),
        work_dir=str(tmp_path / "work"),
        handlers="brigade.main:configure_logging",
    )

    app = create_app(settings)

    assert app.state.projects.count() == 1
    assert app.state.substrate.name == "local"
    assert app.state.setup.__name__ == "configure_logging"


def test_load_setup_requires_separator():
    with pytest.raises(ValueError):
        load_setup("brigade.main")
