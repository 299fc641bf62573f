"""Shared fixtures for permschema tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import pytest

from permschema import Schema, SchemaConfig


@dataclass
class FakeUser:
    name: str = "alice"
    granted_permissions: set[str] = field(default_factory=set)
    permission_contexts: set[str] = field(default_factory=set)

    def __str__(self) -> str:
        return self.name


@dataclass
class FakeProject:
    name: str = "apollo"
    owner: Optional[str] = None
    archived: bool = False


@dataclass
class FakeTask:
    title: str = "launch"
    project: Optional[FakeProject] = None


@pytest.fixture
def schema() -> Schema:
    return Schema(config=SchemaConfig())


@pytest.fixture
def namespaced_schema() -> Schema:
    return Schema(config=SchemaConfig(namespace="app"))


@pytest.fixture
def projects_schema(schema: Schema) -> Schema:
    """Schema with a small projects/tasks tree.

    projects
        list
        edit            (includes "owner" unless archived)
        delete          (depends on projects.edit, own rule "not_archived")
        tasks
            view        (includes "owner" on the task's project)
    """

    def define(root):
        projects = root.add_group("projects")
        projects.define_rule("owner", lambda user, project: project.owner == user.name, FakeProject)

        projects.add_permission("list")

        edit = projects.add_permission("edit")
        edit.include_rule("owner")

        delete = projects.add_permission("delete")
        delete.add_dependency("projects.edit")
        delete.add_rule("not_archived", lambda user, project: not project.archived)

        tasks = projects.add_group("tasks")
        view = tasks.add_permission("view")
        view.include_rule("owner", translate=lambda task: task.project)

    schema.load(define)
    return schema
