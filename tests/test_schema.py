"""Tests for permschema.schema (schema-level checks, lifecycle and export)."""

from __future__ import annotations

import asyncio
import logging
import threading

import pytest

from permschema import (
    DenialCode,
    InvalidObjectError,
    NamespaceMissingError,
    NoPermissionsFoundError,
    PermissionDeniedError,
    PermissionNotFoundError,
    Schema,
    SchemaConfig,
    SchemaDefinitionError,
    SchemaEntry,
    get_current_schema,
    reset_current_schema,
    resolve_schema,
    set_current_schema,
)

from conftest import FakeProject, FakeUser


class TestStrictCheck:
    """Tests for Schema.check_permission with strict=True."""

    def test_single_permission(self, projects_schema: Schema) -> None:
        """Test a single match behaves like Permission.check."""
        user = FakeUser(granted_permissions={"projects.list"})
        result = projects_schema.check_permission("projects.list", user)
        assert [p.path for p in result] == ["projects.list"]

    def test_single_permission_denied(self, projects_schema: Schema) -> None:
        """Test a single match raises the permission's own denial."""
        with pytest.raises(PermissionDeniedError) as exc_info:
            projects_schema.check_permission("projects.list", FakeUser())
        assert exc_info.value.permission.path == "projects.list"

    def test_unknown_path(self, projects_schema: Schema) -> None:
        """Test an unknown path raises PermissionNotFoundError."""
        with pytest.raises(PermissionNotFoundError):
            projects_schema.check_permission("projects.archive", FakeUser())

    def test_wildcard_matching_nothing(self, schema: Schema) -> None:
        """Test a wildcard with zero matches raises NoPermissionsFoundError."""
        schema.root_group.add_group("empty")
        with pytest.raises(NoPermissionsFoundError):
            schema.check_permission("empty.*", FakeUser())

    def test_wildcard_partially_granted(self, projects_schema: Schema) -> None:
        """Test ungranted permissions are skipped when another one passes."""
        user = FakeUser(name="alice", granted_permissions={"projects.list"})
        result = projects_schema.check_permission("projects.*", user, FakeProject(owner="alice"))
        assert [p.path for p in result] == ["projects.list"]

    def test_wildcard_concatenates_results(self, projects_schema: Schema) -> None:
        """Test granted results are concatenated in declaration order."""
        user = FakeUser(
            name="alice",
            granted_permissions={"projects.list", "projects.edit", "projects.delete"},
        )
        result = projects_schema.check_permission("projects.*", user, FakeProject(owner="alice"))
        assert [p.path for p in result] == [
            "projects.list",
            "projects.edit",
            "projects.delete",
            "projects.edit",
        ]

    def test_wildcard_nothing_granted(self, projects_schema: Schema) -> None:
        """Test an aggregate denial is raised when nothing is granted."""
        with pytest.raises(PermissionDeniedError) as exc_info:
            projects_schema.check_permission("projects.*", FakeUser(), FakeProject())

        error = exc_info.value
        assert error.denial is DenialCode.PERMISSION_NOT_GRANTED
        assert error.permission.path == "projects.list"
        assert "projects.list" in error.message and "projects.delete" in error.message

    def test_wildcard_rule_denial_propagates(self, projects_schema: Schema) -> None:
        """Test denials other than PermissionNotGranted stop the fan-out."""
        user = FakeUser(name="alice", granted_permissions={"projects.list", "projects.edit"})
        with pytest.raises(PermissionDeniedError) as exc_info:
            projects_schema.check_permission("projects.*", user, FakeProject(owner="bob"))
        assert exc_info.value.denial is DenialCode.INCLUDED_RULE_NOT_SATISFIED

    def test_deep_wildcard(self, projects_schema: Schema) -> None:
        """Test `**.*` fans out over the whole subtree."""
        user = FakeUser(granted_permissions={"projects.list"})
        result = projects_schema.check_permission("projects.**.*", user, FakeProject())
        assert [p.path for p in result] == ["projects.list"]

    def test_wildcard_invalid_object_raises(self, schema: Schema) -> None:
        """Test InvalidObjectError is never counted as a denial."""
        group = schema.root_group.add_group("projects")
        group.add_permission("view").add_required_object_type(FakeProject)
        group.add_permission("list")
        user = FakeUser(granted_permissions={"projects.view", "projects.list"})
        with pytest.raises(InvalidObjectError):
            schema.check_permission("projects.*", user, "not a project")


class TestNamespacedCheck:
    """Tests for checks against a namespaced schema."""

    def test_namespaced_path_and_grant(self) -> None:
        """Test namespaced paths resolve and namespaced grants satisfy."""
        schema = Schema(config=SchemaConfig(namespace="app"))
        schema.root_group.add_group("users").add_permission("edit")
        user = FakeUser(granted_permissions={"app:users.edit"})

        [permission] = schema.check_permission("app:users.edit", user)
        assert permission.path_with_namespace == "app:users.edit"

    def test_namespace_missing(self) -> None:
        """Test a bare path is rejected when the namespace is required."""
        schema = Schema(config=SchemaConfig(namespace="app"))
        schema.root_group.add_group("users").add_permission("edit")
        with pytest.raises(NamespaceMissingError):
            schema.check_permission("users.edit", FakeUser(granted_permissions={"app:users.edit"}))


class TestUnstrictCheck:
    """Tests for Schema.check_permission with strict=False."""

    def test_granted_literal(self, schema: Schema) -> None:
        """Test an unstrict check only looks at the granted set."""
        user = FakeUser(granted_permissions={"reports.export"})
        assert schema.check_permission("reports.export", user, strict=False) == ["reports.export"]

    def test_not_granted(self, schema: Schema) -> None:
        """Test an absent grant is denied without an attached permission."""
        user = FakeUser()
        with pytest.raises(PermissionDeniedError) as exc_info:
            schema.check_permission("reports.export", user, strict=False)

        assert exc_info.value.denial is DenialCode.PERMISSION_NOT_GRANTED
        assert exc_info.value.permission is None
        assert exc_info.value.user is user

    @pytest.mark.parametrize("path", [None, ""])
    def test_missing_path(self, schema: Schema, path) -> None:
        """Test an absent path is reported as not found."""
        with pytest.raises(PermissionNotFoundError):
            schema.check_permission(path, FakeUser(), strict=False)

    def test_wildcards_rejected(self, schema: Schema) -> None:
        """Test wildcards are not allowed in unstrict checks."""
        with pytest.raises(PermissionNotFoundError, match="wildcards"):
            schema.check_permission("reports.*", FakeUser(), strict=False)

    def test_no_namespace_normalisation(self, namespaced_schema: Schema) -> None:
        """Test unstrict checks compare the path literally."""
        user = FakeUser(granted_permissions={"app:reports.export"})
        assert namespaced_schema.check_permission("app:reports.export", user, strict=False)
        with pytest.raises(PermissionDeniedError):
            namespaced_schema.check_permission("reports.export", user, strict=False)


class TestLifecycle:
    """Tests for configure, load and reload."""

    def test_configure_validates(self, schema: Schema) -> None:
        """Test configure applies validated changes."""
        schema.configure(namespace="app", namespace_optional=True)
        assert schema.config.namespace == "app"
        assert schema.config.namespace_optional is True

        with pytest.raises(ValueError):
            schema.configure(namespace_delimiter="")

    def test_configure_unknown_option(self, schema: Schema) -> None:
        """Test unknown configuration names are rejected."""
        with pytest.raises(SchemaDefinitionError):
            schema.configure(colour="blue")

    def test_load_replaces_root(self, schema: Schema) -> None:
        """Test load publishes a freshly built root group."""
        old_root = schema.root_group
        new_root = schema.load(lambda root: root.add_permission("view"))

        assert schema.root_group is new_root
        assert new_root is not old_root
        assert list(new_root.permissions) == ["view"]

    def test_failed_load_keeps_tree(self, schema: Schema) -> None:
        """Test a definition that raises leaves the current tree in place."""
        schema.load(lambda root: root.add_permission("view"))
        current = schema.root_group

        def broken(root):
            root.add_permission("edit")
            raise RuntimeError("definition failed")

        with pytest.raises(RuntimeError):
            schema.load(broken)
        assert schema.root_group is current

    def test_reload_rebuilds(self, schema: Schema) -> None:
        """Test reload runs the remembered definition again."""
        calls = []

        def define(root):
            calls.append(1)
            root.add_permission("view")

        schema.load(define)
        first_root = schema.root_group
        schema.reload()

        assert len(calls) == 2
        assert schema.root_group is not first_root
        assert list(schema.root_group.permissions) == ["view"]

    def test_reload_without_load(self, schema: Schema) -> None:
        """Test reload needs a prior load."""
        with pytest.raises(SchemaDefinitionError):
            schema.reload()

    def test_results_survive_reload(self, projects_schema: Schema) -> None:
        """Test permissions returned by a check remain usable after reload."""
        user = FakeUser(granted_permissions={"projects.list"})
        [permission] = projects_schema.check_permission("projects.list", user)
        projects_schema.reload()
        assert permission.path == "projects.list"

    def test_concurrent_checks(self, projects_schema: Schema) -> None:
        """Test checks from many threads against one tree agree."""
        user = FakeUser(name="alice", granted_permissions={"projects.edit"})
        project = FakeProject(owner="alice")
        results: list[bool] = []
        lock = threading.Lock()

        def worker() -> None:
            for _ in range(50):
                granted = bool(projects_schema.check_permission("projects.edit", user, project))
                with lock:
                    results.append(granted)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 400
        assert all(results)

    def test_logs_decisions(self, projects_schema: Schema, caplog: pytest.LogCaptureFixture) -> None:
        """Test grant and deny decisions are logged at INFO."""
        user = FakeUser(name="alice", granted_permissions={"projects.list"})
        with caplog.at_level(logging.INFO, logger="permschema"):
            projects_schema.check_permission("projects.list", user)
            with pytest.raises(PermissionDeniedError):
                projects_schema.check_permission("projects.edit", user, FakeProject())

        messages = [record.getMessage() for record in caplog.records]
        assert "`projects.list` granted to FakeUser alice" in messages
        assert "`projects.edit` not granted to FakeUser alice" in messages


class TestExport:
    """Tests for Schema.export."""

    def test_export_entries(self, projects_schema: Schema) -> None:
        """Test every group and permission is exported with its parent path."""
        projects_schema.root_group["projects"].name = "Projects"
        exported = projects_schema.export()

        assert list(exported) == sorted(exported)
        assert exported["projects"] == SchemaEntry(kind="group", name="Projects", parent_path=None)
        assert exported["projects.tasks"].parent_path == "projects"
        assert exported["projects.tasks.view"].kind == "permission"
        assert exported["projects.tasks.view"].parent_path == "projects.tasks"
        assert exported["projects.edit"].description == "projects.edit"

    def test_export_rekeyed_after_namespace_change(self, schema: Schema) -> None:
        """Test configuring a namespace re-keys an existing tree's export."""
        schema.root_group.add_group("g").add_permission("p")

        exported = schema.export()
        assert set(exported) == {"g", "g.p"}
        assert exported["g.p"].parent_path == "g"

        schema.configure(namespace="ns")
        exported = schema.export()
        assert set(exported) == {"ns:g", "ns:g.p"}
        assert exported["ns:g.p"].parent_path == "g"

    def test_export_uses_namespaced_keys(self, namespaced_schema: Schema) -> None:
        """Test export keys carry the namespace while parent paths stay bare."""
        namespaced_schema.root_group.add_group("users").add_permission("edit")
        exported = namespaced_schema.export()

        assert set(exported) == {"app:users", "app:users.edit"}
        assert exported["app:users.edit"].parent_path == "users"

    def test_export_serialises(self, projects_schema: Schema) -> None:
        """Test entries dump to plain dicts."""
        entry = projects_schema.export()["projects.list"]
        assert entry.model_dump() == {
            "kind": "permission",
            "name": None,
            "description": "projects.list",
            "parent_path": "projects",
        }


class TestSchemaResolution:
    """Tests for Schema.instance and the current-schema context."""

    @pytest.fixture(autouse=True)
    def _reset_instance(self):
        previous = Schema.instance
        yield
        Schema.instance = previous

    def test_explicit_schema_wins(self, schema: Schema) -> None:
        """Test an explicit schema is returned as-is."""
        Schema.instance = Schema()
        assert resolve_schema(schema) is schema

    def test_current_schema_before_instance(self, schema: Schema) -> None:
        """Test the context's current schema wins over the singleton."""
        Schema.instance = Schema()
        token = set_current_schema(schema)
        try:
            assert get_current_schema() is schema
            assert resolve_schema() is schema
        finally:
            reset_current_schema(token)
        assert get_current_schema() is None

    def test_instance_fallback(self, schema: Schema) -> None:
        """Test the singleton is used when nothing else is set."""
        Schema.instance = schema
        assert resolve_schema() is schema

    def test_nothing_to_resolve(self) -> None:
        """Test resolution fails without any schema."""
        Schema.instance = None
        with pytest.raises(SchemaDefinitionError):
            resolve_schema()

    def test_current_schema_isolated_per_task(self) -> None:
        """Test each asyncio task sees its own current schema."""
        first, second = Schema(), Schema()

        async def use(schema: Schema) -> Schema:
            set_current_schema(schema)
            await asyncio.sleep(0)
            return resolve_schema()

        async def main() -> list[Schema]:
            return await asyncio.gather(use(first), use(second))

        assert asyncio.run(main()) == [first, second]
