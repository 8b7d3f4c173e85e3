"""
Tests for the workflow registry and built-in catalogue
"""

import json
import logging

import pytest
import yaml

from o11y_mcp.types import ToolResult
from plugins.workflows import (
    BUILT_IN_WORKFLOWS,
    BuiltInWorkflow,
    UnknownWorkflowError,
    ValidationError,
    WorkflowRegistry,
    WorkflowSource,
    WorkflowStatus,
    discover_workflows,
    get_built_in,
    load_workflow_file,
)


CUSTOM_YAML = """
name: my-custom
description: A custom workflow
steps:
  - id: discover
    name: Discover
    tool: discover_o11y_data
    parameters: {}
"""


def _custom_document(name="my-custom", description="A custom workflow"):
    return {
        "name": name,
        "description": description,
        "steps": [
            {"id": "discover", "name": "Discover", "tool": "discover_o11y_data", "parameters": {}}
        ],
    }


class TestBuiltInWorkflows:
    """Tests for the built-in catalogue."""

    def test_catalogue_names(self):
        assert [w.name for w in BUILT_IN_WORKFLOWS] == [
            "full-o11y-setup",
            "service-dashboard",
            "slo-from-apm",
            "infrastructure-overview",
        ]

    def test_get_built_in(self):
        workflow = get_built_in(BuiltInWorkflow.SERVICE_DASHBOARD.value)

        assert workflow.variables["service_name"].required is True
        assert [s.tool for s in workflow.steps] == [
            "discover_o11y_data",
            "get_data_summary",
            "create_dashboard",
        ]

    def test_unknown_built_in(self):
        with pytest.raises(KeyError):
            get_built_in("nope")


class TestDiscovery:
    """Tests for custom workflow discovery."""

    def test_one_valid_and_one_malformed_file(self, tmp_path):
        """Test that a bad file is reported without hiding the good one."""
        (tmp_path / "good.yaml").write_text(CUSTOM_YAML)
        (tmp_path / "bad.yaml").write_text("name: [unclosed\n")

        listing = discover_workflows(tmp_path)

        assert [s.name for s in listing.summaries] == ["my-custom"]
        assert listing.summaries[0].source == WorkflowSource.CUSTOM
        assert len(listing.errors) == 1
        assert listing.errors[0].path.endswith("bad.yaml")
        assert "Failed to parse workflow YAML" in listing.errors[0].message

    def test_non_utf8_file_is_a_discovery_error(self, tmp_path):
        """Test that an undecodable file does not hide the other workflows."""
        (tmp_path / "good.yaml").write_text(CUSTOM_YAML)
        (tmp_path / "bad.yaml").write_bytes(b"name: \xff\xfe bad\n")

        listing = discover_workflows(tmp_path)

        assert [s.name for s in listing.summaries] == ["my-custom"]
        assert len(listing.errors) == 1
        assert listing.errors[0].path.endswith("bad.yaml")

        merged = WorkflowRegistry(custom_dir=tmp_path).list_workflows()
        assert len(merged.summaries) == len(BUILT_IN_WORKFLOWS) + 1
        assert len(merged.errors) == 1

    def test_schema_violations_are_discovery_errors(self, tmp_path):
        (tmp_path / "invalid.json").write_text(json.dumps({"name": "x"}))

        listing = discover_workflows(tmp_path)

        assert listing.summaries == []
        assert "validation failed" in listing.errors[0].message

    def test_other_files_are_ignored(self, tmp_path):
        (tmp_path / "README.md").write_text("# notes")
        (tmp_path / "good.yml").write_text(CUSTOM_YAML)

        listing = discover_workflows(tmp_path)

        assert [s.name for s in listing.summaries] == ["my-custom"]
        assert listing.errors == []

    def test_duplicate_custom_names(self, tmp_path):
        """Test that the first file in sorted order wins a name clash."""
        (tmp_path / "a.yaml").write_text(CUSTOM_YAML)
        (tmp_path / "b.json").write_text(json.dumps(_custom_document()))

        listing = discover_workflows(tmp_path)

        assert len(listing.summaries) == 1
        assert listing.errors[0].path.endswith("b.json")
        assert "Duplicate workflow name" in listing.errors[0].message

    def test_missing_directory(self, tmp_path):
        listing = discover_workflows(tmp_path / "absent")

        assert listing.summaries == []
        assert listing.errors == []


class TestWorkflowRegistry:
    """Tests for WorkflowRegistry."""

    def test_list_without_custom_dir(self, tmp_path):
        registry = WorkflowRegistry(custom_dir=tmp_path / "none")

        listing = registry.list_workflows()

        assert [s.name for s in listing.summaries] == [w.name for w in BUILT_IN_WORKFLOWS]
        assert all(s.source == WorkflowSource.BUILT_IN for s in listing.summaries)

    def test_list_merges_custom_workflows(self, tmp_path):
        (tmp_path / "custom.yaml").write_text(CUSTOM_YAML)
        (tmp_path / "broken.yaml").write_text("steps: 5\n")

        listing = WorkflowRegistry(custom_dir=tmp_path).list_workflows()
        names = [s.name for s in listing.summaries]

        assert names[-1] == "my-custom"
        assert len(names) == len(BUILT_IN_WORKFLOWS) + 1
        assert len(listing.errors) == 1

        data = listing.to_dict()
        assert data["workflows"][-1] == {
            "name": "my-custom",
            "description": "A custom workflow",
            "version": None,
            "source": "custom",
            "step_count": 1,
        }
        assert data["errors"][0]["path"].endswith("broken.yaml")

    def test_custom_shadows_built_in(self, tmp_path, caplog):
        """Test that a custom workflow replaces the built-in of the same name."""
        document = _custom_document(name="service-dashboard", description="Mine")
        (tmp_path / "service-dashboard.yaml").write_text(yaml.safe_dump(document))
        registry = WorkflowRegistry(custom_dir=tmp_path)

        with caplog.at_level(logging.INFO):
            listing = registry.list_workflows()

        matching = [s for s in listing.summaries if s.name == "service-dashboard"]
        assert len(matching) == 1
        assert matching[0].source == WorkflowSource.CUSTOM
        assert registry.get("service-dashboard").description == "Mine"
        assert registry.source_of("service-dashboard") == WorkflowSource.CUSTOM
        assert "shadows the built-in" in caplog.text

    def test_get_unknown(self, tmp_path):
        registry = WorkflowRegistry(custom_dir=tmp_path)

        with pytest.raises(UnknownWorkflowError) as exc_info:
            registry.get("does-not-exist")

        assert exc_info.value.name == "does-not-exist"
        assert "list_workflows" in str(exc_info.value)

    def test_save_then_list(self, tmp_path):
        """Test that a saved workflow is discovered and loads back identically."""
        registry = WorkflowRegistry(custom_dir=tmp_path)

        path = registry.save(_custom_document(name="saved-one"))

        assert path == tmp_path / "saved-one.yaml"
        assert registry.source_of("saved-one") == WorkflowSource.CUSTOM
        assert load_workflow_file(path) == registry.get("saved-one")

    def test_save_rejects_invalid(self, tmp_path):
        registry = WorkflowRegistry(custom_dir=tmp_path)

        with pytest.raises(ValidationError):
            registry.save({"name": "Bad Name", "steps": []})

        assert list(tmp_path.iterdir()) == []

    def test_save_to_explicit_directory(self, tmp_path):
        registry = WorkflowRegistry(custom_dir=tmp_path / "custom")
        target = tmp_path / "elsewhere"

        path = registry.save(_custom_document(), directory=target)

        assert path.parent == target
        assert yaml.safe_load(path.read_text())["name"] == "my-custom"

    @pytest.mark.asyncio
    async def test_run_unknown_workflow_invokes_nothing(self, tmp_path, make_invoker):
        invoker = make_invoker()

        with pytest.raises(UnknownWorkflowError):
            await WorkflowRegistry(custom_dir=tmp_path).run("nope", {}, invoker)

        assert invoker.calls == []

    @pytest.mark.asyncio
    async def test_run_built_in(self, tmp_path, make_invoker):
        """Test running a built-in workflow end to end."""
        invoker = make_invoker(
            {
                "get_data_summary": ToolResult.success({"has_apm_data": False}),
            }
        )

        result = await WorkflowRegistry(custom_dir=tmp_path).run(
            "slo-from-apm", {"service_name": "checkout"}, invoker
        )

        assert result.workflow_name == "slo-from-apm"
        assert result.status == WorkflowStatus.SUCCESS
        assert result.get_step("create_slo").status.value == "skipped"
        assert "create_slo" not in invoker.called_tools()
