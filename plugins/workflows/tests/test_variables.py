"""
Tests for VariableResolver initialization and interpolation
"""

import logging

import pytest

from plugins.workflows import (
    UnresolvedVariableError,
    ValidationError,
    VariableResolver,
    WorkflowDefinition,
)
from plugins.workflows.variables import MISSING, stringify, walk_path


WORKFLOW_YAML = """
name: vars
description: Variable handling
variables:
  service_name:
    description: Service
    type: string
    required: true
  target:
    description: Target
    type: number
    default: 99.9
  tags:
    description: Tags
    type: object
    default: [web, api]
steps:
  - id: only
    name: Only step
    tool: noop
    parameters: {}
"""


@pytest.fixture
def workflow():
    return WorkflowDefinition.from_yaml(WORKFLOW_YAML)


@pytest.fixture
def resolver(workflow):
    return VariableResolver.initialize(workflow, {"service_name": "checkout"})


class TestInitialize:
    """Tests for building the run namespace."""

    def test_defaults_and_arguments(self, resolver):
        """Test that defaults are applied and arguments overlay them."""
        assert resolver.snapshot() == {
            "service_name": "checkout",
            "target": 99.9,
            "tags": ["web", "api"],
        }

    def test_argument_overrides_default(self, workflow):
        """Test that a supplied value wins over the declared default."""
        resolver = VariableResolver.initialize(
            workflow, {"service_name": "checkout", "target": 95}
        )

        assert resolver.lookup("target") == (True, 95)

    def test_missing_required_variable(self, workflow):
        """Test that required variables without a value are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            VariableResolver.initialize(workflow, {})

        assert [v.path for v in exc_info.value.violations] == ["/variables/service_name"]

    def test_required_variable_set_to_none(self, workflow):
        """Test that an explicit None does not satisfy a required variable."""
        with pytest.raises(ValidationError):
            VariableResolver.initialize(workflow, {"service_name": None})

    def test_undeclared_variable_warns(self, workflow, caplog):
        """Test that undeclared arguments are kept with a warning."""
        with caplog.at_level(logging.WARNING):
            resolver = VariableResolver.initialize(
                workflow, {"service_name": "checkout", "region": "eu"}
            )

        assert resolver.lookup("region") == (True, "eu")
        assert "not declared" in caplog.text

    def test_undeclared_variable_strict(self, workflow):
        """Test that strict mode rejects undeclared arguments."""
        with pytest.raises(ValidationError) as exc_info:
            VariableResolver.initialize(
                workflow, {"service_name": "checkout", "region": "eu"}, strict=True
            )

        assert exc_info.value.violations[0].path == "/variables/region"

    def test_type_mismatch(self, workflow, caplog):
        """Test that mistyped arguments warn, or fail in strict mode."""
        arguments = {"service_name": "checkout", "target": "high"}

        with caplog.at_level(logging.WARNING):
            VariableResolver.initialize(workflow, arguments)
        assert "expected number" in caplog.text

        with pytest.raises(ValidationError):
            VariableResolver.initialize(workflow, arguments, strict=True)

    def test_defaults_are_copied(self, workflow):
        """Test that runs do not share mutable defaults."""
        first = VariableResolver.initialize(workflow, {"service_name": "a"})
        first.lookup("tags")[1].append("mutated")

        second = VariableResolver.initialize(workflow, {"service_name": "b"})

        assert second.lookup("tags") == (True, ["web", "api"])


class TestInterpolate:
    """Tests for token interpolation."""

    def test_whole_token_keeps_native_type(self, resolver):
        """Test that a lone token resolves to the raw value."""
        assert resolver.interpolate("${target}") == 99.9
        assert resolver.interpolate("$tags") == ["web", "api"]
        assert resolver.interpolate("${variables.target}") == 99.9

    def test_embedded_tokens_are_stringified(self, resolver):
        """Test that tokens inside longer strings render as text."""
        assert resolver.interpolate("$service_name overview") == "checkout overview"
        assert resolver.interpolate("${service_name}-${target}") == "checkout-99.9"
        assert resolver.interpolate("tags: $tags") == 'tags: ["web", "api"]'

    def test_dollar_escape(self, resolver):
        """Test that $$ produces a literal dollar sign."""
        assert resolver.interpolate("cost: $$5") == "cost: $5"
        assert resolver.interpolate("$$") == "$"
        assert resolver.interpolate("$${service_name}") == "${service_name}"

    def test_nested_structures(self, resolver):
        """Test that mappings and lists are walked recursively."""
        params = {
            "query": {"service": "$service_name", "filters": ["${target}", "static"]},
            "limit": 10,
            "enabled": True,
        }

        assert resolver.interpolate(params) == {
            "query": {"service": "checkout", "filters": [99.9, "static"]},
            "limit": 10,
            "enabled": True,
        }

    def test_step_output_references(self, resolver):
        """Test ${steps.<id>.output.<path>} lookups."""
        resolver.record_step_output(
            "discover", {"services": [{"name": "checkout"}], "has_apm_data": True}
        )

        assert resolver.interpolate("${steps.discover.output.has_apm_data}") is True
        assert resolver.interpolate("${steps.discover.output.services.0.name}") == "checkout"
        assert resolver.interpolate("${steps.discover.output.services.length}") == 1

    def test_unresolved_token(self, resolver):
        """Test that an unknown reference raises rather than passing through."""
        with pytest.raises(UnresolvedVariableError) as exc_info:
            resolver.interpolate({"title": "Dashboard for ${unknown}"})

        assert exc_info.value.token == "${unknown}"

    def test_strings_without_tokens_are_unchanged(self, resolver):
        """Test that plain strings pass through untouched."""
        assert resolver.interpolate("plain text, 100%") == "plain text, 100%"

    def test_interpolation_returns_copies(self, resolver):
        """Test that tools cannot mutate the namespace through parameters."""
        params = resolver.interpolate({"tags": "$tags"})
        params["tags"].append("mutated")

        assert resolver.lookup("tags") == (True, ["web", "api"])


class TestOutputMapping:
    """Tests for copying step output fields into variables."""

    def test_mapped_fields_become_variables(self, resolver):
        """Test that mapped values are visible to later interpolation."""
        payload = {"result": {"index": "traces-apm-checkout"}}

        assigned = resolver.apply_output_mapping(
            "discover", {"apm_index": "result.index"}, payload
        )

        assert assigned == {"apm_index": "traces-apm-checkout"}
        assert resolver.interpolate("$apm_index") == "traces-apm-checkout"

    def test_missing_field_leaves_variable_unset(self, resolver, caplog):
        """Test that an absent field is reported and not assigned."""
        with caplog.at_level(logging.WARNING):
            assigned = resolver.apply_output_mapping(
                "discover", {"apm_index": "result.index"}, {"result": {}}
            )

        assert assigned == {}
        assert "apm_index" not in resolver
        assert "result.index" in caplog.text


class TestHelpers:
    """Tests for path walking and stringification."""

    def test_walk_path(self):
        data = {"a": [{"b": 1}, {"b": 2}]}

        assert walk_path(data, ["a", "1", "b"]) == 2
        assert walk_path(data, ["a", "-1", "b"]) == 2
        assert walk_path(data, ["a", "length"]) == 2
        assert walk_path(data, ["a", "5"]) is MISSING
        assert walk_path(data, ["x"]) is MISSING

    def test_stringify(self):
        assert stringify(True) == "true"
        assert stringify(None) == "null"
        assert stringify({"b": 1, "a": 2}) == '{"a": 2, "b": 1}'
        assert stringify(3) == "3"
