"""Unit tests for validation.py - JSON Schema validation of resource specs."""

import pytest

from plugins.resources.elbv2 import TargetGroupRegistrationPlugin
from plugins.resources.macie2 import CustomDataIdentifierPlugin
from plugins.resources.sagemaker import ServicecatalogPortfolioStatusPlugin
from validation import validate_schema, validate_spec_against_schema


class TestValidateSchema:
    """Tests for validate_schema function."""

    def test_valid_simple_schema(self):
        """Test validation of a simple valid schema."""
        schema = {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "count": {"type": "integer"},
            },
        }
        is_valid, error = validate_schema(schema)
        assert is_valid is True
        assert error is None

    def test_invalid_schema_bad_type(self):
        """Test that an unknown type is rejected."""
        is_valid, error = validate_schema({"type": "not-a-type"})
        assert is_valid is False
        assert error.startswith("Invalid schema: ")

    def test_empty_schema_is_valid(self):
        assert validate_schema({}) == (True, None)

    @pytest.mark.parametrize(
        "plugin_class",
        [
            TargetGroupRegistrationPlugin,
            CustomDataIdentifierPlugin,
            ServicecatalogPortfolioStatusPlugin,
        ],
    )
    def test_builtin_plugin_schemas_are_valid(self, plugin_class):
        """Test every built-in resource schema is valid Draft 7."""
        assert validate_schema(plugin_class().schema) == (True, None)


class TestValidateSpecAgainstSchema:
    """Tests for validate_spec_against_schema function."""

    @pytest.fixture
    def schema(self):
        return {
            "type": "object",
            "required": ["target_group_arn"],
            "additionalProperties": False,
            "properties": {
                "target_group_arn": {"type": "string"},
                "target": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "required": ["target_id"],
                        "properties": {
                            "target_id": {"type": "string"},
                            "port": {"type": "integer", "minimum": 1},
                        },
                    },
                },
            },
        }

    def test_valid_spec_matches_schema(self, schema):
        """Test that valid spec passes validation."""
        spec = {"target_group_arn": "arn", "target": [{"target_id": "i-1", "port": 80}]}
        is_valid, error = validate_spec_against_schema(spec, schema)
        assert is_valid is True
        assert error is None

    def test_missing_required_field(self, schema):
        """Test that missing required field fails validation."""
        is_valid, error = validate_spec_against_schema({}, schema)
        assert is_valid is False
        assert error == "(root): 'target_group_arn' is a required property"

    def test_nested_error_has_path(self, schema):
        """Test that errors inside arrays name their position."""
        spec = {"target_group_arn": "arn", "target": [{"target_id": "i-1", "port": 0}]}
        is_valid, error = validate_spec_against_schema(spec, schema)
        assert is_valid is False
        assert error.startswith("target.0.port: ")

    def test_additional_properties_not_allowed(self, schema):
        """Test that unknown fields are rejected."""
        spec = {"target_group_arn": "arn", "extra": "not allowed"}
        is_valid, error = validate_spec_against_schema(spec, schema)
        assert is_valid is False
        assert "extra" in error

    def test_multiple_errors_joined(self, schema):
        """Test that every validation error is reported."""
        spec = {"target_group_arn": 1, "target": [{"port": "x"}]}
        is_valid, error = validate_spec_against_schema(spec, schema)
        assert is_valid is False
        assert len(error.split("; ")) == 3

    @pytest.mark.parametrize("spec", [None, [], "spec", 42])
    def test_non_object_spec(self, schema, spec):
        """Test that a spec must be a JSON object."""
        assert validate_spec_against_schema(spec, schema) == (
            False,
            "(root): spec must be an object",
        )

    def test_empty_spec_against_empty_schema(self):
        """Test empty spec against empty schema."""
        assert validate_spec_against_schema({}, {}) == (True, None)
