"""Tests for survey document validation and the JSON interchange format.

Covers:
  - Accepting a well-formed document of every field type
  - The fixed reporting priority when a document has several problems
  - Strict leaf types (no string → int/bool coercion)
  - JSON parse failures and unreadable files
  - Export formatting
"""

import copy
import json

import pytest

from helpers.fakes import sample_survey, sample_survey_dict
from survey_engine.models.survey import Survey
from survey_engine.validator import (
    format_path,
    parse_survey_json,
    read_survey_file,
    serialize_survey,
    validate_survey,
)


@pytest.fixture
def doc():
    return copy.deepcopy(sample_survey_dict())


# =====================================================================
# Accepting valid documents
# =====================================================================


class TestValidDocuments:
    """Well-formed documents validate into typed models."""

    def test_sample_survey_is_valid(self, doc):
        result = validate_survey(doc)
        assert result.ok, f"Expected valid survey, got: {result.message}"
        assert isinstance(result.survey, Survey)
        assert result.issue is None

    def test_field_variants_are_typed(self, doc):
        survey = validate_survey(doc).survey
        types = [f.type for f in survey.iter_fields()]
        assert types == ["text", "radio", "checkbox", "rating"]

    def test_step_without_fields_is_valid(self, doc):
        doc["steps"][1]["fields"] = []
        assert validate_survey(doc).ok

    def test_empty_option_label_is_valid(self, doc):
        doc["steps"][0]["fields"][1]["options"][0]["label"] = ""
        assert validate_survey(doc).ok

    def test_survey_instance_is_accepted(self):
        result = validate_survey(sample_survey())
        assert result.ok


# =====================================================================
# Rejection messages and priority
# =====================================================================


class TestRejections:
    """Each problem class yields one human-readable message."""

    def test_non_object(self):
        result = validate_survey([1, 2, 3])
        assert not result.ok
        assert result.message == "Survey must be a JSON object."

    def test_missing_version(self, doc):
        del doc["version"]
        result = validate_survey(doc)
        assert not result.ok
        assert "version is missing" in result.message
        assert result.issue.path == "version"

    @pytest.mark.parametrize("version", [2, 0, "1", True])
    def test_unsupported_version(self, doc, version):
        doc["version"] = version
        result = validate_survey(doc)
        assert not result.ok
        assert result.message.startswith("Unsupported survey version"), result.message

    def test_no_steps(self, doc):
        doc["steps"] = []
        result = validate_survey(doc)
        assert result.message == "Survey must have at least one step."

    def test_unknown_field_type(self, doc):
        doc["steps"][0]["fields"][0]["type"] = "slider"
        result = validate_survey(doc)
        assert result.message == "Unknown field type 'slider' at steps[0].fields[0]."

    def test_empty_options(self, doc):
        doc["steps"][0]["fields"][1]["options"] = []
        result = validate_survey(doc)
        assert result.message == "Field at steps[0].fields[1] must have at least one option."

    def test_bad_scale(self, doc):
        doc["steps"][1]["fields"][1]["scale"] = {"min": 5, "max": 5}
        result = validate_survey(doc)
        assert result.message == "scale.min must be < scale.max"

    def test_version_reported_before_everything(self, doc):
        doc["version"] = 3
        doc["steps"] = []
        assert validate_survey(doc).message.startswith("Unsupported survey version")

    def test_options_reported_before_scale_regardless_of_order(self, doc):
        # Scale problem comes first in document order, options problem second
        doc["steps"][0]["fields"].insert(0, {
            "id": "f_bad_scale", "type": "rating", "title": "", "description": "",
            "required": False, "scale": {"min": 9, "max": 1},
        })
        doc["steps"][1]["fields"][0]["options"] = []
        result = validate_survey(doc)
        assert "must have at least one option" in result.message, result.message

    def test_unknown_type_reported_before_empty_options(self, doc):
        doc["steps"][0]["fields"][1]["options"] = []
        doc["steps"][1]["fields"][0]["type"] = "matrix"
        result = validate_survey(doc)
        assert result.message.startswith("Unknown field type 'matrix'"), result.message


# =====================================================================
# Strict leaf types
# =====================================================================


class TestStrictTypes:
    """String values are never coerced into numbers or booleans."""

    def test_string_scale_bound_rejected(self, doc):
        doc["steps"][1]["fields"][1]["scale"]["max"] = "5"
        result = validate_survey(doc)
        assert not result.ok
        assert "steps[1].fields[1].scale.max" in result.message, result.message

    def test_string_required_flag_rejected(self, doc):
        doc["steps"][0]["fields"][0]["required"] = "true"
        assert not validate_survey(doc).ok

    def test_missing_placeholder_rejected(self, doc):
        del doc["steps"][0]["fields"][0]["placeholder"]
        result = validate_survey(doc)
        assert not result.ok
        assert "placeholder" in result.message


# =====================================================================
# Paths
# =====================================================================


class TestFormatPath:

    def test_variant_tag_segment_is_dropped(self):
        loc = ("steps", 0, "fields", 1, "radio", "options")
        assert format_path(loc) == "steps[0].fields[1].options"

    def test_plain_path(self):
        assert format_path(("title",)) == "title"


# =====================================================================
# JSON text / files / export
# =====================================================================


class TestInterchange:

    def test_parse_error(self):
        result = parse_survey_json("{not json")
        assert result.message == "Invalid JSON (parse error)."

    def test_parse_valid_text(self, doc):
        result = parse_survey_json(json.dumps(doc))
        assert result.ok

    def test_unreadable_file(self, tmp_path):
        result = read_survey_file(tmp_path / "missing.json")
        assert result.message == "Could not read file: missing.json"

    def test_read_file(self, tmp_path, doc):
        path = tmp_path / "survey.json"
        path.write_text(json.dumps(doc), encoding="utf-8")
        assert read_survey_file(str(path)).ok

    def test_export_is_indented_and_keeps_unicode(self):
        survey = sample_survey(title="Umfrage für Größen")
        text = serialize_survey(survey)
        assert "Umfrage für Größen" in text, "Non-ASCII must not be escaped"
        assert text.startswith("{\n  "), "Expected two-space indentation"

    def test_export_reimports_to_equal_document(self):
        survey = sample_survey()
        again = parse_survey_json(serialize_survey(survey)).survey
        assert again == survey
