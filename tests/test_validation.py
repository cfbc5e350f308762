import json

import pytest

from shelter_severity.core.config import SeveritySettings
from shelter_severity.core.exceptions import ConfigurationError, SeverityEngineError
from shelter_severity.scoring.schemas import CalculationModel
from shelter_severity.scoring.validation import (
    ensure_calculable,
    load_calculation_model,
    validate_calculation_model,
)


def test_load_from_dict_and_json(model_payload):
    from_dict = load_calculation_model(model_payload)
    from_json = load_calculation_model(json.dumps(model_payload))

    assert from_dict == from_json
    assert load_calculation_model(from_dict) is from_dict


def test_load_invalid_payload_raises_configuration_error(model_payload):
    model_payload["decisionTree"][0]["finalScore"] = 7
    with pytest.raises(ConfigurationError) as exc_info:
        load_calculation_model(model_payload)

    assert isinstance(exc_info.value, SeverityEngineError)
    assert any("decisionTree" in e for e in exc_info.value.errors)


def test_sample_model_warnings(model, config):
    report = validate_calculation_model(model, config)

    assert report.valid
    assert any("relatively few rules" in w for w in report.warnings)
    assert any("symbolic score" in w for w in report.warnings)


def test_enough_rules_no_warning(model):
    report = validate_calculation_model(model, SeveritySettings(MIN_DECISION_TREE_RULES=5))
    assert not any("relatively few rules" in w for w in report.warnings)


def test_structural_errors():
    report = validate_calculation_model(CalculationModel())

    assert not report.valid
    assert "Calculation model name is required" in report.errors
    assert "Calculation model version is required" in report.errors
    assert "No core indicators defined" in report.errors
    assert "No analysis grid mappings defined" in report.errors
    assert "No decision tree rules defined" in report.errors


def test_grid_warnings(model_payload):
    model_payload["decisionTree"].append(dict(model_payload["decisionTree"][0]))
    model_payload["analysisGrid"].append({"pillarNumber": 1, "subIndicatorNumber": "1.9", "scoreValue": 1})
    model_payload["analysisGrid"].append({"pillarNumber": 4, "subIndicatorNumber": "4.1", "scoreValue": 1})
    report = validate_calculation_model(CalculationModel.model_validate(model_payload))

    assert any("repeat an earlier triplet" in w for w in report.warnings)
    assert any("2 analysis grid mappings have no question mappings" in w for w in report.warnings)
    assert any("unknown pillar" in w for w in report.warnings)
    assert any("1.9" in w for w in report.warnings)


def test_ensure_calculable_empty_tree(model_payload):
    model_payload["decisionTree"] = []
    with pytest.raises(ConfigurationError) as exc_info:
        ensure_calculable(CalculationModel.model_validate(model_payload))

    assert "No decision tree rules defined" in exc_info.value.errors


def test_ensure_calculable_missing_pillar(model_payload):
    model_payload["coreIndicators"] = [
        ci for ci in model_payload["coreIndicators"] if ci["pillarNumber"] != 3
    ]
    with pytest.raises(ConfigurationError, match="pillar"):
        ensure_calculable(CalculationModel.model_validate(model_payload))


def test_ensure_calculable_returns_report(model, config):
    report = ensure_calculable(model, config)
    assert report.valid
    assert report.warnings
