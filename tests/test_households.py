from shelter_severity.scoring.households import (
    build_household_records,
    detect_fields,
    extract_pcode,
    validate_household_dataset,
)


ROWS = [
    {"hh_id": "H1", "admin1": "Kabul", "admin1_pcode": "AF01", "admin2_pcode": "AF0101",
     "population_group": "IDP", "shelter_type": "tent", "notes": ""},
    {"hh_id": "H2", "admin1": "Kabul", "admin1_pcode": "AF01", "admin2_pcode": None,
     "population_group": "Host", "shelter_type": "apartment"},
    {"hh_id": "", "admin1": "", "admin1_pcode": "", "admin2_pcode": "",
     "population_group": "", "shelter_type": ""},
    {"hh_id": "H1", "admin1": "Herat", "admin1_pcode": "AF02", "admin2_pcode": "AF0201",
     "population_group": "IDP", "shelter_type": "makeshift"},
]


def test_detect_fields():
    detected = detect_fields(["hh_id", "admin1", "admin1_pcode", "admin2_pcode", "population_group", "shelter_type"])

    assert detected.household_id == "hh_id"
    assert detected.population_group == "population_group"
    assert detected.admin1 == "admin1"
    assert detected.admin1_pcode == "admin1_pcode"
    assert detected.admin2_pcode == "admin2_pcode"
    assert detected.pcode == "admin1_pcode"


def test_extract_pcode_prefers_most_specific_level():
    detected = detect_fields(list(ROWS[0].keys()))

    assert extract_pcode(ROWS[0], detected) == "AF0101"
    assert extract_pcode(ROWS[1], detected) == "AF01"
    assert extract_pcode(ROWS[2], detected) is None


def test_build_household_records():
    result = build_household_records(ROWS)

    assert result.total_records == 3
    assert result.skipped_rows == 1
    assert not result.errors

    first = result.records[0]
    assert first.household_id == "H1"
    assert first.pcode == "AF0101"
    assert first.population_group == "IDP"
    assert first.admin1 == "Kabul"
    assert first.survey_responses["shelter_type"] == "tent"
    assert "notes" not in first.survey_responses


def test_dataset_validation_flags_duplicates():
    report = validate_household_dataset(build_household_records(ROWS))

    assert report.valid
    assert "Found 1 duplicate household IDs" in report.warnings


def test_dataset_without_pcode_column():
    result = build_household_records([{"hh_id": "H1", "shelter_type": "tent"}])
    report = validate_household_dataset(result)

    assert result.total_records == 0
    assert any("No pcode field detected" in w for w in report.warnings)
    assert not report.valid
    assert report.errors[0] == "No household records found in dataset"


def test_numeric_identifiers_become_text():
    result = build_household_records([{"household_id": 17.0, "pcode": 101, "shelter_type": "tent"}])

    assert result.records[0].household_id == "17"
    assert result.records[0].pcode == "101"


def test_household_id_column_needs_id_suffix():
    assert detect_fields(["valid", "paid", "respondent_id", "pcode"]).household_id == "respondent_id"
    assert detect_fields(["ID", "pcode"]).household_id == "ID"
    assert detect_fields(["valid", "paid", "pcode"]).household_id is None
