import copy

import pytest

from shelter_severity.core.config import SeveritySettings
from shelter_severity.scoring.schemas import CalculationModel


MODEL_PAYLOAD = {
    "name": "SSC Calculation Model",
    "version": "1.0.0",
    "description": "Test template",
    "coreIndicators": [
        {"pillar": "Pillar 1 - Shelter", "pillarNumber": 1, "indicator": "Ind 1", "subIndicator": "Ind 1.1 Shelter type", "subIndicatorNumber": "1.1"},
        {"pillar": "Pillar 1 - Shelter", "pillarNumber": 1, "indicator": "Ind 1", "subIndicator": "Ind 1.2 Overcrowding", "subIndicatorNumber": "1.2"},
        {"pillar": "Pillar 2 - Domestic", "pillarNumber": 2, "indicator": "Ind 2", "subIndicator": "Ind 2.1 Cooking", "subIndicatorNumber": "2.1"},
        {"pillar": "Pillar 2 - Domestic", "pillarNumber": 2, "indicator": "Ind 2", "subIndicator": "Ind 2.2 Sleeping", "subIndicatorNumber": "2.2"},
        {"pillar": "Pillar 3 - Services", "pillarNumber": 3, "indicator": "Ind 3", "subIndicator": "Ind 3.1 Water", "subIndicatorNumber": "3.1"},
    ],
    "analysisGrid": [
        {
            "pillarNumber": 1, "subIndicatorNumber": "1.1", "criteria": "Apartment or permanent house",
            "scoreValue": 0,
            "questionMappings": [{"questionField": "shelter_type", "responseValues": ["apartment", "permanent"]}],
        },
        {
            "pillarNumber": 1, "subIndicatorNumber": "1.1", "criteria": "Damaged house",
            "scoreValue": 1,
            "questionMappings": [{"questionField": "shelter_type", "responseValues": ["damaged house"]}],
        },
        {
            "pillarNumber": 1, "subIndicatorNumber": "1.1", "criteria": "Tent or makeshift",
            "scoreValue": 2,
            "questionMappings": [{"questionField": "shelter_type", "responseValues": ["tent", "makeshift"]}],
        },
        {
            "pillarNumber": 1, "subIndicatorNumber": "1.2", "criteria": "4+ persons per room",
            "scoreValue": "Score 1",
            "questionMappings": [{"questionField": "persons_per_room", "responseValues": ["4", "5"]}],
        },
        {
            "pillarNumber": 2, "subIndicatorNumber": "2.1", "criteria": "Cannot cook",
            "scoreValue": 1,
            "questionMappings": [{"questionField": "cooking", "responseValues": ["no"]}],
        },
        {
            "pillarNumber": 2, "subIndicatorNumber": "2.1", "criteria": "Can cook",
            "scoreValue": 0,
            "questionMappings": [{"questionField": "cooking", "responseValues": ["yes"]}],
        },
        {
            "pillarNumber": 2, "subIndicatorNumber": "2.2", "criteria": "Cannot sleep safely",
            "scoreValue": 1,
            "questionMappings": [{"questionField": "sleeping", "responseValues": ["no"]}],
        },
        {
            "pillarNumber": 2, "subIndicatorNumber": "2.2", "criteria": "Partially",
            "scoreValue": "One of the three scores",
            "scoringNote": "One of the three scores",
            "questionMappings": [{"questionField": "sleeping", "responseValues": ["partial"]}],
        },
        {
            "pillarNumber": 3, "subIndicatorNumber": "3.1", "criteria": "No water access",
            "scoreValue": 1,
            "questionMappings": [{"questionField": "water_access", "responseValues": ["none", "no access"]}],
        },
        {
            "pillarNumber": 3, "subIndicatorNumber": "3.1", "criteria": "Piped water",
            "scoreValue": 0,
            "questionMappings": [{"questionField": "water_access", "responseValues": ["piped"]}],
        },
    ],
    "decisionTree": [
        {"pillar1": 1, "pillar2": 1, "pillar3": 1, "finalScore": 1},
        {"pillar1": 2, "pillar2": 1, "pillar3": 1, "finalScore": 2},
        {"pillar1": 3, "pillar2": 1, "pillar3": 1, "finalScore": 3},
        {"pillar1": 3, "pillar2": 2, "pillar3": 1, "finalScore": 4, "rationale": "Shelter driven"},
        {"pillar1": 4, "pillar2": 1, "pillar3": 1, "finalScore": 4},
        {"pillar1": 5, "pillar2": 1, "pillar3": 1, "finalScore": 5},
        {"pillar1": 3, "pillar2": 3, "pillar3": 3, "finalScore": 4},
        {"pillar1": 5, "pillar2": 5, "pillar3": 5, "finalScore": 5},
        {"pillar1": 1, "pillar2": 3, "pillar3": 3, "finalScore": 3},
    ],
    "metadata": {"country": "AF", "context": "test", "parsedAt": "2025-01-01T00:00:00Z"},
}


# Expected final severities with the model above:
#   hh-a (4,3,1) -> 4 via pillar-1 fallback, hh-b (1,1,1) -> 1,
#   hh-c no responses (0,0,0) -> 1, hh-d (4,4,3) -> 4, hh-e (3,0,0) -> (3,3,3) -> 4
HOUSEHOLDS = [
    {
        "household_id": "hh-a", "pcode": "AF01", "population_group": "IDP",
        "survey_responses": {"shelter_type": "Tent", "persons_per_room": "5", "cooking": "no",
                             "sleeping": "yes", "water_access": "piped"},
    },
    {
        "household_id": "hh-b", "pcode": "AF01", "population_group": "Host",
        "survey_responses": {"shelter_type": "apartment", "persons_per_room": 2, "cooking": "yes",
                             "sleeping": "yes", "water_access": "piped"},
    },
    {
        "household_id": "hh-c", "pcode": "AF02", "population_group": "IDP",
        "survey_responses": {},
    },
    {
        "household_id": "hh-d", "pcode": "AF02", "population_group": "IDP",
        "survey_responses": {"shelter_type": "makeshift", "persons_per_room": "4", "cooking": "no",
                             "sleeping": "no", "water_access": "none"},
    },
    {
        "household_id": "hh-e", "pcode": "", "population_group": "IDP",
        "survey_responses": {"shelter_type": "tent"},
    },
]

BOUNDARIES = [
    {"id": "b-1", "pcode": "AF01", "name": "Kabul", "level": 1},
]

POPULATION = [
    {"pcode": "AF01", "population": 1000},
    {"pcode": "AF01", "population": 600, "population_group": "IDP"},
    {"pcode": "AF01", "population": 400, "population_group": "Host"},
    {"pcode": "AF02", "population": 300, "population_group": "IDP"},
    {"pcode": "AF02", "population": 100, "population_group": "Host"},
]


@pytest.fixture
def model_payload():
    return copy.deepcopy(MODEL_PAYLOAD)


@pytest.fixture
def model(model_payload):
    return CalculationModel.model_validate(model_payload)


@pytest.fixture
def households():
    return copy.deepcopy(HOUSEHOLDS)


@pytest.fixture
def options():
    return {
        "adminBoundaries": copy.deepcopy(BOUNDARIES),
        "populationData": copy.deepcopy(POPULATION),
    }


@pytest.fixture
def config():
    return SeveritySettings()
