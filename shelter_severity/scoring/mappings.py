"""Constants shared by the scoring modules.

Pillar numbering and the phase scale are fixed by the methodology; the
sub-indicators themselves always come from the calculation model.
"""

PILLARS = (1, 2, 3)

PHASES = (1, 2, 3, 4, 5)

MIN_SEVERITY = 1
MAX_SEVERITY = 5

# Pillar score meaning "no sub-indicator could be scored"
NO_DATA_SCORE = 0

# Sub-indicators every standard template defines; used for missing-data warnings
STANDARD_SUB_INDICATORS = {
    1: ("1.1", "1.2", "1.3", "1.4"),
    2: ("2.1", "2.2", "2.3", "2.4", "2.5", "2.6"),
}

SEVERITY_LEVELS = {
    5: "critical",
    4: "severe",
    3: "moderate",
    2: "minimal",
    1: "minimal",
}


def phase_key(phase: int) -> str:
    return f"phase{phase}"
