#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Mycosurvey Configuration
Defines sheet names, column definitions, vocabularies and default parameters.
"""

from pathlib import Path
from typing import Any, Dict

# ---------------------------------------------------------------------------
# REQUIRED SHEETS (pipeline aborts if missing)
# ---------------------------------------------------------------------------

REQUIRED_SHEETS = [
    "SPECIES_KEY",
    "INTERVIEWS",
    "FOCUS_GROUPS",
    "BIODATA",
    "LOOKUP_GROUPS",
    "LOOKUP_VILLAGES",
    "LOOKUP_VILLAGE_GROUPS",
    "LOOKUP_INSTALLATION",
]

OPTIONAL_SHEETS = [
    "SPECIMEN_IDS",
]

# ---------------------------------------------------------------------------
# COLUMN DEFINITIONS
# ---------------------------------------------------------------------------

SPECIES_KEY_COLS = ["original_name", "species", "abbreviation", "scientific_name"]

# Columns the species key contributes to every canonicalized table
CANONICAL_COLS = ["species", "scientific_name", "abbreviation"]

# Grouping key of the vernacular name table
NAME_KEY_COLS = [
    "species",
    "scientific_name",
    "abbreviation",
    "vernacular_name",
    "language",
    "meaning",
]

# Columns shared by the raw and the curated name table
NAME_SHARED_COLS = NAME_KEY_COLS + ["n", "star"]

NAME_SORT_COLS = ["vernacular_name", "language", "abbreviation"]

# Curation columns added by hand to the raw name table
CURATION_COLS = ["alt_name", "name_fixed", "meaning_fixed"]

# Values treated as "no vernacular name given"
EMPTY_NAME_TOKENS = {"", "n/a", "no name"}

# Tokens read as "recognized" in the recognize column
RECOGNIZE_TRUE_TOKENS = {"yes", "y", "true", "1", "1.0"}

# ---------------------------------------------------------------------------
# CHARACTERISTIC TAXONOMY
# Every characteristic column of the curated name table belongs to exactly
# one category.
# ---------------------------------------------------------------------------

CHARACTERISTIC_CATEGORIES: Dict[str, str] = {
    "color": "physical",
    "shape": "physical",
    "size": "physical",
    "texture": "physical",
    "changes": "physical",
    "habitat": "ecological",
    "growth_habit": "ecological",
    "edibility": "practical",
    "technique": "practical",
    "unknown": "unknown",
}

CATEGORY_ORDER = ["physical", "ecological", "practical", "unknown"]

# ---------------------------------------------------------------------------
# DEMOGRAPHIC VOCABULARIES
# ---------------------------------------------------------------------------

GENDER_CODES: Dict[str, str] = {
    "f": "F",
    "female": "F",
    "woman": "F",
    "m": "M",
    "male": "M",
    "man": "M",
}

GENDER_CATEGORIES = ["F", "M"]

AGE_THRESHOLD = 35
AGE_GROUPS = ["<35", "35+"]

# ---------------------------------------------------------------------------
# DEFAULT PARAMETERS (overridden by config/params.yaml)
# ---------------------------------------------------------------------------

DEFAULT_PARAMS: Dict[str, Any] = {
    "allowed_groups": [],
    "specimen_context": "Specimen",
    "min_knowledge_col_sum": 2,
    "min_preference_positive": 2,
}

# ---------------------------------------------------------------------------
# OUTPUT TABLE NAMES
# ---------------------------------------------------------------------------

OUTPUT_TABLES = {
    "biodata": "biodata",
    "focus_groups": "focus_groups",
    "specimens": "specimens",
    "knowledge_data": "knowledge_data",
    "knowledge_matrix": "knowledge_matrix",
    "preference_matrix": "preference_matrix",
    "knowledge_biodata": "knowledge_biodata",
    "preference_biodata": "preference_biodata",
    "names_raw": "names_raw",
    "names_final": "names_final",
    "names_characteristics": "names_characteristics",
    "names_unresolved": "names_unresolved",
}

# Tables whose index carries data (written and read back with the index)
MATRIX_TABLES = {"knowledge_matrix", "preference_matrix"}


def get_config_path() -> Path:
    """Return path to config directory."""
    return Path(__file__).parent.parent / "config"


def get_params_yaml_path() -> Path:
    """Return path to params.yaml config file."""
    return get_config_path() / "params.yaml"
