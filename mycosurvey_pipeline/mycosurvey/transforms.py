#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Mycosurvey Transforms Module
Canonicalization, categorical recoding and field parsing for survey tables.
"""

import logging
import re
import unicodedata
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from .config import (
    AGE_GROUPS,
    AGE_THRESHOLD,
    CANONICAL_COLS,
    GENDER_CATEGORIES,
    GENDER_CODES,
    RECOGNIZE_TRUE_TOKENS,
    SPECIES_KEY_COLS,
)
from .validate import (
    DataIntegrityError,
    UnmappedCategoryError,
    check_required_columns,
    check_unique_keys,
)

logger = logging.getLogger(__name__)

AGE_PATTERN = re.compile(r"^\s*(>=|≥|>)?\s*(\d+(?:\.\d+)?)")
SPECIMEN_NUMBER_PATTERN = re.compile(r"(\d+)")


def sanitize_column_name(name: Any) -> str:
    """
    Sanitize a raw column header: strip, lowercase, non-alphanumerics to '_'.

    Examples:
        "Respondent ID" -> "respondent_id"
        "Growth habit " -> "growth_habit"
        "Scientific name (original)" -> "scientific_name_original"
    """
    s = canonical_text(name)
    s = re.sub(r"[^0-9a-z]+", "_", s)
    return s.strip("_")


def sanitize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of df with sanitized column names."""
    df = df.copy()
    df.columns = [sanitize_column_name(c) for c in df.columns]
    return df


def canonical_text(x: Any) -> str:
    """
    Normalize text: lowercase, strip, collapse whitespace, remove accents.

    Args:
        x: Input value (any type)

    Returns:
        Normalized string
    """
    if x is None or (not isinstance(x, str) and pd.isna(x)):
        return ""
    s = str(x).strip().lower()
    s = unicodedata.normalize("NFKD", s)
    s = "".join(c for c in s if not unicodedata.combining(c))
    s = re.sub(r"\s+", " ", s).strip()
    return s


def strip_strings(series: pd.Series) -> pd.Series:
    """Strip surrounding whitespace from string values, leaving others as-is."""
    return series.map(lambda v: v.strip() if isinstance(v, str) else v)


# ---------------------------------------------------------------------------
# SPECIES CANONICALIZATION
# ---------------------------------------------------------------------------

def prepare_species_key(species_key: pd.DataFrame) -> pd.DataFrame:
    """
    Clean the species key and check that original names are unique.

    Args:
        species_key: SPECIES_KEY table

    Returns:
        Species key restricted to its four columns, strings stripped
    """
    check_required_columns(species_key, SPECIES_KEY_COLS, "SPECIES_KEY")
    key = species_key[SPECIES_KEY_COLS].copy()
    for col in SPECIES_KEY_COLS:
        key[col] = strip_strings(key[col])
    key = key.dropna(subset=["original_name"])
    check_unique_keys(key, ["original_name"], "SPECIES_KEY")
    return key


def canonicalize_species(
    df: pd.DataFrame,
    species_key: pd.DataFrame,
    on: str = "original_name",
) -> pd.DataFrame:
    """
    Replace the as-recorded species name with the canonical name and abbreviation.

    Inner join on the original name; the original column is dropped. Coverage
    must already be validated, so a lost row is an integrity fault.

    Args:
        df: Table with an original species name column
        species_key: Cleaned species key (see prepare_species_key)
        on: Name of the original species column in df

    Returns:
        DataFrame with species, scientific_name and abbreviation columns
    """
    existing = [c for c in CANONICAL_COLS if c in df.columns]
    if existing:
        df = df.drop(columns=existing)

    df = df.copy()
    df[on] = strip_strings(df[on])

    key = species_key[SPECIES_KEY_COLS].rename(columns={"original_name": on})
    result = df.merge(key, on=on, how="inner")

    if len(result) != len(df):
        lost = sorted(set(df[on].dropna().astype(str)) - set(key[on].astype(str)))
        raise DataIntegrityError(
            f"{len(df) - len(result)} row(s) lost joining the species key", lost
        )

    result = result.drop(columns=[on])
    logger.debug(f"Canonicalized {len(result)} rows against species key")
    return result


# ---------------------------------------------------------------------------
# CATEGORICAL RECODING
# ---------------------------------------------------------------------------

def build_code_map(lookup: pd.DataFrame, name_col: str, code_col: str) -> Dict[str, str]:
    """
    Build a long-form name -> short code dictionary from a lookup table.

    Keys are canonical text so matching ignores case, accents and spacing.
    Codes also map to themselves so already-coded values pass through.

    Args:
        lookup: Lookup table (e.g. LOOKUP_VILLAGES)
        name_col: Column with long-form names
        code_col: Column with short codes

    Returns:
        Dict mapping canonical text to code
    """
    check_required_columns(lookup, [name_col, code_col], f"lookup ({code_col})")
    mapping: Dict[str, str] = {}
    for name, code in lookup[[name_col, code_col]].dropna().itertuples(index=False):
        code = str(code).strip()
        mapping[canonical_text(code)] = code
        mapping[canonical_text(name)] = code
    return mapping


def recode_categorical(
    series: pd.Series,
    mapping: Dict[str, str],
    field: str,
    categories: Optional[List[str]] = None,
) -> pd.Series:
    """
    Map each value to its short code, failing on values without a mapping.

    Args:
        series: Raw long-form values
        mapping: Canonical text -> code dictionary
        field: Field name used in the error message
        categories: If given, return a categorical with this closed vocabulary

    Returns:
        Series of codes

    Raises:
        UnmappedCategoryError: If any value (including a missing one) has no code
    """
    codes = series.map(lambda v: mapping.get(canonical_text(v)))
    unmapped = series[codes.isna()]
    if not unmapped.empty:
        offending = sorted({str(v) if pd.notna(v) else "<missing>" for v in unmapped})
        raise UnmappedCategoryError(
            f"{len(unmapped)} {field} value(s) have no code mapping", offending
        )

    if categories is not None:
        return codes.astype(pd.CategoricalDtype(categories=categories))
    return codes


# ---------------------------------------------------------------------------
# FIELD PARSING
# ---------------------------------------------------------------------------

def normalize_recognize(series: pd.Series) -> pd.Series:
    """
    Coerce the tri-state recognize field to boolean.

    Yes-like tokens become True; "no", "unknown", blanks and missing values
    all become False.
    """
    def _to_bool(v: Any) -> bool:
        if isinstance(v, (bool, np.bool_)):
            return bool(v)
        return canonical_text(v) in RECOGNIZE_TRUE_TOKENS

    return series.map(_to_bool).astype(bool)


def parse_preference(series: pd.Series) -> pd.Series:
    """
    Parse preference scores as integers.

    Non-numeric tokens ("n/a", "?") and non-integer numbers become <NA>.

    Returns:
        Nullable Int64 series
    """
    numeric = pd.to_numeric(series, errors="coerce")
    numeric = numeric.where(numeric.isna() | (numeric == numeric.round()))
    return numeric.astype("Int64")


def parse_age(value: Any) -> Optional[float]:
    """
    Parse the leading number of a raw age string.

    A "greater-than" prefix is dropped; the number is used as a lower-bound
    estimate.

    Examples:
        "42" -> 42.0
        ">60" -> 60.0
        "unknown" -> None
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    match = AGE_PATTERN.match(str(value))
    if not match:
        return None
    return float(match.group(2))


def is_age_estimate(value: Any) -> bool:
    """True when the raw age carries a "greater-than" prefix."""
    if not isinstance(value, str):
        return False
    match = AGE_PATTERN.match(value)
    return bool(match and match.group(1))


def age_group(age: Optional[float]) -> Optional[str]:
    """Bucket a numeric age into "<35" or "35+"."""
    if age is None or pd.isna(age):
        return None
    return AGE_GROUPS[0] if age < AGE_THRESHOLD else AGE_GROUPS[1]


def extract_specimen_number(value: Any) -> Optional[int]:
    """
    Extract the numeric specimen suffix from an identifier.

    Examples:
        "MUSH-0042" -> 42
        "MUSH0042_ITS2" -> 42
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    match = SPECIMEN_NUMBER_PATTERN.search(str(value))
    if not match:
        return None
    return int(match.group(1))


# ---------------------------------------------------------------------------
# TABLE PREPARATION
# ---------------------------------------------------------------------------

def prepare_interviews(interviews: pd.DataFrame, species_key: pd.DataFrame) -> pd.DataFrame:
    """
    Canonicalize interview records and normalize recognize/preference.

    Args:
        interviews: INTERVIEWS table, one row per (respondent, species)
        species_key: Cleaned species key

    Returns:
        Canonical interview table
    """
    check_required_columns(
        interviews, ["respondent_id", "original_name", "recognize"], "INTERVIEWS"
    )
    df = canonicalize_species(interviews, species_key)

    df["respondent_id"] = df["respondent_id"].astype(str).str.strip()
    df["recognize"] = normalize_recognize(df["recognize"])
    if "preference" in df.columns:
        df["preference"] = parse_preference(df["preference"])
    else:
        df["preference"] = pd.array([pd.NA] * len(df), dtype="Int64")
    if "context" in df.columns:
        df["context"] = strip_strings(df["context"])

    logger.info(
        f"Prepared {len(df)} interview rows "
        f"({df['respondent_id'].nunique()} respondents, {df['abbreviation'].nunique()} species)"
    )
    return df


def prepare_focus_groups(
    focus_groups: pd.DataFrame,
    species_key: pd.DataFrame,
    groups: pd.DataFrame,
    villages: pd.DataFrame,
) -> pd.DataFrame:
    """
    Canonicalize focus-group records and recode village and ethnic group.

    Args:
        focus_groups: FOCUS_GROUPS table, one row per (session, species)
        species_key: Cleaned species key
        groups: LOOKUP_GROUPS table
        villages: LOOKUP_VILLAGES table

    Returns:
        Canonical focus-group table with short codes
    """
    check_required_columns(
        focus_groups, ["session_id", "village", "group", "original_name"], "FOCUS_GROUPS"
    )
    df = canonicalize_species(focus_groups, species_key)

    village_codes = sorted(villages["village_code"].dropna().astype(str).str.strip().unique())
    group_codes = sorted(groups["group_code"].dropna().astype(str).str.strip().unique())

    df["village"] = recode_categorical(
        df["village"], build_code_map(villages, "village_name", "village_code"),
        "village", village_codes,
    )
    df["group"] = recode_categorical(
        df["group"], build_code_map(groups, "group_name", "group_code"),
        "group", group_codes,
    )

    logger.info(f"Prepared {len(df)} focus-group rows ({df['session_id'].nunique()} sessions)")
    return df


def prepare_biodata(
    biodata: pd.DataFrame,
    groups: pd.DataFrame,
    villages: pd.DataFrame,
    village_groups: pd.DataFrame,
    installation: pd.DataFrame,
) -> pd.DataFrame:
    """
    Build the respondent biodata table.

    Recodes village, group and gender to closed vocabularies, parses ages into
    a numeric value and age group, derives the VillageGroup key and joins the
    installation history.

    Args:
        biodata: BIODATA table, one row per respondent
        groups: LOOKUP_GROUPS table
        villages: LOOKUP_VILLAGES table
        village_groups: LOOKUP_VILLAGE_GROUPS table
        installation: LOOKUP_INSTALLATION table

    Returns:
        Biodata table with codes, age fields, village_group and installation_years
    """
    check_required_columns(
        biodata, ["respondent_id", "village", "group", "gender", "age"], "BIODATA"
    )
    df = biodata.copy()
    df["respondent_id"] = df["respondent_id"].astype(str).str.strip()
    check_unique_keys(df, ["respondent_id"], "BIODATA")

    df["village"] = recode_categorical(
        df["village"], build_code_map(villages, "village_name", "village_code"), "village"
    )
    df["group"] = recode_categorical(
        df["group"], build_code_map(groups, "group_name", "group_code"), "group"
    )
    df["gender"] = recode_categorical(df["gender"], GENDER_CODES, "gender", GENDER_CATEGORIES)

    # Age: keep the raw string, derive the numeric lower bound and bucket
    df["age_raw"] = df["age"]
    df["age"] = df["age_raw"].map(parse_age).astype(float)
    df["age_estimated"] = df["age_raw"].map(is_age_estimate)
    df["age_group"] = df["age"].map(age_group).astype(
        pd.CategoricalDtype(categories=AGE_GROUPS, ordered=True)
    )
    n_no_age = int(df["age"].isna().sum())
    if n_no_age:
        logger.warning(f"{n_no_age} respondent(s) without a parseable age")

    # VillageGroup composite key, restricted to valid combinations
    vg = _village_group_vocabulary(village_groups)
    df["village_group"] = df["village"] + df["group"]
    invalid = df.loc[~df["village_group"].isin(vg), "village_group"]
    if not invalid.empty:
        raise UnmappedCategoryError(
            f"{len(invalid)} respondent(s) with an invalid village/group combination",
            sorted(invalid.unique()),
        )

    # Installation history keyed by (village, group)
    inst = installation.copy()
    check_required_columns(inst, ["village_code", "group_code", "years"], "LOOKUP_INSTALLATION")
    inst["village_group"] = (
        inst["village_code"].astype(str).str.strip() + inst["group_code"].astype(str).str.strip()
    )
    check_unique_keys(inst, ["village_group"], "LOOKUP_INSTALLATION")
    inst["installation_years"] = pd.to_numeric(inst["years"], errors="coerce").astype("Int64")
    df = df.merge(inst[["village_group", "installation_years"]], on="village_group", how="left")

    village_codes = sorted(villages["village_code"].dropna().astype(str).str.strip().unique())
    group_codes = sorted(groups["group_code"].dropna().astype(str).str.strip().unique())
    df["village"] = df["village"].astype(pd.CategoricalDtype(categories=village_codes))
    df["group"] = df["group"].astype(pd.CategoricalDtype(categories=group_codes))
    df["village_group"] = df["village_group"].astype(pd.CategoricalDtype(categories=vg))

    logger.info(f"Prepared biodata for {len(df)} respondents")
    return df


def _village_group_vocabulary(village_groups: pd.DataFrame) -> List[str]:
    """Valid VillageGroup codes from LOOKUP_VILLAGE_GROUPS."""
    if "village_group" in village_groups.columns:
        vg = village_groups["village_group"].dropna().astype(str).str.strip()
    else:
        check_required_columns(
            village_groups, ["village_code", "group_code"], "LOOKUP_VILLAGE_GROUPS"
        )
        vg = (
            village_groups["village_code"].astype(str).str.strip()
            + village_groups["group_code"].astype(str).str.strip()
        )
    return sorted(vg.unique())


def prepare_specimens(
    specimen_ids: pd.DataFrame,
    sequences: pd.DataFrame,
    species_key: pd.DataFrame,
) -> pd.DataFrame:
    """
    Join specimen records with their sequences by specimen number.

    Args:
        specimen_ids: SPECIMEN_IDS table
        sequences: Sequence table from io.load_sequences
        species_key: Cleaned species key

    Returns:
        Specimen table with canonical names and sequences where available
    """
    if specimen_ids.empty:
        return specimen_ids

    check_required_columns(specimen_ids, ["specimen_id"], "SPECIMEN_IDS")
    df = specimen_ids.copy()
    df["specimen_num"] = df["specimen_id"].map(extract_specimen_number).astype("Int64")

    if "original_name" in df.columns:
        df["original_name"] = strip_strings(df["original_name"])
        key = species_key[SPECIES_KEY_COLS]
        df = df.merge(key, on="original_name", how="left")
        unmatched = df.loc[df["species"].isna() & df["original_name"].notna(), "original_name"]
        if not unmatched.empty:
            logger.warning(
                f"{unmatched.nunique()} specimen name(s) not in species key: "
                f"{sorted(unmatched.unique())}"
            )

    if sequences is not None and not sequences.empty:
        df = df.merge(sequences, on="specimen_num", how="left")
        logger.info(f"Matched sequences for {int(df['sequence'].notna().sum())} specimens")

    return df
