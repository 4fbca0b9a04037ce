"""
Validation module for Mycosurvey.
Integrity checks that abort the pipeline on bad source data.
"""

import logging
from typing import Iterable, List, Optional, Sequence

import pandas as pd

logger = logging.getLogger(__name__)


class DataIntegrityError(ValueError):
    """Fatal data fault. Carries the offending values for the analyst."""

    def __init__(self, message: str, offending: Optional[Sequence] = None):
        self.offending = list(offending) if offending is not None else []
        if self.offending:
            listing = "\n".join(f"  - {v}" for v in self.offending)
            message = f"{message}\n{listing}"
        super().__init__(message)


class SpeciesKeyError(DataIntegrityError):
    """Species name used in the data but absent from the species key."""


class UnmappedCategoryError(DataIntegrityError):
    """Categorical value without an entry in its lookup table."""


class CurationMismatchError(DataIntegrityError):
    """Curated name table does not match the raw name table."""

    def __init__(self, message: str, diff):
        self.diff = diff
        super().__init__(message, diff.describe())


class CharacteristicTaxonomyError(DataIntegrityError):
    """Characteristic column outside the fixed taxonomy."""


def used_species_names(*tables: pd.DataFrame, col: str = "original_name") -> List[str]:
    """
    Collect the distinct species names recorded across tables.

    Args:
        tables: DataFrames holding a species name column
        col: Name of the species column

    Returns:
        Sorted list of distinct non-null names
    """
    names = set()
    for df in tables:
        if df is None or df.empty or col not in df.columns:
            continue
        names.update(df[col].dropna().astype(str).str.strip())
    names.discard("")
    return sorted(names)


def check_species_coverage(
    used_names: Iterable[str],
    key_names: Iterable[str],
) -> List[str]:
    """
    Check that every used species name exists in the species key.

    Args:
        used_names: Names appearing in interviews and focus groups
        key_names: Original names listed in the species key

    Returns:
        Sorted list of key names that are never used (informational)

    Raises:
        SpeciesKeyError: If any used name is missing from the key
    """
    used = set(used_names)
    key = set(key_names)

    missing = sorted(used - key)
    if missing:
        raise SpeciesKeyError(
            f"{len(missing)} species name(s) not found in the species key", missing
        )

    unused = sorted(key - used)
    if unused:
        logger.warning(f"{len(unused)} species key entries are never used:")
        for name in unused:
            logger.warning(f"  - {name}")

    return unused


def check_unique_keys(df: pd.DataFrame, key_cols: List[str], table: str) -> None:
    """
    Fail if the key columns of a lookup table contain duplicates.

    Args:
        df: Lookup table
        key_cols: Columns that must identify a row
        table: Table name used in the error message
    """
    dupes = df[df.duplicated(subset=key_cols, keep=False)]
    if not dupes.empty:
        offending = sorted(
            {" / ".join(str(v) for v in row) for row in dupes[key_cols].itertuples(index=False)}
        )
        raise DataIntegrityError(f"Duplicate keys {key_cols} in {table}", offending)


def check_required_columns(df: pd.DataFrame, columns: List[str], table: str) -> None:
    """Fail if a table lacks columns the pipeline depends on."""
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise DataIntegrityError(f"Table {table} is missing required columns", missing)
