#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Mycosurvey Vernacular Names Module
Compiles vernacular names from interviews and focus groups, checks the
manually curated copy against the raw table, and reshapes curated records
into the final name table and a long-format characteristics table.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Union

import pandas as pd

from .config import (
    CATEGORY_ORDER,
    CHARACTERISTIC_CATEGORIES,
    CURATION_COLS,
    EMPTY_NAME_TOKENS,
    NAME_KEY_COLS,
    NAME_SHARED_COLS,
    NAME_SORT_COLS,
)
from .transforms import strip_strings
from .validate import (
    CharacteristicTaxonomyError,
    CurationMismatchError,
    DataIntegrityError,
    check_required_columns,
)

logger = logging.getLogger(__name__)

SOURCE_INTERVIEW = "interview"
SOURCE_FOCUS_GROUP = "focus group"

# Columns of the reshaped name table that are not characteristics
DERIVED_COLS = ["alt_names", "label"]

ALT_NAME_SEPARATORS = re.compile(r"[;,]")

# Stands in for nulls when rows are compared as text
NULL_MARKER = "<NA>"


# ---------------------------------------------------------------------------
# STAGE 1: RAW COMPILATION
# ---------------------------------------------------------------------------

def fold_name(value: Any) -> Optional[str]:
    """
    Case-fold a vernacular name; empty-equivalent values become None.

    Examples:
        " Het  Bot " -> "het bot"
        "N/A" -> None
        "no name" -> None
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    s = re.sub(r"\s+", " ", str(value)).strip().lower()
    if s in EMPTY_NAME_TOKENS:
        return None
    return s


def sort_name_table(df: pd.DataFrame, by: Optional[List[str]] = None) -> pd.DataFrame:
    """Sort a name table deterministically (nulls last, stable)."""
    if by is None:
        by = NAME_SORT_COLS + [c for c in NAME_KEY_COLS if c not in NAME_SORT_COLS]
    by = [c for c in by if c in df.columns]
    return df.sort_values(by, na_position="last", kind="mergesort").reset_index(drop=True)


def compile_vernacular_names(
    interviews: pd.DataFrame,
    focus_groups: pd.DataFrame,
) -> pd.DataFrame:
    """
    Build the raw vernacular name table.

    Interview and focus-group records are projected to the name key, tagged
    with their provenance and grouped. For each distinct key, n counts the
    interview rows and star counts the focus-group rows.

    Args:
        interviews: Canonical interview table
        focus_groups: Canonical focus-group table

    Returns:
        Name table with NAME_KEY_COLS + n + star, sorted by
        (vernacular_name, language, abbreviation)
    """
    frames = []
    for df, source in ((interviews, SOURCE_INTERVIEW), (focus_groups, SOURCE_FOCUS_GROUP)):
        if df is None or df.empty:
            continue
        part = df.reindex(columns=NAME_KEY_COLS).copy()
        part["source"] = source
        frames.append(part)

    if not frames:
        logger.warning("No interview or focus-group rows, returning empty name table")
        return pd.DataFrame(columns=NAME_SHARED_COLS)

    names = pd.concat(frames, ignore_index=True)
    names["vernacular_name"] = names["vernacular_name"].map(fold_name)
    names = names[names["vernacular_name"].notna()].copy()
    for col in ("language", "meaning"):
        names[col] = strip_strings(names[col])

    names["_interview"] = (names["source"] == SOURCE_INTERVIEW).astype(int)
    names["_focus_group"] = (names["source"] == SOURCE_FOCUS_GROUP).astype(int)

    table = (
        names.groupby(NAME_KEY_COLS, dropna=False, sort=False)
        .agg(n=("_interview", "sum"), star=("_focus_group", "sum"))
        .reset_index()
    )
    table["n"] = table["n"].astype(int)
    table["star"] = table["star"].astype(int)

    table = sort_name_table(table)
    logger.info(f"Compiled {len(table)} vernacular name entries")
    return table


def format_stars(count: Any) -> str:
    """Render a focus-group count as repeated '*' markers."""
    if count is None or pd.isna(count):
        return ""
    return "*" * int(count)


def format_label(species: Any, n: Any, star: Any) -> str:
    """
    Display string for a name table row.

    Examples:
        ("Russula virescens", 4, 2) -> "Russula virescens (4**)"
    """
    n_text = "" if n is None or pd.isna(n) else str(int(n))
    return f"{species} ({n_text}{format_stars(star)})"


# ---------------------------------------------------------------------------
# STAGE 2: CURATION ROUND-TRIP CHECK
# ---------------------------------------------------------------------------

@dataclass
class NameTableDiff:
    """Row-level differences between the raw and the curated name table."""

    raw_rows: int
    fixed_rows: int
    mismatched_rows: List[int] = field(default_factory=list)
    only_in_raw: pd.DataFrame = field(default_factory=pd.DataFrame)
    only_in_fixed: pd.DataFrame = field(default_factory=pd.DataFrame)

    @property
    def is_equal(self) -> bool:
        return (
            self.raw_rows == self.fixed_rows
            and not self.mismatched_rows
            and self.only_in_raw.empty
            and self.only_in_fixed.empty
        )

    def describe(self) -> List[str]:
        """Human-readable listing of the differences."""
        lines = []
        if self.raw_rows != self.fixed_rows:
            lines.append(f"row count differs: raw={self.raw_rows}, curated={self.fixed_rows}")
        if self.mismatched_rows:
            lines.append(f"sorted rows differing at positions: {self.mismatched_rows}")
        for label, df in (("only in raw", self.only_in_raw), ("only in curated", self.only_in_fixed)):
            for row in df.itertuples(index=False):
                lines.append(f"{label}: " + " | ".join(str(v) for v in row))
        return lines


def _star_count(value: Any) -> Any:
    """Read a star cell either as a count or as a string of '*' markers."""
    if isinstance(value, str):
        s = value.strip()
        if s and set(s) == {"*"}:
            return len(s)
        if not s:
            return 0
    return value


def normalize_shared_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Project a name table onto the shared columns with comparable types.

    Key columns become stripped strings (nulls as None); n and star become
    nullable integers.
    """
    check_required_columns(df, NAME_SHARED_COLS, "name table")
    out = df[NAME_SHARED_COLS].copy()
    for col in NAME_KEY_COLS:
        out[col] = out[col].map(
            lambda v: None if v is None or (not isinstance(v, str) and pd.isna(v)) else str(v).strip()
        )
    out["star"] = out["star"].map(_star_count)
    for col in ("n", "star"):
        out[col] = pd.to_numeric(out[col], errors="coerce").astype("Int64")
    return out


def _as_text(df: pd.DataFrame) -> pd.DataFrame:
    """Render every cell as text, with nulls as a fixed marker."""
    return df.astype(object).where(df.notna(), NULL_MARKER).astype(str)


def compare_name_tables(raw: pd.DataFrame, fixed: pd.DataFrame) -> NameTableDiff:
    """
    Compare the raw and the curated name table on their shared columns.

    Both tables are sorted by the same key tuple and compared row for row, so
    a pure reordering is not a difference.

    Args:
        raw: Raw name table (stage 1 output)
        fixed: Curated name table

    Returns:
        NameTableDiff describing any mismatch
    """
    a = sort_name_table(normalize_shared_columns(raw), by=NAME_SHARED_COLS)
    b = sort_name_table(normalize_shared_columns(fixed), by=NAME_SHARED_COLS)

    a_text = _as_text(a)
    b_text = _as_text(b)

    common = min(len(a_text), len(b_text))
    differs = (a_text.iloc[:common].values != b_text.iloc[:common].values).any(axis=1)
    mismatched = [int(i) for i in differs.nonzero()[0]]

    # Multiset difference: number repeated rows so duplicates are matched pairwise
    a_text["_occurrence"] = a_text.groupby(NAME_SHARED_COLS).cumcount()
    b_text["_occurrence"] = b_text.groupby(NAME_SHARED_COLS).cumcount()
    merged = a_text.merge(
        b_text, on=NAME_SHARED_COLS + ["_occurrence"], how="outer", indicator=True
    )
    only_raw = merged.loc[merged["_merge"] == "left_only", NAME_SHARED_COLS]
    only_fixed = merged.loc[merged["_merge"] == "right_only", NAME_SHARED_COLS]

    return NameTableDiff(
        raw_rows=len(a),
        fixed_rows=len(b),
        mismatched_rows=mismatched,
        only_in_raw=only_raw.reset_index(drop=True),
        only_in_fixed=only_fixed.reset_index(drop=True),
    )


def verify_curated_names(
    raw: pd.DataFrame,
    fixed: pd.DataFrame,
    outdir: Optional[Union[str, Path]] = None,
) -> pd.DataFrame:
    """
    Accept the curated name table only if it matches the raw table.

    On mismatch both sorted tables are written to outdir (for an external
    diff) before aborting.

    Args:
        raw: Raw name table
        fixed: Curated name table
        outdir: Directory for the sorted copies (optional)

    Returns:
        The curated table, unchanged

    Raises:
        CurationMismatchError: If the shared columns differ
    """
    diff = compare_name_tables(raw, fixed)
    if diff.is_equal:
        logger.info(f"Curated name table matches raw table ({diff.raw_rows} rows)")
        return fixed

    if outdir is not None:
        outpath = Path(outdir)
        outpath.mkdir(parents=True, exist_ok=True)
        sort_name_table(normalize_shared_columns(raw), by=NAME_SHARED_COLS).to_csv(
            outpath / "names_raw_sorted.csv", index=False, encoding="utf-8-sig"
        )
        sort_name_table(normalize_shared_columns(fixed), by=NAME_SHARED_COLS).to_csv(
            outpath / "names_fixed_sorted.csv", index=False, encoding="utf-8-sig"
        )
        logger.error(f"Wrote sorted raw and curated name tables to {outpath} for review")

    raise CurationMismatchError("Curated name table does not match the raw name table", diff)


# ---------------------------------------------------------------------------
# STAGE 3: POST-CURATION RESHAPE
# ---------------------------------------------------------------------------

def characteristic_columns(df: pd.DataFrame) -> List[str]:
    """Columns of a curated name table that hold characteristics."""
    reserved = set(NAME_SHARED_COLS) | set(CURATION_COLS) | set(DERIVED_COLS)
    return [c for c in df.columns if c not in reserved]


def _split_list(value: Any) -> List[Optional[str]]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return [None]
    parts = [p.strip() for p in str(value).split(";")]
    parts = [p for p in parts if p]
    return parts or [None]


def _effective(fixed_value: Any, original: Any) -> Any:
    if isinstance(fixed_value, str) and fixed_value.strip():
        return fixed_value
    if fixed_value is not None and not isinstance(fixed_value, str) and pd.notna(fixed_value):
        return fixed_value
    return original


def split_name_lists(df: pd.DataFrame) -> pd.DataFrame:
    """
    Split semicolon-delimited name/meaning lists into one row per pair.

    A single meaning is repeated for every name, and a single name for
    every meaning.

    Raises:
        DataIntegrityError: If name and meaning lists have different lengths
    """
    names = df["vernacular_name"].map(_split_list)
    meanings = df["meaning"].map(_split_list)

    paired_names, paired_meanings, bad = [], [], []
    for name_list, meaning_list in zip(names, meanings):
        if len(meaning_list) == 1 and len(name_list) > 1:
            meaning_list = meaning_list * len(name_list)
        elif len(name_list) == 1 and len(meaning_list) > 1:
            name_list = name_list * len(meaning_list)
        elif len(name_list) != len(meaning_list):
            bad.append(f"{'; '.join(str(n) for n in name_list)} <-> {'; '.join(str(m) for m in meaning_list)}")
        paired_names.append(name_list)
        paired_meanings.append(meaning_list)

    if bad:
        raise DataIntegrityError("Name and meaning lists of different lengths", bad)

    out = df.copy()
    out["vernacular_name"] = paired_names
    out["meaning"] = paired_meanings
    return out.explode(["vernacular_name", "meaning"], ignore_index=True)


def alternate_names(df: pd.DataFrame) -> pd.DataFrame:
    """
    Distinct alternate spellings per (language, vernacular_name).

    Returns:
        DataFrame with language, vernacular_name and a comma-separated
        alt_names string
    """
    rows = []
    for language, name, alt in df[["language", "vernacular_name", "alt_name"]].itertuples(index=False):
        if not isinstance(alt, str):
            continue
        for candidate in ALT_NAME_SEPARATORS.split(alt):
            candidate = candidate.strip()
            if candidate and candidate != name:
                rows.append((language, name, candidate))

    if not rows:
        return pd.DataFrame(columns=["language", "vernacular_name", "alt_names"])

    alts = pd.DataFrame(rows, columns=["language", "vernacular_name", "alt"])
    return (
        alts.groupby(["language", "vernacular_name"], dropna=False)["alt"]
        .agg(lambda s: ", ".join(sorted(set(s))))
        .reset_index(name="alt_names")
    )


def reshape_curated_names(fixed: pd.DataFrame) -> pd.DataFrame:
    """
    Reduce the curated name table to one row per name/meaning/characteristics.

    Curated spellings and meanings replace the raw ones, semicolon lists are
    split, rows are regrouped summing n and star, alternate spellings are
    attached and a display label is composed.

    Args:
        fixed: Curated name table (already verified against the raw table)

    Returns:
        Final name table
    """
    check_required_columns(fixed, NAME_SHARED_COLS, "curated names")
    df = fixed.copy()
    for col in CURATION_COLS:
        if col not in df.columns:
            df[col] = None

    df["n"] = pd.to_numeric(df["n"], errors="coerce").fillna(0).astype(int)
    df["star"] = pd.to_numeric(df["star"].map(_star_count), errors="coerce").fillna(0).astype(int)

    df["vernacular_name"] = [
        _effective(f, o) for f, o in zip(df["name_fixed"], df["vernacular_name"])
    ]
    df["meaning"] = [_effective(f, o) for f, o in zip(df["meaning_fixed"], df["meaning"])]

    df = split_name_lists(df)
    n_blank = int(df["vernacular_name"].isna().sum())
    if n_blank:
        logger.warning(f"Dropping {n_blank} curated row(s) without a vernacular name")
        df = df[df["vernacular_name"].notna()].copy()

    char_cols = characteristic_columns(df)
    for col in char_cols:
        df[col] = strip_strings(df[col]).map(lambda v: None if v == "" else v)

    group_cols = NAME_KEY_COLS + char_cols
    reduced = (
        df.groupby(group_cols, dropna=False, sort=False)
        .agg(n=("n", "sum"), star=("star", "sum"))
        .reset_index()
    )

    reduced = reduced.merge(alternate_names(df), on=["language", "vernacular_name"], how="left")
    reduced["label"] = [
        format_label(s, n, st) for s, n, st in zip(reduced["species"], reduced["n"], reduced["star"])
    ]

    ordered = NAME_KEY_COLS + ["n", "star", "alt_names", "label"] + char_cols
    reduced = sort_name_table(reduced[ordered])
    logger.info(f"Reshaped curated names: {len(fixed)} -> {len(reduced)} rows")
    return reduced


def find_unresolved_names(names: pd.DataFrame) -> pd.DataFrame:
    """
    Rows whose (vernacular_name, language) still carries more than one
    distinct set of characteristics.
    """
    char_cols = characteristic_columns(names)
    if names.empty or not char_cols:
        return names.iloc[0:0]

    signature = _as_text(names[char_cols]).agg(" | ".join, axis=1)
    keys = _as_text(names[["vernacular_name", "language"]])
    n_sets = signature.groupby([keys["vernacular_name"], keys["language"]]).transform("nunique")

    unresolved = names[n_sets > 1]
    if not unresolved.empty:
        n_pairs = len(unresolved[["vernacular_name", "language"]].drop_duplicates())
        logger.warning(f"{n_pairs} vernacular name(s) map to several characteristic sets")
    return sort_name_table(unresolved)


# ---------------------------------------------------------------------------
# STAGE 4: LONG-FORMAT CHARACTERISTICS
# ---------------------------------------------------------------------------

def characteristics_long(names: pd.DataFrame) -> pd.DataFrame:
    """
    Pivot characteristic columns to long format and classify them.

    Args:
        names: Final name table (stage 3 output)

    Returns:
        One row per (name entry, characteristic) with a non-null value,
        with characteristic, value and category columns

    Raises:
        CharacteristicTaxonomyError: For a characteristic outside the taxonomy
    """
    char_cols = characteristic_columns(names)
    unknown = [c for c in char_cols if c not in CHARACTERISTIC_CATEGORIES]
    if unknown:
        raise CharacteristicTaxonomyError("Unclassified characteristic column(s)", unknown)

    id_cols = [c for c in NAME_KEY_COLS + ["n", "star", "label"] if c in names.columns]
    long = names.melt(
        id_vars=id_cols,
        value_vars=char_cols,
        var_name="characteristic",
        value_name="value",
    )
    long["value"] = strip_strings(long["value"])
    long = long[long["value"].notna() & (long["value"] != "")].copy()

    long["category"] = long["characteristic"].map(CHARACTERISTIC_CATEGORIES).astype(
        pd.CategoricalDtype(categories=CATEGORY_ORDER)
    )
    long = long.reset_index(drop=True)
    logger.info(f"Built {len(long)} characteristic records")
    return long
