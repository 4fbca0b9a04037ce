"""
Matrix builder for Mycosurvey.
Respondent-by-species knowledge and preference matrices.
"""

import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from .config import DEFAULT_PARAMS
from .transforms import canonical_text

logger = logging.getLogger(__name__)


def specimen_only_species(
    interviews: pd.DataFrame,
    specimen_context: str = "Specimen",
) -> List[str]:
    """
    Species abbreviations seen by respondents only as preserved specimens.

    Computed over the full interview table, before any group filtering.

    Args:
        interviews: Canonical interview table with context and abbreviation
        specimen_context: Context value marking a specimen-only showing

    Returns:
        Sorted list of abbreviations whose every observation is a specimen
    """
    if interviews.empty or "context" not in interviews.columns:
        return []
    target = canonical_text(specimen_context)
    is_specimen = interviews["context"].map(canonical_text) == target
    flags = is_specimen.groupby(interviews["abbreviation"]).all()
    return sorted(flags[flags].index)


def build_knowledge_data(
    interviews: pd.DataFrame,
    biodata: pd.DataFrame,
    allowed_groups: Optional[List[str]] = None,
    specimen_context: str = "Specimen",
) -> pd.DataFrame:
    """
    Row-level analysis table: interviews joined to biodata.

    Specimen-only species are determined on the whole interview table first;
    the result is then restricted to the allowed ethnic groups and to the
    remaining species.

    Args:
        interviews: Canonical interview table
        biodata: Prepared biodata table
        allowed_groups: Group codes kept for analysis (all when empty)
        specimen_context: Context value marking a specimen-only showing

    Returns:
        Joined and filtered observation table
    """
    specimen_only = specimen_only_species(interviews, specimen_context)
    if specimen_only:
        logger.info(f"Excluding {len(specimen_only)} specimen-only species: {specimen_only}")

    # Biodata holds the recoded respondent fields; they replace any raw copies
    overlap = [c for c in biodata.columns if c != "respondent_id" and c in interviews.columns]
    if overlap:
        logger.debug(f"Using biodata values for interview columns {overlap}")
    data = interviews.drop(columns=overlap).merge(biodata, on="respondent_id", how="inner")

    missing = sorted(set(interviews["respondent_id"]) - set(biodata["respondent_id"]))
    if missing:
        logger.warning(f"{len(missing)} interviewed respondent(s) without biodata: {missing}")

    if allowed_groups:
        data = data[data["group"].isin(allowed_groups)]
    data = data[~data["abbreviation"].isin(specimen_only)].reset_index(drop=True)

    logger.info(
        f"Knowledge data: {len(data)} rows, {data['respondent_id'].nunique()} respondents, "
        f"{data['abbreviation'].nunique()} species"
    )
    return data


def prune_matrix(
    matrix: pd.DataFrame,
    column_scores: pd.Series,
    threshold: float,
) -> pd.DataFrame:
    """
    Drop all-zero rows and low-scoring columns in a single pass.

    Both masks are computed from the unpruned matrix and applied together.

    Args:
        matrix: Respondent x species matrix
        column_scores: Per-column score (same column index as matrix)
        threshold: Columns are kept when their score is strictly above this

    Returns:
        Pruned matrix
    """
    row_mask = matrix.sum(axis=1) > 0
    col_mask = column_scores > threshold
    pruned = matrix.loc[row_mask, col_mask]
    logger.debug(
        f"Pruned matrix {matrix.shape} -> {pruned.shape} "
        f"(dropped {int((~row_mask).sum())} rows, {int((~col_mask).sum())} columns)"
    )
    return pruned


def _empty_matrix() -> pd.DataFrame:
    return pd.DataFrame(index=pd.Index([], name="respondent_id", dtype=object))


def _pivot(data: pd.DataFrame, values: str, aggfunc: str) -> pd.DataFrame:
    matrix = data.pivot_table(
        index="respondent_id",
        columns="abbreviation",
        values=values,
        aggfunc=aggfunc,
        fill_value=0,
    )
    matrix.columns = [str(c) for c in matrix.columns]
    matrix.index.name = "respondent_id"
    return matrix


def knowledge_matrix(data: pd.DataFrame, min_col_sum: int = 2) -> pd.DataFrame:
    """
    Binary recognition matrix.

    Args:
        data: Knowledge data (see build_knowledge_data)
        min_col_sum: Species columns are kept when their sum exceeds this

    Returns:
        Respondent x abbreviation matrix of 0/1
    """
    recognized = data[data["recognize"].astype(bool)]
    if recognized.empty:
        logger.warning("No recognized observations, knowledge matrix is empty")
        return _empty_matrix()

    matrix = _pivot(recognized.assign(_known=1), "_known", "max").astype(int)
    matrix = prune_matrix(matrix, matrix.sum(axis=0), min_col_sum)
    logger.info(f"Knowledge matrix: {matrix.shape[0]} respondents x {matrix.shape[1]} species")
    return matrix


def preference_matrix(data: pd.DataFrame, min_positive: int = 2) -> pd.DataFrame:
    """
    Mean preference matrix over recognized species with a preference score.

    Args:
        data: Knowledge data (see build_knowledge_data)
        min_positive: Species columns are kept when they have more than this
            many strictly positive entries

    Returns:
        Respondent x abbreviation matrix of mean preference (0 = none)
    """
    mask = data["recognize"].astype(bool) & data["preference"].notna()
    scored = data[mask]
    if scored.empty:
        logger.warning("No preference scores, preference matrix is empty")
        return _empty_matrix()

    scored = scored.assign(_preference=scored["preference"].astype(float))
    matrix = _pivot(scored, "_preference", "mean").astype(float)
    matrix = prune_matrix(matrix, (matrix > 0).sum(axis=0), min_positive)
    logger.info(f"Preference matrix: {matrix.shape[0]} respondents x {matrix.shape[1]} species")
    return matrix


def matrix_biodata(matrix: pd.DataFrame, biodata: pd.DataFrame) -> pd.DataFrame:
    """Biodata rows for the respondents of a matrix, in matrix row order."""
    ids = pd.DataFrame({"respondent_id": [str(i) for i in matrix.index]})
    return ids.merge(biodata, on="respondent_id", how="left")


def build_matrices(
    data: pd.DataFrame,
    biodata: pd.DataFrame,
    params: Optional[Dict[str, Any]] = None,
) -> Dict[str, pd.DataFrame]:
    """
    Build both matrices and their biodata side tables.

    Args:
        data: Knowledge data
        biodata: Prepared biodata table
        params: Pipeline parameters (pruning thresholds)

    Returns:
        Dict with knowledge_matrix, preference_matrix, knowledge_biodata
        and preference_biodata
    """
    params = {**DEFAULT_PARAMS, **(params or {})}

    knowledge = knowledge_matrix(data, min_col_sum=params["min_knowledge_col_sum"])
    preference = preference_matrix(data, min_positive=params["min_preference_positive"])

    return {
        "knowledge_matrix": knowledge,
        "preference_matrix": preference,
        "knowledge_biodata": matrix_biodata(knowledge, biodata),
        "preference_biodata": matrix_biodata(preference, biodata),
    }
