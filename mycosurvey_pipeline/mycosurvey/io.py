#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Mycosurvey I/O Module
Handles loading the survey workbook, sequence and curation files, and writing
outputs (CSV, pickle snapshots, Excel, run log).
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd
import yaml
from Bio import SeqIO

from .config import (
    DEFAULT_PARAMS,
    MATRIX_TABLES,
    OPTIONAL_SHEETS,
    REQUIRED_SHEETS,
    get_params_yaml_path,
)
from .transforms import extract_specimen_number, sanitize_columns

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def load_table(path: PathLike, sheet_name: Optional[str] = None) -> pd.DataFrame:
    """
    Load a CSV or Excel table with sanitized column names.

    Args:
        path: Path to a .csv, .tsv or .xlsx file
        sheet_name: Sheet to read for Excel files (first sheet if None)

    Returns:
        DataFrame with sanitized column names
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path, keep_default_na=False, na_values=[""], encoding="utf-8-sig")
    elif suffix == ".tsv":
        df = pd.read_csv(path, sep="\t", keep_default_na=False, na_values=[""], encoding="utf-8-sig")
    elif suffix in (".xlsx", ".xls"):
        df = pd.read_excel(path, sheet_name=sheet_name or 0, engine="openpyxl")
    else:
        raise ValueError(f"Unsupported table format: {path}")
    df = sanitize_columns(df)
    logger.debug(f"Loaded {path.name} with {len(df)} rows")
    return df


def load_tables(xlsx_path: PathLike) -> Tuple[Dict[str, pd.DataFrame], List[str]]:
    """
    Load all required and optional sheets from the survey workbook.

    Args:
        xlsx_path: Path to the Excel file

    Returns:
        Tuple of (tables_dict, warnings_list)
        - tables_dict: Dict mapping sheet names to DataFrames
        - warnings_list: List of warning messages for missing sheets
    """
    tables: Dict[str, pd.DataFrame] = {}
    warnings_list: List[str] = []

    try:
        xls = pd.ExcelFile(xlsx_path, engine="openpyxl")
        available_sheets = set(xls.sheet_names)
    except Exception as e:
        logger.error(f"Failed to open workbook: {e}")
        raise ValueError(f"Cannot open Excel file: {e}")

    for sheet_name in REQUIRED_SHEETS:
        if sheet_name in available_sheets:
            tables[sheet_name] = sanitize_columns(pd.read_excel(xls, sheet_name=sheet_name))
            logger.info(f"Loaded required sheet: {sheet_name} ({len(tables[sheet_name])} rows)")
        else:
            tables[sheet_name] = pd.DataFrame()
            msg = f"Required sheet '{sheet_name}' not found in workbook"
            warnings_list.append(msg)
            logger.warning(msg)

    for sheet_name in OPTIONAL_SHEETS:
        if sheet_name in available_sheets:
            tables[sheet_name] = sanitize_columns(pd.read_excel(xls, sheet_name=sheet_name))
            logger.info(f"Loaded optional sheet: {sheet_name} ({len(tables[sheet_name])} rows)")
        else:
            tables[sheet_name] = pd.DataFrame()
            logger.debug(f"Optional sheet '{sheet_name}' not found")

    return tables, warnings_list


def load_params(yaml_path: Optional[PathLike] = None) -> Dict[str, Any]:
    """
    Load pipeline parameters from YAML, overlaid on DEFAULT_PARAMS.

    Args:
        yaml_path: Path to params.yaml (default: config/params.yaml)

    Returns:
        Parameter dict
    """
    params = dict(DEFAULT_PARAMS)
    path = Path(yaml_path) if yaml_path else get_params_yaml_path()
    if not path.exists():
        if yaml_path:
            raise FileNotFoundError(f"Params file not found: {path}")
        logger.warning(f"No params file at {path}, using defaults")
        return params

    with open(path, "r", encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}
    params.update(loaded)
    params["allowed_groups"] = [str(g) for g in params.get("allowed_groups") or []]
    logger.debug(f"Loaded params from {path}: {params}")
    return params


def load_sequences(fasta_path: PathLike) -> pd.DataFrame:
    """
    Read specimen sequences from a FASTA file.

    Args:
        fasta_path: Path to the FASTA file

    Returns:
        DataFrame with seq_id, specimen_num, sequence and seq_length
    """
    records = []
    for rec in SeqIO.parse(str(fasta_path), "fasta"):
        seq = str(rec.seq).upper().replace(" ", "")
        records.append({
            "seq_id": rec.id,
            "specimen_num": extract_specimen_number(rec.id),
            "sequence": seq,
            "seq_length": len(seq),
        })

    df = pd.DataFrame(records, columns=["seq_id", "specimen_num", "sequence", "seq_length"])
    df["specimen_num"] = df["specimen_num"].astype("Int64")

    no_number = df.loc[df["specimen_num"].isna(), "seq_id"].tolist()
    if no_number:
        logger.warning(f"{len(no_number)} sequence id(s) without a specimen number: {no_number}")
    logger.info(f"Loaded {len(df)} sequences from {Path(fasta_path).name}")
    return df


def write_table(df: pd.DataFrame, csv_path: PathLike, index: bool = False) -> None:
    """Write a table as UTF-8 CSV."""
    df.to_csv(csv_path, index=index, encoding="utf-8-sig")


def read_matrix(csv_path: PathLike) -> pd.DataFrame:
    """
    Read a matrix written by write_outputs back into memory.

    Returns:
        DataFrame indexed by respondent_id (as strings)
    """
    df = pd.read_csv(
        csv_path,
        dtype={"respondent_id": str},
        keep_default_na=False,
        na_values=[""],
        float_precision="round_trip",
        encoding="utf-8-sig",
    )
    return df.set_index("respondent_id")


def write_outputs(
    outdir: PathLike,
    tables_dict: Dict[str, pd.DataFrame],
    figures_dict: Optional[Dict[str, str]] = None,
    runlog_dict: Optional[Dict[str, Any]] = None,
) -> Dict[str, str]:
    """
    Write all outputs to the specified directory.

    Every table is written as CSV and as a pickle snapshot; non-empty tables
    are also collected in one Excel workbook.

    Args:
        outdir: Output directory path
        tables_dict: Dict of table_name -> DataFrame
        figures_dict: Dict of figure_name -> figure_path (already saved)
        runlog_dict: Run log dictionary

    Returns:
        Dict mapping output type to path
    """
    outpath = Path(outdir)
    output_paths: Dict[str, str] = {}

    tables_dir = outpath / "tables"
    snapshots_dir = outpath / "snapshots"
    tables_dir.mkdir(parents=True, exist_ok=True)
    snapshots_dir.mkdir(parents=True, exist_ok=True)

    for table_name, df in tables_dict.items():
        if df is None:
            continue
        with_index = table_name in MATRIX_TABLES

        csv_path = tables_dir / f"{table_name}.csv"
        write_table(df, csv_path, index=with_index)
        output_paths[f"csv_{table_name}"] = str(csv_path)

        pkl_path = snapshots_dir / f"{table_name}.pkl"
        df.to_pickle(pkl_path)
        output_paths[f"pkl_{table_name}"] = str(pkl_path)
        logger.info(f"Wrote {table_name}: {len(df)} rows")

    non_empty_tables = {k: v for k, v in tables_dict.items() if v is not None and not v.empty}
    if non_empty_tables:
        xlsx_path = outpath / "mycosurvey_outputs.xlsx"
        with pd.ExcelWriter(xlsx_path, engine="openpyxl") as writer:
            for table_name, df in non_empty_tables.items():
                # Truncate sheet name to 31 chars (Excel limit)
                sheet_name = table_name[:31]
                df.to_excel(writer, sheet_name=sheet_name, index=table_name in MATRIX_TABLES)
        logger.info(f"Wrote Excel workbook: {xlsx_path} ({len(non_empty_tables)} sheets)")
        output_paths["xlsx"] = str(xlsx_path)

    if figures_dict:
        for fig_name, fig_path in figures_dict.items():
            output_paths[f"figure_{fig_name}"] = fig_path

    if runlog_dict:
        runlog_path = outpath / "runlog.json"
        with open(runlog_path, "w", encoding="utf-8") as f:
            json.dump(runlog_dict, f, indent=2, ensure_ascii=False, default=str)
        logger.info(f"Wrote run log: {runlog_path}")
        output_paths["runlog"] = str(runlog_path)

    return output_paths


def create_runlog(
    input_path: PathLike,
    output_dir: PathLike,
    warnings: List[str],
    params: Dict[str, Any],
    row_counts: Dict[str, int],
    tables_generated: List[str],
    figures_generated: List[str],
    start_time: datetime,
    end_time: datetime,
) -> Dict[str, Any]:
    """
    Create a run log dictionary with execution metadata.

    Args:
        input_path: Path to input workbook
        output_dir: Output directory path
        warnings: List of warning messages
        params: Pipeline parameters used
        row_counts: Row counts of the loaded sheets
        tables_generated: List of generated table names
        figures_generated: List of generated figure names
        start_time: Execution start time
        end_time: Execution end time

    Returns:
        Run log dictionary
    """
    return {
        "pipeline": "mycosurvey",
        "version": "1.0.0",
        "input_path": str(input_path),
        "output_dir": str(output_dir),
        "execution": {
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "duration_seconds": (end_time - start_time).total_seconds(),
        },
        "params": params,
        "row_counts": row_counts,
        "warnings": warnings,
        "outputs": {
            "tables": tables_generated,
            "figures": figures_generated,
        },
    }
