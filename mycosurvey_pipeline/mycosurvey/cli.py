#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Mycosurvey CLI Module
Command-line interface for running the survey wrangling pipeline.
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .config import OUTPUT_TABLES, REQUIRED_SHEETS
from .io import (
    create_runlog,
    load_params,
    load_sequences,
    load_table,
    load_tables,
    write_outputs,
)
from .matrices import build_knowledge_data, build_matrices
from .names import (
    characteristics_long,
    compile_vernacular_names,
    find_unresolved_names,
    reshape_curated_names,
    verify_curated_names,
)
from .plots import generate_all_plots
from .transforms import (
    prepare_biodata,
    prepare_focus_groups,
    prepare_interviews,
    prepare_species_key,
    prepare_specimens,
)
from .validate import DataIntegrityError, check_species_coverage, used_species_names

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def run_pipeline(
    input_path: str,
    outdir: str,
    sequences_path: Optional[str] = None,
    curated_path: Optional[str] = None,
    params_path: Optional[str] = None,
    include_figures: bool = True,
) -> Dict[str, Any]:
    """
    Run the complete pipeline.

    Fatal data faults raise before anything is written to outdir.

    Args:
        input_path: Path to the survey workbook (.xlsx)
        outdir: Output directory path
        sequences_path: Optional FASTA file with specimen sequences
        curated_path: Optional curated name table (CSV/XLSX)
        params_path: Optional params.yaml (default: config/params.yaml)
        include_figures: Generate PNG figures

    Returns:
        Dict with run results and paths
    """
    start_time = datetime.now()
    warnings: List[str] = []
    params = load_params(params_path)

    # Step 1: Load
    logger.info("Step 1/6: Loading tables...")
    tables, load_warnings = load_tables(input_path)
    if load_warnings:
        raise ValueError("Missing required sheets: " + "; ".join(load_warnings))
    empty = [s for s in REQUIRED_SHEETS if tables[s].empty]
    if empty:
        raise ValueError(f"Required sheets are empty: {empty}")
    row_counts = {name: len(df) for name, df in tables.items() if not df.empty}

    sequences = load_sequences(sequences_path) if sequences_path else None

    # Step 2: Validate species coverage (before canonicalization)
    logger.info("Step 2/6: Validating species key...")
    species_key = prepare_species_key(tables["SPECIES_KEY"])
    used = used_species_names(tables["INTERVIEWS"], tables["FOCUS_GROUPS"])
    unused = check_species_coverage(used, species_key["original_name"])
    if unused:
        warnings.append(f"{len(unused)} unused species key entries: {', '.join(unused)}")

    # Step 3: Normalize
    logger.info("Step 3/6: Normalizing interviews, focus groups and biodata...")
    interviews = prepare_interviews(tables["INTERVIEWS"], species_key)
    focus_groups = prepare_focus_groups(
        tables["FOCUS_GROUPS"], species_key, tables["LOOKUP_GROUPS"], tables["LOOKUP_VILLAGES"]
    )
    biodata = prepare_biodata(
        tables["BIODATA"],
        tables["LOOKUP_GROUPS"],
        tables["LOOKUP_VILLAGES"],
        tables["LOOKUP_VILLAGE_GROUPS"],
        tables["LOOKUP_INSTALLATION"],
    )
    specimens = prepare_specimens(
        tables.get("SPECIMEN_IDS", pd.DataFrame()),
        sequences if sequences is not None else pd.DataFrame(),
        species_key,
    )

    # Step 4: Matrices
    logger.info("Step 4/6: Building knowledge and preference matrices...")
    if not params["allowed_groups"]:
        warnings.append("No allowed_groups configured; matrices use every group")
    knowledge_data = build_knowledge_data(
        interviews, biodata, params["allowed_groups"], params["specimen_context"]
    )
    matrices = build_matrices(knowledge_data, biodata, params)

    # Step 5: Vernacular names
    logger.info("Step 5/6: Compiling vernacular names...")
    names_raw = compile_vernacular_names(interviews, focus_groups)

    output_tables: Dict[str, pd.DataFrame] = {
        OUTPUT_TABLES["biodata"]: biodata,
        OUTPUT_TABLES["focus_groups"]: focus_groups,
        OUTPUT_TABLES["specimens"]: specimens,
        OUTPUT_TABLES["knowledge_data"]: knowledge_data,
        OUTPUT_TABLES["names_raw"]: names_raw,
    }
    output_tables.update(matrices)

    if curated_path:
        curated = load_table(curated_path)
        verify_curated_names(names_raw, curated, outdir=outdir)
        names_final = reshape_curated_names(curated)
        unresolved = find_unresolved_names(names_final)
        if not unresolved.empty:
            warnings.append(f"{len(unresolved)} name rows with unresolved characteristics")
        output_tables[OUTPUT_TABLES["names_final"]] = names_final
        output_tables[OUTPUT_TABLES["names_unresolved"]] = unresolved
        output_tables[OUTPUT_TABLES["names_characteristics"]] = characteristics_long(names_final)
    else:
        msg = "No curated name table given; wrote names_raw for curation and skipped name reshaping"
        warnings.append(msg)
        logger.warning(msg)

    # Step 6: Write
    figures: Dict[str, str] = {}
    if include_figures:
        logger.info("Step 6/6: Generating figures and writing outputs...")
        figures = generate_all_plots(output_tables, outdir)
    else:
        logger.info("Step 6/6: Writing outputs...")

    end_time = datetime.now()
    runlog = create_runlog(
        input_path=input_path,
        output_dir=outdir,
        warnings=warnings,
        params=params,
        row_counts=row_counts,
        tables_generated=list(output_tables.keys()),
        figures_generated=list(figures.keys()),
        start_time=start_time,
        end_time=end_time,
    )
    output_paths = write_outputs(outdir, output_tables, figures, runlog)

    duration = (end_time - start_time).total_seconds()
    logger.info(f"Pipeline completed in {duration:.1f}s")

    return {
        "success": True,
        "duration": duration,
        "warnings": warnings,
        "outputs": output_paths,
        "tables": output_tables,
    }


def main():
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="Mycosurvey: ethnomycological survey wrangling pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m mycosurvey.cli --input data/survey.xlsx --outdir output
  python -m mycosurvey.cli --input data/survey.xlsx --outdir output --curated data/names_fixed.csv
  python -m mycosurvey.cli --input data/survey.xlsx --outdir output --sequences data/its.fasta --no-figures

Output Structure:
  outdir/
    tables/                  - CSV files for all output tables
    snapshots/               - pickle snapshots for fast reloading
    figures/                 - PNG visualizations
    mycosurvey_outputs.xlsx  - Consolidated Excel workbook
    runlog.json              - Execution log with warnings
        """,
    )

    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Path to the survey workbook (XLSX)",
    )

    parser.add_argument(
        "--outdir", "-o",
        required=True,
        help="Output directory for generated files",
    )

    parser.add_argument(
        "--sequences",
        default=None,
        help="FASTA file with specimen sequences",
    )

    parser.add_argument(
        "--curated",
        default=None,
        help="Manually curated name table (CSV or XLSX)",
    )

    parser.add_argument(
        "--params",
        default=None,
        help="Parameters YAML (default: config/params.yaml)",
    )

    parser.add_argument(
        "--no-figures",
        action="store_true",
        default=False,
        help="Skip figure generation",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input file not found: {input_path}")
        sys.exit(1)

    if input_path.suffix.lower() not in [".xlsx", ".xls"]:
        logger.error(f"Input file must be Excel format (.xlsx): {input_path}")
        sys.exit(1)

    logger.info("=" * 60)
    logger.info("Mycosurvey pipeline")
    logger.info("=" * 60)
    logger.info(f"Input:  {input_path}")
    logger.info(f"Output: {args.outdir}")
    logger.info("-" * 60)

    try:
        result = run_pipeline(
            str(input_path),
            args.outdir,
            sequences_path=args.sequences,
            curated_path=args.curated,
            params_path=args.params,
            include_figures=not args.no_figures,
        )
    except DataIntegrityError as e:
        logger.error(f"Data integrity fault, fix the source data and rerun:\n{e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Pipeline failed with error: {e}")
        sys.exit(1)

    logger.info("-" * 60)
    logger.info(f"Tables:   {len(result['tables'])}")
    logger.info(f"Warnings: {len(result['warnings'])}")
    for w in result["warnings"]:
        logger.warning(f"  - {w}")
    logger.info(f"Excel:  {result['outputs'].get('xlsx', 'N/A')}")
    logger.info(f"Runlog: {result['outputs'].get('runlog', 'N/A')}")
    logger.info("=" * 60)


if __name__ == "__main__":
    main()
