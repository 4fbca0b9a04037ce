#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Mycosurvey Plots Module
Generates matplotlib figures for the respondent and matrix tables.
"""

import logging
from pathlib import Path
from typing import Dict

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .config import AGE_GROUPS, AGE_THRESHOLD

logger = logging.getLogger(__name__)

plt.style.use("seaborn-v0_8-whitegrid")
plt.rcParams["figure.figsize"] = (10, 6)
plt.rcParams["font.size"] = 10
plt.rcParams["axes.titlesize"] = 12
plt.rcParams["axes.labelsize"] = 10


def _no_data(ax, title: str) -> None:
    ax.text(0.5, 0.5, "No data available", ha="center", va="center", fontsize=14)
    ax.set_title(title)


def hist_age_by_group(biodata: pd.DataFrame, outdir: Path) -> str:
    """
    Histogram of respondent ages, split by age group.

    Ages recorded as ">N" are plotted at N.

    Args:
        biodata: Prepared biodata with age and age_group columns
        outdir: Output directory for figures

    Returns:
        Path to saved figure
    """
    fig, ax = plt.subplots(figsize=(10, 5))
    title = "Respondent Age Distribution"

    ages = biodata.dropna(subset=["age"]) if "age" in biodata.columns else pd.DataFrame()
    if ages.empty:
        _no_data(ax, title)
    else:
        bins = np.arange(ages["age"].min() // 5 * 5, ages["age"].max() + 10, 5)
        colors = plt.cm.Set2(np.linspace(0, 1, len(AGE_GROUPS)))
        for label, color in zip(AGE_GROUPS, colors):
            subset = ages.loc[ages["age_group"] == label, "age"]
            ax.hist(subset, bins=bins, color=color, edgecolor="black", linewidth=0.5,
                    label=f"{label} (n={len(subset)})")
        ax.axvline(AGE_THRESHOLD, color="grey", linestyle="--", linewidth=1)
        ax.set_xlabel("Age (years, '>' estimates at lower bound)")
        ax.set_ylabel("Respondents")
        ax.set_title(title)
        ax.legend()

    plt.tight_layout()
    fig_path = outdir / "hist_age_by_group.png"
    fig.savefig(fig_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    logger.info(f"Saved figure: {fig_path}")
    return str(fig_path)


def bar_species_recognition(knowledge: pd.DataFrame, outdir: Path, top_n: int = 30) -> str:
    """
    Horizontal bar chart of how many respondents recognized each species.

    Args:
        knowledge: Knowledge matrix (respondent x abbreviation)
        outdir: Output directory for figures
        top_n: Number of species to show

    Returns:
        Path to saved figure
    """
    fig, ax = plt.subplots(figsize=(10, 8))
    title = "Species Recognition"

    if knowledge.empty or knowledge.shape[1] == 0:
        _no_data(ax, title)
    else:
        counts = knowledge.sum(axis=0).sort_values(ascending=False).head(top_n)
        y_pos = np.arange(len(counts))
        ax.barh(y_pos, counts.values, color=plt.cm.Greens(0.6), edgecolor="black", linewidth=0.5)
        ax.set_yticks(y_pos)
        ax.set_yticklabels(counts.index.tolist(), fontsize=8)
        ax.invert_yaxis()
        ax.set_xlabel(f"Respondents recognizing (of {knowledge.shape[0]})")
        ax.set_title(f"{title} (top {len(counts)})")

    plt.tight_layout()
    fig_path = outdir / "bar_species_recognition.png"
    fig.savefig(fig_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    logger.info(f"Saved figure: {fig_path}")
    return str(fig_path)


def bar_mean_preference(preference: pd.DataFrame, outdir: Path, top_n: int = 30) -> str:
    """
    Mean preference per species, over respondents who gave a score.

    Args:
        preference: Preference matrix (respondent x abbreviation, 0 = none)
        outdir: Output directory for figures
        top_n: Number of species to show

    Returns:
        Path to saved figure
    """
    fig, ax = plt.subplots(figsize=(10, 8))
    title = "Mean Preference by Species"

    if preference.empty or preference.shape[1] == 0:
        _no_data(ax, title)
    else:
        means = preference.where(preference > 0).mean(axis=0).sort_values(ascending=False).head(top_n)
        y_pos = np.arange(len(means))
        colors = plt.cm.RdYlGn(np.linspace(0.8, 0.2, len(means)))
        ax.barh(y_pos, means.values, color=colors, edgecolor="black", linewidth=0.5)
        ax.set_yticks(y_pos)
        ax.set_yticklabels(means.index.tolist(), fontsize=8)
        ax.invert_yaxis()
        ax.set_xlabel("Mean preference score")
        ax.set_title(title)

    plt.tight_layout()
    fig_path = outdir / "bar_mean_preference.png"
    fig.savefig(fig_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    logger.info(f"Saved figure: {fig_path}")
    return str(fig_path)


def generate_all_plots(tables: Dict[str, pd.DataFrame], outdir: str) -> Dict[str, str]:
    """
    Generate all figures.

    Args:
        tables: Dict of output tables
        outdir: Output directory (figures go to outdir/figures)

    Returns:
        Dict mapping figure name to file path
    """
    figures_dir = Path(outdir) / "figures"
    figures_dir.mkdir(parents=True, exist_ok=True)

    figures: Dict[str, str] = {}

    biodata = tables.get("biodata", pd.DataFrame())
    figures["hist_age_by_group"] = hist_age_by_group(biodata, figures_dir)

    knowledge = tables.get("knowledge_matrix", pd.DataFrame())
    figures["bar_species_recognition"] = bar_species_recognition(knowledge, figures_dir)

    preference = tables.get("preference_matrix", pd.DataFrame())
    figures["bar_mean_preference"] = bar_mean_preference(preference, figures_dir)

    return figures
