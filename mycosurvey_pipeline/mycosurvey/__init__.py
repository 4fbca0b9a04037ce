"""
Mycosurvey: Ethnomycological Survey Wrangling Pipeline

This package cleans interview, focus-group, biodata and specimen records of
wild-mushroom use, reconciles species and vernacular names, and builds the
respondent-by-species knowledge and preference matrices used for analysis.
"""

__version__ = "1.0.0"
