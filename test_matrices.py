import pandas as pd

from mycosurvey.matrices import (
    build_knowledge_data,
    build_matrices,
    knowledge_matrix,
    matrix_biodata,
    preference_matrix,
    prune_matrix,
    specimen_only_species,
)


def _observations(rows):
    """rows: (respondent_id, abbreviation, recognize, preference)"""
    df = pd.DataFrame(rows, columns=["respondent_id", "abbreviation", "recognize", "preference"])
    df["preference"] = df["preference"].astype("Int64")
    return df


def test_specimen_only_species():
    interviews = pd.DataFrame({
        "respondent_id": ["R1", "R2", "R1", "R2", "R3"],
        "abbreviation": ["X", "X", "Y", "Y", "Z"],
        "context": ["Specimen", "specimen", "Specimen", "Fresh", "Photo"],
    })
    assert specimen_only_species(interviews) == ["X"]


def test_specimen_only_checked_before_group_filter():
    interviews = pd.DataFrame({
        "respondent_id": ["R1", "R2", "R3", "R1"],
        "abbreviation": ["Z", "Z", "S", "A"],
        "recognize": [True, True, True, True],
        "preference": pd.array([1, 2, 3, 4], dtype="Int64"),
        "context": ["Specimen", "Fresh", "Specimen", "Fresh"],
    })
    biodata = pd.DataFrame({
        "respondent_id": ["R1", "R2", "R3"],
        "group": ["HM", "TD", "HM"],
        "age": [30.0, 40.0, 50.0],
    })
    data = build_knowledge_data(interviews, biodata, allowed_groups=["HM"])

    # Z is specimen-only inside HM, but not across the whole survey
    assert sorted(data["abbreviation"].unique()) == ["A", "Z"]
    assert "S" not in set(data["abbreviation"])
    assert set(data["group"]) == {"HM"}
    assert "age" in data.columns


def test_biodata_codes_replace_raw_interview_columns():
    interviews = pd.DataFrame({
        "respondent_id": ["R1", "R2"],
        "abbreviation": ["A", "B"],
        "group": ["Hmong", "Hmong"],
        "context": ["Fresh", "Fresh"],
    })
    biodata = pd.DataFrame({"respondent_id": ["R1", "R2"], "group": ["HM", "HM"]})
    data = build_knowledge_data(interviews, biodata, allowed_groups=["HM"])

    assert len(data) == 2
    assert data["group"].tolist() == ["HM", "HM"]


def test_knowledge_matrix_prunes_rare_species():
    rows = [("R1", "A", True, None)]
    rows += [(f"R{i}", "B", True, None) for i in range(1, 6)]
    rows += [("R6", "C", False, None)]
    matrix = knowledge_matrix(_observations(rows))

    assert list(matrix.columns) == ["B"]
    assert list(matrix.index) == ["R1", "R2", "R3", "R4", "R5"]
    assert (matrix.sum(axis=1) > 0).all()
    assert (matrix.sum(axis=0) > 2).all()
    assert set(matrix.values.ravel()) <= {0, 1}


def test_knowledge_matrix_takes_max_over_duplicates():
    rows = [("R1", "B", True, None), ("R1", "B", False, None), ("R1", "B", True, None)]
    rows += [(f"R{i}", "B", True, None) for i in range(2, 4)]
    matrix = knowledge_matrix(_observations(rows))
    assert matrix.loc["R1", "B"] == 1


def test_preference_matrix_means_and_pruning():
    rows = [("R1", "B", True, 2), ("R1", "B", True, 4)]
    rows += [(f"R{i}", "B", True, 3) for i in range(2, 5)]
    rows += [("R1", "A", True, 5), ("R2", "A", True, 1), ("R3", "A", False, 4)]
    rows += [("R5", "B", True, None), ("R6", "B", False, 5)]
    matrix = preference_matrix(_observations(rows))

    assert list(matrix.columns) == ["B"]
    assert matrix.loc["R1", "B"] == 3.0
    assert "R5" not in matrix.index
    assert "R6" not in matrix.index
    assert ((matrix > 0).sum(axis=0) > 2).all()


def test_prune_uses_masks_from_unpruned_matrix():
    matrix = pd.DataFrame(
        {"A": [1, 0, 0, 0], "B": [0, 1, 1, 1]},
        index=pd.Index(["R1", "R2", "R3", "R4"], name="respondent_id"),
    )
    pruned = prune_matrix(matrix, matrix.sum(axis=0), 2)

    # R1 only knew A; its row sum was positive before A was dropped
    assert list(pruned.columns) == ["B"]
    assert list(pruned.index) == ["R1", "R2", "R3", "R4"]


def test_thresholds_are_configurable():
    rows = [(f"R{i}", "B", True, 1) for i in range(1, 4)]
    data = _observations(rows)
    assert knowledge_matrix(data, min_col_sum=2).shape == (3, 1)
    assert knowledge_matrix(data, min_col_sum=3).shape == (3, 0)
    assert preference_matrix(data, min_positive=3).shape == (3, 0)


def test_matrix_biodata_follows_matrix_order():
    matrix = pd.DataFrame(
        {"B": [1, 1, 1]}, index=pd.Index(["R3", "R1", "R9"], name="respondent_id")
    )
    biodata = pd.DataFrame({
        "respondent_id": ["R1", "R2", "R3"],
        "gender": ["F", "M", "F"],
        "age": [20.0, 30.0, 40.0],
    })
    side = matrix_biodata(matrix, biodata)

    assert side["respondent_id"].tolist() == ["R3", "R1", "R9"]
    assert side["age"].tolist()[:2] == [40.0, 20.0]
    assert pd.isna(side["gender"].iloc[2])
    assert list(side.columns) == ["respondent_id", "gender", "age"]


def test_build_matrices_returns_side_tables():
    rows = [(f"R{i}", "B", True, 2) for i in range(1, 5)]
    biodata = pd.DataFrame({"respondent_id": [f"R{i}" for i in range(1, 5)], "age": [1.0, 2.0, 3.0, 4.0]})
    result = build_matrices(_observations(rows), biodata, {"min_knowledge_col_sum": 2})

    assert set(result) == {"knowledge_matrix", "preference_matrix", "knowledge_biodata", "preference_biodata"}
    assert result["knowledge_biodata"]["respondent_id"].tolist() == list(result["knowledge_matrix"].index)
    assert result["preference_biodata"]["respondent_id"].tolist() == list(result["preference_matrix"].index)
