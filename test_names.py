import pandas as pd
import pytest

from mycosurvey.config import NAME_KEY_COLS
from mycosurvey.io import load_table
from mycosurvey.names import (
    characteristics_long,
    compare_name_tables,
    compile_vernacular_names,
    find_unresolved_names,
    fold_name,
    format_label,
    reshape_curated_names,
    split_name_lists,
    verify_curated_names,
)
from mycosurvey.transforms import prepare_focus_groups, prepare_interviews, prepare_species_key
from mycosurvey.validate import CharacteristicTaxonomyError, CurationMismatchError, DataIntegrityError


@pytest.fixture
def canonical(species_key, raw_interviews, raw_focus_groups, groups, villages):
    key = prepare_species_key(species_key)
    interviews = prepare_interviews(raw_interviews, key)
    focus_groups = prepare_focus_groups(raw_focus_groups, key, groups, villages)
    return interviews, focus_groups


@pytest.fixture
def curated():
    return pd.DataFrame({
        "species": ["Russula virescens", "Russula virescens", "Termitomyces eurrhizus"],
        "scientific_name": [
            "Russula virescens (Schaeff.) Fr.",
            "Russula virescens (Schaeff.) Fr.",
            "Termitomyces eurrhizus (Berk.) R. Heim",
        ],
        "abbreviation": ["RUVI", "RUVI", "TEEU"],
        "vernacular_name": ["het kai", "het kay", "het pluak; het pouak"],
        "language": ["Lao", "Lao", "Lao"],
        "meaning": ["egg", "egg", "termite mushroom"],
        "n": [2, 1, 3],
        "star": [1, 0, 2],
        "alt_name": ["het khai", None, None],
        "name_fixed": [None, "het kai", None],
        "meaning_fixed": [None, None, None],
        "color": ["green", "green", None],
        "habitat": [None, None, "termite mound"],
        "edibility": ["edible", "edible", "edible"],
    })


def test_fold_name():
    assert fold_name(" Het  Kai ") == "het kai"
    assert fold_name("N/A") is None
    assert fold_name("No Name") is None
    assert fold_name("") is None
    assert fold_name(None) is None
    assert fold_name("NA") == "na"


def test_compile_counts_interviews_and_focus_groups(canonical):
    interviews, focus_groups = canonical
    names = compile_vernacular_names(interviews, focus_groups)

    # "n/a", "no name" and missing names are dropped
    assert set(names["vernacular_name"]) == {"het kai", "het pluak"}

    ruvi = names[(names["abbreviation"] == "RUVI") & (names["vernacular_name"] == "het kai")]
    assert len(ruvi) == 1
    assert ruvi["n"].iloc[0] == 2
    assert ruvi["star"].iloc[0] == 2

    amhe = names[names["abbreviation"] == "AMHE"]
    assert amhe["n"].tolist() == [1]
    assert amhe["star"].tolist() == [0]

    pluak = names[names["vernacular_name"] == "het pluak"]
    assert pluak["n"].tolist() == [1]
    assert pluak["star"].tolist() == [0]

    assert names["n"].sum() == 4
    assert names["star"].sum() == 2


def test_compile_is_order_independent(canonical):
    interviews, focus_groups = canonical
    names = compile_vernacular_names(interviews, focus_groups)
    shuffled = compile_vernacular_names(
        interviews.sample(frac=1, random_state=3), focus_groups.iloc[::-1]
    )
    pd.testing.assert_frame_equal(names, shuffled)


def test_compile_is_idempotent(canonical):
    interviews, focus_groups = canonical
    names = compile_vernacular_names(interviews, focus_groups)
    pd.testing.assert_frame_equal(names, compile_vernacular_names(interviews, focus_groups))

    # one record per name key: compiling the result again changes nothing
    deduped = interviews.assign(
        vernacular_name=interviews["vernacular_name"].map(fold_name)
    ).drop_duplicates(NAME_KEY_COLS)
    once = compile_vernacular_names(deduped, None)
    assert once["n"].tolist() == [1, 1, 1]
    pd.testing.assert_frame_equal(compile_vernacular_names(once, None), once, check_dtype=False)


def test_compile_sort_order(canonical):
    names = compile_vernacular_names(*canonical)
    assert names["vernacular_name"].tolist() == ["het kai", "het kai", "het pluak"]
    assert names["abbreviation"].tolist() == ["AMHE", "RUVI", "TEEU"]


def test_format_label():
    assert format_label("Russula virescens", 4, 2) == "Russula virescens (4**)"
    assert format_label("Boletus edulis", 1, 0) == "Boletus edulis (1)"


def test_curation_check_ignores_row_order(canonical):
    raw = compile_vernacular_names(*canonical)
    fixed = raw.iloc[::-1].copy()
    fixed["alt_name"] = None
    fixed["color"] = "white"

    diff = compare_name_tables(raw, fixed)
    assert diff.is_equal
    assert diff.describe() == []


def test_curation_check_accepts_star_markers(canonical):
    raw = compile_vernacular_names(*canonical)
    fixed = raw.copy()
    fixed["star"] = ["*" * s for s in raw["star"]]
    assert compare_name_tables(raw, fixed).is_equal


def test_curation_check_fails_on_changed_cell(canonical, tmp_path):
    raw = compile_vernacular_names(*canonical)
    fixed = raw.copy()
    fixed.loc[0, "meaning"] = "edited by hand"

    diff = compare_name_tables(raw, fixed)
    assert not diff.is_equal
    assert len(diff.only_in_raw) == 1
    assert len(diff.only_in_fixed) == 1
    assert diff.only_in_fixed["meaning"].tolist() == ["edited by hand"]

    with pytest.raises(CurationMismatchError) as exc:
        verify_curated_names(raw, fixed, outdir=tmp_path)
    assert not exc.value.diff.is_equal
    assert (tmp_path / "names_raw_sorted.csv").exists()
    assert (tmp_path / "names_fixed_sorted.csv").exists()


def test_curation_check_passes_with_null_cells(canonical, tmp_path):
    raw = compile_vernacular_names(*canonical)
    raw.loc[0, "meaning"] = None
    raw.loc[1, "language"] = None

    assert compare_name_tables(raw, raw.copy()).is_equal
    assert compare_name_tables(raw, raw.iloc[::-1]).is_equal

    # an untouched curated copy read back from CSV
    path = tmp_path / "names_fixed.csv"
    raw.to_csv(path, index=False)
    assert verify_curated_names(raw, load_table(path), outdir=tmp_path) is not None
    assert not (tmp_path / "names_raw_sorted.csv").exists()


def test_curation_check_fails_on_missing_row(canonical):
    raw = compile_vernacular_names(*canonical)
    diff = compare_name_tables(raw, raw.iloc[1:])
    assert not diff.is_equal
    assert diff.raw_rows == 3
    assert diff.fixed_rows == 2
    assert len(diff.only_in_raw) == 1


def test_reshape_curated_names(curated):
    names = reshape_curated_names(curated)

    assert names["vernacular_name"].tolist() == ["het kai", "het pluak", "het pouak"]

    kai = names.iloc[0]
    assert kai["n"] == 3
    assert kai["star"] == 1
    assert kai["alt_names"] == "het khai"
    assert kai["label"] == "Russula virescens (3*)"

    pouak = names.iloc[2]
    assert pouak["meaning"] == "termite mushroom"
    assert pouak["n"] == 3
    assert pouak["label"] == "Termitomyces eurrhizus (3**)"
    assert pd.isna(pouak["alt_names"])


def test_reshape_rejects_mismatched_lists(curated):
    bad = curated.copy()
    bad.loc[2, "meaning"] = "termite; mound; mushroom"
    with pytest.raises(DataIntegrityError):
        reshape_curated_names(bad)


def test_split_repeats_single_name_for_each_meaning():
    df = pd.DataFrame({
        "vernacular_name": ["het kai", "het pluak; het pouak"],
        "meaning": ["egg; chicken", "termite mushroom"],
        "n": [2, 1],
    })
    result = split_name_lists(df)

    assert result["vernacular_name"].tolist() == ["het kai", "het kai", "het pluak", "het pouak"]
    assert result["meaning"].tolist() == ["egg", "chicken", "termite mushroom", "termite mushroom"]
    assert result["n"].tolist() == [2, 2, 1, 1]


def test_find_unresolved_names_with_blank_characteristics():
    names = pd.DataFrame({
        "species": ["Russula virescens", "Amanita hemibapha", "Termitomyces eurrhizus", "Boletus edulis"],
        "scientific_name": ["a", "b", "c", "d"],
        "abbreviation": ["RUVI", "AMHE", "TEEU", "BOED"],
        "vernacular_name": ["het kai", "het kai", "het pluak", "het pluak"],
        "language": ["Lao", "Lao", "Lao", "Lao"],
        "meaning": ["egg", "egg", None, None],
        "n": [1, 1, 1, 1],
        "star": [0, 0, 0, 0],
        "color": ["red", "red", "white", None],
        "habitat": [None, None, "termite mound", "termite mound"],
    })
    unresolved = find_unresolved_names(names)

    assert unresolved["abbreviation"].tolist() == ["BOED", "TEEU"]


def test_find_unresolved_names(curated):
    extra = curated.iloc[[0]].copy()
    extra["species"] = "Amanita hemibapha"
    extra["scientific_name"] = "Amanita hemibapha (Berk. & Broome) Sacc."
    extra["abbreviation"] = "AMHE"
    extra["color"] = "orange"
    names = reshape_curated_names(pd.concat([curated, extra], ignore_index=True))

    unresolved = find_unresolved_names(names)
    assert set(unresolved["abbreviation"]) == {"RUVI", "AMHE"}
    assert set(unresolved["vernacular_name"]) == {"het kai"}

    assert find_unresolved_names(reshape_curated_names(curated)).empty


def test_characteristics_long(curated):
    long = characteristics_long(reshape_curated_names(curated))

    assert len(long) == 6
    categories = dict(zip(long["characteristic"], long["category"].astype(str)))
    assert categories == {"color": "physical", "habitat": "ecological", "edibility": "practical"}
    assert long["value"].notna().all()


def test_characteristics_long_rejects_unknown_characteristic(curated):
    bad = curated.copy()
    bad["smell"] = "earthy"
    with pytest.raises(CharacteristicTaxonomyError) as exc:
        characteristics_long(reshape_curated_names(bad))
    assert exc.value.offending == ["smell"]
