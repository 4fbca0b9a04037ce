import os
import sys

import pandas as pd
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "mycosurvey_pipeline"))


@pytest.fixture
def species_key():
    return pd.DataFrame({
        "original_name": [
            "Russula virescens",
            "Russula virescens Fr.",
            "Termitomyces sp.",
            "Amanita hemibapha",
            "Boletus edulis",
        ],
        "species": [
            "Russula virescens",
            "Russula virescens",
            "Termitomyces eurrhizus",
            "Amanita hemibapha",
            "Boletus edulis",
        ],
        "abbreviation": ["RUVI", "RUVI", "TEEU", "AMHE", "BOED"],
        "scientific_name": [
            "Russula virescens (Schaeff.) Fr.",
            "Russula virescens (Schaeff.) Fr.",
            "Termitomyces eurrhizus (Berk.) R. Heim",
            "Amanita hemibapha (Berk. & Broome) Sacc.",
            "Boletus edulis Bull.",
        ],
    })


@pytest.fixture
def groups():
    return pd.DataFrame({
        "group_name": ["Hmong", "Khmu", "Lao", "Akha", "Tai Dam"],
        "group_code": ["HM", "KM", "LA", "AK", "TD"],
        "language": ["Hmong", "Khmu", "Lao", "Akha", "Tai Dam"],
        "language_family": ["Hmong-Mien", "Austroasiatic", "Kra-Dai", "Sino-Tibetan", "Kra-Dai"],
    })


@pytest.fixture
def villages():
    return pd.DataFrame({
        "village_name": ["Ban Nam Ngeun", "Ban Phou Sang"],
        "village_code": ["NN", "PS"],
        "district": ["Xay", "Namo"],
        "province": ["Oudomxay", "Oudomxay"],
        "latitude": [20.69, 20.93],
        "longitude": [101.98, 101.81],
    })


@pytest.fixture
def village_groups():
    return pd.DataFrame({
        "village_code": ["NN", "NN", "PS", "PS", "PS"],
        "group_code": ["HM", "KM", "LA", "AK", "TD"],
        "village_group": ["NNHM", "NNKM", "PSLA", "PSAK", "PSTD"],
    })


@pytest.fixture
def installation():
    return pd.DataFrame({
        "village_code": ["NN", "NN", "PS", "PS", "PS"],
        "group_code": ["HM", "KM", "LA", "AK", "TD"],
        "years": [30, 100, 200, 15, 5],
    })


@pytest.fixture
def raw_biodata():
    return pd.DataFrame({
        "respondent_id": ["R1", "R2", "R3", "R4", "R5"],
        "village": ["Ban Nam Ngeun", "ban nam ngeun", "Ban Phou Sang", "Ban Phou Sang", "Ban Phou Sang"],
        "group": ["Hmong", "Khmu", "Lao", "Akha", "Tai Dam"],
        "gender": ["Female", "M", "male", "F", "Woman"],
        "age": ["34", "35", ">60", "22", 41],
    })


@pytest.fixture
def raw_interviews():
    return pd.DataFrame({
        "respondent_id": ["R1", "R2", "R3", "R1", "R2", "R5"],
        "original_name": [
            "Russula virescens",
            "Russula virescens Fr.",
            "Russula virescens",
            "Termitomyces sp.",
            "Termitomyces sp.",
            "Amanita hemibapha",
        ],
        "recognize": ["yes", "yes", "no", "yes", None, "yes"],
        "preference": ["4", "5", None, "n/a", None, "3"],
        "context": ["Fresh", "Photo", "Fresh", "Fresh", "Fresh", "Specimen"],
        "vernacular_name": ["Het Kai", "het kai ", "n/a", "Het Pluak", None, "het kai"],
        "language": ["Lao", "Lao", "Lao", "Lao", None, "Lao"],
        "meaning": ["egg mushroom", "egg mushroom", None, "termite mushroom", None, "egg mushroom"],
    })


@pytest.fixture
def raw_focus_groups():
    return pd.DataFrame({
        "session_id": ["S1", "S1", "S2"],
        "village": ["Ban Nam Ngeun", "Ban Nam Ngeun", "Ban Phou Sang"],
        "group": ["Hmong", "Hmong", "Lao"],
        "original_name": ["Russula virescens", "Termitomyces sp.", "Russula virescens Fr."],
        "vernacular_name": ["HET KAI", "no name", "Het Kai"],
        "language": ["Lao", "Lao", "Lao"],
        "meaning": ["egg mushroom", None, "egg mushroom"],
    })
