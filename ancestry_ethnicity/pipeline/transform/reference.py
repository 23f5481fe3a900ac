"""
REFERENCE DATA FOR ETHNICITY CLASSIFICATION

Static code lists derived from the Australian Standard Classification of
Cultural and Ethnic Groups (ASCCEG). Everything here is read-only: sets are
frozensets and tables are loaded once and cached.

Contents:
    - Sentinel and fixed label strings
    - Rule membership sets (Anglo-Celtic cluster, national identities,
      region-priority pairs, pair overrides)
    - FIXED_LABELS: labels the resolver synthesises, with their hierarchy groups
    - load_ancestry_groups: ancestry → intermediate group → continent table
"""

import io
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import FrozenSet, Tuple

import pandas as pd


# CONFIGURATION
REFERENCE_DIR = Path(__file__).resolve().parents[2] / "reference"
ANCESTRY_GROUPS_FILE = REFERENCE_DIR / "ancestry_groups.csv"
CLASSIFICATION_VERSION = "ASCCEG 2019"

# Sentinels
NOT_APPLICABLE = "Not applicable"
NOT_STATED = "Not stated"
UNRESOLVED = "Unresolved"

# Fixed labels
AUSTRALIAN_ABORIGINAL = "Australian Aboriginal"
TORRES_STRAIT_ISLANDER = "Torres Strait Islander"
BOTH_INDIGENOUS = "Both Aboriginal and Torres Strait Islander"
SOUTH_SEA_ISLANDER = "Australian South Sea Islander"
ANGLO_CELTIC = "Anglo-Celtic"
EURASIAN = "Eurasian, so described"
MULTIETHNIC_PREFIX = "Multiethnic"

INDIGENOUS_RESPONSES: FrozenSet[str] = frozenset({
    AUSTRALIAN_ABORIGINAL,
    TORRES_STRAIT_ISLANDER,
})

ANGLO_CELTIC_RESPONSES: FrozenSet[str] = frozenset({
    "English",
    "Australian",
    "Scottish",
    "Irish",
    "Welsh",
    "New Zealander",
    "Manx",
    "Channel Islander",
    "British, nec",
    "British, nfd",
    "Australian Peoples, nfd",
    "New Zealand Peoples, nfd",
})

# National identities that dilute a more informative second response
AUSTRALIAN_NEW_ZEALANDER: FrozenSet[str] = frozenset({"Australian", "New Zealander"})
AMERICAN_CANADIAN_SOUTH_AFRICAN: FrozenSet[str] = frozenset({
    "American",
    "Canadian",
    "South African",
})

# (specific, broader) pairs; a specific response wins over a broader one
REGION_PRIORITY_PAIRS = MappingProxyType({
    "Sudan": (
        frozenset({
            "Acholi", "Anuak", "Bari", "Dinka", "Lotuko", "Madi", "Moro",
            "Nubian", "Nuer", "Shilluk", "Zande",
        }),
        frozenset({"Sudanese", "South Sudanese"}),
    ),
    "North Africa and Middle East": (
        frozenset({
            "Assyrian", "Berber", "Chaldean", "Coptic", "Druze", "Kurdish",
            "Mandaean", "Yezidi",
        }),
        frozenset({
            "Algerian", "Arab, nfd", "Bahraini", "Egyptian", "Emirati",
            "Iranian", "Iraqi", "Jordanian", "Kuwaiti", "Lebanese", "Libyan",
            "Moroccan", "Omani", "Palestinian", "Qatari", "Saudi Arabian",
            "Syrian", "Tunisian", "Turkish", "Yemeni",
        }),
    ),
    "Mainland South-East Asia": (
        frozenset({"Chin", "Hmong", "Kachin", "Karen", "Mon", "Rohingya"}),
        frozenset({"Burmese", "Khmer (Cambodian)", "Lao", "Thai", "Vietnamese"}),
    ),
    "Maritime South-East Asia": (
        frozenset({
            "Acehnese", "Balinese", "Batak", "Javanese", "Kadazan", "Malay",
            "Sundanese",
        }),
        frozenset({
            "Bruneian", "Filipino", "Indonesian", "Malaysian", "Singaporean",
            "Timorese",
        }),
    ),
    "South Asia": (
        # "Tamil, nfd" pairs are handled by PAIR_OVERRIDES instead
        frozenset({
            "Bengali", "Burgher", "Gujarati", "Kannadiga", "Kashmiri",
            "Malayali", "Marathi", "Parsi", "Punjabi", "Sikh", "Sindhi",
            "Sinhalese", "Telugu",
        }),
        frozenset({"Bangladeshi", "Indian", "Nepalese", "Pakistani", "Sri Lankan"}),
    ),
    "Central Asia": (
        frozenset({"Hazara", "Pathan", "Tatar", "Uighur"}),
        frozenset({"Afghan", "Kazakh", "Kyrgyz", "Tajik", "Turkmen", "Uzbek"}),
    ),
    "Central and West Africa": (
        frozenset({
            "Akan", "Bassa", "Ewe", "Fulani", "Gio", "Hausa", "Igbo", "Kpelle",
            "Krahn", "Kru", "Mandinka", "Mende", "Temne", "Yoruba",
        }),
        frozenset({
            "Cameroonian", "Congolese", "Gambian", "Ghanaian", "Guinean",
            "Ivorean", "Liberian", "Malian", "Nigerian", "Senegalese",
            "Sierra Leonean", "Togolese",
        }),
    ),
    "Southern and East Africa": (
        frozenset({
            "Afrikaner", "Amhara", "Harari", "Hutu", "Kikuyu", "Luo", "Maasai",
            "Ndebele", "Oromo", "Shona", "Tigre", "Tigrayan", "Tutsi", "Xhosa",
            "Zulu",
        }),
        frozenset({
            "Batswana", "Burundian", "Eritrean", "Ethiopian", "Kenyan",
            "Malawian", "Mauritian", "Mozambican", "Rwandan", "Somali",
            "South African", "Tanzanian", "Ugandan", "Zambian", "Zimbabwean",
        }),
    ),
})

# Keyed on the ordered pair key "<min> - <max>"
PAIR_OVERRIDES = MappingProxyType({
    "Fijian - Indian": "Fijian Indian",
    "Punjabi - Sikh": "Punjabi",
    "Sri Lankan - Tamil, nfd": "Sri Lankan Tamil",
    "Indian - Tamil, nfd": "Indian Tamil",
    "Cook Islander - Māori": "Cook Islander",
})

# Labels not present in the ancestry code list, with their hierarchy groups
_FIXED_LABELS_CSV = """
label,intermediate_group,continent_group
Australian Aboriginal,Aboriginal and Torres Strait Islander,Indigenous Australian
Torres Strait Islander,Aboriginal and Torres Strait Islander,Indigenous Australian
Both Aboriginal and Torres Strait Islander,Aboriginal and Torres Strait Islander,Indigenous Australian
Australian South Sea Islander,Australian South Sea Islander,Pasifika
Anglo-Celtic,Anglo-Celtic,European
Fijian Indian,Southern Asian,Asian
Sri Lankan Tamil,Southern Asian,Asian
Indian Tamil,Southern Asian,Asian
Not stated,Not stated or inadequately described,Unknown
Inadequately described,Not stated or inadequately described,Unknown
"""

FIXED_LABELS = pd.read_csv(io.StringIO(_FIXED_LABELS_CSV))
FIXED_LABELS = FIXED_LABELS.rename(columns={"label": "ethnicity"})


@lru_cache(maxsize=None)
def _read_ancestry_groups(path: str) -> pd.DataFrame:
    table = pd.read_csv(path, dtype=str, keep_default_na=False)

    expected = ["ancestry", "intermediate_group", "continent_group"]
    if list(table.columns) != expected:
        raise ValueError(
            f"{path}: expected columns {expected}, found {list(table.columns)}"
        )

    duplicated = table.loc[table["ancestry"].duplicated(), "ancestry"]
    if not duplicated.empty:
        raise ValueError(f"{path}: duplicated ancestry responses: {', '.join(duplicated)}")

    return table


def load_ancestry_groups(path=None) -> pd.DataFrame:
    """
    Load the ancestry code list with its intermediate and continent groups.

    The table is parsed once per path; callers receive a copy so the cached
    frame is never mutated.

    Args:
        path: Optional alternative CSV with columns
            ancestry, intermediate_group, continent_group

    Returns:
        pd.DataFrame: One row per ancestry response
    """
    return _read_ancestry_groups(str(path or ANCESTRY_GROUPS_FILE)).copy()


def pair_key(ancestry1: str, ancestry2: str) -> str:
    """Order-independent key for two responses, e.g. 'Fijian - Indian'."""
    first, second = sorted((ancestry1, ancestry2))
    return f"{first} - {second}"


def rule_responses() -> Tuple[str, ...]:
    """Every ancestry response named by a rule set, in sorted order."""
    names = set(ANGLO_CELTIC_RESPONSES)
    names |= AUSTRALIAN_NEW_ZEALANDER | AMERICAN_CANADIAN_SOUTH_AFRICAN
    names.add(EURASIAN)
    for specific, broader in REGION_PRIORITY_PAIRS.values():
        names |= specific | broader
    for key in PAIR_OVERRIDES:
        names.update(key.split(" - "))
    return tuple(sorted(names))
