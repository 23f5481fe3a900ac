from __future__ import annotations

from itertools import combinations

import pandas as pd
import pytest

from ancestry_ethnicity.errors import InvalidIndigenousStatusError, UnmappedAncestryError
from ancestry_ethnicity.pipeline.transform.resolver import (
    EthnicityResolver,
    IndigenousStatus,
    ResolverPolicy,
    add_ethnicity_column,
    parse_indigenous_status,
    resolve_ethnicity,
)


def test_two_continents_synthesise_sorted_multiethnic_label() -> None:
    assert resolve_ethnicity("German", "Japanese", 1) == "Multiethnic Asian-European"
    assert resolve_ethnicity("Japanese", "German", 1) == "Multiethnic Asian-European"


def test_same_continent_synthesises_single_continent_label() -> None:
    assert resolve_ethnicity("German", "French", 1) == "Multiethnic European"
    assert resolve_ethnicity("American", "Canadian", 1) == "Multiethnic North American"
    assert resolve_ethnicity("Samoan", "Māori", 1) == "Multiethnic Maori-Pasifika"


@pytest.mark.parametrize(
    "status, expected",
    [
        (2, "Australian Aboriginal"),
        (3, "Torres Strait Islander"),
        (4, "Both Aboriginal and Torres Strait Islander"),
    ],
)
def test_indigenous_status_short_circuits_every_policy(status: int, expected: str) -> None:
    for policy in ResolverPolicy:
        assert resolve_ethnicity("German", "Japanese", status, policy) == expected
        assert resolve_ethnicity("Klingon", "Not applicable", status, policy) == expected


def test_exclude_policy_marks_indigenous_ancestry_unresolved() -> None:
    assert resolve_ethnicity("Australian Aboriginal", "German", 1) == "Unresolved"
    assert resolve_ethnicity("German", "Torres Strait Islander", 1) == "Unresolved"
    assert resolve_ethnicity("Australian Aboriginal", "Not applicable", 1) == "Unresolved"
    assert resolve_ethnicity("Torres Strait Islander", "English", 1) == "Unresolved"


def test_prioritize_indigenous_policy() -> None:
    policy = ResolverPolicy.PRIORITIZE_INDIGENOUS
    assert resolve_ethnicity("German", "Australian Aboriginal", 1, policy) == "Australian Aboriginal"
    assert resolve_ethnicity("Torres Strait Islander", "Samoan", 1, policy) == "Torres Strait Islander"
    assert (
        resolve_ethnicity("Australian Aboriginal", "Torres Strait Islander", 1, policy)
        == "Both Aboriginal and Torres Strait Islander"
    )
    assert (
        resolve_ethnicity("Australian Aboriginal", "Australian Aboriginal", 1, policy)
        == "Australian Aboriginal"
    )


def test_prioritize_other_policy() -> None:
    policy = ResolverPolicy.PRIORITIZE_OTHER
    assert resolve_ethnicity("German", "Australian Aboriginal", 1, policy) == "German"
    assert resolve_ethnicity("Torres Strait Islander", "Samoan", 1, policy) == "Samoan"
    assert (
        resolve_ethnicity("Torres Strait Islander", "Australian Aboriginal", 1, policy)
        == "Both Aboriginal and Torres Strait Islander"
    )
    assert (
        resolve_ethnicity("Australian Aboriginal", "Not applicable", 1, policy)
        == "Australian Aboriginal"
    )


def test_south_sea_islander_wins_whenever_present() -> None:
    assert resolve_ethnicity("Samoan", "Australian South Sea Islander", 1) == "Australian South Sea Islander"
    assert (
        resolve_ethnicity("Australian South Sea Islander", "Not applicable", 1)
        == "Australian South Sea Islander"
    )


@pytest.mark.parametrize(
    "ancestry1, expected",
    [
        ("English", "Anglo-Celtic"),
        ("Australian Peoples, nfd", "Anglo-Celtic"),
        ("British, nec", "Anglo-Celtic"),
        ("Eurasian, so described", "Multiethnic Asian-European"),
        ("Samoan", "Samoan"),
        ("Sudanese", "Sudanese"),
        ("Not stated", "Not stated"),
    ],
)
def test_single_response(ancestry1: str, expected: str) -> None:
    assert resolve_ethnicity(ancestry1, "Not applicable", 1) == expected


def test_australian_new_zealander_dilution() -> None:
    assert resolve_ethnicity("Australian", "Italian", 1) == "Italian"
    assert resolve_ethnicity("Lebanese", "New Zealander", 1) == "Lebanese"
    assert resolve_ethnicity("Australian", "New Zealander", 1) == "Anglo-Celtic"


def test_american_canadian_south_african_dilution() -> None:
    assert resolve_ethnicity("American", "Vietnamese", 1) == "Vietnamese"
    assert resolve_ethnicity("Greek", "South African", 1) == "Greek"


def test_australian_dilution_runs_before_american_dilution() -> None:
    assert resolve_ethnicity("Australian", "American", 1) == "American"
    assert resolve_ethnicity("American", "Australian", 1) == "American"


@pytest.mark.parametrize(
    "specific, broader",
    [
        ("Bari", "South Sudanese"),
        ("Dinka", "Sudanese"),
        ("Kurdish", "Iraqi"),
        ("Hmong", "Vietnamese"),
        ("Sinhalese", "Sri Lankan"),
        ("Hazara", "Afghan"),
        ("Yoruba", "Nigerian"),
        ("Oromo", "Ethiopian"),
    ],
)
def test_region_priority_prefers_specific_group(specific: str, broader: str) -> None:
    assert resolve_ethnicity(specific, broader, 1) == specific
    assert resolve_ethnicity(broader, specific, 1) == specific


@pytest.mark.parametrize(
    "first, second, expected",
    [
        ("Fijian", "Indian", "Fijian Indian"),
        ("Punjabi", "Sikh", "Punjabi"),
        ("Sri Lankan", "Tamil, nfd", "Sri Lankan Tamil"),
        ("Indian", "Tamil, nfd", "Indian Tamil"),
        ("Cook Islander", "Māori", "Cook Islander"),
    ],
)
def test_pair_overrides_in_both_orders(first: str, second: str, expected: str) -> None:
    assert resolve_ethnicity(first, second, 1) == expected
    assert resolve_ethnicity(second, first, 1) == expected


def test_two_response_labels_are_symmetric() -> None:
    responses = [
        "German", "Japanese", "Bari", "South Sudanese", "Fijian", "Indian",
        "Australian", "Italian", "American", "Vietnamese", "Samoan", "Māori",
        "Cook Islander", "Lebanese", "Kurdish", "English",
    ]
    for first, second in combinations(responses, 2):
        assert resolve_ethnicity(first, second, 1) == resolve_ethnicity(second, first, 1), (first, second)


def test_unmapped_response_raises_at_continent_synthesis() -> None:
    with pytest.raises(UnmappedAncestryError) as excinfo:
        resolve_ethnicity("Klingon", "German", 1)
    assert excinfo.value.ancestry == "Klingon"
    assert "Klingon" in str(excinfo.value)


def test_not_stated_in_a_pair_is_unmapped() -> None:
    with pytest.raises(UnmappedAncestryError):
        resolve_ethnicity("German", "Not stated", 1)


def test_missing_response_raises_unmapped() -> None:
    with pytest.raises(UnmappedAncestryError):
        resolve_ethnicity("German", float("nan"), 1)


@pytest.mark.parametrize(
    "value", [0, 5, "x", None, 1.5, float("nan"), True, False, "1.5", "nan", "inf", ""]
)
def test_invalid_indigenous_status(value) -> None:
    with pytest.raises(InvalidIndigenousStatusError):
        resolve_ethnicity("German", "Not applicable", value)


@pytest.mark.parametrize("value", [1, "1", 1.0, "1.0", " 1 ", IndigenousStatus.NON_INDIGENOUS])
def test_status_parsing_accepts_numeric_forms(value) -> None:
    assert parse_indigenous_status(value) is IndigenousStatus.NON_INDIGENOUS


def test_float_formatted_status_column() -> None:
    df = pd.DataFrame(
        {
            "ancestry1": ["German", "German", "German"],
            "ancestry2": ["Japanese", "Japanese", "Japanese"],
            "indigenous_status": ["1.0", "2.0", "4.0"],
        }
    )
    out = add_ethnicity_column(df)
    assert out["ethnicity"].tolist() == [
        "Multiethnic Asian-European",
        "Australian Aboriginal",
        "Both Aboriginal and Torres Strait Islander",
    ]


def test_last_rule_result_is_returned_as_is() -> None:
    resolver = EthnicityResolver()
    resolver.rules[-1] = ("catch_all", lambda ancestry1, ancestry2, status: "Catch-all label")
    assert resolver.resolve_with_rule("Klingon", "Vulcan", 1) == ("Catch-all label", "catch_all")
    assert resolver.resolve_with_rule("Fijian", "Indian", 1) == ("Fijian Indian", "pair_override")


def test_resolver_reports_deciding_rule() -> None:
    resolver = EthnicityResolver(ResolverPolicy.EXCLUDE)
    assert resolver.resolve_with_rule("German", "Japanese", 1) == (
        "Multiethnic Asian-European",
        "continent_synthesis",
    )
    assert resolver.resolve_with_rule("Fijian", "Indian", 1) == ("Fijian Indian", "pair_override")
    assert resolver.resolve_with_rule("German", "Japanese", 2)[1] == "indigenous_status"


def test_rule_order() -> None:
    names = [name for name, _ in EthnicityResolver().rules]
    assert names == [
        "indigenous_status",
        "indigenous_ancestry",
        "south_sea_islander",
        "single_response",
        "australian_new_zealander",
        "american_canadian_south_african",
        "region_priority",
        "pair_override",
        "continent_synthesis",
    ]


def test_policy_accepts_string_value() -> None:
    resolver = EthnicityResolver("reclassify-prioritize-other")
    assert resolver.policy is ResolverPolicy.PRIORITIZE_OTHER
    assert repr(resolver) == "EthnicityResolver(policy='reclassify-prioritize-other')"
