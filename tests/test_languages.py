import pytest

from apptweak_export.services.languages import COUNTRY_LANGUAGES, resolve_language


@pytest.mark.parametrize("country,expected", sorted(COUNTRY_LANGUAGES.items()))
def test_mapped_country_overrides_requested_language(country, expected):
    assert resolve_language(country, "fr") == expected
    assert resolve_language(country, "xx") == expected


def test_unmapped_country_passes_language_through():
    assert resolve_language("xx", "fr") == "fr"
    assert resolve_language("nl", "nl") == "nl"


def test_known_examples():
    assert resolve_language("us", "fr") == "en"
    assert resolve_language("jp", "en") == "ja"
    assert resolve_language("br", "es") == "pt"
