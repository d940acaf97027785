"""
Country to default-language mapping for AppTweak store requests
"""

# Countries whose storefront rejects languages other than these
COUNTRY_LANGUAGES: dict[str, str] = {
    "us": "en",
    "gb": "en",
    "ca": "en",
    "au": "en",
    "de": "de",
    "fr": "fr",
    "es": "es",
    "it": "it",
    "pt": "pt",
    "br": "pt",
    "ru": "ru",
    "jp": "ja",
    "kr": "ko",
    "cn": "zh",
}


def resolve_language(country: str, requested_language: str) -> str:
    """Return the mapped language for country, or requested_language if unmapped"""
    return COUNTRY_LANGUAGES.get(country, requested_language)
