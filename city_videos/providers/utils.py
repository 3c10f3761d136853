"""
Shared utilities for provider modules.
"""
from typing import Optional, Iterator, List, TypeVar

T = TypeVar('T')


def chunked(items: List[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of at most size items."""
    if size < 1:
        raise ValueError(f"Invalid chunk size: {size}")
    for i in range(0, len(items), size):
        yield items[i:i + size]


# Region -> relevanceLanguage hint (bias, not guarantee)
REGION_LANGUAGE = {
    'JP': 'ja', 'KR': 'ko', 'CN': 'zh-Hans', 'TW': 'zh-Hant', 'HK': 'zh-Hant',
    'TH': 'th', 'VN': 'vi', 'SG': 'en', 'ID': 'id', 'MY': 'ms', 'PH': 'en',
    'IN': 'hi', 'AE': 'ar', 'SA': 'ar', 'MA': 'ar', 'EG': 'ar', 'TR': 'tr',
    'FR': 'fr', 'IT': 'it', 'ES': 'es', 'PT': 'pt', 'DE': 'de', 'AT': 'de',
    'CH': 'de', 'GB': 'en', 'IE': 'en', 'CZ': 'cs', 'NL': 'nl', 'GR': 'el',
    'US': 'en', 'CA': 'en', 'MX': 'es', 'BR': 'pt', 'AR': 'es', 'PE': 'es',
    'CL': 'es', 'CO': 'es', 'ZA': 'en', 'KE': 'en', 'AU': 'en', 'NZ': 'en',
}


def language_for_region(region: Optional[str]) -> str:
    """Map a YouTube regionCode to a relevanceLanguage, defaulting to English."""
    if not region:
        return 'en'
    return REGION_LANGUAGE.get(region.upper(), 'en')
