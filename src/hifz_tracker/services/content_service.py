"""
Quran content client.

Thin wrapper over the public alquran.cloud API for chapter metadata and
verse text. One request per call, no retries and no caching; any failure
surfaces as ContentFetchError.
"""

import logging
from typing import Dict

import requests

from hifz_tracker.config import config
from hifz_tracker.middleware.logging import log_error
from hifz_tracker.middleware.metrics import content_requests_total
from hifz_tracker.utils.errors import ContentFetchError, ValidationError

logger = logging.getLogger(__name__)


def _validate_surah(surah_number: int) -> int:
    try:
        surah_number = int(surah_number)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid surah number: {surah_number!r}")
    if not 1 <= surah_number <= config.TOTAL_SURAHS:
        raise ValidationError(f"Surah number must be between 1 and {config.TOTAL_SURAHS}, got {surah_number}")
    return surah_number


def _get(path: str) -> Dict:
    url = f"{config.QURAN_API_BASE.rstrip('/')}/{path}"
    try:
        response = requests.get(url, timeout=config.QURAN_API_TIMEOUT)
        response.raise_for_status()
        payload = response.json()
    except requests.exceptions.RequestException as e:
        content_requests_total.labels(status='error').inc()
        log_error(logger, "Content request failed", url=url)
        raise ContentFetchError(f"Failed to fetch {path}: {e}") from e
    except ValueError as e:
        content_requests_total.labels(status='error').inc()
        log_error(logger, "Content response is not JSON", url=url)
        raise ContentFetchError(f"Malformed response for {path}") from e

    content_requests_total.labels(status='success').inc()
    data = payload.get('data') if isinstance(payload, dict) else None
    if data is None:
        raise ContentFetchError(f"Response for {path} has no data")
    return data


def get_chapter_meta(surah_number: int) -> Dict:
    """
    Metadata for one surah.

    Returns:
        {'number', 'verse_count', 'name', 'native_name'}

    Raises:
        ValidationError: surah number outside 1..114
        ContentFetchError: provider unreachable or response malformed
    """
    surah_number = _validate_surah(surah_number)
    data = _get(f"surah/{surah_number}")

    try:
        return {
            'number': int(data['number']),
            'verse_count': int(data['numberOfAyahs']),
            'name': data['englishName'],
            'native_name': data['name'],
        }
    except (KeyError, TypeError, ValueError) as e:
        raise ContentFetchError(f"Malformed chapter metadata for surah {surah_number}: {e}") from e


def get_verse_text(surah_number: int, ayah_number: int, edition: str = None) -> Dict[str, str]:
    """Arabic text and translation of one ayah."""
    surah_number = _validate_surah(surah_number)
    edition = edition or config.TRANSLATION_EDITION

    arabic = _get(f"ayah/{surah_number}:{ayah_number}")
    translation = _get(f"ayah/{surah_number}:{ayah_number}/{edition}")

    try:
        return {
            'arabic_text': arabic['text'],
            'translation_text': translation['text'],
        }
    except (KeyError, TypeError) as e:
        raise ContentFetchError(f"Malformed verse text for {surah_number}:{ayah_number}: {e}") from e
