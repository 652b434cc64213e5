import logging
from typing import Any, Dict, Union

from hifz_tracker.models import Settings
from hifz_tracker.utils.errors import ValidationError

logger = logging.getLogger(__name__)

COUNT_FIELDS = ('visible_sets', 'repetitions_per_visible_set', 'hidden_sets', 'repetitions_per_hidden_set')
POSITIVE_GENERAL_FIELDS = ('murajaah_frequency', 'murajaah_range_size')
BOOLEAN_GENERAL_FIELDS = ('auto_play_audio', 'show_audio_player', 'show_transliteration',
                          'show_translation', 'enable_murajaah')


def load_settings(repo) -> Settings:
    """Persisted settings merged over the defaults."""
    return repo.load_settings()


def _check_positive_int(section: str, name: str, value: Any) -> None:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{section}.{name} must be a positive integer, got {value!r}")


def validate_settings(settings: Settings) -> None:
    for section in ('hafazan', 'murajaah'):
        values = getattr(settings, section)
        for name in COUNT_FIELDS:
            _check_positive_int(section, name, getattr(values, name))

    for name in POSITIVE_GENERAL_FIELDS:
        _check_positive_int('general', name, getattr(settings.general, name))
    for name in BOOLEAN_GENERAL_FIELDS:
        if not isinstance(getattr(settings.general, name), bool):
            raise ValidationError(f"general.{name} must be a boolean")


def save_settings(repo, settings: Union[Settings, Dict[str, Any]]) -> Settings:
    """
    Validate and persist settings.

    Args:
        settings: A Settings object or a (possibly partial) dict merged over the defaults

    Raises:
        ValidationError: any count, frequency or range size is not a positive integer
    """
    if isinstance(settings, dict):
        settings = Settings.from_dict(settings)

    validate_settings(settings)
    repo.save_settings(settings)

    logger.info(f"Settings saved: murajaah_frequency={settings.murajaah_frequency}, "
                f"murajaah_range_size={settings.murajaah_range_size}, "
                f"enable_murajaah={settings.general.enable_murajaah}")
    return settings
