import re
from datetime import datetime
from typing import Optional

from .. import config

# "YYYY:MM:DD HH:MM:SS" with optional sub-seconds and zone suffix
_EXIF_RE = re.compile(
    r'^(\d{4}:\d{2}:\d{2} \d{2}:\d{2}:\d{2})(\.\d+)?(Z|[+-]\d{2}:?\d{2})?$'
)


def _naive(dt: datetime) -> datetime:
    # Wall-clock time is kept as-is; the zone is dropped, not converted.
    return dt.replace(tzinfo=None)


def strip_utc(value: str) -> str:
    clean = value.strip()
    if clean.upper().endswith(" UTC"):
        clean = clean[:-4].rstrip()
    return clean


def parse_flexible_date(dt_str: Optional[str]) -> Optional[datetime]:
    """
    Handles various date formats (ISO, export quirks, exiftool output).
    Returns a naive datetime object, or None if nothing matches.
    """
    if not dt_str:
        return None

    # Exports may use a narrow no-break space before AM/PM
    clean = strip_utc(dt_str.replace("\u202f", " "))
    if not clean:
        return None

    # 1. Try ISO format (e.g. 2020-01-01T12:00:00+02:00)
    try:
        return _naive(datetime.fromisoformat(clean))
    except ValueError:
        pass

    # 2. Known textual layouts
    for fmt in config.FALLBACK_DATE_FORMATS:
        try:
            return datetime.strptime(clean, fmt)
        except ValueError:
            continue

    return None


def parse_sidecar_date(dt_str: Optional[str]) -> Optional[datetime]:
    """
    Parses the export's "dd.MM.yyyy, HH:mm:ss[ UTC]" capture time.
    The UTC suffix is stripped, not applied.
    """
    if not dt_str or not dt_str.strip():
        return None

    clean = strip_utc(dt_str)
    try:
        return datetime.strptime(clean, config.SIDECAR_DATE_FORMAT)
    except ValueError:
        return parse_flexible_date(clean)


def parse_exif_date(dt_str: Optional[str]) -> Optional[datetime]:
    """Parses exiftool's "YYYY:MM:DD HH:MM:SS[.ss][+HH:MM]" date values."""
    if not dt_str or not dt_str.strip():
        return None

    clean = dt_str.strip()
    m = _EXIF_RE.match(clean)
    if m:
        try:
            return datetime.strptime(m.group(1), config.EXIF_DATE_FORMAT)
        except ValueError:
            # e.g. "0000:00:00 00:00:00"
            pass
    return parse_flexible_date(clean)


def format_exif_date(dt: datetime) -> str:
    return dt.strftime(config.EXIF_DATE_FORMAT)
