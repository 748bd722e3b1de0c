"""Conversion entre les saisies locales des formulaires et les horodatages ISO-8601."""
from __future__ import annotations

from datetime import datetime, timezone, tzinfo

# Format des champs ``datetime-local`` des formulaires.
LOCAL_INPUT_FORMAT = "%Y-%m-%dT%H:%M"


def _parse(value: str) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _attach_local(moment: datetime, tz: tzinfo | None) -> datetime:
    if moment.tzinfo is not None:
        return moment
    if tz is not None:
        return moment.replace(tzinfo=tz)
    # astimezone() sur une date naïve applique le décalage du fuseau système.
    return moment.astimezone()


def to_absolute_iso(value: str | datetime | None, tz: tzinfo | None = None) -> str | None:
    """Convertit une saisie locale (``2024-05-02T14:30``) en horodatage UTC ISO-8601.

    Les valeurs vides donnent ``None`` ; une valeur déjà absolue est simplement
    ramenée en UTC.
    """
    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
        moment = _parse(value)
    else:
        moment = value
    absolute = _attach_local(moment, tz).astimezone(timezone.utc)
    return absolute.isoformat().replace("+00:00", "Z")


def to_local_input(value: str | datetime | None, tz: tzinfo | None = None) -> str:
    """Formate un horodatage absolu pour un champ ``datetime-local`` ('' si vide)."""
    if value is None:
        return ""
    if isinstance(value, str):
        if not value.strip():
            return ""
        moment = _parse(value)
    else:
        moment = value
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local = moment.astimezone(tz) if tz is not None else moment.astimezone()
    return local.strftime(LOCAL_INPUT_FORMAT)


def local_now_input(tz: tzinfo | None = None) -> str:
    now = datetime.now(timezone.utc)
    local = now.astimezone(tz) if tz is not None else now.astimezone()
    return local.strftime(LOCAL_INPUT_FORMAT)
