"""Lecture du fichier .env optionnel à la racine du dépôt."""
from __future__ import annotations

import os
from pathlib import Path

ENV_PATH = Path(__file__).resolve().parents[2] / ".env"

_loaded = False


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    # Commentaire en fin de ligne, seulement hors guillemets.
    return value.split(" #", 1)[0].rstrip()


def parse_env_file(path: Path) -> dict[str, str]:
    """Retourne les paires ``CLE=valeur`` du fichier ; les lignes mal formées sont ignorées."""
    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        name, sep, value = line.partition("=")
        name = name.strip()
        if not sep or not name:
            continue
        values[name] = _unquote(value.strip())
    return values


def load_env(env_path: Path | None = None) -> dict[str, str]:
    """Applique le fichier .env sans écraser les variables déjà définies.

    Sans argument, le fichier du dépôt n'est lu qu'une fois. Retourne les
    variables effectivement ajoutées.
    """
    global _loaded
    if env_path is None:
        if _loaded:
            return {}
        _loaded = True
    path = env_path or ENV_PATH
    if not path.exists():
        return {}
    applied = {
        name: value for name, value in parse_env_file(path).items() if name not in os.environ
    }
    os.environ.update(applied)
    return applied
