"""Point d'entrée en ligne de commande de ``gestion_commandes``.

``python -m gestion_commandes historique`` affiche l'historique des commandes
tel qu'un utilisateur du rôle choisi le verrait ; ``stats`` affiche les
compteurs par statut.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

import httpx

from gestion_commandes.core.config import settings
from gestion_commandes.core.constants import HISTORY_STATUSES, ROLES, status_label
from gestion_commandes.core.dates import to_local_input
from gestion_commandes.core.logging_config import configure_logging
from gestion_commandes.core.models import User
from gestion_commandes.services.api_client import ApiError, OrdersApiClient
from gestion_commandes.services.history import HistoryView

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gestion-commandes",
        description="Consultation de l'historique des commandes",
    )
    parser.add_argument(
        "--role",
        choices=ROLES,
        default="admin",
        help="Rôle dont on applique la visibilité (défaut: admin)",
    )
    parser.add_argument(
        "--username",
        default="cli",
        help="Nom d'utilisateur affiché dans les journaux (défaut: cli)",
    )
    parser.add_argument(
        "--log-dir",
        default=None,
        help="Dossier des journaux (défaut: logs/ à la racine du projet)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    history = subparsers.add_parser("historique", help="Afficher une page de l'historique")
    history.add_argument("--page", type=int, default=1, help="Numéro de page (défaut: 1)")
    history.add_argument("--statut", choices=("",) + HISTORY_STATUSES, default="")
    history.add_argument("--client", default="", help="Filtre sur le nom du client")
    history.add_argument("--search", default="", help="Recherche sur le numéro PMS")

    subparsers.add_parser("stats", help="Afficher les compteurs de l'historique")
    return parser.parse_args(argv)


def _format_cell(column: str, value: Any) -> str:
    if value is None or value == "":
        return "-"
    if column == "statut":
        return status_label(value)
    if isinstance(value, datetime):
        return to_local_input(value, settings.timezone)
    if isinstance(value, bool):
        return "oui" if value else "non"
    return str(value)


def format_history(view: HistoryView) -> str:
    columns = view.columns
    lines = [" | ".join(columns)]
    for row in view.rows:
        values = row.values(columns)
        lines.append(" | ".join(_format_cell(column, values[column]) for column in columns))
    pagination = view.pagination
    lines.append(
        f"Page {pagination.current_page}/{pagination.total_pages} "
        f"({pagination.total_orders} commande(s))"
    )
    return "\n".join(lines)


async def _run(args: argparse.Namespace, transport: httpx.AsyncBaseTransport | None) -> str:
    user = User(id=0, username=args.username, role=args.role)
    async with OrdersApiClient(transport=transport) as api:
        view = HistoryView(api, user)
        if args.command == "stats":
            if not await view.refresh_stats():
                raise ApiError("Statistiques indisponibles")
            stats = view.stats
            return f"Livrées: {stats.livre}\nAnnulées: {stats.annule}\nTotal: {stats.total}"
        view.filters = view.filters.with_changes(
            statut=args.statut, client=args.client, search=args.search
        )
        if not await view.refresh(page=args.page):
            raise ApiError(view.error)
        return format_history(view)


def main(argv: Sequence[str] | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> int:
    args = parse_args(argv)
    configure_logging(Path(args.log_dir) if args.log_dir else None, debug=settings.DEBUG)
    logger.info("Commande %s lancée avec le rôle %s", args.command, args.role)
    try:
        output = asyncio.run(_run(args, transport))
    except ApiError as exc:
        logger.error("Échec de la commande %s: %s", args.command, exc.message)
        print(f"Erreur : {exc.message}")
        return 1
    print(output)
    return 0


if __name__ == "__main__":  # pragma: no cover - point d'entrée standard
    raise SystemExit(main())
