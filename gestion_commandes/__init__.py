"""Client de gestion des commandes de l'imprimerie (état des écrans et accès API)."""

__version__ = "1.0"
