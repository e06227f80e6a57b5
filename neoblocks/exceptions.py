"""Exceptions neoblocks."""


class NeoError(ValueError):
    """Erreur de base neoblocks."""


class UnknownFieldError(NeoError):
    """Le champ Neo demandé n'existe pas."""


class OwnerNotSavedError(NeoError):
    """Les blocs ne peuvent être enregistrés que pour un propriétaire persisté."""
