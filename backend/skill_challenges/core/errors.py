# backend/skill_challenges/core/errors.py
# Taxonomie des erreurs métier remontées à la couche HTTP (mappées en codes de statut).

from __future__ import annotations


class ChallengeServiceError(Exception):
    """Erreur métier de base.

    Attributes:
        message (str): Message lisible renvoyé au client.
        status_code (int): Code HTTP associé.
        code (str): Code d’erreur stable pour l’enveloppe `ErrorResponse`.
    """

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(ChallengeServiceError):
    """Requête vide ou mal formée (id invalide, page/limit non positifs...)."""

    status_code = 400
    code = "INVALID_INPUT"


class NotFoundError(ChallengeServiceError):
    """Challenge ou utilisateur absent."""

    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ChallengeServiceError):
    """Conflit d’état (déjà inscrit, challenge terminé...)."""

    status_code = 409
    code = "CONFLICT"


class AggregationError(ChallengeServiceError):
    """Échec du calcul des statistiques."""

    status_code = 500
    code = "AGGREGATION_FAILURE"
