# backend/skill_challenges/core/utils.py
# Fonctions temporelles basiques, test de vacuité et parsing d’ObjectId.

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from typing import Any

from bson import ObjectId
from pydantic import BaseModel

from skill_challenges.core.errors import InvalidInputError


def utcnow() -> dt.datetime:
    """Date/heure UTC (timezone-aware).

    Description:
        Retourne `datetime.now(timezone.utc)` avec timezone UTC attachée. Utilisé pour
        tous les horodatages persistés et les calculs de délai.

    Returns:
        datetime.datetime: Timestamp UTC (aware).
    """
    return dt.datetime.now(dt.timezone.utc)


def ensure_aware(value: dt.datetime) -> dt.datetime:
    """Rendre une date timezone-aware (UTC si naive)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


def is_empty(value: Any) -> bool:
    """Tester si une valeur de requête est vide.

    Description:
        `None`, chaîne vide, mapping/séquence vide, ou modèle Pydantic sans aucun champ
        renseigné sont considérés comme vides.

    Args:
        value (Any): Valeur à tester.

    Returns:
        bool: True si la valeur est vide.
    """
    if value is None:
        return True
    if isinstance(value, BaseModel):
        return not value.model_dump(exclude_unset=True)
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (Mapping, list, tuple, set)):
        return len(value) == 0
    return False


def parse_object_id(value: Any, label: str = "id") -> ObjectId:
    """Convertir une valeur en ObjectId ou lever `InvalidInputError`.

    Args:
        value (Any): ObjectId ou chaîne hexadécimale de 24 caractères.
        label (str): Nom du champ pour le message d’erreur.

    Returns:
        ObjectId: Identifiant validé.

    Raises:
        InvalidInputError: Si la valeur est vide ou mal formée.
    """
    if isinstance(value, ObjectId):
        return value
    if is_empty(value):
        raise InvalidInputError(f"{label} is empty")
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    raise InvalidInputError(f"Invalid {label} format")
