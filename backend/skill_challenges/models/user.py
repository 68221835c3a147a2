# backend/skill_challenges/models/user.py
# Vue minimale des utilisateurs (collection `users`, gérée par la couche d’authentification).

from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from skill_challenges.core.bson_utils import MongoBaseModel
from skill_challenges.core.utils import utcnow


class User(MongoBaseModel):
    """Document Mongo utilisateur (lecture seule ici).

    Attributes:
        first_name (str): Prénom.
        last_name (str): Nom.
        email (EmailStr): Email unique.
        is_admin (bool): Droits d’administration.
    """

    first_name: str
    last_name: str
    email: EmailStr
    is_admin: bool = False
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: Optional[dt.datetime] = None


class ParticipantOut(BaseModel):
    """Participant tel qu’exposé dans la liste d’un challenge."""

    full_name: str
    email: str


class ParticipantPage(BaseModel):
    participants: list[ParticipantOut]
    total_participants: int
