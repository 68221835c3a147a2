# backend/skill_challenges/models/challenge.py
# Représentation d’un challenge (document Mongo, payloads admin, page de listing).

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from skill_challenges.core.bson_utils import MongoBaseModel, PyObjectId
from skill_challenges.core.utils import ensure_aware, utcnow

LINE_MAX_LENGTH = 255


class ChallengeStatus(str, Enum):
    """Statut d’un challenge (transitions uniquement vers l’avant)."""

    OPEN = "open"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class SeniorityLevel(str, Enum):
    JUNIOR = "junior"
    INTERMEDIATE = "intermediate"
    SENIOR = "senior"


class ChallengeCategory(str, Enum):
    DESIGN = "design"
    FRONTEND = "frontend"
    BACKEND = "backend"
    FULLSTACK = "fullstack"


def _check_lines(lines: Optional[list[str]]) -> Optional[list[str]]:
    if lines is None:
        return lines
    for line in lines:
        if len(line) > LINE_MAX_LENGTH:
            raise ValueError(f"each line must be at most {LINE_MAX_LENGTH} characters")
    return lines


def _check_seniority(levels: Optional[list[SeniorityLevel]]) -> Optional[list[SeniorityLevel]]:
    if levels is None:
        return levels
    if len(set(levels)) != len(levels):
        raise ValueError("seniority levels must be distinct")
    return levels


class ChallengeBase(BaseModel):
    """Champs d’un challenge renseignés par l’administrateur.

    Attributes:
        title (str): Titre.
        deadline (datetime): Échéance ; le challenge passe `completed` après cette date.
        money_prize (str): Prix affiché (ex. "$500").
        contact_email (EmailStr): Email de contact.
        project_brief (str): Résumé.
        project_description (list[str]): Lignes de description (ordonnées).
        project_requirements (list[str]): Lignes d’exigences (ordonnées).
        deliverables (list[str]): Lignes de livrables (ordonnées).
        seniority_level (list[SeniorityLevel]): 1 à 3 niveaux requis.
        category (ChallengeCategory): Catégorie.
        skills_needed (list[str]): Compétences requises (au moins une).
    """

    title: str = Field(min_length=1)
    deadline: dt.datetime
    money_prize: str
    contact_email: EmailStr
    project_brief: str
    project_description: list[str] = Field(default_factory=list)
    project_requirements: list[str] = Field(default_factory=list)
    deliverables: list[str] = Field(default_factory=list)
    seniority_level: list[SeniorityLevel] = Field(min_length=1, max_length=3)
    category: ChallengeCategory
    skills_needed: list[str] = Field(min_length=1)

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("project_description", "project_requirements", "deliverables")
    @classmethod
    def _line_length(cls, v):
        return _check_lines(v)

    @field_validator("seniority_level")
    @classmethod
    def _distinct_levels(cls, v):
        return _check_seniority(v)

    @field_validator("deadline")
    @classmethod
    def _deadline_aware(cls, v: dt.datetime) -> dt.datetime:
        return ensure_aware(v)


class ChallengeCreate(ChallengeBase):
    """Payload de création d’un challenge (API d’admin)."""
    pass


class ChallengeUpdate(BaseModel):
    """Payload de mise à jour partielle.

    Description:
        Tous les champs de `ChallengeBase` deviennent optionnels. Le statut, les
        participants et le créateur ne sont pas modifiables par cette voie.
    """

    title: Optional[str] = Field(default=None, min_length=1)
    deadline: Optional[dt.datetime] = None
    money_prize: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    project_brief: Optional[str] = None
    project_description: Optional[list[str]] = None
    project_requirements: Optional[list[str]] = None
    deliverables: Optional[list[str]] = None
    seniority_level: Optional[list[SeniorityLevel]] = Field(default=None, min_length=1, max_length=3)
    category: Optional[ChallengeCategory] = None
    skills_needed: Optional[list[str]] = Field(default=None, min_length=1)

    model_config = ConfigDict(use_enum_values=True, extra="forbid")

    @field_validator("project_description", "project_requirements", "deliverables")
    @classmethod
    def _line_length(cls, v):
        return _check_lines(v)

    @field_validator("seniority_level")
    @classmethod
    def _distinct_levels(cls, v):
        return _check_seniority(v)

    @field_validator("deadline")
    @classmethod
    def _deadline_aware(cls, v: Optional[dt.datetime]) -> Optional[dt.datetime]:
        return ensure_aware(v) if v is not None else v


class Challenge(MongoBaseModel, ChallengeBase):
    """Document Mongo d’un challenge.

    Description:
        Étend `ChallengeBase` avec _id, créateur, participants (ordre d’inscription,
        sans doublon), statut et horodatages.
    """

    created_by: PyObjectId
    participants: list[PyObjectId] = Field(default_factory=list)
    status: ChallengeStatus = ChallengeStatus.OPEN
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        use_enum_values=True,
    )


class Pagination(BaseModel):
    page: int
    limit: int
    total_challenges: int
    total_pages: int


class ChallengePage(BaseModel):
    """Page de challenges (valeur mise en cache telle quelle)."""

    data: list[Challenge]
    pagination: Pagination
