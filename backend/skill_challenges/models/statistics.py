# backend/skill_challenges/models/statistics.py
# Snapshots de statistiques (collection `challenge_stats`) et sorties de reporting.

from __future__ import annotations

import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from skill_challenges.core.bson_utils import MongoBaseModel
from skill_challenges.core.utils import utcnow


class StatsFilter(str, Enum):
    """Fenêtre de reporting demandée par le client."""

    THIS_WEEK = "this_week"
    LAST_30_DAYS = "last_30_days"


class DateRange(BaseModel):
    """Intervalle de dates, bornes incluses des deux côtés."""

    start: dt.datetime
    end: dt.datetime

    model_config = ConfigDict(frozen=True)


class StatsCounts(BaseModel):
    """Les cinq compteurs d’une fenêtre (calcul live ou snapshot)."""

    total_challenges: int = 0
    completed_challenges: int = 0
    open_challenges: int = 0
    ongoing_challenges: int = 0
    total_participants: int = 0


class ChallengeStatsSnapshot(MongoBaseModel, StatsCounts):
    """Snapshot immuable, calculé par le job quotidien.

    Attributes:
        period_start (datetime): Début de période couverte.
        period_end (datetime): Fin de période couverte.
        created_at (datetime): Horodatage de calcul (UTC).
    """

    period_start: dt.datetime
    period_end: dt.datetime
    created_at: dt.datetime = Field(default_factory=utcnow)


class MetricChange(BaseModel):
    current: int
    previous: int
    change_percent: float


class ChallengeStatsOut(BaseModel):
    """Comparaison période courante / période précédente, par métrique."""

    total_challenges: MetricChange
    total_participants: MetricChange
    completed_challenges: MetricChange
    open_challenges: MetricChange
    ongoing_challenges: MetricChange


class TalentStatistics(BaseModel):
    """Compteurs de challenges vus par un talent."""

    all_challenges: int
    open_challenges: int
    ongoing_challenges: int
    completed_challenges: int
