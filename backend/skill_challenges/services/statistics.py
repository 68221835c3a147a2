# backend/skill_challenges/services/statistics.py
# Agrégation des statistiques de challenges : fenêtres de dates, calcul live, snapshots.

from __future__ import annotations

import datetime as dt
import logging
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from skill_challenges.core.bson_utils import dump_mongo
from skill_challenges.core.errors import InvalidInputError
from skill_challenges.core.utils import utcnow
from skill_challenges.db.mongodb import CHALLENGE_STATS, CHALLENGES
from skill_challenges.models.challenge import ChallengeStatus
from skill_challenges.models.statistics import (
    ChallengeStatsOut,
    ChallengeStatsSnapshot,
    DateRange,
    MetricChange,
    StatsCounts,
    StatsFilter,
)

logger = logging.getLogger(__name__)

METRICS = (
    "total_challenges",
    "total_participants",
    "completed_challenges",
    "open_challenges",
    "ongoing_challenges",
)


# --------------------------------------------------------------------------------------
# Fenêtres de dates
# --------------------------------------------------------------------------------------


def week_range(moment: dt.datetime) -> DateRange:
    """Semaine calendaire dimanche → samedi contenant `moment`.

    Description:
        Début : dimanche 00:00:00.000 ; fin : samedi suivant 23:59:59.999
        (précision milliseconde, comme les dates Mongo).

    Args:
        moment (datetime): Instant de référence.

    Returns:
        DateRange: Bornes incluses.
    """
    days_since_sunday = (moment.weekday() + 1) % 7
    start = (moment - dt.timedelta(days=days_since_sunday)).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    end = (start + dt.timedelta(days=6)).replace(
        hour=23, minute=59, second=59, microsecond=999000
    )
    return DateRange(start=start, end=end)


def get_date_ranges(
    stats_filter: StatsFilter | str,
    now: dt.datetime | None = None,
) -> tuple[DateRange, DateRange]:
    """Fenêtres courante et précédente pour un filtre de reporting.

    Description:
        - `this_week` : semaine contenant maintenant / même calcul pour maintenant - 7 jours
        - `last_30_days` : [now-30j, now] / [now-60j, now-30j]

    Args:
        stats_filter (StatsFilter | str): Filtre demandé.
        now (datetime | None): Instant de référence (UTC par défaut).

    Returns:
        tuple[DateRange, DateRange]: (current, previous).

    Raises:
        InvalidInputError: Si le filtre est inconnu.
    """
    try:
        stats_filter = StatsFilter(stats_filter)
    except ValueError:
        raise InvalidInputError(f"Invalid stats filter {stats_filter!r}") from None

    now = now or utcnow()
    if stats_filter is StatsFilter.THIS_WEEK:
        return week_range(now), week_range(now - dt.timedelta(days=7))

    thirty_days = dt.timedelta(days=30)
    current = DateRange(start=now - thirty_days, end=now)
    previous = DateRange(start=now - 2 * thirty_days, end=now - thirty_days)
    return current, previous


# --------------------------------------------------------------------------------------
# Pourcentages
# --------------------------------------------------------------------------------------


def change_percent(current: int, previous: int) -> float:
    """Variation en pourcentage, arrondie à deux décimales.

    Examples:
        >>> change_percent(0, 0), change_percent(5, 0), change_percent(150, 100)
        (0.0, 100.0, 50.0)
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 2)


def build_stats_response(current: StatsCounts, previous: StatsCounts) -> ChallengeStatsOut:
    metrics = {}
    for metric in METRICS:
        cur = getattr(current, metric)
        prev = getattr(previous, metric)
        metrics[metric] = MetricChange(
            current=cur, previous=prev, change_percent=change_percent(cur, prev)
        )
    return ChallengeStatsOut(**metrics)


# --------------------------------------------------------------------------------------
# Agrégation
# --------------------------------------------------------------------------------------


def build_stats_pipeline(date_range: DateRange) -> list[dict[str, Any]]:
    """Pipeline `$facet` : cinq compteurs indépendants sur le même `$match`.

    Description:
        `$gte`/`$lte` : les deux bornes sont incluses. Les participants distincts sont
        comptés sur l’union de toutes les listes (`$unwind` puis `$addToSet`).
    """
    def count_status(status: ChallengeStatus) -> list[dict[str, Any]]:
        return [{"$match": {"status": status.value}}, {"$count": "count"}]

    return [
        {"$match": {"created_at": {"$gte": date_range.start, "$lte": date_range.end}}},
        {
            "$facet": {
                "total_challenges": [{"$count": "count"}],
                "completed_challenges": count_status(ChallengeStatus.COMPLETED),
                "open_challenges": count_status(ChallengeStatus.OPEN),
                "ongoing_challenges": count_status(ChallengeStatus.ONGOING),
                "total_participants": [
                    {"$unwind": "$participants"},
                    {"$group": {"_id": None, "unique": {"$addToSet": "$participants"}}},
                    {"$project": {"count": {"$size": "$unique"}}},
                ],
            }
        },
        {
            "$project": {
                metric: {"$arrayElemAt": [f"${metric}.count", 0]} for metric in METRICS
            }
        },
    ]


class StatisticsAggregator:
    """Calcul des statistiques sur la collection `challenges`.

    Description:
        Calcul live (pipeline d’agrégation), lecture des snapshots précalculés
        et production du snapshot quotidien.
    """

    def __init__(self, db: AsyncIOMotorDatabase, *, strict_snapshot_match: bool = False):
        """Initialiser l’agrégateur.

        Args:
            db: Instance de base de données MongoDB.
            strict_snapshot_match: Si True, un snapshot n’est utilisé que pour sa fenêtre exacte.
        """
        self.db = db
        self.strict_snapshot_match = strict_snapshot_match

    async def aggregate(self, date_range: DateRange) -> StatsCounts:
        """Calcul live des cinq compteurs sur une fenêtre (zéros si aucun challenge)."""
        docs = await self.db[CHALLENGES].aggregate(build_stats_pipeline(date_range)).to_list(length=1)
        if not docs:
            return StatsCounts()
        doc = docs[0]
        return StatsCounts(**{metric: doc.get(metric) or 0 for metric in METRICS})

    async def find_snapshot(self, date_range: DateRange) -> ChallengeStatsSnapshot | None:
        """Chercher un snapshot utilisable pour la fenêtre.

        Description:
            Règle historique (par défaut) : `period_start <= start` ET `period_end <= end`.
            Elle est asymétrique et peut renvoyer un snapshot d’une autre fenêtre ;
            `strict_snapshot_match` restreint à la fenêtre exacte.
        """
        if self.strict_snapshot_match:
            query = {"period_start": date_range.start, "period_end": date_range.end}
        else:
            query = {
                "period_start": {"$lte": date_range.start},
                "period_end": {"$lte": date_range.end},
            }
        doc = await self.db[CHALLENGE_STATS].find_one(query)
        return ChallengeStatsSnapshot.model_validate(doc) if doc else None

    async def get_combined_stats(self, date_range: DateRange) -> StatsCounts:
        """Snapshot s’il en existe un, sinon calcul live."""
        snapshot = await self.find_snapshot(date_range)
        if snapshot is not None:
            return StatsCounts(**snapshot.model_dump(include=set(METRICS)))
        return await self.aggregate(date_range)

    async def compute_daily_snapshot(self, now: dt.datetime | None = None) -> ChallengeStatsSnapshot | None:
        """Job quotidien : persister le snapshot des 30 derniers jours.

        Description:
            Idempotent : si un snapshot existe déjà pour exactement la même fenêtre,
            rien n’est fait. Les erreurs sont journalisées puis relancées pour que
            la file applique ses propres tentatives.

        Args:
            now (datetime | None): Instant de référence (UTC par défaut).

        Returns:
            ChallengeStatsSnapshot | None: Snapshot créé, ou None si déjà présent.
        """
        try:
            date_range, _ = get_date_ranges(StatsFilter.LAST_30_DAYS, now=now)

            existing = await self.db[CHALLENGE_STATS].find_one(
                {"period_start": date_range.start, "period_end": date_range.end}
            )
            if existing:
                logger.info("Statistics already exist for this period. Skipping aggregation.")
                return None

            counts = await self.aggregate(date_range)
            snapshot = ChallengeStatsSnapshot(
                period_start=date_range.start,
                period_end=date_range.end,
                **counts.model_dump(),
            )
            result = await self.db[CHALLENGE_STATS].insert_one(dump_mongo(snapshot))
            snapshot.id = result.inserted_id
        except Exception as e:
            logger.error(f"Failed to generate daily statistics: {e}")
            raise

        logger.info(
            f"Saved statistics for {date_range.start.isoformat()} - {date_range.end.isoformat()}"
        )
        return snapshot
