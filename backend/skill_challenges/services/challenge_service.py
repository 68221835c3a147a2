# backend/skill_challenges/services/challenge_service.py
# Service principal : cycle de vie des challenges, cohérence base / planificateur / cache.

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Mapping
from typing import Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo import ASCENDING, ReturnDocument

from skill_challenges.core.bson_utils import dump_mongo
from skill_challenges.core.errors import (
    AggregationError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
)
from skill_challenges.core.utils import is_empty, parse_object_id, utcnow
from skill_challenges.db.mongodb import CHALLENGES, USERS
from skill_challenges.models.challenge import (
    Challenge,
    ChallengeCreate,
    ChallengePage,
    ChallengeStatus,
    ChallengeUpdate,
    Pagination,
)
from skill_challenges.models.statistics import ChallengeStatsOut, StatsFilter, TalentStatistics
from skill_challenges.models.user import ParticipantOut, ParticipantPage
from skill_challenges.services.challenge_cache import ChallengeListCache
from skill_challenges.services.completion_scheduler import CompletionScheduler
from skill_challenges.services.statistics import (
    StatisticsAggregator,
    build_stats_response,
    get_date_ranges,
)

logger = logging.getLogger(__name__)


class ChallengeService:
    """Point de passage unique des lectures et mutations de challenges.

    Description:
        Chaque mutation écrit d’abord le document (unité de cohérence), puis applique
        les effets secondaires en best effort : (re)planification / annulation du job
        de complétion et invalidation du cache. Un échec secondaire est journalisé et
        ne fait jamais échouer ni annuler la mutation principale.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        cache: ChallengeListCache,
        scheduler: CompletionScheduler,
        *,
        snapshot_strict_match: bool = False,
    ):
        """Initialiser le service.

        Args:
            db: Instance de base de données MongoDB.
            cache: Cache des pages de listing (peut être désactivé).
            scheduler: Planificateur des jobs de complétion.
            snapshot_strict_match: Règle de correspondance des snapshots statistiques.
        """
        self.db = db
        self.cache = cache
        self.scheduler = scheduler
        self.stats = StatisticsAggregator(db, strict_snapshot_match=snapshot_strict_match)

    @property
    def challenges(self):
        return self.db[CHALLENGES]

    # ------------------------------------------------------------------
    # Mutations administrateur
    # ------------------------------------------------------------------

    async def create_challenge(
        self, payload: ChallengeCreate | Mapping[str, Any], created_by: str | ObjectId
    ) -> Challenge:
        """Créer un challenge `open` et planifier sa complétion.

        Args:
            payload: Champs du challenge (modèle ou dict brut).
            created_by: Id de l’administrateur créateur.

        Returns:
            Challenge: Document créé.

        Raises:
            InvalidInputError: Payload vide/invalide ou id créateur mal formé.
        """
        if is_empty(payload):
            raise InvalidInputError("Challenge request is empty")
        data = _validate(ChallengeCreate, payload)
        creator_id = parse_object_id(created_by, "creator id")

        challenge = Challenge(**data.model_dump(), created_by=creator_id)
        result = await self.challenges.insert_one(dump_mongo(challenge))
        challenge.id = result.inserted_id

        try:
            await self.scheduler.schedule(challenge.id, challenge.deadline)
        except Exception as e:
            logger.error(f"Scheduling challenge completion failed for {challenge.id}: {e}")

        await self.cache.invalidate_all()
        logger.info(f"Created challenge {challenge.id}")
        return challenge

    async def update_challenge_by_id(
        self, challenge_id: str, payload: ChallengeUpdate | Mapping[str, Any]
    ) -> Challenge:
        """Mise à jour partielle puis replanification sur l’échéance (éventuellement modifiée).

        Raises:
            InvalidInputError: Id mal formé, payload vide ou invalide.
            NotFoundError: Challenge absent.
        """
        oid = parse_object_id(challenge_id, "challengeId")
        data = _validate(ChallengeUpdate, payload)
        changes = dump_mongo(data, exclude_unset=True, exclude_none=True)
        if not changes:
            raise InvalidInputError("Challenge update is empty")

        changes["updated_at"] = utcnow()
        doc = await self.challenges.find_one_and_update(
            {"_id": oid},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFoundError(f"Challenge {challenge_id} not found.")
        challenge = Challenge.model_validate(doc)

        try:
            await self.scheduler.reschedule(oid, challenge.deadline)
        except Exception as e:
            logger.error(f"Rescheduling challenge completion failed for {challenge_id}: {e}")

        await self.cache.invalidate_all()
        logger.info(f"Updated challenge {challenge_id}")
        return challenge

    async def delete_challenge_by_id(self, challenge_id: str) -> Challenge:
        """Supprimer un challenge et son job de complétion en attente.

        Raises:
            InvalidInputError: Id mal formé.
            NotFoundError: Challenge absent.
        """
        oid = parse_object_id(challenge_id, "challengeId")
        doc = await self.challenges.find_one_and_delete({"_id": oid})
        if doc is None:
            raise NotFoundError(f"Challenge {challenge_id} not found.")

        await self.cache.invalidate_all()

        try:
            await self.scheduler.cancel(oid)
        except Exception as e:
            logger.error(f"Completion job cleanup failed for {challenge_id}: {e}")

        logger.info(f"Deleted challenge {challenge_id}")
        return Challenge.model_validate(doc)

    # ------------------------------------------------------------------
    # Lectures
    # ------------------------------------------------------------------

    async def get_all_challenges(
        self, page: int = 1, limit: int = 6, status: ChallengeStatus | str | None = None
    ) -> ChallengePage:
        """Lister les challenges, triés par échéance croissante, avec cache.

        Args:
            page: Numéro de page (1-based).
            limit: Taille de page.
            status: Filtre de statut optionnel (vide = tous).

        Returns:
            ChallengePage: Données + métadonnées de pagination.
        """
        if page < 1:
            raise InvalidInputError("Page must be greater than 0.")
        if limit < 1:
            raise InvalidInputError("Limit must be greater than 0.")
        if not status:
            status = None
        else:
            try:
                status = ChallengeStatus(status).value
            except ValueError:
                raise InvalidInputError(f"Invalid status {status!r}") from None

        cache_key = self.cache.make_key(page, limit, status)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            try:
                page_data = ChallengePage.model_validate_json(cached)
            except ValidationError as e:
                logger.warning(f"Discarding undecodable cache entry {cache_key}: {e.error_count()} error(s)")
            else:
                logger.info("Cache hit for challenge listing")
                return page_data

        logger.info("Cache miss for challenge listing, querying the database")
        query: dict[str, Any] = {"status": status} if status else {}
        skip = (page - 1) * limit
        docs = (
            await self.challenges.find(query)
            .sort("deadline", ASCENDING)
            .skip(skip)
            .limit(limit)
            .to_list(length=limit)
        )
        total = await self.challenges.count_documents(query)

        result = ChallengePage(
            data=[Challenge.model_validate(d) for d in docs],
            pagination=Pagination(
                page=page,
                limit=limit,
                total_challenges=total,
                total_pages=math.ceil(total / limit),
            ),
        )
        await self.cache.set(cache_key, result.model_dump_json())
        return result

    async def get_challenge(self, challenge_id: str) -> Challenge:
        """Lire un challenge par id.

        Raises:
            InvalidInputError: Id mal formé (400, et non 404 : même règle que les autres opérations).
            NotFoundError: Id valide sans document.
        """
        oid = parse_object_id(challenge_id, "challengeId")
        doc = await self.challenges.find_one({"_id": oid})
        if doc is None:
            raise NotFoundError("Challenge does not exist")
        return Challenge.model_validate(doc)

    # ------------------------------------------------------------------
    # Participation
    # ------------------------------------------------------------------

    async def start_challenge(self, challenge_id: str, participant_id: str) -> Challenge:
        """Inscrire un talent ; le premier inscrit fait passer le challenge `ongoing`.

        Description:
            L’ajout (`$addToSet`, gardé par `status != completed`) puis la bascule
            `open -> ongoing` sont deux mises à jour atomiques conditionnelles : deux
            premiers inscrits simultanés aboutissent au même état final.

        Raises:
            InvalidInputError: Id mal formé.
            NotFoundError: Challenge absent.
            ConflictError: Challenge terminé ou talent déjà inscrit.
        """
        if not ObjectId.is_valid(str(challenge_id)) or not ObjectId.is_valid(str(participant_id)):
            raise InvalidInputError("Invalid participant or challengeIds.")
        oid, pid = ObjectId(str(challenge_id)), ObjectId(str(participant_id))

        doc = await self.challenges.find_one({"_id": oid})
        if doc is None:
            raise NotFoundError("Challenge does not exist")
        if doc.get("status") == ChallengeStatus.COMPLETED.value:
            raise ConflictError("The challenge has already ended.")
        if pid in doc.get("participants", []):
            raise ConflictError("You have already joined the challenge.")

        now = utcnow()
        doc = await self.challenges.find_one_and_update(
            {"_id": oid, "status": {"$ne": ChallengeStatus.COMPLETED.value}},
            {"$addToSet": {"participants": pid}, "$set": {"updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            # supprimé ou terminé entre la lecture et l'écriture
            if await self.challenges.count_documents({"_id": oid}) == 0:
                raise NotFoundError("Challenge does not exist")
            raise ConflictError("The challenge has already ended.")

        if doc.get("status") == ChallengeStatus.OPEN.value:
            flipped = await self.challenges.find_one_and_update(
                {"_id": oid, "status": ChallengeStatus.OPEN.value},
                {"$set": {"status": ChallengeStatus.ONGOING.value, "updated_at": now}},
                return_document=ReturnDocument.AFTER,
            )
            doc = flipped or await self.challenges.find_one({"_id": oid}) or doc

        await self.cache.invalidate_all()
        logger.info(f"Participant {participant_id} joined challenge {challenge_id}")
        return Challenge.model_validate(doc)

    async def check_participation_status(self, challenge_id: str, participant_id: str) -> bool:
        """Indiquer si un talent est déjà inscrit à un challenge."""
        if not ObjectId.is_valid(str(challenge_id)) or not ObjectId.is_valid(str(participant_id)):
            raise InvalidInputError("Invalid participant or challengeIds.")
        doc = await self.challenges.find_one(
            {"_id": ObjectId(str(challenge_id))}, {"participants": 1}
        )
        if doc is None:
            raise NotFoundError("Challenge does not exist")
        return ObjectId(str(participant_id)) in doc.get("participants", [])

    async def get_participant_details(
        self, challenge_id: str, page: int = 1, limit: int = 6
    ) -> ParticipantPage:
        """Page des participants (nom complet + email), jointure sur `users`.

        Description:
            La pagination (`$slice`) s’applique au tableau déjà matérialisé par le
            `$lookup`, pas à un parcours séparé de la collection `users`.
        """
        oid = parse_object_id(challenge_id, "challengeId")
        if page < 1:
            raise InvalidInputError("Invalid page number")
        if limit < 1:
            raise InvalidInputError("Invalid limit number")

        pipeline = [
            {"$match": {"_id": oid}},
            {
                "$lookup": {
                    "from": USERS,
                    "localField": "participants",
                    "foreignField": "_id",
                    "as": "participants_data",
                }
            },
            {
                "$project": {
                    "_id": 1,
                    "participants": {
                        "$slice": [
                            {
                                "$map": {
                                    "input": "$participants_data",
                                    "as": "participant",
                                    "in": {
                                        "full_name": {
                                            "$concat": [
                                                "$$participant.first_name",
                                                " ",
                                                "$$participant.last_name",
                                            ]
                                        },
                                        "email": "$$participant.email",
                                    },
                                }
                            },
                            (page - 1) * limit,
                            limit,
                        ]
                    },
                    "total_participants": {"$size": "$participants_data"},
                }
            },
        ]
        docs = await self.challenges.aggregate(pipeline).to_list(length=1)
        if not docs:
            raise NotFoundError("Challenge does not exist")
        doc = docs[0]
        return ParticipantPage(
            participants=[ParticipantOut(**p) for p in doc.get("participants", [])],
            total_participants=doc.get("total_participants", 0),
        )

    # ------------------------------------------------------------------
    # Statistiques
    # ------------------------------------------------------------------

    async def get_challenge_stats(self, stats_filter: StatsFilter | str) -> ChallengeStatsOut:
        """Comparer la période courante à la précédente (snapshot ou calcul live).

        Raises:
            InvalidInputError: Filtre inconnu.
            AggregationError: Échec de lecture / agrégation.
        """
        current_range, previous_range = get_date_ranges(stats_filter)
        try:
            current, previous = await asyncio.gather(
                self.stats.get_combined_stats(current_range),
                self.stats.get_combined_stats(previous_range),
            )
        except Exception as e:
            logger.error(f"Statistics retrieval failed for {stats_filter}: {e}")
            raise AggregationError("Error retrieving the statistics.") from e
        return build_stats_response(current, previous)

    async def get_talent_statistics(self, talent_id: str) -> TalentStatistics:
        """Compteurs vus par un talent.

        Description:
            - ouverts : `open` sans aucun participant
            - en cours : `ongoing`, talent inscrit, échéance future
            - terminés : talent inscrit, échéance passée
        """
        tid = parse_object_id(talent_id, "talent id")
        now = utcnow()

        open_challenges = await self.challenges.count_documents(
            {"status": ChallengeStatus.OPEN.value, "participants": {"$size": 0}}
        )
        ongoing_challenges = await self.challenges.count_documents(
            {"status": ChallengeStatus.ONGOING.value, "participants": tid, "deadline": {"$gte": now}}
        )
        completed_challenges = await self.challenges.count_documents(
            {"participants": tid, "deadline": {"$lte": now}}
        )

        return TalentStatistics(
            all_challenges=open_challenges + ongoing_challenges + completed_challenges,
            open_challenges=open_challenges,
            ongoing_challenges=ongoing_challenges,
            completed_challenges=completed_challenges,
        )


def _validate(model_cls, payload):
    """Re-valider un payload (modèle ou dict) ; erreurs Pydantic -> InvalidInputError."""
    if is_empty(payload):
        raise InvalidInputError("Challenge request is empty")
    try:
        if isinstance(payload, model_cls):
            return payload
        if isinstance(payload, Mapping):
            return model_cls.model_validate(payload)
        return model_cls.model_validate(payload.model_dump(exclude_unset=True))
    except ValidationError as e:
        raise InvalidInputError(f"Invalid challenge payload: {e.error_count()} error(s)") from e
