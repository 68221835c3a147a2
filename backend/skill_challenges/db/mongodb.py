# backend/skill_challenges/db/mongodb.py
# Construit le client MongoDB à partir des settings ; aucune instance globale (injection explicite).

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from skill_challenges.core.settings import Settings

CHALLENGES = "challenges"
CHALLENGE_STATS = "challenge_stats"
USERS = "users"


def create_mongo_client(settings: Settings) -> AsyncIOMotorClient:
    """Crée un client MongoDB asynchrone.

    Description:
        `tz_aware=True` : les dates relues sont en UTC aware, comparables à `utcnow()`.

    Args:
        settings (Settings): Configuration (URI).

    Returns:
        AsyncIOMotorClient: Client à fermer par l’appelant (`client.close()`).
    """
    return AsyncIOMotorClient(settings.mongodb_uri, tz_aware=True)


def get_database(client: AsyncIOMotorClient, settings: Settings) -> AsyncIOMotorDatabase:
    """Retourne la base applicative configurée."""
    return client[settings.mongodb_db]
