import logging

import certifi
from fastapi import Depends, FastAPI, Request
from motor.motor_asyncio import AsyncIOMotorClient

# Importar las configuraciones desde config.py
from agent_portal.core.config import settings

logger = logging.getLogger(__name__)


class Database:
    """Colecciones de MongoDB usadas por la aplicación."""

    def __init__(self, client: AsyncIOMotorClient, db_name: str):
        self.client = client
        self.db = client[db_name]
        self.agents = self.db['agents']
        self.users = self.db['users']
        self.conversations = self.db['conversations']
        self.feedback = self.db['feedback']


def create_mongo_client() -> AsyncIOMotorClient:
    options = {}
    if settings.mongo_tls or settings.mongo_uri.startswith("mongodb+srv://"):
        options["tlsCAFile"] = certifi.where()
    return AsyncIOMotorClient(settings.mongo_uri, **options)


async def connect_to_mongo(app: FastAPI):
    client = create_mongo_client()
    app.state.database = Database(client, settings.mongo_db_name)
    try:
        await client.server_info()
        logger.info(f"Conectado a MongoDB ({settings.mongo_db_name})")
    except Exception as e:
        logger.error(f"Error conectándose a MongoDB: {e}")


async def close_mongo_connection(app: FastAPI):
    database = getattr(app.state, "database", None)
    if database is not None:
        database.client.close()


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_agents_collection(database: Database = Depends(get_database)):
    return database.agents


def get_users_collection(database: Database = Depends(get_database)):
    return database.users


def get_conversations_collection(database: Database = Depends(get_database)):
    return database.conversations


def get_feedback_collection(database: Database = Depends(get_database)):
    return database.feedback
