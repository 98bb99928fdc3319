# shared/database/mongo_client.py
# One lazily created MongoClient per process. Catalog snapshots and billing
# drafts both live in the database named by DB_NAME.

import os
from pymongo import MongoClient
from dotenv import load_dotenv

load_dotenv()

_client = None


def get_client() -> MongoClient:
    global _client
    if _client is None:
        url = os.getenv("MONGO_URL", "mongodb://localhost:27017")
        _client = MongoClient(url, serverSelectionTimeoutMS=3000)
    return _client


def get_db():
    return get_client()[os.getenv("DB_NAME", "pos_billing")]


def ping() -> bool:
    """True when the server answers; used by the health endpoint."""
    get_db().command("ping")
    return True
