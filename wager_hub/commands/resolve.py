import asyncio
import json

from wager_hub.clients.match_provider import MatchProviderClient
from wager_hub.commands import ResolveBatch, dispatch
from wager_hub.database import SessionLocal, engine
from wager_hub.ledger import LedgerStore
from wager_hub.logging_config import get_logger
from wager_hub.models import models

logger = get_logger(__name__)


async def resolve() -> int:
    """
    Run one resolver batch outside the scheduler. Exit code 1 if any wager errored.
    """
    logger.info("Starting manual resolver run")
    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    provider = MatchProviderClient()
    try:
        report = await dispatch(ResolveBatch(), LedgerStore(db), provider)
    finally:
        await provider.aclose()
        db.close()
    print(json.dumps(report.model_dump(), indent=2))
    return 1 if report.errors else 0

if __name__ == "__main__":
    exit_code = asyncio.run(resolve())
    raise SystemExit(exit_code)
