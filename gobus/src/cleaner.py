"""
Periodic cleanup of expired access tokens, run from cron:

    python -m gobus.src.cleaner
"""

import logging
from datetime import datetime, timezone
from sqlalchemy import delete
from sqlalchemy.orm import Session

from gobus.src.db import sessionMaker, OwnerToken, DriverToken, CustomerToken

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("Cleaner")

TOKEN_MODELS = (OwnerToken, DriverToken, CustomerToken)


def removeExpiredTokens(session: Session, tokenModel) -> int:
    expired = delete(tokenModel).where(
        tokenModel.expires_at < datetime.now(timezone.utc)
    )
    removed = session.execute(expired).rowcount
    session.commit()
    logger.info("Removed %d expired tokens from %s", removed, tokenModel.__tablename__)
    return removed


def main():
    with sessionMaker() as session:
        for tokenModel in TOKEN_MODELS:
            try:
                removeExpiredTokens(session, tokenModel)
            except Exception:
                session.rollback()
                logger.exception("Cleaning %s failed", tokenModel.__tablename__)


if __name__ == "__main__":
    main()
