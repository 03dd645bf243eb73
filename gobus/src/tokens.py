from datetime import datetime, timedelta, timezone
from sqlalchemy.orm.session import Session
from sqlalchemy import Column

from gobus.src.constants import MAX_TOKEN_VALIDITY


def expiresAt(validity: int = MAX_TOKEN_VALIDITY) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=validity)


def removeExcessTokens(
    session: Session, model_cls, account_column: Column, account_id: int, limit: int
) -> None:
    """
    Make room for one more token of an account.

    Tokens beyond `limit - 1`, newest first, are deleted so that the
    account holds at most `limit` tokens once the new one is added.
    """
    tokens = (
        session.query(model_cls)
        .filter(account_column == account_id)
        .order_by(model_cls.created_on.desc(), model_cls.id.desc())
        .all()
    )
    for token in tokens[limit - 1 :]:
        session.delete(token)
    session.flush()
