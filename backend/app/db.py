from sqlmodel import SQLModel, create_engine, Session, select
from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState
from sqlalchemy.orm.attributes import flag_modified
from typing import Optional
import logging

from app.config import DATABASE_URL
from app.auth.policies import Caller, Operation, authorize
from app.errors import AuthenticationFailure, AuthorizationFailure
from app.models.listing_db import Listing
from app.realtime import ChangeEvent, change_feed

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)

LISTING_COLUMNS = [column.name for column in Listing.__table__.columns]


def create_db_and_tables():
    SQLModel.metadata.create_all(engine)


class SecuredSession(Session):
    """Session bound to a caller; every listing read and write passes the row policies."""

    def __init__(self, bind, caller: Optional[Caller] = None, **kwargs):
        super().__init__(bind, **kwargs)
        self.info["caller"] = caller
        self.info["changes"] = []

    @property
    def caller(self) -> Optional[Caller]:
        return self.info.get("caller")


def get_session():
    """Plain session for account bookkeeping; never used for listings."""
    return Session(engine)


def get_secured_session(caller: Optional[Caller]) -> SecuredSession:
    return SecuredSession(engine, caller=caller)


def stage_update(session: Session, listing: Listing, changes: dict):
    """Apply ``changes`` to ``listing`` and queue it for the UPDATE policy.

    The row is flagged even when no value differs, so an attempted update is
    always checked against the caller.
    """
    for field, value in changes.items():
        setattr(listing, field, value)
    flag_modified(listing, "owner_id")
    session.add(listing)


def _row_of(listing: Listing) -> dict:
    return {name: getattr(listing, name) for name in LISTING_COLUMNS}


def _stored_row(session: Session, listing_id: str) -> Optional[dict]:
    # Core query on the flush connection: bypasses the ORM hooks and the identity map
    table = Listing.__table__
    result = session.connection().execute(table.select().where(table.c.id == listing_id))
    row = result.mappings().first()
    return dict(row) if row is not None else None


@event.listens_for(SecuredSession, "before_flush")
def _enforce_write_policies(session, flush_context, instances):
    caller = session.info.get("caller")
    for obj in session.new:
        if isinstance(obj, Listing):
            authorize(Operation.INSERT, caller, new=_row_of(obj))
    for obj in session.dirty:
        if isinstance(obj, Listing) and session.is_modified(obj):
            existing = _stored_row(session, obj.id)
            authorize(Operation.UPDATE, caller, existing=existing, new=_row_of(obj))
    for obj in session.deleted:
        if isinstance(obj, Listing):
            authorize(Operation.DELETE, caller, existing=_row_of(obj))


@event.listens_for(SecuredSession, "do_orm_execute")
def _enforce_statement_policies(orm_execute_state: ORMExecuteState):
    if not any(mapper.class_ is Listing for mapper in orm_execute_state.all_mappers):
        return
    caller = orm_execute_state.session.info.get("caller")
    if orm_execute_state.is_select:
        authorize(Operation.SELECT, caller)
        return
    # bulk DML never reaches before_flush, so its rows cannot be checked one by one
    if caller is None:
        raise AuthenticationFailure("Authentication required")
    logger.warning("Refused bulk write on products for user %s", caller.user_id)
    raise AuthorizationFailure("Bulk writes to products are not permitted")


@event.listens_for(SecuredSession, "after_flush")
def _collect_changes(session, flush_context):
    changes = session.info.setdefault("changes", [])
    for obj in session.new:
        if isinstance(obj, Listing):
            changes.append(ChangeEvent("products", "INSERT", obj.id))
    for obj in session.dirty:
        if isinstance(obj, Listing) and session.is_modified(obj):
            changes.append(ChangeEvent("products", "UPDATE", obj.id))


@event.listens_for(SecuredSession, "after_commit")
def _publish_changes(session):
    changes = session.info.get("changes") or []
    session.info["changes"] = []
    for change in changes:
        change_feed.publish(change)


@event.listens_for(SecuredSession, "after_soft_rollback")
def _discard_changes(session, previous_transaction):
    session.info["changes"] = []


def _escape_like(text: str) -> str:
    # search terms match literally, never as LIKE wildcards
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_listings(session: Session, q: Optional[str] = None, category: Optional[str] = None, owner_id: Optional[str] = None):
    statement = select(Listing)
    if category and category != "All":
        statement = statement.where(Listing.category == category)
    if owner_id is not None:
        statement = statement.where(Listing.owner_id == owner_id)
    if q and q.strip():
        pattern = f"%{_escape_like(q.strip())}%"
        statement = statement.where(
            Listing.title.ilike(pattern, escape="\\")
            | Listing.description.ilike(pattern, escape="\\")
            | Listing.category.ilike(pattern, escape="\\")
        )
    statement = statement.order_by(Listing.created_at.desc())
    return session.exec(statement).all()
