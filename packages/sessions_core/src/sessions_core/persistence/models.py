"""
Runtime Database Models

Tables written by the commit pipeline:
- contacts_contact: contacts whose name/language/status flows can change
- msgs_msg: messages created by flows
- runtime_processed_batches: batch IDs already committed (idempotency)

Column types are portable so the models also run on SQLite in tests.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import declarative_base

RuntimeBase = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MsgDirection(str, Enum):
    INCOMING = "I"
    OUTGOING = "O"


class MsgStatus(str, Enum):
    """Status of a message row."""

    PENDING = "P"
    QUEUED = "Q"
    WIRED = "W"
    SENT = "S"
    FAILED = "F"


class Contact(RuntimeBase):
    """A contact that flows run against."""

    __tablename__ = "contacts_contact"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(Uuid, nullable=False, unique=True, default=uuid4)
    org_id = Column(Integer, nullable=False, index=True)
    name = Column(String(128), nullable=True)
    language = Column(String(3), nullable=True)
    status = Column(String(16), nullable=False, default="active")
    modified_on = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Msg(RuntimeBase):
    """
    A message created by a flow.

    Outgoing messages are inserted as QUEUED and pushed to the org's
    outgoing queue in Redis once the batch commits.
    """

    __tablename__ = "msgs_msg"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(Uuid, nullable=False, unique=True)
    org_id = Column(Integer, nullable=False)
    contact_id = Column(Integer, ForeignKey("contacts_contact.id"), nullable=False)
    session_id = Column(BigInteger, nullable=True)
    text = Column(Text, nullable=False)
    urn = Column(String(255), nullable=False)
    channel_uuid = Column(Uuid, nullable=True)
    direction = Column(String(1), nullable=False, default=MsgDirection.OUTGOING.value)
    status = Column(String(1), nullable=False, default=MsgStatus.QUEUED.value)
    created_on = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_msgs_org_contact", "org_id", "contact_id"),
    )


class ProcessedBatch(RuntimeBase):
    """Batches already committed, keyed by the batch ID from the stream."""

    __tablename__ = "runtime_processed_batches"

    batch_id = Column(String(64), primary_key=True)
    org_id = Column(Integer, nullable=False)
    session_count = Column(Integer, nullable=False, default=0)
    hooks = Column(JSON, nullable=False, default=list)
    processed_on = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
