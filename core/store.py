# core/store.py
"""
Relational persistence for subscribers and their messages

Every operation runs in its own short transaction. Nothing here spans
several operations, so callers sequencing multiple writes own the
partial-failure window between them.
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, event, func, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from core.database_models import Base, Message, Subscriber
from core.errors import StoreError

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = 'sqlite:///subscribers/DB_subscribers.db'


def _driver_message(exc: SQLAlchemyError) -> str:
    """Underlying DBAPI message, without SQLAlchemy's statement dump"""
    orig = getattr(exc, 'orig', None)
    return str(orig) if orig is not None else str(exc)


def create_store_engine(database_url: str = DEFAULT_DATABASE_URL,
                        slow_query_threshold: float = 1.0,
                        echo: bool = False) -> Engine:
    """
    Build a SQLAlchemy engine for the subscription store
    
    SQLite file databases get their parent directory created and foreign
    key enforcement switched on for every connection.
    """
    url = make_url(database_url)
    engine_options: Dict[str, Any] = {
        'pool_pre_ping': True,
        'echo': echo,
    }
    
    if url.get_backend_name() == 'sqlite':
        engine_options['connect_args'] = {'check_same_thread': False, 'timeout': 20}
        if url.database and url.database != ':memory:':
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    
    engine = create_engine(url, **engine_options)
    
    if url.get_backend_name() == 'sqlite':
        @event.listens_for(engine, "connect")
        def enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    
    @event.listens_for(engine, "before_cursor_execute")
    def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        context._query_start_time = time.perf_counter()
    
    @event.listens_for(engine, "after_cursor_execute")
    def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        total = time.perf_counter() - context._query_start_time
        if total > slow_query_threshold:
            logger.warning(f"Slow query ({total:.2f}s): {statement[:100]}...")
    
    return engine


class SubscriptionStore:
    """Subscriber and message tables behind a small synchronous API"""
    
    def __init__(self, engine: Engine):
        self.engine = engine
        self.Session = sessionmaker(bind=engine, expire_on_commit=False)
    
    @classmethod
    def from_url(cls, database_url: str = DEFAULT_DATABASE_URL, **engine_kwargs) -> 'SubscriptionStore':
        return cls(create_store_engine(database_url, **engine_kwargs))
    
    def create_tables(self) -> None:
        """Create both tables if they do not exist yet"""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create tables: {_driver_message(e)}", 'create_tables') from e
        logger.info("Subscription tables ready")
    
    def upsert_subscriber_ignoring_conflict(self, email: str) -> None:
        """
        Insert a subscriber row unless one already exists for this email
        
        SQLite and PostgreSQL use a native ON CONFLICT DO NOTHING keyed on
        the unique email column. Other backends insert and treat a
        uniqueness violation as "already present".
        """
        dialect = self.engine.dialect.name
        try:
            if dialect in ('sqlite', 'postgresql'):
                insert = sqlite.insert if dialect == 'sqlite' else postgresql.insert
                stmt = insert(Subscriber).values(email=email).on_conflict_do_nothing(
                    index_elements=['email']
                )
                with self.Session.begin() as session:
                    session.execute(stmt)
            else:
                try:
                    with self.Session.begin() as session:
                        session.add(Subscriber(email=email))
                except IntegrityError:
                    logger.debug(f"Subscriber {email} already present")
        except SQLAlchemyError as e:
            raise StoreError(_driver_message(e), 'upsert_subscriber') from e
    
    def find_subscriber_id(self, email: str) -> int:
        try:
            with self.Session() as session:
                subscriber_id = session.execute(
                    select(Subscriber.id).where(Subscriber.email == email)
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(_driver_message(e), 'find_subscriber_id') from e
        
        if subscriber_id is None:
            raise StoreError(f"no subscriber found for {email}", 'find_subscriber_id')
        return subscriber_id
    
    def insert_message(self, subscriber_id: int, body: str) -> int:
        """Insert a message row and return its identifier"""
        try:
            with self.Session.begin() as session:
                message = Message(subscriber_id=subscriber_id, message=body)
                session.add(message)
                session.flush()
                return message.id
        except SQLAlchemyError as e:
            raise StoreError(_driver_message(e), 'insert_message') from e
    
    def list_subscriber_emails(self) -> List[str]:
        try:
            with self.Session() as session:
                return list(session.execute(select(Subscriber.email)).scalars())
        except SQLAlchemyError as e:
            raise StoreError(_driver_message(e), 'list_subscribers') from e
    
    def count_subscribers(self, email: Optional[str] = None) -> int:
        query = select(func.count(Subscriber.id))
        if email is not None:
            query = query.where(Subscriber.email == email)
        try:
            with self.Session() as session:
                return session.execute(query).scalar_one()
        except SQLAlchemyError as e:
            raise StoreError(_driver_message(e), 'count_subscribers') from e
    
    def count_messages(self, email: Optional[str] = None) -> int:
        query = select(func.count(Message.id))
        if email is not None:
            query = query.join(Subscriber).where(Subscriber.email == email)
        try:
            with self.Session() as session:
                return session.execute(query).scalar_one()
        except SQLAlchemyError as e:
            raise StoreError(_driver_message(e), 'count_messages') from e
    
    def ping(self) -> None:
        """Round-trip a trivial statement, raising StoreError when unreachable"""
        try:
            with self.engine.connect() as conn:
                conn.execute(text('SELECT 1'))
        except SQLAlchemyError as e:
            raise StoreError(_driver_message(e), 'ping') from e
    
    def close(self) -> None:
        self.engine.dispose()
