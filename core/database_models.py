from sqlalchemy import (
    Column, Integer, Text, DateTime, ForeignKey, func
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

class Subscriber(Base):
    __tablename__ = 'subscribers'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(Text, unique=True, nullable=False)
    
    # Relationships
    messages = relationship("Message", back_populates="subscriber")

class Message(Base):
    __tablename__ = 'messages'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    subscriber_id = Column(Integer, ForeignKey('subscribers.id'))
    message = Column(Text)
    created_at = Column(DateTime, server_default=func.current_timestamp())  # Assigned by the database
    
    # Relationships
    subscriber = relationship("Subscriber", back_populates="messages")
