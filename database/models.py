"""
SQLAlchemy ORM models for the Alba conciergerie service.

All persistent entities: organizations, properties, conversations, messages,
AI responses, knowledge base entries, notifications.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, Text, ForeignKey,
    JSON, Index,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    ai_settings = Column(JSON, nullable=True)  # tone, auto_send_threshold, signature
    created_at = Column(DateTime, default=datetime.utcnow)

    memberships = relationship("Membership", back_populates="organization")


class Membership(Base):
    __tablename__ = "memberships"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    role = Column(String(10), default="member")  # owner, admin, member
    created_at = Column(DateTime, default=datetime.utcnow)

    organization = relationship("Organization", back_populates="memberships")


class Property(Base):
    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    check_in_instructions = Column(Text, nullable=True)
    house_rules = Column(Text, nullable=True)
    amenities = Column(JSON, default=list)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    property_id = Column(String(36), ForeignKey("properties.id"), nullable=True)
    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True)
    thread_id = Column(String(255), nullable=True)  # mail-relay thread
    subject = Column(String(500), nullable=True)
    check_in_date = Column(DateTime, nullable=True)
    check_out_date = Column(DateTime, nullable=True)
    status = Column(String(10), default="active")  # active, archived, resolved
    language = Column(String(5), default="fr")
    last_message_at = Column(DateTime, nullable=True)
    unread_count = Column(Integer, default=0)
    ai_disabled = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_conv_org_thread", "organization_id", "thread_id"),
        Index("ix_conv_org_last_message", "organization_id", "last_message_at"),
    )


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_uuid)
    conversation_id = Column(String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    source = Column(String(10), nullable=False)  # guest, host, ai, system
    content = Column(Text, nullable=False)
    status = Column(String(10), default="pending")  # pending, sent, delivered, failed
    external_message_id = Column(String(255), nullable=True, index=True)
    sent_by_user_id = Column(String(36), nullable=True)
    metadata_json = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    conversation = relationship("Conversation", back_populates="messages")


class AIResponse(Base):
    __tablename__ = "ai_responses"

    id = Column(String(36), primary_key=True, default=_uuid)
    conversation_id = Column(String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    message_id = Column(String(36), ForeignKey("messages.id"), nullable=True)
    generated_content = Column(Text, nullable=False)
    confidence_score = Column(Float, nullable=True)
    action_taken = Column(String(10), nullable=False)  # auto_sent, suggested, escalated
    reasoning = Column(Text, nullable=True)
    detected_intent = Column(String(50), nullable=True)
    model_used = Column(String(100), nullable=True)
    prompt_tokens = Column(Integer, nullable=True)
    completion_tokens = Column(Integer, nullable=True)
    response_time_ms = Column(Integer, nullable=True)
    user_feedback = Column(String(10), nullable=True)  # approved, edited, rejected
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class AIKnowledgeBase(Base):
    __tablename__ = "ai_knowledge_base"

    id = Column(String(36), primary_key=True, default=_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    property_id = Column(String(36), ForeignKey("properties.id"), nullable=True)
    question_pattern = Column(Text, nullable=False)
    approved_response = Column(Text, nullable=False)
    usage_count = Column(Integer, default=0)
    success_rate = Column(Float, default=0.0)
    language = Column(String(5), default="fr")
    created_at = Column(DateTime, default=datetime.utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    organization_id = Column(String(36), nullable=True)
    ai_response_id = Column(String(36), ForeignKey("ai_responses.id"), nullable=True, index=True)
    type = Column(String(20), nullable=False)  # escalation, new_message, sync_error, system
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=True)
    link = Column(String(500), nullable=True)
    channel = Column(String(10), default="in_app")  # in_app, email, both
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
