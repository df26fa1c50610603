from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

QUESTION_TYPE_MULTIPLE_CHOICE = "multiple_choice"


class User(Base):
    __tablename__ = "users"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # Public dashboard slug, assigned once at creation
    hashkey = Column(String(8), unique=True, index=True, nullable=False)
    username = Column(String, unique=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    google_id = Column(String, unique=True, index=True, nullable=True)
    name = Column(String, nullable=True)
    picture = Column(String, nullable=True)
    verified_email = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), onupdate=func.now(), server_default=func.now()
    )

    surveys = relationship("Survey", back_populates="creator")


class Survey(Base):
    __tablename__ = "surveys"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    hashkey = Column(String(8), unique=True, index=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)  # False = soft-deleted
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), onupdate=func.now(), server_default=func.now()
    )

    creator = relationship("User", back_populates="surveys")
    questions = relationship(
        "Question",
        back_populates="survey",
        cascade="all, delete-orphan",
        order_by="Question.question_number",
    )


class Question(Base):
    __tablename__ = "questions"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        UniqueConstraint("survey_id", "question_number", name="uq_question_number_per_survey"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    survey_id = Column(
        Integer, ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_number = Column(Integer, nullable=False)  # 1-based, dense
    question_text = Column(Text, nullable=False)
    question_type = Column(String, nullable=False, default=QUESTION_TYPE_MULTIPLE_CHOICE)
    is_required = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), onupdate=func.now(), server_default=func.now()
    )

    survey = relationship("Survey", back_populates="questions")
    options = relationship(
        "AnswerOption",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="AnswerOption.option_letter",
    )


class AnswerOption(Base):
    __tablename__ = "answer_options"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        UniqueConstraint("question_id", "option_letter", name="uq_option_letter_per_question"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    question_id = Column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    option_letter = Column(String(1), nullable=False)
    option_text = Column(Text, nullable=False)
    option_value = Column(Integer, nullable=False)  # 1-based creation order
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    question = relationship("Question", back_populates="options")
