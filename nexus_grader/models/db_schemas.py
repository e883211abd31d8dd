"""
SQLAlchemy Database Models for the practice submission store
"""
from datetime import datetime
import uuid

from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class AppConfig(Base):
    """Key-value configuration, addressed by slash-separated paths"""
    __tablename__ = "app_config"

    path = Column(String(255), primary_key=True)
    value = Column(Text)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class PracticeSubmission(Base):
    """Graded practice test, stored once and never re-graded"""
    __tablename__ = "practice_submissions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(255), nullable=False, index=True)
    student_name = Column(String(255), nullable=False)
    test_id = Column(String(255), nullable=False, index=True)
    test_title = Column(String(255), nullable=False)
    subject_name = Column(String(255), nullable=False, default="General")
    answers = Column(Text, nullable=False)  # JSON object questionId -> answer
    grading = Column(Text, nullable=False)  # JSON GradingResponse
    total_score = Column(Float, nullable=False)
    max_score = Column(Float, nullable=False)
    percentage = Column(Integer, nullable=False)
    practice_streak = Column(Integer, default=1)
    submitted_at = Column(DateTime, default=datetime.now, index=True)


class PracticeStats(Base):
    """Running practice totals per student"""
    __tablename__ = "practice_stats"

    student_id = Column(String(255), primary_key=True)
    total_practice_tests = Column(Integer, nullable=False, default=0)
    total_questions_attempted = Column(Integer, nullable=False, default=0)
    total_correct_answers = Column(Integer, nullable=False, default=0)
    average_accuracy = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)
    last_practice_date = Column(DateTime)
