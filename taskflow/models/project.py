"""
Project Model
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from taskflow.database import Base, utcnow

DEFAULT_PROJECT_COLOR = "#667eea"


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(20), default=DEFAULT_PROJECT_COLOR, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    creator = relationship("User", foreign_keys=[created_by])
    # No delete cascade: removing a project nulls project_id on its tasks.
    tasks = relationship("Task", back_populates="project")
