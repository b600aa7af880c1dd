# duplicated minimal models for worker (keep in sync with services/api/app/models.py)
from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON

Base = declarative_base()

class CopierCommand(Base):
    __tablename__ = "copier_commands"
    id = Column(Integer, primary_key=True)
    type = Column(String(50))
    payload = Column(JSON)
    status = Column(String(20))
    result = Column(Text)
    created_at = Column(DateTime(timezone=True))
    executed_at = Column(DateTime(timezone=True))
