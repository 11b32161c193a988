# leadstore/models/lead.py

from sqlalchemy import Column, Integer, Text
from leadstore.utils.database import Base

class Lead(Base):
    __tablename__ = "leads"
    __table_args__ = {"sqlite_autoincrement": True}  # id никогда не переиспользуется

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(Text, nullable=False)
    phone_number = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    institution = Column(Text, nullable=False)
    occupation = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)   # ISO-8601 UTC, задаётся один раз

    # Трекинг звонка и визита (заполняет администратор)
    call_datetime = Column(Text, nullable=True)
    call_notes = Column(Text, nullable=True)
    visit_datetime = Column(Text, nullable=True)
    visit_notes = Column(Text, nullable=True)
