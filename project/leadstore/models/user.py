# leadstore/models/user.py

from sqlalchemy import Column, Integer, Text
from leadstore.utils.database import Base

class User(Base):
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(Text, unique=True, nullable=False)
    password = Column(Text, nullable=False)     # хэш sha256_crypt
    created_at = Column(Text, nullable=False)
