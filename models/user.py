from models.base_model import Base, BaseModel
from sqlalchemy import Column, String, Text


class User(BaseModel, Base):
    """
    Identity record. `refresh_token` holds the only refresh token currently
    accepted for this user; writing a new one revokes every earlier token.
    """
    __tablename__ = "users"
    username = Column(String(150), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    refresh_token = Column(Text, nullable=True)
    api_key = Column(String(255), nullable=True)
