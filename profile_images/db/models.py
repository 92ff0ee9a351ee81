from sqlalchemy import Column, DateTime, String, func, text
from sqlalchemy.orm import declarative_base


Base = declarative_base()

DEFAULT_PROFILE_IMAGE = "/assets/public/images/uploads/default.svg"


class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    username = Column(String, nullable=True)
    profile_image = Column(String, nullable=False, default=DEFAULT_PROFILE_IMAGE)
    updated_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), onupdate=func.now())
