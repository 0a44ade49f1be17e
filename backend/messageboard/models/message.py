from sqlalchemy import Column, Integer, String, Boolean, CHAR
from messageboard.core.database import Base

class Message(Base):
    __tablename__ = "messages"

    uuid = Column(CHAR(36), unique=True, nullable=False)
    author = Column(String(64), nullable=False)
    message = Column(String(1024), nullable=True)
    likes = Column(Integer, nullable=False)
    has_image = Column(Boolean, nullable=False)

    # uuid is only UNIQUE in the DDL; the mapper still needs an identity column
    __mapper_args__ = {"primary_key": [uuid]}
