from pydantic import BaseModel, Field
from typing import List, Optional
from enum import Enum

UUID_LENGTH = 36
UUID_PATTERN = r"^[A-Za-z0-9-]{36}$"
AUTHOR_MAX_LENGTH = 64
MESSAGE_MAX_LENGTH = 1024
INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1

class MessageRecord(BaseModel):
    """One row of the ``messages`` table."""

    uuid: str = Field(..., min_length=UUID_LENGTH, max_length=UUID_LENGTH, pattern=UUID_PATTERN)
    author: str = Field(..., max_length=AUTHOR_MAX_LENGTH)
    message: Optional[str] = Field(None, max_length=MESSAGE_MAX_LENGTH)
    likes: int = Field(..., ge=INT32_MIN, le=INT32_MAX)
    has_image: bool

    class Config:
        from_attributes = True

class MessageFields(BaseModel):
    """Column values for a partial update; unset fields are left alone."""

    author: Optional[str] = Field(None, max_length=AUTHOR_MAX_LENGTH)
    message: Optional[str] = Field(None, max_length=MESSAGE_MAX_LENGTH)
    likes: Optional[int] = Field(None, ge=INT32_MIN, le=INT32_MAX)
    has_image: Optional[bool] = None

class MessageCreate(BaseModel):
    uuid: str = Field(..., min_length=UUID_LENGTH, max_length=UUID_LENGTH, pattern=UUID_PATTERN)
    author: str = Field(..., max_length=AUTHOR_MAX_LENGTH)
    message: Optional[str] = Field(None, max_length=MESSAGE_MAX_LENGTH)
    likes: int = Field(..., ge=INT32_MIN, le=INT32_MAX)
    image_update: bool = Field(False, alias="imageUpdate")
    base64_image: Optional[str] = Field(None, alias="base64Image")

    class Config:
        populate_by_name = True

    def to_record(self) -> MessageRecord:
        return MessageRecord(
            uuid=self.uuid,
            author=self.author,
            message=self.message,
            likes=self.likes,
            has_image=self.image_update,
        )

class MessageUpdate(BaseModel):
    author: Optional[str] = Field(None, max_length=AUTHOR_MAX_LENGTH)
    message: Optional[str] = Field(None, max_length=MESSAGE_MAX_LENGTH)
    likes: Optional[int] = Field(None, ge=INT32_MIN, le=INT32_MAX)
    image_update: Optional[bool] = Field(None, alias="imageUpdate")
    base64_image: Optional[str] = Field(None, alias="base64Image")

    class Config:
        populate_by_name = True

    def column_updates(self) -> dict:
        """Columns the client actually sent, an explicit null included."""
        return self.model_dump(include={"author", "message", "likes"}, exclude_unset=True)

class CompleteMessage(BaseModel):
    uuid: str
    author: str
    message: Optional[str] = None
    likes: int
    image: Optional[str] = None

    @classmethod
    def from_record(cls, record: MessageRecord, image: Optional[str] = None) -> "CompleteMessage":
        return cls(
            uuid=record.uuid,
            author=record.author,
            message=record.message,
            likes=record.likes,
            image=image,
        )

    def apply(self, put: "ServerPutUpdate"):
        """Overwrite this message with the values of a later update."""
        self.author = put.author
        self.message = put.message
        self.likes = put.likes
        if put.image_updated:
            self.image = put.image

class ServerPutUpdate(BaseModel):
    """Full post-update values of a message, kept in the mutation log."""

    author: str
    message: Optional[str] = None
    likes: int
    image_updated: bool = False
    image: Optional[str] = None

    def merge(self, other: "ServerPutUpdate"):
        self.author = other.author
        self.message = other.message
        self.likes = other.likes
        self.image_updated = other.image_updated or self.image_updated
        if other.image_updated:
            self.image = other.image

class ClientPutUpdate(BaseModel):
    author: str
    message: Optional[str] = None
    likes: int
    # "" means the image was removed, None means it did not change
    image: Optional[str] = None

    @classmethod
    def from_server(cls, update: ServerPutUpdate) -> "ClientPutUpdate":
        image = None
        if update.image_updated:
            image = update.image if update.image is not None else ""
        return cls(
            author=update.author,
            message=update.message,
            likes=update.likes,
            image=image,
        )

class PutDeleteUpdate(BaseModel):
    uuid: str
    put: Optional[ClientPutUpdate] = None
    delete: bool = False

class MutationResults(BaseModel):
    posts: List[CompleteMessage] = []
    puts_deletes: List[PutDeleteUpdate] = []
    done: bool = False

class PaginationType(str, Enum):
    cache = "Cache"
    fresh = "Fresh"

class PaginationMetadata(BaseModel):
    total_pages: int
    kind: PaginationType

    @classmethod
    def build(cls, count_all: int, page_size: int, kind: PaginationType) -> "PaginationMetadata":
        return cls(total_pages=count_all // page_size + 1, kind=kind)
