from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import ErrorKind

ARTICLE_HEADERS = [
    "ID",
    "Title",
    "Content",
    "CreatedAt",
    "UpdatedAt",
    "Tags",
    "AuthorEmail",
    "AuthorName",
]
SLACK_HEADERS = [
    "Timestamp",
    "UserID",
    "UserName",
    "UserAvatar",
    "Text",
    "ChannelID",
    "ChannelName",
    "MessageLink",
]


def cell(row: Sequence[Any], index: int) -> str:
    if index < 0 or index >= len(row) or row[index] is None:
        return ""
    return str(row[index])


class IngestedMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: str
    user_id: str = ""
    user_name: str = ""
    user_avatar: str = ""
    text: str = ""
    channel_id: str
    channel_name: str = ""
    permalink: str = ""

    def to_row(self) -> list[str]:
        return [
            self.timestamp,
            self.user_id,
            self.user_name,
            self.user_avatar,
            self.text,
            self.channel_id,
            self.channel_name,
            self.permalink,
        ]


class Article(BaseModel):
    id: str
    title: str = ""
    content: str = ""
    created_at: str = ""
    updated_at: str = ""
    tags: list[str] = Field(default_factory=list)
    author_email: str = ""
    author_name: str = ""

    def to_row(self) -> list[str]:
        return [
            self.id,
            self.title,
            self.content,
            self.created_at,
            self.updated_at,
            ",".join(self.tags),
            self.author_email,
            self.author_name,
        ]


class ArticleForm(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1)
    content: str = ""
    tags_string: str = Field(default="", alias="tagsString")


class SlackUser(BaseModel):
    id: str = ""
    name: str = ""
    avatar: str = ""


class SlackChannel(BaseModel):
    id: str = ""
    name: str = ""


class SlackMessageRecord(BaseModel):
    id: str
    timestamp: str
    user: SlackUser
    text: str = ""
    channel: SlackChannel
    link: str = ""


class ArticleAuthor(BaseModel):
    email: str = ""
    name: str = ""


class SlackAuthor(BaseModel):
    name: str = ""
    avatar: str = ""


class ArticleItem(BaseModel):
    type: Literal["article"] = "article"
    id: str
    title: str
    content: str
    timestamp: float
    created_at: str
    updated_at: str
    tags: list[str]
    author: ArticleAuthor


class SlackItem(BaseModel):
    type: Literal["slack"] = "slack"
    id: str
    title: Literal[""] = ""
    content: str
    timestamp: float
    created_at: str
    updated_at: None = None
    tags: list[str]
    author: SlackAuthor
    channel: SlackChannel
    link: str


ContentItem = Annotated[Union[ArticleItem, SlackItem], Field(discriminator="type")]


class UploadResult(BaseModel):
    success: bool
    file_id: Optional[str] = None
    file_name: Optional[str] = None
    file_path: Optional[str] = None
    file_url: Optional[str] = None
    error: Optional[str] = None


class ChannelSyncResult(BaseModel):
    channel_id: str
    appended: int = 0
    messages: list[IngestedMessage] = Field(default_factory=list)
    error_kind: Optional[ErrorKind] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None
