from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ContentKind(str, Enum):
    TAT = "tat"
    WAT = "wat"
    SRT = "srt"
    SDT_STUDENT = "sdt_student"
    SDT_PROFESSIONAL = "sdt_professional"

    @property
    def table(self) -> str:
        return _TABLES[self][0]

    @property
    def payload_key(self) -> str:
        return _TABLES[self][1]


_TABLES = {
    ContentKind.TAT: ("tat_content", "image_url"),
    ContentKind.WAT: ("wat_content", "word"),
    ContentKind.SRT: ("srt_content", "scenario"),
    ContentKind.SDT_STUDENT: ("student_sdt_questions", "question"),
    ContentKind.SDT_PROFESSIONAL: ("professional_sdt_questions", "question"),
}


@dataclass
class PromptRecord:
    id: int
    kind: ContentKind
    payload: str
    active: bool = True
    image_set_id: Optional[int] = None

    def to_dict(self) -> dict:
        data = {"id": self.id, self.kind.payload_key: self.payload, "active": self.active}
        if self.kind is ContentKind.TAT:
            data["image_set_id"] = self.image_set_id
        return data


@dataclass
class UserAccount:
    id: int
    username: str
    email: str
    password: str
    is_admin: bool
    last_login: Optional[str]
    legacy_password: bool = False

    def sanitized(self) -> dict:
        """The account as returned to clients, password stripped."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "is_admin": self.is_admin,
            "last_login": self.last_login,
        }


@dataclass
class ImageSet:
    id: int
    source_name: str
    created_at: str
    image_urls: list[str] = field(default_factory=list)
