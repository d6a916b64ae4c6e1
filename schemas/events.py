from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Dict, Optional

from vfs import PLAINTEXT


class EventPayload(BaseModel):
    # Wire keys are camelCase (roomId, fileName); attributes stay snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class InboundFrame(BaseModel):
    event: str
    data: dict = Field(default_factory=dict)


class FileRecordPayload(EventPayload):
    content: str = ""
    language: str = PLAINTEXT


class JoinEvent(EventPayload):
    room_id: str
    user_name: str


class CodeChangeEvent(EventPayload):
    room_id: str
    code: str = ""
    file_name: Optional[str] = None


class FileSystemUpdateEvent(EventPayload):
    room_id: str
    action: str
    file_name: Optional[str] = None
    new_file_name: Optional[str] = None
    files: Optional[Dict[str, FileRecordPayload]] = None


class CreateFileEvent(EventPayload):
    room_id: str
    file_name: str
    content: str = ""
    language: str = PLAINTEXT


class DeleteFileEvent(EventPayload):
    room_id: str
    file_name: str


class TypingEvent(EventPayload):
    room_id: str
    user_name: Optional[str] = None
    file_name: Optional[str] = None


class LanguageChangeEvent(EventPayload):
    room_id: str
    language: str
    file_name: Optional[str] = None


class CompileCodeEvent(EventPayload):
    room_id: str
    language: str
    version: Optional[str] = None
    file_name: Optional[str] = None
    code: str = ""


class RoomInfoRequest(EventPayload):
    room_id: str


class LeaveRoomEvent(EventPayload):
    room_id: Optional[str] = None
