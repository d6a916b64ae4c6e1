from datetime import datetime
from typing import Callable, Dict, List, Optional

from logging_config import get_logger
from vfs import VirtualFileSystem

logger = get_logger(__name__)


class Room:
    """Membership, files and per-user active file for one room.

    Members are keyed by connection id; the display name is an attribute,
    so two sockets sharing a name keep separate slots.
    """

    def __init__(self, room_id: str, created_at: datetime):
        self.room_id = room_id
        self.members: Dict[str, str] = {}  # connection_id -> display name
        self.files = VirtualFileSystem.with_defaults()
        self.active_files: Dict[str, str] = {}  # display name -> path
        self.created_at = created_at
        self.last_activity_at = created_at

    def add_member(self, connection_id: str, user_name: str):
        self.members[connection_id] = user_name

    def remove_member(self, connection_id: str) -> Optional[str]:
        user_name = self.members.pop(connection_id, None)
        if user_name is not None and user_name not in self.members.values():
            self.active_files.pop(user_name, None)
        return user_name

    def member_names(self) -> List[str]:
        """Distinct display names in join order."""
        return list(dict.fromkeys(self.members.values()))

    def connection_ids(self) -> List[str]:
        return list(self.members.keys())

    def is_empty(self) -> bool:
        return not self.members

    def info(self) -> dict:
        names = self.member_names()
        return {
            "memberCount": len(names),
            "connectionCount": len(self.members),
            "members": names,
            "fileCount": len(self.files),
            "activeFiles": dict(self.active_files),
            "lastActivityAt": self.last_activity_at.isoformat(),
        }


class RoomRegistry:
    """Owns every live room in this process.

    Not a module-level singleton: the app builds one and hands it to the
    session controller, cleanup scheduler and idle reaper.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._rooms: Dict[str, Room] = {}
        self.clock = clock

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    def get(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def get_or_create(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            room = Room(room_id, self.clock())
            self._rooms[room_id] = room
            logger.info(f"Created new room: {room_id} with default project structure")
        return room

    def touch(self, room_id: str):
        room = self._rooms.get(room_id)
        if room is not None:
            room.last_activity_at = self.clock()

    def delete(self, room_id: str) -> bool:
        room = self._rooms.pop(room_id, None)
        if room is None:
            return False
        logger.info(f"Deleted room {room_id}")
        return True

    def delete_if_empty(self, room_id: str) -> bool:
        room = self._rooms.get(room_id)
        if room is None or not room.is_empty():
            return False
        return self.delete(room_id)

    def rooms(self) -> List[Room]:
        return list(self._rooms.values())

    def stats(self) -> dict:
        rooms = self.rooms()
        return {
            "totalRooms": len(rooms),
            "totalUsers": sum(len(room.member_names()) for room in rooms),
            "rooms": [
                {
                    "roomId": room.room_id,
                    "userCount": len(room.member_names()),
                    "fileCount": len(room.files),
                    "lastActivity": room.last_activity_at.isoformat(),
                }
                for room in rooms
            ],
        }
