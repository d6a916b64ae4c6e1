from pydantic import BaseModel
from typing import Dict, List


class RoomSummary(BaseModel):
    roomId: str
    userCount: int
    fileCount: int
    lastActivity: str

class StatsResponse(BaseModel):
    totalRooms: int
    totalUsers: int
    rooms: List[RoomSummary]

class RoomDetailsResponse(BaseModel):
    roomId: str
    memberCount: int
    connectionCount: int
    members: List[str]
    fileCount: int
    activeFiles: Dict[str, str]
    lastActivityAt: str

class HealthResponse(BaseModel):
    status: str
