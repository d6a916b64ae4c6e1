from fastapi import APIRouter, HTTPException, Request

from logging_config import get_logger
from schemas.rooms import HealthResponse, RoomDetailsResponse, StatsResponse

logger = get_logger(__name__)

rooms_router = APIRouter(tags=["rooms"])


@rooms_router.get("/api/stats", response_model=StatsResponse)
async def get_stats(request: Request):
    """Snapshot of every live room. Read-only, safe to poll."""
    stats = request.app.state.registry.stats()
    logger.debug(f"Stats requested: {stats['totalRooms']} rooms, {stats['totalUsers']} users")
    return StatsResponse(**stats)


@rooms_router.get("/rooms/{room_id}", response_model=RoomDetailsResponse)
async def get_room_details(room_id: str, request: Request):
    """
    Get room details without joining it.

    Returns:
    - roomId: Room identifier
    - memberCount: Number of distinct display names in the room
    - connectionCount: Number of live connections bound to the room
    - members: Display names in join order
    - fileCount: Number of files in the room's virtual file system
    - activeFiles: Which file each user last edited or typed in
    - lastActivityAt: Timestamp of the last mutating event
    """
    room = request.app.state.registry.get(room_id)
    if room is None:
        logger.info(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    return RoomDetailsResponse(roomId=room_id, **room.info())


@rooms_router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok")
