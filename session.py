import asyncio
import json
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set, Tuple, Type

from pydantic import BaseModel, ValidationError

import event_names as ev
from backend import Room, RoomRegistry
from connections import Outbound
from execution import ExecutionBridge
from logging_config import get_logger
from reaper import CleanupScheduler
from schemas.events import (
    CodeChangeEvent,
    CompileCodeEvent,
    CreateFileEvent,
    DeleteFileEvent,
    FileSystemUpdateEvent,
    InboundFrame,
    JoinEvent,
    LanguageChangeEvent,
    LeaveRoomEvent,
    RoomInfoRequest,
    TypingEvent,
)
from vfs import FileRecord, VirtualFileSystemError, file_extension, infer_language

logger = get_logger(__name__)


@dataclass
class ConnectionContext:
    """Per-connection identity. Unbound while room_id is None."""

    connection_id: str
    room_id: Optional[str] = None
    user_name: Optional[str] = None

    @property
    def bound(self) -> bool:
        return self.room_id is not None

    def bind(self, room_id: str, user_name: str):
        self.room_id = room_id
        self.user_name = user_name

    def unbind(self):
        self.room_id = None
        self.user_name = None


class SessionController:
    """Turns inbound protocol events into room mutations and outbound messages.

    Every handler except compileCode is synchronous: it reads and mutates
    room state, resolves recipients and returns the messages to send, all
    without yielding to the event loop. The messages are queued on the
    connections in that same step, so clients see them in the order the
    state changed.
    """

    def __init__(self, registry: RoomRegistry, connections, bridge: ExecutionBridge, scheduler: CleanupScheduler):
        self.registry = registry
        self.connections = connections
        self.bridge = bridge
        self.scheduler = scheduler
        self.contexts: Dict[str, ConnectionContext] = {}
        self._background: Set[asyncio.Task] = set()

        self.handlers: Dict[str, Tuple[Type[BaseModel], Callable]] = {
            ev.JOIN: (JoinEvent, self.on_join),
            ev.CODE_CHANGE: (CodeChangeEvent, self.on_code_change),
            ev.FILE_SYSTEM_UPDATE: (FileSystemUpdateEvent, self.on_file_system_update),
            ev.CREATE_FILE: (CreateFileEvent, self.on_create_file),
            ev.DELETE_FILE: (DeleteFileEvent, self.on_delete_file),
            ev.TYPING: (TypingEvent, self.on_typing),
            ev.LANGUAGE_CHANGE: (LanguageChangeEvent, self.on_language_change),
            ev.GET_ROOM_INFO: (RoomInfoRequest, self.on_get_room_info),
            ev.LEAVE_ROOM: (LeaveRoomEvent, self.on_leave_room),
        }

    # Connection lifecycle

    def connect(self, connection_id: str) -> ConnectionContext:
        ctx = ConnectionContext(connection_id)
        self.contexts[connection_id] = ctx
        return ctx

    def disconnect(self, connection_id: str):
        ctx = self.contexts.pop(connection_id, None)
        if ctx is None:
            return
        outbounds = self._leave(ctx)
        logger.info(f"User disconnected: {connection_id}")
        self.connections.deliver_all(outbounds)

    # Inbound

    async def handle_frame(self, connection_id: str, text: str):
        try:
            frame = InboundFrame.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Dropping malformed frame from connection {connection_id}: {e}")
            return
        await self.dispatch(connection_id, frame.event, frame.data)

    async def dispatch(self, connection_id: str, event: str, data: dict):
        ctx = self.contexts.get(connection_id) or self.connect(connection_id)

        if event == ev.COMPILE_CODE:
            payload = self._parse(connection_id, CompileCodeEvent, event, data)
            if payload is not None:
                self._spawn(self.compile(ctx, payload))
            return

        entry = self.handlers.get(event)
        if entry is None:
            logger.warning(f"Ignoring unknown event '{event}' from connection {connection_id}")
            return
        model, handler = entry
        payload = self._parse(connection_id, model, event, data)
        if payload is None:
            return

        logger.debug(f"Handling {event} from connection {connection_id}")
        outbounds = handler(ctx, payload)
        self.connections.deliver_all(outbounds)

    def _parse(self, connection_id: str, model: Type[BaseModel], event: str, data: dict):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Dropping invalid {event} payload from connection {connection_id}: {e}")
            return None

    # Recipient scoping

    @staticmethod
    def _to_room(room: Room, event: str, data) -> Outbound:
        return Outbound(event, data, room.connection_ids())

    @staticmethod
    def _to_others(room: Room, ctx: ConnectionContext, event: str, data) -> Outbound:
        return Outbound(event, data, [c for c in room.connection_ids() if c != ctx.connection_id])

    @staticmethod
    def _to_sender(ctx: ConnectionContext, event: str, data) -> Outbound:
        return Outbound(event, data, [ctx.connection_id])

    # Handlers

    def on_join(self, ctx: ConnectionContext, event: JoinEvent) -> List[Outbound]:
        outbounds = []
        if ctx.bound and ctx.room_id != event.room_id:
            outbounds.extend(self._leave(ctx))

        room = self.registry.get_or_create(event.room_id)
        self.scheduler.cancel(event.room_id)
        # Rejoining the same room under a new name replaces the old slot
        room.remove_member(ctx.connection_id)
        room.add_member(ctx.connection_id, event.user_name)
        self.registry.touch(event.room_id)
        ctx.bind(event.room_id, event.user_name)

        outbounds.append(self._to_room(room, ev.USER_JOINED, room.member_names()))
        outbounds.append(self._to_sender(ctx, ev.FILE_SYSTEM_SYNC, room.files.snapshot()))
        logger.info(f"User {event.user_name} joined room {event.room_id}. Users: {len(room.member_names())}")
        return outbounds

    def on_code_change(self, ctx: ConnectionContext, event: CodeChangeEvent) -> List[Outbound]:
        room = self.registry.get(event.room_id)
        if room is None or not event.file_name or event.file_name not in room.files:
            return []

        room.files.set_content(event.file_name, event.code)
        if ctx.user_name:
            room.active_files[ctx.user_name] = event.file_name
        self.registry.touch(event.room_id)

        data = {"fileName": event.file_name, "content": event.code, "user": ctx.user_name}
        return [self._to_others(room, ctx, ev.CODE_UPDATE, data)]

    def on_file_system_update(self, ctx: ConnectionContext, event: FileSystemUpdateEvent) -> List[Outbound]:
        room = self.registry.get(event.room_id)
        if room is None:
            return []

        try:
            if event.action == ev.ACTION_CREATE:
                if not event.file_name:
                    return []
                room.files.create(
                    event.file_name,
                    content=f"// New {file_extension(event.file_name)} file\n",
                    language=infer_language(event.file_name),
                )
                logger.info(f"File created: {event.file_name} in room {event.room_id}")
            elif event.action == ev.ACTION_DELETE:
                if not event.file_name:
                    return []
                room.files.delete(event.file_name)
                logger.info(f"File deleted: {event.file_name} in room {event.room_id}")
            elif event.action == ev.ACTION_RENAME:
                if not event.file_name or not event.new_file_name:
                    return []
                room.files.rename(event.file_name, event.new_file_name)
                logger.info(f"File renamed: {event.file_name} -> {event.new_file_name} in room {event.room_id}")
            elif event.action == ev.ACTION_BULK_UPDATE:
                if event.files is None:
                    return []
                room.files.bulk_merge(
                    {path: FileRecord(f.content, f.language) for path, f in event.files.items()}
                )
            else:
                logger.warning(f"Ignoring unknown fileSystemUpdate action '{event.action}' in room {event.room_id}")
                return []
        except VirtualFileSystemError as e:
            logger.debug(f"fileSystemUpdate {event.action} ignored in room {event.room_id}: {e}")
            return []

        self.registry.touch(event.room_id)
        return [self._to_room(room, ev.FILE_SYSTEM_SYNC, room.files.snapshot())]

    def on_create_file(self, ctx: ConnectionContext, event: CreateFileEvent) -> List[Outbound]:
        room = self.registry.get(event.room_id)
        if room is None or not event.file_name:
            return []
        try:
            record = room.files.create(event.file_name, event.content, event.language)
        except VirtualFileSystemError:
            return []

        self.registry.touch(event.room_id)
        logger.info(f"File created: {event.file_name} by {ctx.user_name} in room {event.room_id}")
        data = {
            "fileName": event.file_name,
            "content": record.content,
            "language": record.language,
            "user": ctx.user_name,
        }
        return [self._to_room(room, ev.FILE_CREATED, data)]

    def on_delete_file(self, ctx: ConnectionContext, event: DeleteFileEvent) -> List[Outbound]:
        room = self.registry.get(event.room_id)
        if room is None:
            return []
        try:
            room.files.delete(event.file_name)
        except VirtualFileSystemError:
            return []

        self.registry.touch(event.room_id)
        logger.info(f"File deleted: {event.file_name} by {ctx.user_name} in room {event.room_id}")
        return [self._to_room(room, ev.FILE_DELETED, {"fileName": event.file_name, "user": ctx.user_name})]

    def on_typing(self, ctx: ConnectionContext, event: TypingEvent) -> List[Outbound]:
        room = self.registry.get(event.room_id)
        if room is None:
            return []
        user_name = event.user_name or ctx.user_name
        if user_name and event.file_name:
            room.active_files[user_name] = event.file_name
        return [self._to_others(room, ctx, ev.USER_TYPING, {"user": user_name, "fileName": event.file_name})]

    def on_language_change(self, ctx: ConnectionContext, event: LanguageChangeEvent) -> List[Outbound]:
        room = self.registry.get(event.room_id)
        if room is None or not event.file_name or event.file_name not in room.files:
            return []

        room.files.set_language(event.file_name, event.language)
        self.registry.touch(event.room_id)
        return [self._to_room(room, ev.LANGUAGE_UPDATE, {"language": event.language, "fileName": event.file_name})]

    def on_get_room_info(self, ctx: ConnectionContext, event: RoomInfoRequest) -> List[Outbound]:
        room = self.registry.get(event.room_id)
        if room is None:
            return []
        return [self._to_sender(ctx, ev.ROOM_INFO, room.info())]

    def on_leave_room(self, ctx: ConnectionContext, event: LeaveRoomEvent) -> List[Outbound]:
        # An explicit leave still tells the leaver who is left in the room
        return self._leave(ctx, notify_leaver=True)

    def _leave(self, ctx: ConnectionContext, notify_leaver: bool = False) -> List[Outbound]:
        if not ctx.bound:
            return []
        room_id, user_name = ctx.room_id, ctx.user_name
        ctx.unbind()

        room = self.registry.get(room_id)
        if room is None:
            return []
        room.remove_member(ctx.connection_id)
        logger.info(f"User {user_name} left room {room_id}. Remaining users: {len(room.member_names())}")

        if room.is_empty():
            self.scheduler.schedule(room_id)
        outbound = self._to_room(room, ev.USER_JOINED, room.member_names())
        if notify_leaver:
            outbound.recipients.append(ctx.connection_id)
        return [outbound]

    # Code execution

    async def compile(self, ctx: ConnectionContext, event: CompileCodeEvent) -> Optional[Outbound]:
        """Run code for the room and broadcast the outcome.

        Identifiers are captured before the external call; recipients are
        whoever is in the room when the call returns.
        """
        room_id = event.room_id
        if room_id not in self.registry:
            return None
        file_name = event.file_name
        executed_by = ctx.user_name

        result = await self.bridge.run(event.language, event.version, file_name, event.code)
        data = {**result, "fileName": file_name, "executedBy": executed_by}

        room = self.registry.get(room_id)
        if room is None:
            logger.info(f"Room {room_id} is gone, dropping execution result for {file_name}")
            return None
        logger.info(f"Code executed in room {room_id} by {executed_by} for file {file_name}")
        outbound = self._to_room(room, ev.CODE_RESPONSE, data)
        self.connections.deliver(outbound)
        return outbound

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        task.add_done_callback(self._log_task_failure)
        return task

    @staticmethod
    def _log_task_failure(task: asyncio.Task):
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background task failed: {task.exception()}", exc_info=task.exception())

    async def drain(self):
        """Wait for in-flight execution requests to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
