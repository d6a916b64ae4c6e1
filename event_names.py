# Inbound (client -> server)
JOIN = "join"
CODE_CHANGE = "codeChange"
FILE_SYSTEM_UPDATE = "fileSystemUpdate"
CREATE_FILE = "createFile"
DELETE_FILE = "deleteFile"
TYPING = "typing"
LANGUAGE_CHANGE = "languageChange"
COMPILE_CODE = "compileCode"
GET_ROOM_INFO = "getRoomInfo"
LEAVE_ROOM = "leaveRoom"

# Outbound (server -> client)
USER_JOINED = "userJoined"  # list of display names in the room
FILE_SYSTEM_SYNC = "fileSystemSync"  # full file map snapshot
CODE_UPDATE = "codeUpdate"
FILE_CREATED = "fileCreated"
FILE_DELETED = "fileDeleted"
USER_TYPING = "userTyping"
LANGUAGE_UPDATE = "languageUpdate"
CODE_RESPONSE = "codeResponse"
ROOM_INFO = "roomInfo"

# fileSystemUpdate actions
ACTION_CREATE = "create"
ACTION_DELETE = "delete"
ACTION_RENAME = "rename"
ACTION_BULK_UPDATE = "bulk_update"

# **Frame shape**
# - every websocket text frame is `{"event": <name>, "data": {...}}`
# - inbound payload keys are camelCase (`roomId`, `userName`, `fileName`, `newFileName`)
