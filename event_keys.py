# client -> server
JOIN_ROOM = "join-room"
ADMIN_ACTION = "admin-action"
REQUEST_SYNC = "request-sync"
CHAT_MESSAGE = "chat-message" # also server -> client

# server -> client
ROOM_JOINED = "room-joined"
SYSTEM_MESSAGE = "system-message"
ERROR_MESSAGE = "error-message"
VIDEO_EVENT = "video-event"
SYNC_STATE = "sync-state"

# admin-action values
PLAY = "play"
PAUSE = "pause"
SEEK = "seek"
PLAYBACK_ACTIONS = (PLAY, PAUSE, SEEK)

ROLE_ADMIN = "admin"
ROLE_VIEWER = "viewer"
