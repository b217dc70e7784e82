STATE_DIR_NAME = ".plan_monitor"
CONFIG_FILE = "config.yaml"
API_URL_ENV = "PLAN_MONITOR_API_URL"

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_API_TIMEOUT_SECONDS = 10.0
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0
DEFAULT_DOMAIN = "general"

START_CHAT_PATH = "ui/chat"
CHAT_STATUS_PATH = "ui/chat/{job_id}"

# Layout geometry (pixels)
DEFAULT_NODE_WIDTH = 250
DEFAULT_NODE_HEIGHT = 80
DEFAULT_NODE_GAP = 30
DEFAULT_ROW_HEIGHT = 150
DEFAULT_TOP_MARGIN = 50
DEFAULT_CANVAS_WIDTH = 800
DEFAULT_MIN_MARGIN = 50
DEFAULT_MIN_CANVAS_HEIGHT = 600
CANVAS_RIGHT_PADDING = 50
CANVAS_BOTTOM_PADDING = 100

# Mock backend
DEFAULT_SECONDS_PER_TASK = 3.0
MOCK_REQUESTS_PER_TASK = 3
MOCK_LONG_QUERY_CHARS = 100
MOCK_MAX_SESSIONS = 256
MOCK_JOB_ID_PREFIX = "chat-"

# User-facing messages
MSG_STARTED = "Chat started successfully. Updates will appear automatically."
MSG_PLAN_AVAILABLE = "Task plan is now available! Opening visualization."
MSG_RESULT_RECEIVED = "Response received from server"
MSG_MANUAL_REFRESH = "Manually refreshing status..."
MSG_START_APOLOGY = "Sorry, there was an error processing your request. Please try again."
