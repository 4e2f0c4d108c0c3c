import os
from dotenv import load_dotenv

load_dotenv()

# ── Supabase ──────────────────────────────────────────────────────────────────
SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "") or os.getenv("SUPABASE_SERVICE_KEY", "")

BOATS_TABLE = "boats"
LIVE_LOCATIONS_TABLE = "boat_live_locations"
BOAT_LOGS_TABLE = "boat_logs"

FETCH_PAGE_SIZE = 1000            # PostgREST default max-rows
HTTP_TIMEOUT_SECONDS = 15.0

# ── Mode ──────────────────────────────────────────────────────────────────────
# Auto-enable demo if Supabase isn't configured (override with DEMO_MODE=false)
_demo_env = os.getenv("DEMO_MODE")
if _demo_env is not None:
    DEMO_MODE = _demo_env.lower() == "true"
else:
    DEMO_MODE = not (SUPABASE_URL and SUPABASE_KEY)

# ── Playback ──────────────────────────────────────────────────────────────────
DEFAULT_WINDOW_HOURS = 24
WINDOW_PRESETS_HOURS = [1, 6, 12, 24, 168]
DEFAULT_PLAYBACK_SPEED = 10       # 10x real time
PLAYBACK_SPEED_STEPS = [1, 10, 60, 120]
FRAME_INTERVAL_SECONDS = float(os.getenv("FRAME_INTERVAL_SECONDS", "0.1"))

# ── Realtime ──────────────────────────────────────────────────────────────────
REALTIME_HEARTBEAT_SECONDS = 25
REALTIME_RECONNECT_SECONDS = 10

# ── Demo Simulation ───────────────────────────────────────────────────────────
DEMO_CENTER = (8.08, 77.53)       # Kanyakumari coast
DEMO_STEP_SECONDS = 5
DEMO_BACKFILL_HOURS = 168         # enough history for the longest preset
DEMO_LOG_INTERVAL_SECONDS = 600
