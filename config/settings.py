import os

# Symbols to watch on startup (WATCHLIST env overrides, comma separated)
DEFAULT_WATCHLIST = [
    s.strip().upper()
    for s in os.environ.get("WATCHLIST", "EURUSD,GBPUSD,USDJPY").split(",")
    if s.strip()
]

# Timeframes: code -> (label, minutes, MetaApi timeframe code)
TIMEFRAMES = {
    "M1": ("1 Min", 1, "1m"),
    "M5": ("5 Min", 5, "5m"),
    "M15": ("15 Min", 15, "15m"),
    "M30": ("30 Min", 30, "30m"),
    "H1": ("1 Hour", 60, "1h"),
    "H4": ("4 Hours", 240, "4h"),
}
DEFAULT_TIMEFRAME = os.environ.get("TIMEFRAME", "M5").upper()

# Polling
POLL_INTERVAL_SECONDS = 60
CANDLE_LOOKBACK = 50
AUTOSTART = os.environ.get("AUTOSTART", "1") not in ("0", "false", "False", "")

# Alert feed
ALERT_FEED_CAPACITY = 20

# Simulated data
SIM_BASE_PRICE = 1.0850
SIM_BASE_PRICE_JPY = 145.50
SIM_DRIFT_CENTER = 0.48  # < 0.5 drifts the walk slightly upward
SIM_BODY_SCALE = 0.003
SIM_WICK_SCALE = 0.002
SIM_PRICE_DECIMALS = 5
SIM_MAX_VOLUME = 999

# MetaApi (live data)
METAAPI_BASE_URL = "https://mt-client-api-v1.london.agiliumtrade.ai"
METAAPI_TOKEN = os.environ.get("METAAPI_TOKEN", "")
METAAPI_ACCOUNT_ID = os.environ.get("METAAPI_ACCOUNT_ID", "")
METAAPI_TIMEOUT_SECONDS = 10

# Notifications
SOUND_ENABLED = os.environ.get("SOUND_ENABLED", "1") not in ("0", "false", "False", "")
NOTIFICATION_PERMISSION = os.environ.get("NOTIFICATION_PERMISSION", "default").lower()

# Chime: sine tone with exponential decay
CHIME_FREQUENCY_HZ = 800.0
CHIME_DURATION_S = 0.5
CHIME_GAIN_START = 0.3
CHIME_GAIN_END = 0.01
CHIME_SAMPLE_RATE = 44100

# Display
DISPLAY_TZ = os.environ.get("DISPLAY_TZ", "UTC")
CHART_ROWS = 15

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FILE = "utils/monitor.log"
DEBUG_LOG_FILE = "utils/debug_monitor.log"
