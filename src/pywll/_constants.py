"""Internal constants shared across the library."""

SERVICE_TYPE = "_weatherlinklive._tcp.local."

REALTIME_PATH = "/v1/real_time"
CONDITIONS_PATH = "/v1/current_conditions"

DEFAULT_DEVICE_PORT = 80
DEFAULT_WEB_PORT = 3000

DISCOVERY_TIMEOUT_S = 10.0
DISCOVERY_BACKOFF_S = 30.0
POLL_INTERVAL_S = 60.0
REALTIME_DURATION_S = 3600
# Renew ten minutes before the device stops broadcasting.
REALTIME_RENEW_INTERVAL_S = 3000.0

# ------------------------------------------------------------------
# Condition record fields
# ------------------------------------------------------------------

SUBSYSTEM_ID_FIELD = "lsid"
SCALE_CODE_FIELD = "rain_size"

RAIN_FIELDS: tuple[str, ...] = (
    "rain_rate_last",
    "rain_15_min",
    "rain_60_min",
    "rain_24_hr",
    "rain_storm",
    "rainfall_daily",
    "rainfall_monthly",
    "rainfall_year",
)

OVERLAY_FIELDS: tuple[str, ...] = (
    "wind_speed_last",
    "wind_dir_last",
    *RAIN_FIELDS,
    "rain_storm_start_at",
)

# ------------------------------------------------------------------
# rain_size code -> inches per bucket tip
# ------------------------------------------------------------------

RAIN_SCALE_FACTORS: dict[int, float] = {
    1: 0.01,
    2: 0.2 / 25.4,
    3: 0.1 / 25.4,
    4: 0.001,
}
