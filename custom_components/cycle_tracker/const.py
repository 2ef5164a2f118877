from __future__ import annotations

DOMAIN = "cycle_tracker"

PLATFORMS = ["sensor", "binary_sensor", "calendar"]

STORAGE_VERSION = 1
STORAGE_KEY_PREFIX = "cycle_tracker_"

CONF_NAME = "name"
CONF_AVERAGE_CYCLE_LENGTH = "average_cycle_length"
CONF_AVERAGE_PERIOD_LENGTH = "average_period_length"
CONF_REMINDERS_ENABLED = "reminders_enabled"
CONF_DAYS_BEFORE_PERIOD = "days_before_period"
CONF_NOTIFY_SERVICES = "notify_services"
CONF_DAILY_REMINDER_TIME = "daily_reminder_time"

DEFAULT_NAME = "Cycle Tracker"
DEFAULT_AVERAGE_CYCLE_LENGTH = 28
DEFAULT_AVERAGE_PERIOD_LENGTH = 5
DEFAULT_REMINDERS_ENABLED = False
DEFAULT_DAYS_BEFORE_PERIOD = 2
DEFAULT_DAILY_REMINDER_TIME = "09:00:00"  # local time

# Bounds accepted for the fallback settings
MIN_CYCLE_LENGTH = 21
MAX_CYCLE_LENGTH = 45
MIN_PERIOD_LENGTH = 1
MAX_PERIOD_LENGTH = 10
MIN_DAYS_BEFORE_PERIOD = 1
MAX_DAYS_BEFORE_PERIOD = 7

SERVICE_TOGGLE_DAY = "toggle_day"
SERVICE_UPDATE_SETTINGS = "update_settings"

ATTR_DATE = "date"
ATTR_ENTRY_ID = "entry_id"
ATTR_LAST_PERIOD_START = "last_period_start"
ATTR_LAST_PERIOD_END = "last_period_end"
ATTR_PREDICTED_NEXT_START = "predicted_next_cycle_start"
ATTR_UPCOMING_FERTILE_DAYS = "upcoming_fertile_days"
ATTR_NEXT_OVULATION = "next_ovulation_date"
