# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Protocol constants for Plum Lightpad communication."""

VERSION = "0.1.0"

# House service
API_BASE_URL = "https://production.plum.technology/v2"
API_GET_HOUSES = "getHouses"
API_GET_HOUSE = "getHouse"
USER_AGENT_ADDITION = "plumlightpad"

FIELD_HID = "hid"
FIELD_HOUSE_ACCESS_TOKEN = "house_access_token"

# Device channel
DEFAULT_PORT = 8443
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_COMMAND_TIMEOUT = 5.0
DEFAULT_SESSION_LIFETIME = 3600.0

# Frame layout: 1 lane byte + 4 byte big-endian body length + body
FRAME_HEADER_SIZE = 5
FRAME_HEADER_FORMAT = ">cI"
MAX_FRAME_SIZE = 64 * 1024

LANE_AUTH = b"A"
LANE_COMMAND = b"C"
LANE_EVENT = b"E"
LANES = (LANE_AUTH, LANE_COMMAND, LANE_EVENT)

# Message fields
FIELD_MSG_ID = "msgId"
FIELD_COMMAND = "command"
FIELD_SUCCESS = "success"
FIELD_ERROR = "error"
FIELD_HAT = "hat"
FIELD_LLID = "llid"
FIELD_LPID = "lpid"
FIELD_LEVEL = "level"
FIELD_POWER = "power"
FIELD_WATTS = "watts"
FIELD_SIGNAL = "signal"
FIELD_TYPE = "type"
FIELD_CONFIG = "config"
FIELD_FORCE_GLOW = "forceGlow"
FIELD_INTENSITY = "intensity"
FIELD_TIMEOUT = "timeout"
FIELD_RED = "red"
FIELD_GREEN = "green"
FIELD_BLUE = "blue"
FIELD_WHITE = "white"
FIELD_LIGHTPAD_METRICS = "lightpad_metrics"

# Commands
CMD_SET_LEVEL = "setLogicalLoadLevel"
CMD_SET_LIGHTPAD_CONFIG = "setLightpadConfig"
CMD_SET_LOAD_CONFIG = "setLogicalLoadConfig"
CMD_SET_GLOW = "setLogicalLoadGlow"
CMD_GET_METRICS = "getLogicalLoadMetrics"

# Event type tags
EVENT_DIMMER_CHANGE = "dimmerchange"
EVENT_POWER = "power"
EVENT_PIR_SIGNAL = "pirSignal"

LEVEL_MIN = 0
LEVEL_MAX = 255
COLOR_MIN = 0
COLOR_MAX = 255
