# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""State dataclass for the Lightpad simulator."""

from dataclasses import dataclass, field
from typing import Any, Optional

from ..const import (
    FIELD_LEVEL,
    FIELD_LIGHTPAD_METRICS,
    FIELD_LLID,
    FIELD_LPID,
    FIELD_POWER,
    LEVEL_MAX,
)


@dataclass
class LightpadSimulatorState:
    """Everything the simulated device remembers."""

    house_access_token: str = "test-house-access-token"
    lightpad_id: str = "lp-0001"
    load_id: str = "ll-0001"

    level: int = 0
    # Draw of the attached load at full brightness
    max_watts: int = 60
    motion_signal: int = 0

    lightpad_config: dict[str, Any] = field(default_factory=dict)
    load_config: dict[str, Any] = field(default_factory=dict)
    glow: Optional[dict[str, Any]] = None

    # Fault injection
    reject_auth: bool = False
    respond_to_commands: bool = True

    @property
    def watts(self) -> int:
        """Current draw, proportional to level."""
        return round(self.max_watts * self.level / LEVEL_MAX)

    def get_metrics(self) -> dict[str, Any]:
        return {
            FIELD_LLID: self.load_id,
            FIELD_LEVEL: self.level,
            FIELD_POWER: self.watts,
            FIELD_LIGHTPAD_METRICS: [
                {FIELD_LPID: self.lightpad_id, FIELD_LEVEL: self.level, FIELD_POWER: self.watts},
            ],
        }
