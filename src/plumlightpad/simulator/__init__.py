# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Plum Lightpad simulator submodule.

This module provides a simulated Lightpad that speaks the same framing
as the real device. Useful for testing clients without real hardware.

The simulator can:
- Check the house access token and reject it on demand
- Answer every client command, or stay silent to provoke timeouts
- Push dimmer, power and motion events, or arbitrary and malformed ones
- Drop client connections as if the device restarted
- Replay scripted scenarios written in YAML

Example usage:
    from plumlightpad.simulator import LightpadSimulator
    simulator = LightpadSimulator(port=0)
    await simulator.start()
    simulator.emit_motion(112)
"""

from .state import LightpadSimulatorState
from .protocol import HandlerError, CommandRegistry, LightpadSimulatorProtocol
from .server import LightpadSimulator
from .scripting import (
    Script,
    ScriptRunner,
    ScriptStep,
    ScriptError,
    AssertionFailed,
    get_builtin_script,
    list_builtin_scripts,
)

__all__ = [
    # Main classes
    "LightpadSimulator",
    "LightpadSimulatorProtocol",
    "LightpadSimulatorState",
    # Command registry
    "HandlerError",
    "CommandRegistry",
    # Scripting
    "Script",
    "ScriptRunner",
    "ScriptStep",
    "ScriptError",
    "AssertionFailed",
    "get_builtin_script",
    "list_builtin_scripts",
]
