# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Scripted scenarios for the Lightpad simulator.

A script is a named list of steps. Scripts can be written as YAML:

    name: "Motion then dim"
    description: "Someone walks in and dims the light"
    steps:
      - action: motion
        signal: 112
      - action: wait
        seconds: 0.5
      - action: level
        level: 64
      - action: assert
        condition: watts
        value: 15

or as simple one-line commands:

    motion 112
    wait 0.5
    level 64
    assert watts 15
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional

import yaml

from ..const import FIELD_TYPE

if TYPE_CHECKING:
    from .server import LightpadSimulator

logger = logging.getLogger(__name__)

BUILTIN_SCRIPTS_DIR = Path(__file__).parent / "scripts"

# State fields that the "set" action may change
SETTABLE_FIELDS = {
    "reject_auth": bool,
    "respond_to_commands": bool,
    "max_watts": int,
    "house_access_token": str,
}


class ScriptError(Exception):
    """Raised when a script cannot be parsed or a step is malformed."""


class AssertionFailed(ScriptError):
    """Raised when an assert step does not hold."""


@dataclass
class ScriptStep:
    """A single step of a script."""

    action: str
    params: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        if not self.params:
            return self.action
        args = " ".join(f"{k}={v}" for k, v in self.params.items())
        return f"{self.action} {args}"


@dataclass
class Script:
    """A named sequence of steps."""

    name: str
    steps: list[ScriptStep]
    description: str = ""

    @classmethod
    def from_yaml(cls, content: str) -> "Script":
        """Parse a script from YAML text."""
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ScriptError(f"Invalid YAML: {e}") from e

        if not isinstance(data, dict):
            raise ScriptError("Script must be a YAML dictionary")

        steps = []
        for i, raw in enumerate(data.get("steps") or [], start=1):
            if isinstance(raw, str):
                steps.append(ScriptStep(action=raw))
            elif isinstance(raw, dict):
                if "action" not in raw:
                    raise ScriptError(f"Step {i} is missing 'action'")
                params = {k: v for k, v in raw.items() if k != "action"}
                steps.append(ScriptStep(action=str(raw["action"]), params=params))
            else:
                raise ScriptError(f"Step {i} has an invalid step format: {raw!r}")

        return cls(
            name=str(data.get("name", "Unnamed")),
            steps=steps,
            description=str(data.get("description", "")),
        )

    @classmethod
    def from_file(cls, path: Path) -> "Script":
        with open(path, "r") as f:
            return cls.from_yaml(f.read())

    @classmethod
    def from_simple_commands(cls, commands: list[str], name: str = "Inline") -> "Script":
        """Parse one-line commands such as ``level 128`` or ``wait 1``.

        Blank lines and lines starting with ``#`` are skipped.
        """
        steps = []
        for line in commands:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            steps.append(_parse_simple_command(line))
        return cls(name=name, steps=steps)


def _scalar(text: str) -> Any:
    """Interpret a command argument the way YAML would (ints, bools, ...)."""
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        return text


def _parse_simple_command(line: str) -> ScriptStep:
    parts = line.split()
    action, args = parts[0], parts[1:]

    def need(count: int):
        if len(args) < count:
            raise ScriptError(f"'{action}' needs {count} argument(s): {line}")

    if action == "emit":
        need(1)
        params: dict[str, Any] = {"type": args[0]}
        for arg in args[1:]:
            key, sep, value = arg.partition("=")
            if not sep:
                raise ScriptError(f"Expected key=value, got {arg!r}: {line}")
            params[key] = _scalar(value)
        return ScriptStep(action, params)
    if action == "raw":
        return ScriptStep(action, {"body": line[len("raw"):].strip()})
    if action == "log":
        return ScriptStep(action, {"message": line[len("log"):].strip()})
    if action == "level":
        need(1)
        return ScriptStep(action, {"level": int(args[0])})
    if action == "motion":
        need(1)
        return ScriptStep(action, {"signal": int(args[0])})
    if action == "power":
        need(1)
        return ScriptStep(action, {"watts": int(args[0])})
    if action == "wait":
        need(1)
        return ScriptStep(action, {"seconds": float(args[0])})
    if action == "assert":
        need(2)
        return ScriptStep(action, {"condition": args[0], "value": " ".join(args[1:])})
    if action == "set":
        need(2)
        return ScriptStep(action, {"field": args[0], "value": " ".join(args[1:])})
    return ScriptStep(action, {"args": args} if args else {})


def list_builtin_scripts() -> list[tuple[str, str]]:
    """Return (name, description) for every built-in script."""
    scripts = []
    for path in sorted(BUILTIN_SCRIPTS_DIR.glob("*.yaml")):
        try:
            script = Script.from_file(path)
        except ScriptError as e:
            logger.warning(f"Skipping built-in script {path.name}: {e}")
            continue
        scripts.append((path.stem, script.description))
    return scripts


def get_builtin_script(name: str) -> Script:
    path = BUILTIN_SCRIPTS_DIR / f"{name}.yaml"
    if not path.exists():
        raise ScriptError(f"Unknown built-in script: {name}")
    return Script.from_file(path)


class ScriptRunner:
    """Executes scripts against a running LightpadSimulator."""

    def __init__(self, simulator: "LightpadSimulator"):
        self.simulator = simulator
        self._stop_requested = False
        self._actions: dict[str, Callable[[dict[str, Any]], Any]] = {
            "emit": self._do_emit,
            "raw": self._do_raw,
            "level": self._do_level,
            "motion": self._do_motion,
            "power": self._do_power,
            "wait": self._do_wait,
            "disconnect": self._do_disconnect,
            "garbage": self._do_garbage,
            "set": self._do_set,
            "assert": self._do_assert,
            "log": self._do_log,
        }

    def stop(self):
        """Stop the running script before its next step."""
        self._stop_requested = True

    async def run(self, script: Script, verbose: bool = True) -> bool:
        """Run a script.

        Returns:
            True if every step ran, False if a step failed or the script was
            stopped.
        """
        self._stop_requested = False
        log = logger.info if verbose else logger.debug
        log(f"Running script: {script.name}")

        for i, step in enumerate(script.steps, start=1):
            if self._stop_requested:
                logger.info(f"Script '{script.name}' stopped at step {i}")
                return False

            log(f"  [{i}/{len(script.steps)}] {step}")
            handler = self._actions.get(step.action)
            if handler is None:
                logger.error(f"Script '{script.name}' step {i}: unknown action '{step.action}'")
                return False

            try:
                result = handler(step.params)
                if asyncio.iscoroutine(result):
                    await result
            except (ScriptError, KeyError, TypeError, ValueError) as e:
                logger.error(f"Script '{script.name}' step {i} ({step}) failed: {e}")
                return False

        log(f"Script '{script.name}' completed")
        return True

    # =========================================================================
    # Actions
    # =========================================================================

    def _do_emit(self, params: dict[str, Any]):
        fields = dict(params)
        event_type = fields.pop("type")
        self.simulator.broadcast_event({FIELD_TYPE: event_type, **fields})

    def _do_raw(self, params: dict[str, Any]):
        self.simulator.emit_raw(str(params["body"]).encode("utf-8"))

    def _do_level(self, params: dict[str, Any]):
        self.simulator.set_level(int(params["level"]))

    def _do_motion(self, params: dict[str, Any]):
        self.simulator.emit_motion(int(params["signal"]))

    def _do_power(self, params: dict[str, Any]):
        self.simulator.emit_power(int(params["watts"]))

    async def _do_wait(self, params: dict[str, Any]):
        await asyncio.sleep(float(params["seconds"]))

    def _do_disconnect(self, params: dict[str, Any]):
        self.simulator.drop_connections()

    def _do_garbage(self, params: dict[str, Any]):
        self.simulator.send_garbage()

    def _do_set(self, params: dict[str, Any]):
        name = params["field"]
        kind = SETTABLE_FIELDS.get(name)
        if kind is None:
            raise ScriptError(f"Cannot set '{name}'")
        value = _scalar(str(params["value"])) if kind is not str else str(params["value"])
        if not isinstance(value, kind):
            raise ScriptError(f"'{name}' expects {kind.__name__}, got {params['value']!r}")
        setattr(self.simulator.state, name, value)

    def _condition(self, name: str) -> Any:
        state = self.simulator.state
        conditions = {
            "level": lambda: state.level,
            "watts": lambda: state.watts,
            "motion": lambda: state.motion_signal,
            "clients": lambda: len(self.simulator.authenticated_clients),
            "glow": lambda: state.glow is not None,
            "reject_auth": lambda: state.reject_auth,
            "respond_to_commands": lambda: state.respond_to_commands,
        }
        if name not in conditions:
            raise ScriptError(f"Unknown condition '{name}'")
        return conditions[name]()

    def _do_assert(self, params: dict[str, Any]):
        condition = params["condition"]
        actual = self._condition(condition)
        expected = params["value"]
        if isinstance(expected, str):
            expected = _scalar(expected)
        if actual != expected:
            raise AssertionFailed(f"{condition} is {actual!r}, expected {expected!r}")

    def _do_log(self, params: dict[str, Any]):
        logger.info(f"Script: {params.get('message', '')}")
