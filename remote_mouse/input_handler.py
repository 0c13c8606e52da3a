"""
Cursor control backends.

The integrator only talks to the small ``CursorControl`` interface:
read the absolute position, move to an absolute position, click.
xdotool is driven via subprocess calls for zero Python memory overhead;
pynput is used where xdotool is not installed (macOS, Windows, Wayland
sessions with an X bridge).
"""

import abc
import shutil
import subprocess
import threading
from typing import Dict, Optional, Tuple

from .errors import CapabilityUnavailable, InvalidInput

# Accepted click types, mapped to X11 button numbers
BUTTONS = {
    "left": 1,
    "right": 3,
}


def check_button(button: str) -> str:
    """Return ``button`` if it is a supported click type, else raise InvalidInput."""
    if not isinstance(button, str) or button not in BUTTONS:
        raise InvalidInput("Invalid click type")
    return button


class CursorControl(abc.ABC):
    """
    Host cursor capability.
    
    Calls are synchronous. Implementations raise CapabilityUnavailable
    when the underlying primitive cannot be reached.
    """
    
    name = "abstract"
    
    @abc.abstractmethod
    def get_position(self) -> Tuple[int, int]:
        """Return the current absolute cursor position."""
    
    @abc.abstractmethod
    def move_to(self, x: int, y: int) -> None:
        """Move the cursor to an absolute pixel position."""
    
    @abc.abstractmethod
    def click(self, button: str) -> None:
        """Click ``"left"`` or ``"right"`` at the current position."""


class XdotoolCursor(CursorControl):
    """
    Cursor control using xdotool.
    
    xdotool is used via subprocess to avoid Python library overhead.
    """
    
    name = "xdotool"
    
    def __init__(self):
        self._xdotool_path = shutil.which("xdotool")
        
        if not self._xdotool_path:
            raise CapabilityUnavailable(
                "xdotool not found. Please install it:\n"
                "  sudo apt install xdotool"
            )
    
    def _run_xdotool(self, *args: str) -> str:
        """
        Run xdotool with given arguments.
        
        Returns:
            The command's standard output
        
        Raises:
            CapabilityUnavailable: if xdotool fails or hangs
        """
        try:
            result = subprocess.run(
                [self._xdotool_path, *args],
                check=True,
                capture_output=True,
                text=True,
                timeout=2
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            raise CapabilityUnavailable(f"xdotool {args[0]} failed: {e}") from e
        return result.stdout
    
    def get_position(self) -> Tuple[int, int]:
        output = self._run_xdotool("getmouselocation", "--shell")
        
        # Output is KEY=VALUE lines: X=..., Y=..., SCREEN=..., WINDOW=...
        values: Dict[str, str] = {}
        for line in output.splitlines():
            key, _, value = line.partition("=")
            values[key.strip()] = value.strip()
        
        try:
            return int(values["X"]), int(values["Y"])
        except (KeyError, ValueError) as e:
            raise CapabilityUnavailable(f"Unexpected xdotool output: {output!r}") from e
    
    def move_to(self, x: int, y: int) -> None:
        self._run_xdotool("mousemove", str(int(x)), str(int(y)))
    
    def click(self, button: str) -> None:
        self._run_xdotool("click", str(BUTTONS[check_button(button)]))


class PynputCursor(CursorControl):
    """Cursor control using pynput's mouse controller."""
    
    name = "pynput"
    
    def __init__(self):
        try:
            from pynput.mouse import Button, Controller
        except ImportError as e:
            raise CapabilityUnavailable(
                "pynput is not installed. Please install it:\n"
                "  pip install pynput"
            ) from e
        
        self._buttons = {"left": Button.left, "right": Button.right}
        try:
            self._mouse = Controller()
        except Exception as e:
            # pynput raises backend-specific errors when no display is reachable
            raise CapabilityUnavailable(f"Failed to initialize pynput: {e}") from e
    
    def get_position(self) -> Tuple[int, int]:
        try:
            x, y = self._mouse.position
        except Exception as e:
            raise CapabilityUnavailable(f"pynput position failed: {e}") from e
        return int(x), int(y)
    
    def move_to(self, x: int, y: int) -> None:
        try:
            self._mouse.position = (int(x), int(y))
        except Exception as e:
            raise CapabilityUnavailable(f"pynput move failed: {e}") from e
    
    def click(self, button: str) -> None:
        pynput_button = self._buttons[check_button(button)]
        try:
            self._mouse.click(pynput_button)
        except Exception as e:
            raise CapabilityUnavailable(f"pynput click failed: {e}") from e


BACKENDS = {
    "xdotool": XdotoolCursor,
    "pynput": PynputCursor,
}


# Singleton instances, one per backend name
_instances: Dict[str, CursorControl] = {}
_instances_lock = threading.Lock()


def get_cursor_control(backend: Optional[str] = "auto") -> CursorControl:
    """
    Get or create the cursor control instance.
    
    Args:
        backend: "xdotool", "pynput" or "auto" (xdotool when installed)
    
    Raises:
        CapabilityUnavailable: if the backend cannot be initialized
    """
    backend = backend or "auto"
    if backend == "auto":
        backend = "xdotool" if shutil.which("xdotool") else "pynput"
    
    if backend not in BACKENDS:
        raise CapabilityUnavailable(f"Unknown cursor backend: {backend}")
    
    with _instances_lock:
        if backend not in _instances:
            _instances[backend] = BACKENDS[backend]()
        return _instances[backend]
