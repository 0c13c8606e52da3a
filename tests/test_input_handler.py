import subprocess

import pytest

from remote_mouse import input_handler
from remote_mouse.errors import CapabilityUnavailable, InvalidInput
from remote_mouse.input_handler import PynputCursor, XdotoolCursor, check_button, get_cursor_control


class Recorder:
    def __init__(self, stdout="", error=None):
        self.stdout = stdout
        self.error = error
        self.calls = []
    
    def __call__(self, args, **kwargs):
        self.calls.append(args[1:])
        if self.error:
            raise self.error
        return subprocess.CompletedProcess(args, 0, stdout=self.stdout, stderr="")


@pytest.fixture
def xdotool(monkeypatch):
    monkeypatch.setattr(input_handler.shutil, "which", lambda name: "/usr/bin/" + name)
    return XdotoolCursor()


def test_check_button():
    assert check_button("left") == "left"
    with pytest.raises(InvalidInput):
        check_button("middle")


def test_xdotool_missing(monkeypatch):
    monkeypatch.setattr(input_handler.shutil, "which", lambda name: None)
    with pytest.raises(CapabilityUnavailable):
        XdotoolCursor()


def test_xdotool_position(xdotool, monkeypatch):
    run = Recorder(stdout="X=640\nY=360\nSCREEN=0\nWINDOW=1234\n")
    monkeypatch.setattr(input_handler.subprocess, "run", run)
    assert xdotool.get_position() == (640, 360)
    assert run.calls == [["getmouselocation", "--shell"]]


def test_xdotool_move_and_click(xdotool, monkeypatch):
    run = Recorder()
    monkeypatch.setattr(input_handler.subprocess, "run", run)
    xdotool.move_to(10, 20)
    xdotool.click("right")
    assert run.calls == [["mousemove", "10", "20"], ["click", "3"]]


def test_xdotool_failure_is_capability_error(xdotool, monkeypatch):
    run = Recorder(error=subprocess.TimeoutExpired("xdotool", 2))
    monkeypatch.setattr(input_handler.subprocess, "run", run)
    with pytest.raises(CapabilityUnavailable):
        xdotool.move_to(1, 1)


def test_xdotool_garbage_output(xdotool, monkeypatch):
    monkeypatch.setattr(input_handler.subprocess, "run", Recorder(stdout="nope"))
    with pytest.raises(CapabilityUnavailable):
        xdotool.get_position()


def test_unknown_backend():
    with pytest.raises(CapabilityUnavailable):
        get_cursor_control("carrier-pigeon")


class DeadDisplayMouse:
    """Stands in for a pynput Controller whose X connection dropped."""
    
    @property
    def position(self):
        raise OSError("X connection broken")
    
    @position.setter
    def position(self, value):
        raise OSError("X connection broken")
    
    def click(self, button):
        raise OSError("X connection broken")


@pytest.fixture
def dead_pynput():
    cursor = PynputCursor.__new__(PynputCursor)
    cursor._mouse = DeadDisplayMouse()
    cursor._buttons = {"left": "L", "right": "R"}
    return cursor


def test_pynput_errors_are_capability_errors(dead_pynput):
    with pytest.raises(CapabilityUnavailable):
        dead_pynput.get_position()
    with pytest.raises(CapabilityUnavailable):
        dead_pynput.move_to(1, 2)
    with pytest.raises(CapabilityUnavailable):
        dead_pynput.click("left")


def test_pynput_invalid_button_is_still_invalid_input(dead_pynput):
    with pytest.raises(InvalidInput):
        dead_pynput.click("middle")
