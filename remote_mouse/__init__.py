"""
Remote Mouse - Use a phone as a touchpad for your computer

A small host server turns relative touch motion sent over the local
network into smoothed, bounded cursor moves and clicks.

Features:
- Velocity-weighted touch sampling with adjustable sensitivity
- Host-side clamping and exponential smoothing of untrusted deltas
- HTTP endpoints plus a WebSocket channel for pipelined motion
- Cursor control via xdotool or pynput

Usage:
    remote-mouse start   # Start the server
    remote-mouse stop    # Stop the server
    remote-mouse status  # Check server status
    remote-mouse ip      # Show local IP address
    remote-mouse probe   # Test a connection to a host
"""

__version__ = "1.0.0"
__author__ = "Remote Mouse"
