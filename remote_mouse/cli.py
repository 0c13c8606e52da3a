#!/usr/bin/env python3
"""
Remote Mouse CLI - Command line interface for starting/stopping the server.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

# PID file location
PID_FILE = Path("/tmp/remote-mouse.pid")


def get_pid() -> int | None:
    """Get PID from file if exists."""
    if PID_FILE.exists():
        try:
            pid = int(PID_FILE.read_text().strip())
            # Check if process is running
            os.kill(pid, 0)
            return pid
        except (ValueError, OSError):
            PID_FILE.unlink(missing_ok=True)
    return None


def write_pid() -> None:
    """Write current PID to file."""
    PID_FILE.write_text(str(os.getpid()))


def remove_pid() -> None:
    """Remove PID file."""
    PID_FILE.unlink(missing_ok=True)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def cmd_start(args) -> int:
    """Start the server."""
    existing_pid = get_pid()
    if existing_pid:
        print(f"❌ Remote Mouse is already running (PID: {existing_pid})")
        print(f"   Run 'remote-mouse stop' first")
        return 1
    
    # Import here to avoid loading when not needed
    from .config import reload_config
    from .errors import CapabilityUnavailable
    from .input_handler import get_cursor_control
    from .server import RemoteMouseServer
    
    setup_logging(args.verbose)
    config = reload_config(args.config)
    
    # Override with CLI args if provided
    if args.port:
        config.set("server", "port", args.port)
    if args.max_delta is not None:
        config.set("mouse", "max_delta", args.max_delta)
    if args.smoothing is not None:
        config.set("mouse", "smoothing", args.smoothing)
    if args.min_move is not None:
        config.set("mouse", "min_move", args.min_move)
    if args.backend:
        config.set("mouse", "backend", args.backend)
    
    # Fail early rather than on the first request
    try:
        cursor = get_cursor_control(config.backend)
        server = RemoteMouseServer(config, cursor)
    except CapabilityUnavailable as e:
        print(f"❌ Cursor control unavailable: {e}")
        return 1
    except ValueError as e:
        print(f"❌ Invalid configuration: {e}")
        return 1
    print(f"   Cursor backend: {cursor.name}")
    
    write_pid()
    
    try:
        server.run()
    finally:
        remove_pid()
    
    return 0


def cmd_stop(args) -> int:
    """Stop the server."""
    pid = get_pid()
    
    if not pid:
        print("ℹ️  Remote Mouse is not running")
        return 0
    
    try:
        os.kill(pid, signal.SIGTERM)
        print(f"✅ Stopped Remote Mouse (PID: {pid})")
        remove_pid()
        return 0
    except OSError as e:
        print(f"❌ Failed to stop: {e}")
        remove_pid()
        return 1


def cmd_status(args) -> int:
    """Check server status."""
    pid = get_pid()
    
    if pid:
        from .config import get_config
        
        config = get_config()
        print(f"✅ Remote Mouse is running (PID: {pid})")
        print(f"   URL: http://{config.host}:{config.port}")
        return 0
    else:
        print("❌ Remote Mouse is not running")
        return 1


def cmd_ip(args) -> int:
    """Show local IP address."""
    from .config import get_config, get_local_ip
    
    ip = get_local_ip()
    print(f"📍 Local IP: {ip}")
    print(f"   URL: http://{ip}:{get_config().port}")
    return 0


def cmd_config(args) -> int:
    """Show current configuration."""
    from .config import get_config, get_config_paths
    
    print("📝 Configuration:")
    print()
    
    print("   Config file search paths:")
    for path in get_config_paths():
        exists = "✓" if path.exists() else " "
        print(f"   [{exists}] {path}")
    print()
    
    config = get_config()
    print("   Current settings:")
    print(f"   - Host: {config.host}")
    print(f"   - Port: {config.port} (WebSocket {config.ws_port})")
    print(f"   - Max delta: {config.max_delta}")
    print(f"   - Smoothing: {config.smoothing}")
    print(f"   - Min move: {config.min_move}")
    print(f"   - Reset gap: {config.reset_gap_ms} ms")
    print(f"   - Backend: {config.backend}")
    print(f"   - Sensitivity: {config.sampler['base_sensitivity']} "
          f"({config.sampler['min_sensitivity']}-{config.sampler['max_sensitivity']})")
    
    return 0


def cmd_probe(args) -> int:
    """Run the connection handshake against a host."""
    from .client import RemoteMouseClient
    from .config import get_config
    from .errors import InvalidInput, TransportFailure
    
    config = get_config()
    port = args.port or config.port
    
    async def probe():
        async with RemoteMouseClient(args.host, port, timeout=config.client_timeout) as client:
            return await client.connect()
    
    try:
        x, y = asyncio.run(probe())
    except (InvalidInput, TransportFailure) as e:
        print(f"❌ Connection failed: {e}")
        return 1
    
    print(f"✅ Connected to http://{args.host}:{port}")
    print(f"   Cursor at ({x}, {y})")
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="remote-mouse",
        description="Use a phone as a touchpad for this computer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  remote-mouse start                  # Start with default settings
  remote-mouse start --port 9090      # Start on different port
  remote-mouse start --smoothing 0.5  # Heavier smoothing
  remote-mouse stop                   # Stop the server
  remote-mouse status                 # Check if running
  remote-mouse probe 192.168.1.20     # Test a host from this machine
        """
    )
    
    subparsers = parser.add_subparsers(dest="command", help="Commands")
    
    # Start command
    start_parser = subparsers.add_parser("start", help="Start the server")
    start_parser.add_argument("--port", "-p", type=int, help="Port number (default: 3000)")
    start_parser.add_argument("--max-delta", type=float, help="Largest per-event move in pixels (default: 100)")
    start_parser.add_argument("--smoothing", "-s", type=float, help="Smoothing factor 0-1 (default: 0.3)")
    start_parser.add_argument("--min-move", type=float, help="Smallest applied move in pixels (default: 1)")
    start_parser.add_argument("--backend", "-b", choices=["auto", "xdotool", "pynput"], help="Cursor backend")
    start_parser.add_argument("--config", "-c", type=Path, help="Config file path")
    start_parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    start_parser.set_defaults(func=cmd_start)
    
    # Stop command
    stop_parser = subparsers.add_parser("stop", help="Stop the server")
    stop_parser.set_defaults(func=cmd_stop)
    
    # Status command
    status_parser = subparsers.add_parser("status", help="Check server status")
    status_parser.set_defaults(func=cmd_status)
    
    # IP command
    ip_parser = subparsers.add_parser("ip", help="Show local IP address")
    ip_parser.set_defaults(func=cmd_ip)
    
    # Config command
    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.set_defaults(func=cmd_config)
    
    # Probe command
    probe_parser = subparsers.add_parser("probe", help="Test the connection to a host")
    probe_parser.add_argument("host", help="Host IP address")
    probe_parser.add_argument("--port", "-p", type=int, help="Port number (default: 3000)")
    probe_parser.set_defaults(func=cmd_probe)
    
    args = parser.parse_args(argv)
    
    if not args.command:
        parser.print_help()
        return 0
    
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
