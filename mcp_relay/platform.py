"""
MCP Relay Platform Abstraction
------------------------------
Per-user path resolution and host detection.

The relay usually runs inside WSL while the tool service listens on the
Windows host, so the default server URL is derived from the WSL resolver
configuration when one is available.
"""

import os
import re
import sys
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger("McpRelay.Platform")

# ---------------------------------------------------------------------------
# Platform detection
# ---------------------------------------------------------------------------

IS_WINDOWS = sys.platform == "win32"
IS_LINUX = sys.platform.startswith("linux")

DEFAULT_SERVER_PORT = 60100
CACHE_DIR_NAME = ".mcp-relay-cache"
TOOLS_CACHE_FILE_NAME = "tools-list-cache.json"

_NAMESERVER_RE = re.compile(r"^\s*nameserver\s+(\d+\.\d+\.\d+\.\d+)", re.MULTILINE)


def is_running_in_wsl(proc_version: Path = Path("/proc/version")) -> bool:
    """Detect a Windows Subsystem for Linux kernel."""
    if not IS_LINUX:
        return False
    if os.environ.get("WSL_DISTRO_NAME"):
        return True
    try:
        return "microsoft" in proc_version.read_text(encoding="utf-8").lower()
    except OSError:
        return False


def read_wsl_host_ip(resolv_conf: Path = Path("/etc/resolv.conf")) -> Optional[str]:
    """Return the first IPv4 nameserver, which WSL points at the Windows host."""
    try:
        content = resolv_conf.read_text(encoding="utf-8")
    except OSError as exc:
        logger.debug("Unable to read %s: %s", resolv_conf, exc)
        return None
    match = _NAMESERVER_RE.search(content)
    return match.group(1) if match else None


def resolve_default_server_url() -> str:
    """
    Resolve the tool service URL.

    Priority: MCP_RELAY_SERVER_URL env var > WSL host nameserver > localhost.
    """
    env_url = os.environ.get("MCP_RELAY_SERVER_URL", "").strip()
    if env_url:
        return env_url
    if is_running_in_wsl():
        host_ip = read_wsl_host_ip()
        if host_ip:
            return f"http://{host_ip}:{DEFAULT_SERVER_PORT}"
        logger.warning("WSL detected but no nameserver found; falling back to localhost")
    return f"http://localhost:{DEFAULT_SERVER_PORT}"


# ---------------------------------------------------------------------------
# Directory resolution
# ---------------------------------------------------------------------------

def get_cache_dir() -> Path:
    """
    Get the per-user cache directory.

    Priority: MCP_RELAY_CACHE_DIR env var > ~/.mcp-relay-cache.
    Contains: tools-list-cache.json
    """
    env_val = os.environ.get("MCP_RELAY_CACHE_DIR")
    if env_val:
        return Path(env_val)
    return Path.home() / CACHE_DIR_NAME
