"""tether — typed asyncio client for the Claude agent CLI."""

from tether.client import AgentClient
from tether.config import ConfigError, TetherConfig, load_config
from tether.errors import (
    CliMissingError,
    ProcessError,
    ProcessTimeoutError,
    ProtocolDecodeError,
    TetherError,
    TransportBusyError,
)
from tether.options import (
    AgentDefinition,
    AgentOptions,
    HookEvent,
    HookMatcher,
    McpServerConfig,
)
from tether.result import QueryResult
from tether.transport import ProcessTransport, TransportState

__version__ = "0.1.0"

__all__ = [
    "AgentClient",
    "AgentDefinition",
    "AgentOptions",
    "CliMissingError",
    "ConfigError",
    "HookEvent",
    "HookMatcher",
    "McpServerConfig",
    "ProcessError",
    "ProcessTimeoutError",
    "ProcessTransport",
    "ProtocolDecodeError",
    "QueryResult",
    "TetherConfig",
    "TetherError",
    "TransportBusyError",
    "TransportState",
    "__version__",
]
