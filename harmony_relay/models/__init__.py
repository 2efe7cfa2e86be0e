from .chat import (  # noqa: F401
    Message,
    ChatStreamRequest,
    ChatOnceRequest,
    ChatOnceResponse,
    DeltaEvent,
    DoneEvent,
    ErrorEvent,
    ClientEvent,
)
from .agents import AgentProfile, CreateAgentBody  # noqa: F401
from .providers import ProviderModel, ProviderInfo  # noqa: F401
