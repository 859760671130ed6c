"""Debate session core (streaming orchestration).

This package implements one debate request lifecycle:
- request validation and run planning (single run or Best-of-N)
- concurrent per-(run, persona) generation multiplexed into one event stream
- a framed single-writer channel and its client-side replay
- best-effort summary fan-out and persistence

Generation, search and storage backends are injected via ports.
"""

from taxdebate.core.debate_session.api import (
    SINGLE_RUN_ID,
    BufferKey,
    DebateOutcome,
    Delta,
    Done,
    ErrorEvent,
    Init,
    PersonaBinding,
    RunDescriptor,
    Searching,
    SourceDocument,
    Sources,
    StreamEvent,
)
from taxdebate.core.debate_session.errors import (
    ChannelError,
    PersistenceError,
    ProtocolError,
    ValidationError,
)
from taxdebate.core.debate_session.planner import DebateRequest, RunConfig, parse_request, plan
from taxdebate.core.debate_session.channel import EventChannel, encode_frame
from taxdebate.core.debate_session.multiplexer import GenerationMultiplexer
from taxdebate.core.debate_session.replay import ClientReplayStateMachine, FrameDecoder, ReplayState
from taxdebate.core.debate_session.summary import SummaryFanout, build_record
from taxdebate.core.debate_session.stores import SqliteDebateStore
from taxdebate.core.debate_session.session import DebateSession

__all__ = [
    "SINGLE_RUN_ID",
    "BufferKey",
    "ChannelError",
    "ClientReplayStateMachine",
    "DebateOutcome",
    "DebateRequest",
    "DebateSession",
    "Delta",
    "Done",
    "ErrorEvent",
    "EventChannel",
    "FrameDecoder",
    "GenerationMultiplexer",
    "Init",
    "PersistenceError",
    "PersonaBinding",
    "ProtocolError",
    "ReplayState",
    "RunConfig",
    "RunDescriptor",
    "Searching",
    "SourceDocument",
    "Sources",
    "SqliteDebateStore",
    "StreamEvent",
    "SummaryFanout",
    "ValidationError",
    "build_record",
    "encode_frame",
    "parse_request",
    "plan",
]
