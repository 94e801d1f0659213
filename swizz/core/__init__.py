"""Core call-audio orchestration.

- FrameBuffer / encode_wav: chunking and container for transcription
- classify: human vs automated speaker heuristic
- ConversationState / CallSession: per-call state
- SpeechPipeline: STT → classify → LLM → TTS for one chunk
- SessionController: stream events, ordering and the pipeline worker
"""

from swizz.core.call_log import CallEventLog
from swizz.core.classifier import SpeakerClass, SpeakerScore, classify, score
from swizz.core.controller import SessionController, SessionState
from swizz.core.conversation_state import ConversationState
from swizz.core.frame_buffer import FrameBuffer
from swizz.core.pipeline import (
    AudioSender,
    PipelineConfig,
    PipelineMetrics,
    SpeechPipeline,
    TurnOutcome,
    TurnResult,
)
from swizz.core.session import CallSession
from swizz.core.wav import WavHeader, encode_wav, parse_wav_header

__all__ = [
    # Audio chunking
    "FrameBuffer",
    "WavHeader",
    "encode_wav",
    "parse_wav_header",
    # Classification
    "SpeakerClass",
    "SpeakerScore",
    "classify",
    "score",
    # State
    "CallSession",
    "ConversationState",
    "CallEventLog",
    # Pipeline
    "SpeechPipeline",
    "PipelineConfig",
    "PipelineMetrics",
    "AudioSender",
    "TurnOutcome",
    "TurnResult",
    # Session control
    "SessionController",
    "SessionState",
]
