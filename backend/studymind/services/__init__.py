# Services module

# AI gateway access
from studymind.services.ai_gateway import (
    AIGateway,
    GatewayError,
    GatewayRateLimitError,
    GatewayCreditsError,
    GatewayServiceError,
    NoStreamError,
    UpstreamStream,
    get_gateway,
)

# Streaming
from studymind.services.sse_parser import SSEParser, collect_stream_text
from studymind.services.stream_splitter import StreamSplitter
from studymind.services.background import spawn_background, drain_background_tasks

# Persistence
from studymind.services.persistence import PersistenceWriter

# Materials
from studymind.services.material_chunker import chunk_text
from studymind.services.material_processor import MaterialProcessor, build_query_context
from studymind.services.storage import MaterialStorage, get_storage

# Gamification
from studymind.services.gamification import GamificationService, get_gamification_service

__all__ = [
    "AIGateway",
    "GatewayError",
    "GatewayRateLimitError",
    "GatewayCreditsError",
    "GatewayServiceError",
    "NoStreamError",
    "UpstreamStream",
    "get_gateway",
    "SSEParser",
    "collect_stream_text",
    "StreamSplitter",
    "spawn_background",
    "drain_background_tasks",
    "PersistenceWriter",
    "chunk_text",
    "MaterialProcessor",
    "build_query_context",
    "MaterialStorage",
    "get_storage",
    "GamificationService",
    "get_gamification_service",
]
