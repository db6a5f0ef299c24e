from .demux import DemuxState, StreamDemultiplexer, normalize_file_name
from .directives import DEFAULT_SYNTAX, Directive, DirectiveKind, TagParser, strip_directives
from .transport import (
    DoneSentinel,
    GenerationRequest,
    GenerationTransport,
    HttpGenerationTransport,
    SSELineDecoder,
    StatusUpdate,
    TextFragment,
    TransportEvent,
    parse_stream_line,
)

__all__ = [
    "DemuxState",
    "StreamDemultiplexer",
    "normalize_file_name",
    "DEFAULT_SYNTAX",
    "Directive",
    "DirectiveKind",
    "TagParser",
    "strip_directives",
    "DoneSentinel",
    "GenerationRequest",
    "GenerationTransport",
    "HttpGenerationTransport",
    "SSELineDecoder",
    "StatusUpdate",
    "TextFragment",
    "TransportEvent",
    "parse_stream_line",
]
