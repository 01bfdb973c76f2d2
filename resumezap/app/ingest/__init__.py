from resumezap.app.ingest.content import ExtractedMessage, extract_messages
from resumezap.app.ingest.fetcher import FetchResult, MessageFetcher
from resumezap.app.ingest.timestamps import message_timestamp_ms, to_epoch_ms
from resumezap.app.ingest.windows import WindowSelection, WindowSelector

__all__ = [
    "ExtractedMessage",
    "FetchResult",
    "MessageFetcher",
    "WindowSelection",
    "WindowSelector",
    "extract_messages",
    "message_timestamp_ms",
    "to_epoch_ms",
]
