from .download_resolver import DownloadResolver
from .stream_orchestrator import StreamOrchestrator, download_link

__all__ = ["DownloadResolver", "StreamOrchestrator", "download_link"]
