"""Host environment collaborators and their local implementations."""

from linemarks.host.local import (
    JsonFileStateSlot,
    LocalDocumentSource,
    LocalFileSystem,
    LocalTextDocument,
    LoggingNavigator,
    MemoryStateSlot,
    path_to_uri,
    uri_to_path,
)
from linemarks.host.protocol import (
    DocumentSource,
    FileSystem,
    Navigator,
    StateSlot,
    TextDocument,
)

__all__ = [
    "DocumentSource",
    "FileSystem",
    "JsonFileStateSlot",
    "LocalDocumentSource",
    "LocalFileSystem",
    "LocalTextDocument",
    "LoggingNavigator",
    "MemoryStateSlot",
    "Navigator",
    "StateSlot",
    "TextDocument",
    "path_to_uri",
    "uri_to_path",
]
