from opsdesk.importer.bulk import BulkImporter, ImportSummary
from opsdesk.importer.source import EventSource, ImportEvent, JsonlDirectorySource


def import_directory(session, root: str) -> ImportSummary:
    return BulkImporter(session).run(JsonlDirectorySource(root))


__all__ = [
    "BulkImporter",
    "EventSource",
    "ImportEvent",
    "ImportSummary",
    "JsonlDirectorySource",
    "import_directory",
]
