from scoutwatch.domain.models import (
    Form,
    FormType,
    IngestReport,
    Item,
    PersistOutcome,
    ProtocolLayout,
    Record,
)

__all__ = ["Form", "FormType", "IngestReport", "Item", "PersistOutcome", "ProtocolLayout", "Record"]
