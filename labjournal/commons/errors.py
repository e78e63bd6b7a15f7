class LabJournalError(Exception):
    """Base class for failures surfaced to callers of the journal core."""


class DecodeError(LabJournalError):
    """Import payload or stored document is not the expected JSON shape."""


class InvalidPayload(DecodeError):
    """The import text itself is not a JSON object or array of lab sheets."""


class StorageUnavailable(LabJournalError):
    """The backing medium could not be read."""


class EncodingFailed(LabJournalError):
    """Records could not be serialised for writing."""


class WriteFailed(LabJournalError):
    """The atomic write did not complete; the stored document is unchanged."""


class RecordNotFound(LabJournalError):
    def __init__(self, record_id):
        super().__init__(f"record {record_id} not found")
        self.record_id = record_id
