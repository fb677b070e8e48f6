"""
Error kinds raised by the funnel, SLA and storage layers.

Client-input errors subclass ValueError so callers that already catch
ValueError (form validation, query parsing) keep working.
"""


class InvalidStageError(ValueError):
    """Target stage is not a member of the record's funnel stage set."""

    def __init__(self, funnel_type, stage_id):
        self.funnel_type = funnel_type
        self.stage_id = stage_id
        super().__init__(f"Invalid stage for {funnel_type}: {stage_id!r}")


class DegenerateIntervalError(ValueError):
    """SLA deadline is not strictly after the creation time."""

    def __init__(self, created_at, deadline):
        self.created_at = created_at
        self.deadline = deadline
        super().__init__(
            f"SLA deadline {deadline} must be after creation time {created_at}"
        )


class UnknownRoleError(ValueError):
    """Role value is not one of the enumerated roles."""


class StaleRecordError(RuntimeError):
    """Stored record version no longer matches the version the caller read."""

    def __init__(self, record_id, expected_version, actual_version=None):
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Record {record_id} changed since it was read "
            f"(expected version {expected_version}, found {actual_version})"
        )
