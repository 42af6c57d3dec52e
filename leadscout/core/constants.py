"""Application constants."""

# Display formatting
SEPARATOR_LINE = "=" * 60

# Company lifecycle status
COMPANY_STATUS_ACTIVE = "active"
COMPANY_STATUS_INACTIVE = "inactive"

# Sync job types (stable interface, consumed by status reporting)
JOB_TYPE_FULL = "full"
JOB_TYPE_INCREMENTAL = "incremental"
JOB_TYPE_ROLES = "roles"
JOB_TYPE_SUBENTITIES = "subentities"

JOB_TYPES = (
    JOB_TYPE_FULL,
    JOB_TYPE_INCREMENTAL,
    JOB_TYPE_ROLES,
    JOB_TYPE_SUBENTITIES,
)

# Sync job status values
JOB_STATUS_RUNNING = "running"
JOB_STATUS_COMPLETED = "completed"
JOB_STATUS_FAILED = "failed"

# Lead score classification
SCORE_CLASS_HIGH = "high"
SCORE_CLASS_GOOD = "good"
SCORE_CLASS_LOW = "low"
