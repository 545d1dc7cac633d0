from typing import Literal

ChallengePhase = Literal[1, 2]
ChallengeStatus = Literal["active", "upcoming", "completed"]
EntryStatus = Literal["active", "passed", "failed", "expired"]
FundedStatus = Literal["pending", "active", "suspended", "revoked"]
VaultStatus = Literal["active", "frozen", "closed"]

TERMINAL_ENTRY_STATUSES = ("passed", "failed", "expired")

# Rejected.code values
NOT_FOUND = "NOT_FOUND"
NOT_ACTIVE = "NOT_ACTIVE"
NOT_PENDING = "NOT_PENDING"
NOT_ELIGIBLE = "NOT_ELIGIBLE"
NO_PROFIT = "NO_PROFIT"
LOSS_LIMIT = "LOSS_LIMIT"
