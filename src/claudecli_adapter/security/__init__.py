"""Command and file-operation security policy."""

from claudecli_adapter.security.default import DefaultSecurityPolicy
from claudecli_adapter.security.policy import ApprovalResult, FileOperation, SecurityPolicy

__all__ = ["ApprovalResult", "DefaultSecurityPolicy", "FileOperation", "SecurityPolicy"]
