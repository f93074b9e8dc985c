"""Data models for agentpack.

Import from submodules:
- flow: Flow, Condition, SwitchExpression, PlatformDefinition
- ledger: Ledger, LedgerEntry, MergeMapping
- plan: PlannedTarget, TargetGroup, OwnershipContext, ConflictStrategy
"""
