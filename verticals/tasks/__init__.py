"""Tasks vertical: the task lifecycle and engagement engine.

Every piece of task state logic in one domain:
- Per-user and group completion over multi-assignee tasks
- Priority tiers and unread-aware ordering relative to a viewer
- Comment watermarks (session or persisted read receipts)
- Nudges that shock pending assignees and notify them
- Free-form tags with a reserved priority flag
- Stateless list orchestration into a per-viewer board
"""
