"""
Session management for workchat.

- store: durable run id storage
- state: session lifecycle state machine and message routing
- reconciler: raw messages -> ordered, deduplicated timeline
- dispatcher: follow-up delivery and the end signal
- chat: MultiTurnChat, the facade tying them together
"""
