"""Event-driven relational core: graph arena, scheduler and topology engine."""
