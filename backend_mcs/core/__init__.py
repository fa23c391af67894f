"""Cross-cutting pieces shared by every stage: typed errors and the event bus."""
