"""PR timeline extractor for merge attribution."""


def extract_merge_actor(timeline: list[dict]) -> str | None:
    """Login of whoever merged the PR, from its `merged` timeline event."""
    for event in timeline:
        if event.get("event") != "merged":
            continue
        actor = event.get("actor") or {}
        if isinstance(actor, dict) and actor.get("login"):
            return actor["login"]
    return None
