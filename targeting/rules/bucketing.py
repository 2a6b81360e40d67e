"""Sticky percentage bucketing for rollouts."""

from __future__ import annotations

import hashlib

BUCKET_COUNT = 100


def bucket(entity_id: str, viewer_id: str) -> int:
    """Map ``(entity_id, viewer_id)`` to a stable bucket in ``[0, 100)``.

    The digest is only used to spread identifiers uniformly, never for
    security, so the same pair always lands in the same bucket.
    """

    digest = hashlib.md5(
        f"{entity_id}:{viewer_id}".encode("utf-8"), usedforsecurity=False
    ).digest()
    return int.from_bytes(digest[:8], "big") % BUCKET_COUNT


def in_rollout(entity_id: str, viewer_id: str, rollout: float | None) -> bool:
    """Return True when the viewer falls inside the *rollout* percentage.

    ``None`` means the rule carries no rollout gate.
    """

    if rollout is None:
        return True
    rollout = min(max(float(rollout), 0.0), float(BUCKET_COUNT))
    if rollout <= 0:
        return False
    return bucket(entity_id, viewer_id) < rollout


__all__ = ["BUCKET_COUNT", "bucket", "in_rollout"]
