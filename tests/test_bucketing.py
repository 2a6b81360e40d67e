from targeting.rules.bucketing import BUCKET_COUNT, bucket, in_rollout


def _viewers(count: int = 500) -> list[str]:
    return [f"viewer-{index}" for index in range(count)]


def test_bucket_is_deterministic_and_in_range():
    for viewer in _viewers(200):
        first = bucket("flag-1", viewer)
        assert 0 <= first < BUCKET_COUNT
        assert bucket("flag-1", viewer) == first


def test_rollout_edges():
    for viewer in _viewers(200):
        assert in_rollout("flag-1", viewer, 0) is False
        assert in_rollout("flag-1", viewer, 100) is True
        assert in_rollout("flag-1", viewer, None) is True


def test_rollout_cohorts_are_nested():
    rollouts = [0, 5, 10, 25, 50, 75, 99, 100]
    for viewer in _viewers(300):
        previous = False
        for rollout in rollouts:
            current = in_rollout("ad-7", viewer, rollout)
            assert current or not previous
            previous = current


def test_rollout_is_roughly_proportional():
    included = sum(in_rollout("sponsor-3", viewer, 30) for viewer in _viewers(2000))

    assert 400 < included < 800


def test_bucket_depends_on_entity():
    viewers = _viewers(100)
    first = [bucket("flag-a", viewer) for viewer in viewers]
    second = [bucket("flag-b", viewer) for viewer in viewers]

    assert first != second


def test_out_of_range_rollouts_are_clamped():
    assert in_rollout("flag-1", "viewer", 250) is True
    assert in_rollout("flag-1", "viewer", -10) is False
