from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from targeting.entities import Advertisement, FeatureFlag, Sponsor, TimePeriod
from targeting.resolver import (
    EligibilityReason,
    EligibilityResolver,
    evaluate,
    resolve,
)
from targeting.rules.evaluator import CollectingAnomalyObserver, RuleEvaluator
from targeting.rules.models import AlwaysOnRule, CountryRule, RoleRule
from targeting.selection import FirstEligible, RoundRobin
from targeting.viewer import ViewerContext

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _sponsor(identifier: str, **overrides) -> Sponsor:
    data = {"id": identifier, "title": identifier.title(), "active": True}
    data.update(overrides)
    return Sponsor(**data)


def _resolver() -> tuple[EligibilityResolver, CollectingAnomalyObserver]:
    observer = CollectingAnomalyObserver()
    resolver = EligibilityResolver(
        evaluator=RuleEvaluator(observer=observer),
        now_provider=lambda: NOW,
    )
    return resolver, observer


def test_empty_rule_set_is_eligible_for_everyone():
    resolver, _ = _resolver()
    sponsor = _sponsor("acme")

    for identity in ("a", "b", "c"):
        decision = resolver.decide(sponsor, ViewerContext(identity=identity))
        assert decision.eligible is True
        assert decision.reason is EligibilityReason.NO_RULES


def test_inactive_entity_is_never_eligible():
    resolver, _ = _resolver()
    sponsor = _sponsor("acme", active=False, rules=[AlwaysOnRule()])

    decision = resolver.decide(sponsor, ViewerContext(identity="a"), NOW)

    assert decision.eligible is False
    assert decision.reason is EligibilityReason.INACTIVE


def test_time_window_is_inclusive():
    resolver, _ = _resolver()
    window = TimePeriod(start=NOW - timedelta(days=1), end=NOW)
    sponsor = _sponsor("acme", time_period=window, rules=[AlwaysOnRule()])
    viewer = ViewerContext(identity="a")

    assert resolver.is_eligible(sponsor, viewer, NOW) is True
    assert resolver.is_eligible(sponsor, viewer, NOW - timedelta(days=1)) is True
    outside = resolver.decide(sponsor, viewer, NOW + timedelta(seconds=1))
    assert outside.eligible is False
    assert outside.reason is EligibilityReason.OUTSIDE_WINDOW


def test_clock_is_used_when_now_is_omitted():
    resolver, _ = _resolver()
    future = TimePeriod(start=NOW + timedelta(days=1), end=NOW + timedelta(days=2))
    sponsor = _sponsor("acme", time_period=future)

    assert resolver.is_eligible(sponsor, ViewerContext(identity="a")) is False


def test_or_across_rules_makes_non_us_teacher_eligible():
    resolver, _ = _resolver()
    sponsor = _sponsor("acme", rules=[CountryRule(value="US"), RoleRule(value="teacher")])
    viewer = ViewerContext(identity="t-1", role="teacher", country="NZ")

    decision = resolver.decide(sponsor, viewer, NOW)

    assert decision.eligible is True
    assert decision.reason is EligibilityReason.RULES_MATCHED
    assert decision.rule_index == 1


def test_resolve_keeps_input_order_and_isolates_malformed_rules():
    resolver, observer = _resolver()
    broken = Sponsor.from_snapshot(
        {"id": "broken", "title": "Broken", "active": True, "rules": [{"type": "cidr", "value": "10.0.0.0/99"}]}
    )
    entities = [
        _sponsor("first", rules=[CountryRule(value="GB")]),
        broken,
        _sponsor("hidden", rules=[CountryRule(value="US")]),
        _sponsor("last"),
    ]
    viewer = ViewerContext(identity="v", country="GB", address="10.0.0.1")

    resolution = resolver.resolve(entities, viewer, NOW)

    assert [entity.id for entity in resolution.eligible] == ["first", "last"]
    assert resolution.selected is None
    assert len(observer.anomalies) == 1
    assert observer.anomalies[0].entity_id == "broken"


def test_resolve_with_policy_selects_one():
    resolver, _ = _resolver()
    entities = [_sponsor("a", active=False), _sponsor("b"), _sponsor("c")]
    viewer = ViewerContext(identity="v")

    resolution = resolver.resolve(entities, viewer, NOW, FirstEligible())

    assert [entity.id for entity in resolution.eligible] == ["b", "c"]
    assert resolution.selected.id == "b"


def test_resolve_without_candidates_selects_nothing():
    resolver, _ = _resolver()

    resolution = resolver.resolve([_sponsor("a", active=False)], ViewerContext(identity="v"), NOW, RoundRobin())

    assert resolution.eligible == []
    assert resolution.selected is None


def test_entity_failure_does_not_abort_resolution():
    resolver, _ = _resolver()
    weird = SimpleNamespace(id="weird", active=True, time_period="not-a-period", rules=())
    entities = [weird, _sponsor("fine")]

    decisions = resolver.decide_all(entities, ViewerContext(identity="v"), NOW)

    assert decisions[0][1].reason is EligibilityReason.FAILED
    assert decisions[1][1].eligible is True


def test_module_level_interfaces_work_across_entity_kinds():
    viewer = ViewerContext(identity="v", role="student")
    flag = FeatureFlag(key="new_nav", enabled=True, rules=[RoleRule(value="student")])
    ad = Advertisement(id="ad-1", title="Ad", active=True, placements=["sidebar"])

    assert evaluate(flag, viewer, NOW) is True
    assert [entity.id for entity in resolve([flag, ad], viewer, NOW).eligible] == ["new_nav", "ad-1"]


def test_naive_now_is_treated_as_utc():
    resolver, _ = _resolver()
    window = TimePeriod(start=datetime(2024, 6, 1, 0, 0), end=datetime(2024, 6, 1, 23, 59))
    sponsor = _sponsor("acme", time_period=window)

    assert resolver.is_eligible(sponsor, ViewerContext(identity="v"), datetime(2024, 6, 1, 12, 0)) is True
