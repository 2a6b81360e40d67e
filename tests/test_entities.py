from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from targeting.entities import AdPlacement, Advertisement, FeatureFlag, Sponsor, TimePeriod
from targeting.resolver import EligibilityResolver
from targeting.rules.evaluator import CollectingAnomalyObserver, RuleEvaluator
from targeting.rules.models import CidrRule, CountryRule, InvalidRule
from targeting.viewer import ViewerContext


def test_feature_flag_reads_backend_shape():
    flag = FeatureFlag.model_validate(
        {
            "key": "new_dashboard",
            "enabled": True,
            "description": "Redesigned dashboard",
            "rules": [{"type": "country", "value": "us", "rollout": 25}],
        }
    )

    assert flag.id == "new_dashboard"
    assert flag.active is True
    assert flag.enabled is True
    assert flag.rules == (CountryRule(value="US", rollout=25),)
    payload = flag.to_payload()
    assert payload["enabled"] is True
    assert payload["rules"] == [{"type": "country", "value": "US", "rollout": 25.0}]


def test_advertisement_accepts_form_encoded_fields():
    ad = Advertisement.model_validate(
        {
            "id": 42,
            "title": "Summer camp",
            "active": "true",
            "placements": "sidebar, strand_rhs",
            "rules": '[{"type": "cidr", "value": ["10.0.0.0/8", "192.168.0.0/16"]}]',
            "timePeriodStart": "2024-06-01T00:00:00",
            "timePeriodEnd": "2024-06-30T23:59:59Z",
            "ctaLabel": "Sign up",
            "ctaUrl": "https://example.com/camp",
            "impressionCount": 12,
        }
    )

    assert ad.id == "42"
    assert ad.placements == (AdPlacement.SIDEBAR, AdPlacement.STRAND_RHS)
    assert ad.serves("sidebar") is True
    assert ad.serves("quizzes_rhs") is False
    assert ad.serves("nowhere") is False
    assert isinstance(ad.rules[0], CidrRule)
    assert ad.time_period.start == datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert ad.cta.label == "Sign up"
    assert ad.impression_count == 12


def test_placements_accept_json_arrays():
    ad = Advertisement(id="a", title="t", active=True, placements='["quizzes_rhs"]')

    assert ad.placements == (AdPlacement.QUIZZES_RHS,)


def test_strict_construction_rejects_invalid_rules():
    with pytest.raises(ValidationError):
        Sponsor.model_validate(
            {"id": "s", "title": "t", "active": True, "rules": [{"type": "cidr", "value": "x"}]}
        )


def test_snapshot_construction_keeps_invalid_rules():
    sponsor = Sponsor.from_snapshot(
        {
            "id": "s",
            "title": "t",
            "active": True,
            "rules": [{"type": "cidr", "value": "x"}, {"type": "always_on"}],
        }
    )

    assert isinstance(sponsor.rules[0], InvalidRule)
    assert sponsor.rules[1].type == "always_on"


def test_snapshot_with_unparseable_rules_string():
    sponsor = Sponsor.from_snapshot({"id": "s", "title": "t", "active": True, "rules": "[oops"})

    assert len(sponsor.rules) == 1
    assert isinstance(sponsor.rules[0], InvalidRule)


def test_snapshot_still_validates_entity_fields():
    with pytest.raises(ValidationError):
        Sponsor.from_snapshot({"id": "s", "active": True})


def test_time_period_rejects_reversed_window():
    with pytest.raises(ValidationError):
        TimePeriod(start=datetime(2024, 2, 1), end=datetime(2024, 1, 1))


def test_time_period_normalises_offsets():
    period = TimePeriod(
        start="2024-06-01T02:00:00+02:00",
        end="2024-06-01T03:00:00+02:00",
    )

    assert period.contains(datetime(2024, 6, 1, 0, 30, tzinfo=timezone.utc)) is True
    assert period.contains(datetime(2024, 6, 1, 1, 0, 1, tzinfo=timezone.utc)) is False


def _form_resolver():
    observer = CollectingAnomalyObserver()
    resolver = EligibilityResolver(
        evaluator=RuleEvaluator(observer=observer),
        now_provider=lambda: datetime(2024, 1, 15, tzinfo=timezone.utc),
    )
    return resolver, observer


@pytest.mark.parametrize(
    "rule, role, expected",
    [
        ({"type": "percentage", "value": "50", "rollout": 100}, "student", True),
        ({"type": "percentage", "value": "50", "rollout": 0}, "student", False),
        ({"type": "student", "value": "student", "rollout": 100}, "student", True),
        ({"type": "student", "value": "student", "rollout": 100}, "teacher", False),
        ({"type": "teacher", "value": "yes", "rollout": 100}, "teacher", True),
        ({"type": "teacher", "value": "yes", "rollout": 100}, "student", False),
    ],
)
def test_snapshot_rules_saved_by_admin_forms_are_evaluated(rule, role, expected):
    resolver, observer = _form_resolver()
    flag = FeatureFlag.from_snapshot({"key": "k", "enabled": True, "rules": [rule]})

    assert not isinstance(flag.rules[0], InvalidRule)
    assert resolver.is_eligible(flag, ViewerContext(identity="u1", role=role)) is expected
    assert observer.anomalies == []


def test_sponsor_form_payload_targets_students():
    resolver, observer = _form_resolver()
    sponsor = Sponsor.from_snapshot(
        {
            "id": "sp",
            "title": "Reading club",
            "active": True,
            "rules": '[{"type": "student", "value": "student", "rollout": 100}]',
        }
    )

    assert resolver.is_eligible(sponsor, ViewerContext(identity="kid", role="Student")) is True
    assert observer.anomalies == []
