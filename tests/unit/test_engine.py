"""
Unit tests for the discovery engine and its ranking graph.

These run the full fetch -> filter -> score -> rank pipeline against the
in-memory stores with a fixed clock, including the degraded fallback and
the errors that must reach the caller.
"""

import logging
from unittest.mock import MagicMock

import pytest

from src.engine import DiscoveryEngine
from src.graphs import matching
from src.models import Lifestyle, Location, PreferenceCriteria, Smoking
from src.tools.behavior_tools import InMemoryBehaviorRepository
from src.tools.stores import InMemoryPreferenceStore, InMemoryUserStore
from src.utils.errors import (
    ExternalStoreError,
    InvalidCoordinateError,
    InvalidCriteriaError,
    MissingLocationError,
)

# ~40 km due north of the default San Francisco location.
FORTY_KM_NORTH = Location(lat=37.7749 + 0.3597, lng=-122.4194)


@pytest.fixture
def build_engine(fixed_now):
    def _build(profiles, **kwargs):
        user_store = kwargs.pop("user_store", None) or InMemoryUserStore(profiles)
        return DiscoveryEngine(
            user_store,
            kwargs.pop("preference_store", InMemoryPreferenceStore()),
            kwargs.pop("behavior_repository", InMemoryBehaviorRepository(100)),
            kwargs.pop("swipe_recorder", None),
            clock=lambda: fixed_now,
            min_history=10,
        )

    return _build


class TestScenarios:
    def test_scenario_a_strong_verified_match(self, make_profile, build_engine):
        requester = make_profile("me", age=28, interests=["Travel", "Music", "Hiking", "Books"])
        candidate = make_profile(
            "c",
            age=29,
            interests=["Travel", "Music"],
            is_verified=True,
            location=FORTY_KM_NORTH,
        )
        engine = build_engine([requester, candidate])

        matches = engine.get_ranked_matches(
            "me", PreferenceCriteria(age_range=(25, 35), max_distance_km=50)
        )

        assert len(matches) == 1
        assert matches[0].distance_km == pytest.approx(40, abs=0.5)
        assert matches[0].compatibility.overall > 0.5
        assert any("Verified" in reason for reason in matches[0].compatibility.reasons)

    def test_scenario_b_out_of_range_age_is_absent(self, make_profile, build_engine):
        requester = make_profile("me", age=22)
        engine = build_engine(
            [requester, make_profile("old", age=50, is_verified=True), make_profile("ok", age=23)]
        )
        matches = engine.get_ranked_matches("me", PreferenceCriteria(age_range=(18, 25)))
        assert [m.profile.id for m in matches] == ["ok"]

    def test_scenario_c_deal_breaker_excludes(self, make_profile, build_engine):
        engine = build_engine(
            [
                make_profile("me"),
                make_profile("smoker", lifestyle=Lifestyle(smoking=Smoking.REGULARLY)),
                make_profile("ok"),
            ]
        )
        matches = engine.get_ranked_matches(
            "me", PreferenceCriteria(deal_breakers=["smoker"])
        )
        assert [m.profile.id for m in matches] == ["ok"]

    def test_scenario_d_empty_history_is_neutral(self, make_profile, build_engine):
        pool = [make_profile("me")] + [make_profile(f"c{i}", age=20 + i) for i in range(6)]
        matches = build_engine(pool).get_ranked_matches("me", PreferenceCriteria())
        assert matches
        assert all(m.compatibility.breakdown.behavior == 0.5 for m in matches)

    def test_scenario_e_history_keeps_last_hundred(self, make_profile, build_engine):
        engine = build_engine([make_profile("me")])
        for i in range(150):
            engine.record_swipe("me", make_profile(f"c{i}"), is_like=i % 2 == 0)

        history = engine.behavior_repository.snapshot("me").swipe_history
        ids = [record.features.candidate_id for record in history]
        assert len(ids) == 100
        assert ids == [f"c{i}" for i in range(50, 150)]


class TestRanking:
    def test_sorted_and_limited(self, make_profile, build_engine):
        pool = [make_profile("me")] + [
            make_profile(f"c{i}", age=20 + 2 * i, is_verified=i % 2 == 0) for i in range(6)
        ]
        matches = build_engine(pool).get_ranked_matches("me", PreferenceCriteria(), limit=3)

        assert len(matches) == 3
        scores = [m.rank_score for m in matches]
        assert scores == sorted(scores, reverse=True)
        assert not any(m.degraded for m in matches)

    def test_idempotent_with_fixed_clock(self, make_profile, build_engine):
        pool = [make_profile("me")] + [make_profile(f"c{i}", age=22 + i) for i in range(5)]
        engine = build_engine(pool)
        first = engine.get_ranked_matches("me", PreferenceCriteria())
        second = engine.get_ranked_matches("me", PreferenceCriteria())
        assert first == second

    def test_swiped_candidates_leave_the_pool(self, make_profile, build_engine):
        pool = [make_profile("me"), make_profile("a"), make_profile("b")]
        user_store = InMemoryUserStore(pool)
        engine = build_engine(pool, user_store=user_store, swipe_recorder=user_store)

        engine.record_swipe("me", pool[1], is_like=False)

        matches = engine.get_ranked_matches("me", PreferenceCriteria())
        assert [m.profile.id for m in matches] == ["b"]

    def test_saved_filters_used_when_criteria_omitted(self, make_profile, build_engine):
        pool = [make_profile("me"), make_profile("young", age=22), make_profile("older", age=45)]
        engine = build_engine(pool)
        engine.save_filters("me", PreferenceCriteria(age_range=(40, 50)))

        matches = engine.get_ranked_matches("me")
        assert [m.profile.id for m in matches] == ["older"]

    def test_default_filters_when_preference_store_fails(self, make_profile, build_engine):
        preference_store = MagicMock()
        preference_store.load_filters.side_effect = ExternalStoreError("down")
        pool = [make_profile("me"), make_profile("a", age=30)]
        engine = build_engine(pool, preference_store=preference_store)

        assert engine.load_filters("me") == PreferenceCriteria()
        assert [m.profile.id for m in engine.get_ranked_matches("me")] == ["a"]

    def test_empty_pool(self, make_profile, build_engine):
        assert build_engine([make_profile("me")]).get_ranked_matches("me") == []

    def test_matches_carry_filter_metrics(self, make_profile, build_engine):
        pool = [make_profile("me"), make_profile("a", age=30, is_verified=True)]
        matches = build_engine(pool).get_ranked_matches(
            "me", PreferenceCriteria(age_range=(25, 35))
        )

        metrics = matches[0].metrics
        assert metrics.last_active_hours == pytest.approx(1.0)
        assert metrics.filter_reasons == [
            "Perfect age match",
            "Recently active",
            "Verified profile",
        ]
        assert 0.0 < metrics.filter_score <= 1.0


class TestPreconditions:
    def test_requester_without_location(self, make_profile, build_engine):
        engine = build_engine([make_profile("me", location=None), make_profile("a")])
        with pytest.raises(MissingLocationError):
            engine.get_ranked_matches("me", PreferenceCriteria())

    def test_requester_without_location_and_empty_pool(self, make_profile, build_engine):
        engine = build_engine([make_profile("me", location=None)])
        assert engine.get_ranked_matches("me", PreferenceCriteria()) == []

    def test_invalid_override(self, make_profile, build_engine):
        engine = build_engine([make_profile("me"), make_profile("a")])
        with pytest.raises(InvalidCoordinateError):
            engine.get_ranked_matches(
                "me", PreferenceCriteria(location_override=Location(lat=-91, lng=0))
            )

    def test_inverted_age_range(self, make_profile, build_engine):
        engine = build_engine([make_profile("me"), make_profile("a")])
        with pytest.raises(InvalidCriteriaError):
            engine.get_ranked_matches("me", PreferenceCriteria(age_range=(35, 25)))

    @pytest.mark.parametrize("limit", [0, -1])
    def test_invalid_limit(self, make_profile, build_engine, limit):
        engine = build_engine([make_profile("me"), make_profile("a")])
        with pytest.raises(InvalidCriteriaError):
            engine.get_ranked_matches("me", PreferenceCriteria(), limit=limit)

    def test_save_filters_validates(self, build_engine):
        with pytest.raises(InvalidCriteriaError):
            build_engine([]).save_filters("me", PreferenceCriteria(max_distance_km=-5))


class TestDegradedFallback:
    def test_ranking_failure_returns_unscored_pool(
        self, make_profile, build_engine, monkeypatch
    ):
        def explode(*args, **kwargs):
            raise RuntimeError("ranking backend exploded")

        monkeypatch.setattr(matching, "rank_candidates", explode)
        pool = [make_profile("me")] + [make_profile(f"c{i}") for i in range(4)]

        matches = build_engine(pool).get_ranked_matches("me", PreferenceCriteria(), limit=3)

        assert [m.profile.id for m in matches] == ["c0", "c1", "c2"]
        for match in matches:
            assert match.degraded is True
            assert match.distance_km is None
            assert match.compatibility.overall == 0.5
            assert match.compatibility.reasons == [matching.DEGRADED_REASON]

    def test_unknown_requester_falls_back(self, make_profile, build_engine):
        pool = [make_profile("a"), make_profile("b")]
        matches = build_engine(pool).get_ranked_matches("ghost", PreferenceCriteria())
        assert [m.profile.id for m in matches] == ["a", "b"]
        assert all(m.degraded for m in matches)

    def test_store_outage_returns_empty_degraded(self, make_profile, build_engine):
        user_store = MagicMock()
        user_store.get_profile.return_value = make_profile("me")
        user_store.get_candidate_pool.side_effect = ExternalStoreError("timeout")

        matches = build_engine([], user_store=user_store).get_ranked_matches(
            "me", PreferenceCriteria()
        )
        assert matches == []

    def test_malformed_candidate_is_skipped(
        self, make_profile, build_engine, monkeypatch
    ):
        real_score = matching.score_candidate

        def picky(user, candidate, *args, **kwargs):
            if candidate.id == "bad":
                raise ValueError("corrupt interests")
            return real_score(user, candidate, *args, **kwargs)

        monkeypatch.setattr(matching, "score_candidate", picky)
        pool = [make_profile("me"), make_profile("bad"), make_profile("good")]

        matches = build_engine(pool).get_ranked_matches("me", PreferenceCriteria())
        assert [m.profile.id for m in matches] == ["good"]
        assert not matches[0].degraded


class TestRecordSwipe:
    def test_recorder_failure_is_swallowed(self, make_profile, build_engine):
        recorder = MagicMock()
        recorder.record_swipe.side_effect = ExternalStoreError("write failed")
        engine = build_engine([make_profile("me")], swipe_recorder=recorder)

        engine.record_swipe("me", make_profile("a"), is_like=True)

        assert len(engine.behavior_repository.snapshot("me").swipe_history) == 1
        recorder.record_swipe.assert_called_once()

    def test_repository_failure_is_swallowed(self, make_profile, build_engine):
        repository = MagicMock()
        repository.append.side_effect = RuntimeError("lock poisoned")
        recorder = MagicMock()
        engine = build_engine(
            [make_profile("me")], behavior_repository=repository, swipe_recorder=recorder
        )

        engine.record_swipe("me", make_profile("a"), is_like=False)

        recorder.record_swipe.assert_not_called()

    def test_swipe_uses_clock(self, make_profile, build_engine, fixed_now):
        engine = build_engine([make_profile("me")])
        engine.record_swipe("me", make_profile("a"), is_like=True)
        behavior = engine.behavior_repository.snapshot("me")
        assert behavior.swipe_history[-1].timestamp == fixed_now
        assert behavior.last_active == fixed_now

    def test_pass_is_never_a_match(self, make_profile, build_engine):
        recorder = MagicMock()
        engine = build_engine([make_profile("me")], swipe_recorder=recorder)

        assert engine.record_swipe("me", make_profile("a"), is_like=False) is False
        recorder.has_liked.assert_not_called()

    def test_no_match_without_recorder(self, make_profile, build_engine):
        engine = build_engine([make_profile("me")])
        assert engine.record_swipe("me", make_profile("a"), is_like=True) is False

    def test_mutual_like_is_a_match(self, make_profile, build_engine):
        me, other = make_profile("me"), make_profile("other")
        user_store = InMemoryUserStore([me, other])
        engine = build_engine([], user_store=user_store, swipe_recorder=user_store)

        assert engine.record_swipe("me", other, is_like=True) is False
        assert engine.record_swipe("other", me, is_like=True) is True

    def test_super_like_counts_as_like(self, make_profile, build_engine):
        me, other = make_profile("me"), make_profile("other")
        user_store = InMemoryUserStore([me, other])
        engine = build_engine([], user_store=user_store, swipe_recorder=user_store)

        engine.record_swipe("other", me, is_like=True)
        assert engine.record_swipe("me", other, is_like=False, is_super_like=True) is True

        record = engine.behavior_repository.snapshot("me").swipe_history[-1]
        assert record.is_like is True
        assert record.is_super_like is True

    def test_match_lookup_failure_is_swallowed(self, make_profile, build_engine):
        recorder = MagicMock()
        recorder.has_liked.side_effect = ExternalStoreError("timeout")
        engine = build_engine([make_profile("me")], swipe_recorder=recorder)

        assert engine.record_swipe("me", make_profile("a"), is_like=True) is False
        recorder.record_swipe.assert_called_once()


class TestDiscoveryGraph:
    def test_compiles_once(self):
        graph = matching.DiscoveryGraph(InMemoryUserStore(), InMemoryBehaviorRepository(10))
        assert graph.compile() is graph.compile()

    def test_node_trace_reports_candidate_counts(self, make_profile, build_engine, caplog):
        caplog.set_level(logging.DEBUG, logger="discovery")
        pool = [make_profile("me"), make_profile("a"), make_profile("far", location=None)]

        build_engine(pool).get_ranked_matches("me", PreferenceCriteria())

        traces = [r.getMessage() for r in caplog.records if "] rank_matches" in r.getMessage()]
        assert traces == [
            "[discovery] rank_matches requester=me candidates=2 filtered_candidates=1 scored_matches=1"
        ]
