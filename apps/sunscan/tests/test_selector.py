import pytest

from services.geo_sampler import generate
from services.models import Coordinate, Direction, SunStatus, WeatherObservation
from services.scoring import score_observation
from services.selector import direction_winners, select

MUNICH = Coordinate(48.137, 11.576)


def _scored(cloud_by_slot=None, default_cloud=80.0, is_day=True, precip=0.0):
    cloud_by_slot = cloud_by_slot or {}
    points = []
    for sample in generate(MUNICH):
        cloud = cloud_by_slot.get((sample.direction, sample.distance_km), default_cloud)
        observation = WeatherObservation(cloud_cover_pct=cloud, precip_prob_pct=precip, is_day=is_day)
        points.append(score_observation(sample.coordinate, observation, sample.direction, sample.distance_km))
    return points


def _origin(cloud=80.0, is_day=True):
    return score_observation(MUNICH, WeatherObservation(cloud_cover_pct=cloud, precip_prob_pct=0, is_day=is_day))


def test_munich_scenario_picks_north_15km():
    candidates = _scored({(Direction.N, 15.0): 10.0})
    result = select(candidates, _origin())

    best = result.nearby[0]
    assert best.direction is Direction.N
    assert best.distance_km == 15.0
    assert best.score == 90
    assert best.status is SunStatus.SUN_NOW
    assert result.current.score == 20
    assert result.current.status is SunStatus.OVERCAST
    assert result.no_sun_nearby is False


def test_tie_in_direction_prefers_closer_point():
    candidates = _scored({(Direction.E, 30.0): 20.0, (Direction.E, 50.0): 20.0})
    winners = {p.direction: p for p in direction_winners(candidates)}
    assert winners[Direction.E].distance_km == 30.0
    assert winners[Direction.E].score == 80


def test_equal_scores_keep_closest_of_three():
    winners = direction_winners(_scored(default_cloud=40.0))
    assert len(winners) == 8
    assert all(p.distance_km == 15.0 for p in winners)
    assert [p.direction for p in winners] == list(Direction)


def test_ranking_orders_by_score_then_distance():
    candidates = _scored(
        {
            (Direction.S, 50.0): 0.0,
            (Direction.W, 30.0): 0.0,
            (Direction.NE, 15.0): 30.0,
        }
    )
    result = select(candidates, _origin())
    ranked = [(p.direction, p.distance_km, p.score) for p in result.nearby[:3]]
    assert ranked == [
        (Direction.W, 30.0, 100),
        (Direction.S, 50.0, 100),
        (Direction.NE, 15.0, 70),
    ]
    scores = [p.score for p in result.nearby]
    assert scores == sorted(scores, reverse=True)


def test_degenerate_case_keeps_ranked_nearby():
    candidates = _scored(default_cloud=95.0)
    result = select(candidates, _origin(cloud=90.0))
    assert result.no_sun_nearby is True
    assert len(result.nearby) == 8
    assert all(p.status is SunStatus.OVERCAST for p in result.nearby)
    assert [p.distance_km for p in result.nearby] == [15.0] * 8


def test_night_everywhere_is_degenerate_even_with_clear_sky():
    candidates = _scored(default_cloud=0.0, is_day=False)
    result = select(candidates, _origin(cloud=0.0, is_day=False))
    assert result.no_sun_nearby is True
    assert len(result.nearby) == 8


def test_mostly_cloudy_candidate_is_usable():
    candidates = _scored({(Direction.SW, 50.0): 70.0}, default_cloud=95.0)
    result = select(candidates, _origin())
    assert result.no_sun_nearby is False
    assert result.nearby[0].status is SunStatus.MOSTLY_CLOUDY


def test_select_requires_every_direction():
    candidates = [p for p in _scored() if p.direction is not Direction.W]
    with pytest.raises(ValueError):
        select(candidates, _origin())


def test_select_rejects_empty_candidates():
    with pytest.raises(ValueError):
        select([], _origin())
