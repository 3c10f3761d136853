import pytest

from city_videos.models import RawCandidate
from city_videos.providers.base import QuotaExceededError, TransientProviderError, VideoSearchProvider
from city_videos.services.orchestrator import SearchOrchestrator, TierState, next_state
from city_videos.services.quality_filter import FilterConfig

CONFIG = FilterConfig(min_views=10000, min_duration_seconds=600, exclude_terms=["nightlife"])


def candidate(vid, title="Kyoto walking tour", views="50000", duration=900):
    return RawCandidate(
        video_id=vid,
        title=title,
        description="",
        channel_title="Walker",
        channel_id="UC1",
        thumbnail="",
        published_at="2024-01-01T00:00:00Z",
        view_count=views,
        duration_seconds=duration,
    )


class ScriptedProvider(VideoSearchProvider):
    """Returns (or raises) one scripted response per call, in order."""

    def __init__(self, *responses):
        super().__init__()
        self.responses = list(responses)
        self.queries = []

    async def search(self, query, region=None, max_results=None):
        self.queries.append((query, region, max_results))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def ids(videos):
    return [v.id for v in videos]


@pytest.mark.parametrize("collected,requested,error,expected", [
    (8, 8, None, TierState.ACCEPTED),
    (9, 8, None, TierState.ACCEPTED),
    (7, 8, None, TierState.CONTINUE),
    (0, 8, TransientProviderError("boom"), TierState.CONTINUE),
    (8, 8, QuotaExceededError("quota"), TierState.ABORT),
])
def test_next_state(collected, requested, error, expected):
    assert next_state(collected, requested, error) is expected


@pytest.mark.asyncio
async def test_first_tier_satisfies_request_without_second_call():
    provider = ScriptedProvider([candidate(f"k{i}") for i in range(10)])
    orchestrator = SearchOrchestrator(provider, CONFIG)

    result = await orchestrator.run_detailed("Kyoto", "vlog", "JP", count=8)

    assert len(provider.queries) == 1
    assert ids(result.videos) == [f"k{i}" for i in range(8)]
    assert result.tiers[0].state is TierState.ACCEPTED
    assert result.tiers[0].candidates == 10


@pytest.mark.asyncio
async def test_falls_through_to_second_tier_and_dedupes():
    provider = ScriptedProvider(
        [candidate("a"), candidate("b"), candidate("short", duration=60)],
        [candidate("b", title="Kyoto again"), candidate("c"), candidate("d")],
    )
    orchestrator = SearchOrchestrator(provider, CONFIG)

    videos = await orchestrator.run("Kyoto", "vlog", count=8)

    assert [q for q, _, _ in provider.queries] == ["Kyoto walking tour 4K", "Kyoto travel vlog walk"]
    assert ids(videos) == ["a", "b", "c", "d"]
    # first occurrence wins
    assert videos[1].title == "Kyoto walking tour"


@pytest.mark.asyncio
async def test_quota_on_first_tier_aborts_without_further_calls():
    provider = ScriptedProvider(QuotaExceededError("quota", status=403), [candidate("never")])
    orchestrator = SearchOrchestrator(provider, CONFIG)

    with pytest.raises(QuotaExceededError):
        await orchestrator.run("Kyoto", count=8)
    assert len(provider.queries) == 1


@pytest.mark.asyncio
async def test_quota_on_second_tier_discards_partial_results():
    provider = ScriptedProvider([candidate("a")], QuotaExceededError("quota", status=429))
    orchestrator = SearchOrchestrator(provider, CONFIG)

    with pytest.raises(QuotaExceededError):
        await orchestrator.run("Kyoto", count=8)
    assert len(provider.queries) == 2


@pytest.mark.asyncio
async def test_transient_failure_moves_on_to_next_tier():
    provider = ScriptedProvider(TransientProviderError("503", status=503), [candidate("a"), candidate("b")])
    orchestrator = SearchOrchestrator(provider, CONFIG)

    result = await orchestrator.run_detailed("Kyoto", count=8)

    assert ids(result.videos) == ["a", "b"]
    assert result.tiers[0].state is TierState.CONTINUE
    assert "503" in result.tiers[0].error
    assert result.tiers[1].state is TierState.CONTINUE


@pytest.mark.asyncio
async def test_all_tiers_failing_transiently_returns_empty():
    provider = ScriptedProvider(TransientProviderError("a"), TransientProviderError("b"))
    assert await SearchOrchestrator(provider, CONFIG).run("Kyoto") == []


@pytest.mark.asyncio
async def test_results_are_truncated_in_collection_order():
    provider = ScriptedProvider(
        [candidate("a"), candidate("b")],
        [candidate("c"), candidate("d"), candidate("e")],
    )
    videos = await SearchOrchestrator(provider, CONFIG).run("Kyoto", count=3)
    assert ids(videos) == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_region_and_tier_size_are_forwarded():
    provider = ScriptedProvider([candidate("a")], [])
    await SearchOrchestrator(provider, CONFIG, max_results_per_tier=15).run("Kyoto", "scenic", "jp", count=2)
    assert provider.queries[0][1:] == ("jp", 15)
    assert "drone" in provider.queries[0][0]


@pytest.mark.asyncio
async def test_invalid_count_is_rejected():
    with pytest.raises(ValueError):
        await SearchOrchestrator(ScriptedProvider(), CONFIG).run("Kyoto", count=0)
