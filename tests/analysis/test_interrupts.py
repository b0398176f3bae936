import logging
from unittest.mock import AsyncMock, patch

import pytest

from wclogs.analysis.events import Event
from wclogs.analysis.interrupts import (
    CastAnalysis,
    MissedCast,
    StoppedCast,
    analyze_interrupts,
    correlate_interrupts_and_casts,
    count_interrupt_abilities,
    count_interrupt_targets,
    count_interrupters,
    fight_relative,
    match_casts,
    sort_by_casts,
    summarize_effectiveness,
)
from wclogs.analysis.names import NameCache
from wclogs.wcl.models import Ability, Actor, Fight

FIGHT_START = 0
NPC = 50
OTHER_NPC = 51
ROGUE = 1
MAGE = 2
SPELL = 30451

ACTORS = [
    Actor(id=ROGUE, name="Lyro", type="Player"),
    Actor(id=MAGE, name="Kaelis", type="Player"),
    Actor(id=NPC, name="Shadow Pillager", type="NPC"),
    Actor(id=OTHER_NPC, name="Phantom Guest", type="NPC"),
]
ABILITIES = {SPELL: "Arcane Blast", 1766: "Kick", 2139: "Counterspell", 9999: "Shadow Bolt"}


def interrupt(ts, source=ROGUE, target=NPC, ability=1766):
    return Event(timestamp=ts, type="interrupt", source_id=source, target_id=target,
                 ability_id=ability)


def cast(ts, source=NPC, ability=SPELL, kind="cast"):
    return Event(timestamp=ts, type=kind, source_id=source, ability_id=ability)


async def _fake_fetch_ability(wcl, ability_id):
    name = ABILITIES.get(ability_id)
    return Ability(id=ability_id, name=name) if name else None


@pytest.fixture
def fetch_ability():
    with patch(
        "wclogs.analysis.names.fetch_ability",
        new=AsyncMock(side_effect=_fake_fetch_ability),
    ) as mock:
        yield mock


@pytest.fixture
async def names():
    cache = NameCache(AsyncMock())
    with patch("wclogs.analysis.names.fetch_actors", new=AsyncMock(return_value=ACTORS)):
        await cache.preload_actors("ABC123")
    return cache


class TestMatchCasts:
    def test_window_classification(self):
        matches = match_casts(
            [interrupt(1000)],
            [cast(1000), cast(1250), cast(1700)],
        )
        assert [m.stopped for m in matches] == [True, True, False]

    def test_window_is_inclusive(self):
        matches = match_casts([interrupt(1000)], [cast(700), cast(1300), cast(1300.5)])
        assert [m.stopped for m in matches] == [True, True, False]

    def test_interrupt_before_or_after_cast(self):
        matches = match_casts([interrupt(1000)], [cast(900), cast(1100)])
        assert all(m.stopped for m in matches)

    def test_casts_from_uninterrupted_npc_excluded(self):
        matches = match_casts([interrupt(1000)], [cast(1000, source=OTHER_NPC)])
        assert matches == []

    def test_casts_missing_ids_skipped(self):
        no_source = Event(timestamp=1000, type="cast", ability_id=SPELL)
        no_ability = Event(timestamp=1000, type="cast", source_id=NPC)
        assert match_casts([interrupt(1000)], [no_source, no_ability]) == []

    def test_earliest_interrupt_wins(self):
        late = interrupt(1200, source=MAGE)
        early = interrupt(900, source=ROGUE)
        # input order deliberately unsorted
        matches = match_casts([late, early], [cast(1000)])
        assert matches[0].interrupt is early

    def test_interrupt_on_other_npc_does_not_count(self):
        matches = match_casts(
            [interrupt(1000), interrupt(5000, target=OTHER_NPC)],
            [cast(5000)],
        )
        assert [m.stopped for m in matches] == [False]

    def test_no_interrupts(self):
        assert match_casts([], [cast(1000)]) == []

    def test_custom_window(self):
        matches = match_casts([interrupt(1000)], [cast(1250)], window_ms=100)
        assert not matches[0].stopped


class TestFightRelative:
    def test_positive(self):
        assert fight_relative(5000, 1000) == 4000

    def test_negative_falls_back_to_raw(self, caplog):
        with caplog.at_level(logging.WARNING, logger="wclogs.analysis.interrupts"):
            assert fight_relative(500, 1000) == 500
        assert "precedes fight start" in caplog.text


class TestCorrelate:
    async def test_stopped_and_missed(self, names, fetch_ability):
        result = await correlate_interrupts_and_casts(
            [interrupt(1000)],
            [cast(1000), cast(1250), cast(1700)],
            FIGHT_START, names,
        )

        analysis = result["Arcane Blast"]
        assert analysis.total_casts == 3
        assert analysis.stopped_count == 2
        assert analysis.missed_count == 1
        assert analysis.interrupted_by == {"Lyro": 2}
        assert analysis.stopped_casts == (
            StoppedCast("Shadow Pillager", "Lyro", 1000),
            StoppedCast("Shadow Pillager", "Lyro", 1250),
        )
        assert analysis.missed_casts == (MissedCast("Shadow Pillager", 1700),)

    async def test_zero_interrupts_empty_without_lookups(self, names, fetch_ability):
        result = await correlate_interrupts_and_casts([], [cast(1000)], FIGHT_START, names)
        assert result == {}
        fetch_ability.assert_not_awaited()

    async def test_non_targeted_npc_excluded(self, names, fetch_ability):
        result = await correlate_interrupts_and_casts(
            [interrupt(1000)],
            [cast(1000), cast(1000, source=OTHER_NPC, ability=9999)],
            FIGHT_START, names,
        )
        assert list(result) == ["Arcane Blast"]

    async def test_totals_add_up(self, names, fetch_ability):
        result = await correlate_interrupts_and_casts(
            [interrupt(1000), interrupt(4000, source=MAGE)],
            [cast(1000), cast(2000), cast(4100, ability=9999), cast(8000, ability=9999)],
            FIGHT_START, names,
        )
        for analysis in result.values():
            assert analysis.total_casts == analysis.stopped_count + analysis.missed_count
            assert len(analysis.stopped_casts) == analysis.stopped_count
            assert len(analysis.missed_casts) == analysis.missed_count
        assert result["Shadow Bolt"].interrupted_by == {"Kaelis": 1}

    async def test_abilities_preloaded_once(self, names, fetch_ability):
        await correlate_interrupts_and_casts(
            [interrupt(1000)],
            [cast(1000), cast(1100), cast(2000), cast(3000, ability=9999)],
            FIGHT_START, names,
        )
        assert fetch_ability.await_count == 2

    async def test_fight_relative_timestamps(self, names, fetch_ability):
        result = await correlate_interrupts_and_casts(
            [interrupt(61000)], [cast(61000), cast(65000)], 60000, names,
        )
        analysis = result["Arcane Blast"]
        assert analysis.stopped_casts[0].timestamp == 1000
        assert analysis.missed_casts[0].timestamp == 5000

    async def test_negative_relative_uses_raw(self, names, fetch_ability):
        result = await correlate_interrupts_and_casts(
            [interrupt(500)], [cast(500)], 1000, names,
        )
        assert result["Arcane Blast"].stopped_casts[0].timestamp == 500

    async def test_detail_order_follows_casts(self, names, fetch_ability):
        result = await correlate_interrupts_and_casts(
            [interrupt(1000)], [cast(3000), cast(2000), cast(1000)], FIGHT_START, names,
        )
        assert [m.timestamp for m in result["Arcane Blast"].missed_casts] == [3000, 2000]

    async def test_begincast_counts(self, names, fetch_ability):
        result = await correlate_interrupts_and_casts(
            [interrupt(1000)], [cast(1000, kind="begincast")], FIGHT_START, names,
        )
        assert result["Arcane Blast"].stopped_count == 1


class TestAnalyzeInterrupts:
    FIGHT = Fight(id=4, name="Moroes", start_time=0, end_time=10000)

    async def test_fetches_hostile_casts(self, names, fetch_ability):
        wcl = AsyncMock()
        wcl.query.return_value = {"reportData": {"report": {"events": {
            "data": [
                {"timestamp": 1000, "type": "cast", "sourceID": NPC, "abilityGameID": SPELL},
                {"timestamp": 1700, "type": "begincast", "sourceID": NPC, "abilityGameID": SPELL},
                {"timestamp": 1800, "type": "damage", "sourceID": NPC, "abilityGameID": SPELL},
            ],
            "nextPageTimestamp": None,
        }}}}

        result = await analyze_interrupts(wcl, names, "ABC123", self.FIGHT, [interrupt(1000)])

        variables = wcl.query.call_args.kwargs["variables"]
        assert variables["dataType"] == "Casts"
        assert variables["hostilityType"] == "Enemies"
        assert variables["fightIDs"] == [4]
        assert result["Arcane Blast"].stopped_count == 1
        assert result["Arcane Blast"].missed_count == 1

    async def test_no_interrupts_skips_fetch(self, names, fetch_ability):
        wcl = AsyncMock()
        assert await analyze_interrupts(wcl, names, "ABC123", self.FIGHT, []) == {}
        wcl.query.assert_not_called()

    async def test_fetch_failure_propagates(self, names, fetch_ability):
        wcl = AsyncMock()
        wcl.query.side_effect = RuntimeError("upstream")
        with pytest.raises(RuntimeError):
            await analyze_interrupts(wcl, names, "ABC123", self.FIGHT, [interrupt(1000)])


class TestSummaries:
    def _analysis(self, name, stopped, missed):
        return CastAnalysis(
            ability_name=name,
            interrupted_by={"Lyro": stopped} if stopped else {},
            stopped_casts=tuple(StoppedCast("npc", "Lyro", i) for i in range(stopped)),
            missed_casts=tuple(MissedCast("npc", i) for i in range(missed)),
        )

    def test_effectiveness(self):
        eff = summarize_effectiveness({
            "a": self._analysis("a", 3, 1),
            "b": self._analysis("b", 1, 3),
        })
        assert eff.total_interrupted == 4
        assert eff.total_completed == 4
        assert eff.total_casts == 8
        assert eff.pct == 50.0

    def test_effectiveness_empty(self):
        assert summarize_effectiveness({}).pct == 0.0

    def test_sort_by_casts(self):
        ordered = sort_by_casts({
            "few": self._analysis("few", 1, 0),
            "many": self._analysis("many", 2, 3),
            "also few": self._analysis("also few", 0, 1),
        })
        assert [a.ability_name for a in ordered] == ["many", "also few", "few"]

    def test_stopped_pct(self):
        assert self._analysis("x", 1, 3).stopped_pct == 25.0
        assert self._analysis("x", 0, 0).stopped_pct == 0.0

    async def test_count_interrupters(self, names):
        counts = count_interrupters(
            [interrupt(1), interrupt(2), interrupt(3, source=MAGE),
             Event(timestamp=4, type="interrupt")],
            names,
        )
        assert counts == {"Lyro": 2, "Kaelis": 1, "Unknown": 1}

    async def test_count_interrupt_targets(self, names):
        embedded = Event.model_validate({
            "timestamp": 5, "type": "interrupt", "target": {"id": 99, "name": "Keeper"},
        })
        counts = count_interrupt_targets([interrupt(1), interrupt(2), embedded], names)
        assert counts == {"Shadow Pillager": 2, "Keeper": 1}

    async def test_count_interrupt_abilities(self, names, fetch_ability):
        counts = await count_interrupt_abilities(
            [interrupt(1), interrupt(2), interrupt(3, source=MAGE, ability=2139)],
            names,
        )
        assert counts.most_common() == [("Kick", 2), ("Counterspell", 1)]
        assert fetch_ability.await_count == 2
