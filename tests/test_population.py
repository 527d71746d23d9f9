import pytest

from song_sim.catalog.eras import BIRTH_NAMES, EraKey
from song_sim.config.settings import PopulationSettings
from song_sim.population.lifecycle import (
    AgeBand,
    advance_calendar,
    age_band,
    age_population,
    check_collapse,
    domestication_emigration,
    food_economy,
    gather_food,
    ignore_stranger,
    maybe_encounter,
    seasonal_births,
    teaching_power,
    welcome_stranger,
)
from song_sim.utils.errors import UserIntentError
from song_sim.utils.types import Chronicle

from conftest import ScriptedRandom, person, world_of


class TestAgeBands:
    @pytest.mark.parametrize(
        "age,band",
        [(0, AgeBand.YOUTH), (4, AgeBand.YOUTH), (5, AgeBand.ADULT), (16, AgeBand.ADULT),
         (17, AgeBand.ELDER), (24, AgeBand.ELDER), (25, AgeBand.DEAD)],
    )
    def test_thresholds(self, age, band):
        assert age_band(age, PopulationSettings()) is band

    def test_teaching_power(self):
        cfg = PopulationSettings()
        assert teaching_power(person("E", 20), cfg) == 2.0
        assert teaching_power(person("A", 10), cfg) == 1.0
        assert teaching_power(person("Y", 1), cfg) == 0.0


class TestAging:
    def test_death_of_age_takes_unshared_verses(self, rules, catalog):
        world = world_of(person("Old", 24, {"flake": 0.5, "heartbeat": 0.9}),
                         person("Young", 10, {"heartbeat": 0.4}))
        chronicle = Chronicle(0)
        dead = age_population(world, catalog, rules, chronicle)
        assert [p.name for p in dead] == ["Old"]
        assert [p.name for p in world.people] == ["Young"]
        assert world.people[0].age == 11
        assert world.total_lost == ["flake"]
        assert chronicle.count("verse_lost") == 1


class TestBirths:
    def test_spring_birth(self, rules):
        world = world_of(person("A", 10), person("B", 12), food=5, season=0)
        child = seasonal_births(world, ScriptedRandom(), rules, Chronicle(0))
        assert child is not None
        assert child.age == 0
        assert child.name == BIRTH_NAMES[0]
        assert len(world.people) == 3

    def test_no_birth_in_autumn(self, rules):
        world = world_of(person("A", 10), person("B", 12), food=5, season=2)
        assert seasonal_births(world, ScriptedRandom(), rules, Chronicle(0)) is None

    def test_no_birth_when_hungry(self, rules):
        world = world_of(person("A", 10), person("B", 12), food=2, season=1)
        assert seasonal_births(world, ScriptedRandom(), rules, Chronicle(0)) is None

    def test_bears_name_their_cubs(self, rules):
        world = world_of(person("A", 10, people="bear"), person("B", 12), food=5)
        child = seasonal_births(world, ScriptedRandom(), rules, Chronicle(0))
        assert child.name == "Little-Paw"


class TestFood:
    def test_gather_scales_with_sunlight_and_knowledge(self, rules):
        world = world_of(person("A", 10, {"root": 0.5}), season=1, sunlight=0.5)
        assert gather_food(world, rules) == int(5 * 0.5) + 1

    def test_starvation_takes_the_youngest_and_floors_food(self, rules, catalog):
        world = world_of(person("A", 10), person("B", 3), person("C", 20), season=3, food=0)
        chronicle = Chronicle(0)
        food_economy(world, catalog, rules, chronicle)
        assert [p.name for p in world.people] == ["A", "C"]
        assert world.food == 0
        assert chronicle.count("starvation") == 1

    def test_starved_singer_takes_unshared_verses(self, rules, catalog):
        world = world_of(
            person("A", 10, {"heartbeat": 0.5}),
            person("B", 3, {"flake": 0.9, "heartbeat": 0.4}),
            season=3,
            food=-100,
        )
        chronicle = Chronicle(0)
        food_economy(world, catalog, rules, chronicle)
        assert [p.name for p in world.people] == ["A"]
        assert world.total_lost == ["flake"]
        assert chronicle.count("verse_lost") == 1


class TestStrangersAndLeaving:
    def test_encounter_in_summer(self, rules, catalog):
        world = world_of(person("A", 10), season=1)
        stranger = maybe_encounter(world, catalog, ScriptedRandom([0.0]), rules, Chronicle(0))
        assert stranger is world.encounter
        assert stranger.people == "troll"
        assert stranger.age >= 20
        assert all(0.5 <= f <= 1.0 for f in stranger.verses.values())

    def test_no_encounter_in_winter(self, rules, catalog):
        world = world_of(person("A", 10), season=3)
        assert maybe_encounter(world, catalog, ScriptedRandom([0.0]), rules, Chronicle(0)) is None

    def test_welcome_and_ignore(self, rules, catalog):
        world = world_of(person("A", 10), season=1)
        maybe_encounter(world, catalog, ScriptedRandom([0.0]), rules, Chronicle(0))
        name = world.encounter.name
        welcome_stranger(world, catalog, rules)
        assert world.encounter is None
        assert world.people[-1].name == name
        with pytest.raises(UserIntentError):
            welcome_stranger(world, catalog, rules)
        with pytest.raises(UserIntentError):
            ignore_stranger(world)

    def test_ignore_sends_them_away(self, rules, catalog):
        world = world_of(person("A", 10), season=2)
        maybe_encounter(world, catalog, ScriptedRandom([0.0]), rules, Chronicle(0))
        ignore_stranger(world)
        assert world.encounter is None
        assert len(world.people) == 1

    def test_dogs_drive_out_the_wolf_sensitive(self, rules):
        keeper = person("Keeper", 10, {"dog": 0.5})
        sensitive = person("Sensitive", 10, blood={"craft_blood": 0.5})
        world = world_of(keeper, sensitive, era=EraKey.ICE)
        left = domestication_emigration(world, ScriptedRandom([0.0]), rules, Chronicle(0))
        assert left == [sensitive]
        assert world.people == [keeper]

    def test_no_dog_no_leaving(self, rules):
        world = world_of(person("S", 10, blood={"craft_blood": 0.9}))
        assert domestication_emigration(world, ScriptedRandom([0.0]), rules, Chronicle(0)) == []


class TestCollapseAndCalendar:
    def test_empty_band_collapses(self, rules):
        world = world_of()
        chronicle = Chronicle(0)
        check_collapse(world, rules, chronicle)
        assert world.collapsed
        assert chronicle.count("collapse") == 1

    def test_dark_and_hungry_is_a_crisis(self, rules):
        world = world_of(person("A", 10), sunlight=0.1, food=0)
        chronicle = Chronicle(0)
        check_collapse(world, rules, chronicle)
        assert not world.collapsed
        assert chronicle.count("crisis") == 1

    def test_winter_wraps_to_a_new_year(self):
        world = world_of(season=3, year=4, years_bp=1000, turn=15)
        advance_calendar(world)
        assert (world.season, world.year, world.years_bp, world.turn) == (0, 5, 999, 16)

    def test_mid_year(self):
        world = world_of(season=1, year=4, years_bp=1000)
        advance_calendar(world)
        assert (world.season, world.year, world.years_bp) == (2, 4, 1000)
