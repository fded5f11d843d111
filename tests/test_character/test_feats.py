"""Tests for feat list edits, granted feats and feat slots."""

from sheetforge.character.feats import (
    add_feat,
    get_granted_feats,
    granted_instance_id,
    reconcile_granted_feats,
    remove_feat,
    resolve_feat_slots,
    update_specialization,
)
from sheetforge.character.models import CharacterFeatInstance


def _granted(definition_id, source_id, **fields):
    return CharacterFeatInstance(
        definition_id=definition_id,
        instance_id=granted_instance_id(source_id, definition_id),
        is_granted=True,
        **fields,
    )


class TestAddFeat:
    """Tests for adding chosen feats."""

    def test_add(self, catalog):
        """A new feat is appended with a fresh surrogate id."""
        result = add_feat([], "dodge", catalog)

        assert result.accepted
        assert result.violation is None
        assert [instance.definition_id for instance in result.feats] == ["dodge"]
        assert not result.feats[0].is_granted

    def test_input_not_mutated(self, catalog):
        """Edits return a new list and leave the input alone."""
        feats = [CharacterFeatInstance(definition_id="dodge")]
        result = add_feat(feats, "toughness", catalog)

        assert len(feats) == 1
        assert len(result.feats) == 2

    def test_unknown_feat(self, catalog):
        """Unknown definitions are rejected."""
        result = add_feat([], "flying_kick", catalog)

        assert not result.accepted
        assert result.violation.code == "unknown_feat"
        assert result.violation.subject == "flying_kick"

    def test_specialization_required(self, catalog):
        """Specialized feats need a specialization."""
        result = add_feat([], "weapon_focus", catalog, "   ")
        assert result.violation.code == "specialization_required"

    def test_duplicate_single_instance(self, catalog):
        """A single-instance feat can only be taken once."""
        feats = add_feat([], "dodge", catalog).feats
        result = add_feat(feats, "dodge", catalog)

        assert not result.accepted
        assert result.violation.code == "duplicate_feat"
        assert result.feats == feats

    def test_duplicate_of_granted_feat(self, catalog):
        """A feat already granted cannot also be chosen."""
        result = add_feat([_granted("rage", "barbarian")], "rage", catalog)
        assert result.violation.code == "duplicate_feat"

    def test_multiple_instances(self, catalog):
        """Repeatable feats without specialization stack."""
        feats = add_feat([], "toughness", catalog).feats
        result = add_feat(feats, "toughness", catalog)

        assert result.accepted
        assert len(result.feats) == 2
        assert result.feats[0].instance_id != result.feats[1].instance_id

    def test_duplicate_specialization(self, catalog):
        """The same specialization twice is rejected regardless of case."""
        feats = add_feat([], "weapon_focus", catalog, "Longsword").feats
        result = add_feat(feats, "weapon_focus", catalog, " LONGSWORD ")

        assert result.violation.code == "duplicate_specialization"

    def test_other_specialization(self, catalog):
        """A different specialization is a new instance."""
        feats = add_feat([], "weapon_focus", catalog, "Longsword").feats
        result = add_feat(feats, "weapon_focus", catalog, "Rapier")

        assert result.accepted
        assert [i.specialization_detail for i in result.feats] == ["Longsword", "Rapier"]


class TestRemoveFeat:
    """Tests for removing feats."""

    def test_remove(self, catalog):
        """Chosen feats can be removed by instance id."""
        feats = add_feat([], "dodge", catalog).feats
        result = remove_feat(feats, feats[0].instance_id)

        assert result.accepted
        assert result.feats == []

    def test_granted_locked(self):
        """Granted feats cannot be removed."""
        rage = _granted("rage", "barbarian")
        result = remove_feat([rage], rage.instance_id)

        assert result.violation.code == "granted_feat_locked"
        assert result.feats == [rage]

    def test_unknown_instance(self):
        """Unknown instance ids are rejected."""
        assert remove_feat([], "nope").violation.code == "unknown_instance"


class TestUpdateSpecialization:
    """Tests for changing a feat's specialization."""

    def test_update(self, catalog):
        """The specialization detail is replaced on a copy."""
        feats = add_feat([], "weapon_focus", catalog, "Longsword").feats
        result = update_specialization(feats, feats[0].instance_id, "Rapier", catalog)

        assert result.accepted
        assert result.feats[0].specialization_detail == "Rapier"
        assert feats[0].specialization_detail == "Longsword"

    def test_update_to_taken_specialization(self, catalog):
        """Switching onto an existing specialization is rejected."""
        feats = add_feat([], "weapon_focus", catalog, "Longsword").feats
        feats = add_feat(feats, "weapon_focus", catalog, "Rapier").feats
        result = update_specialization(feats, feats[1].instance_id, "longsword", catalog)

        assert result.violation.code == "duplicate_specialization"

    def test_update_to_blank(self, catalog):
        """A required specialization cannot be cleared."""
        feats = add_feat([], "weapon_focus", catalog, "Longsword").feats
        result = update_specialization(feats, feats[0].instance_id, "", catalog)
        assert result.violation.code == "specialization_required"


class TestGrantedFeats:
    """Tests for feats granted by race and class."""

    def test_class_grants(self, catalog, make_character):
        """Class features arrive at their class level."""
        character = make_character(classes=[("paladin", 3)])
        granted = get_granted_feats(character, catalog)

        assert [instance.definition_id for instance in granted] == ["divine_grace"]
        assert granted[0].is_granted
        assert granted[0].instance_id == "granted:paladin:divine_grace"

        character = make_character(classes=[("paladin", 4)])
        assert [i.definition_id for i in get_granted_feats(character, catalog)] == [
            "divine_grace",
            "turn_undead",
        ]

    def test_race_grants_follow_character_level(self, catalog, make_character):
        """Racial grants use the total character level."""
        low = make_character(race_id="versatile", classes=[("fighter", 1), ("rogue", 1)])
        high = make_character(race_id="versatile", classes=[("fighter", 2), ("rogue", 1)])

        assert get_granted_feats(low, catalog) == []
        assert [i.definition_id for i in get_granted_feats(high, catalog)] == ["iron_will"]

    def test_toggle_state_kept(self, catalog, make_character):
        """A surviving granted instance keeps its toggle state."""
        rage = _granted("rage", "barbarian", conditional_effect_states={"raging": True})
        character = make_character(classes=[("barbarian", 2)], feats=[rage])

        granted = get_granted_feats(character, catalog)

        assert granted[0].conditional_effect_states == {"raging": True}

    def test_reconcile_orders_and_drops_duplicates(self, catalog, make_character):
        """Granted feats come first; chosen copies of granted feats are dropped."""
        character = make_character(
            race_id="versatile",
            classes=[("barbarian", 3)],
            feats=["dodge", "iron_will", "toughness"],
        )
        feats = reconcile_granted_feats(character, catalog)

        assert [(i.definition_id, i.is_granted) for i in feats] == [
            ("iron_will", True),
            ("rage", True),
            ("dodge", False),
            ("toughness", False),
        ]

    def test_reconcile_removes_lost_grants(self, catalog, make_character):
        """Grants from a class the character no longer has disappear."""
        character = make_character(
            classes=[("fighter", 1)], feats=[_granted("rage", "barbarian"), "dodge"]
        )
        feats = reconcile_granted_feats(character, catalog)
        assert [i.definition_id for i in feats] == ["dodge"]

    def test_reconcile_idempotent(self, catalog, make_character):
        """Reconciling a reconciled list changes nothing."""
        character = make_character(classes=[("paladin", 4)], feats=["dodge"])
        once = reconcile_granted_feats(character, catalog)
        twice = reconcile_granted_feats(character.model_copy(update={"feats": once}), catalog)
        assert twice == once


class TestFeatSlots:
    """Tests for feat slot accounting."""

    def test_over_budget_human_fighter(self, catalog, make_character):
        """A 1st-level human fighter with two chosen feats is one slot over."""
        character = make_character(feats=["dodge", "power_attack"])
        slots = resolve_feat_slots(character, catalog)

        assert slots.base == 1
        assert slots.level_progression == 0
        assert slots.racial == 0
        assert slots.total == 1
        assert slots.slots_left == -1
        assert slots.is_over_budget

    def test_level_progression(self, catalog, make_character):
        """One extra slot every third level."""
        slots = resolve_feat_slots(make_character(classes=[("rogue", 7)]), catalog)
        assert slots.level_progression == 2
        assert slots.base == 3
        assert slots.total == 3

    def test_base_includes_level_slots(self, catalog, make_character):
        """The base count is 1 plus one slot per three character levels."""
        slots = resolve_feat_slots(make_character(classes=[("rogue", 3)]), catalog)
        assert slots.base == 2
        assert slots.unrestricted_total == 2

    def test_racial_slot(self, catalog, make_character):
        """Racial bonus slots come from the catalog."""
        slots = resolve_feat_slots(make_character(race_id="versatile"), catalog)
        assert slots.racial == 1
        assert slots.total == 2

    def test_granted_feats_use_no_slot(self, catalog, make_character):
        """Granted feats are not counted."""
        character = make_character(
            classes=[("barbarian", 1)], feats=[_granted("rage", "barbarian"), "dodge"]
        )
        slots = resolve_feat_slots(character, catalog)

        assert slots.chosen_count == 1
        assert slots.slots_left == 0

    def test_class_pool_assignment(self, catalog, make_character):
        """Chosen feats fill a matching class pool before the open slots."""
        character = make_character(
            classes=[("warrior", 2)], feats=["dodge", "power_attack", "leadership"]
        )
        slots = resolve_feat_slots(character, catalog)

        pool = slots.class_bonus_details[0]
        assert (pool.pool_id, pool.granted, pool.used) == ("warrior_bonus", 2, 2)
        assert slots.unrestricted_used == 1
        assert slots.total == 3
        assert slots.slots_left == 0
        assert slots.eligible_feat_categories() == []

    def test_pool_category_mismatch(self, catalog, make_character):
        """Feats outside the pool's category go to the open slots."""
        character = make_character(classes=[("monk", 1)], feats=["dodge"])
        slots = resolve_feat_slots(character, catalog)

        assert slots.class_bonus_details[0].used == 0
        assert slots.unrestricted_used == 1
        assert slots.eligible_feat_categories() == ["monk"]

    def test_pool_matches_category(self, catalog, make_character):
        """Feats of the pool's category fill the pool."""
        character = make_character(classes=[("monk", 2)], feats=["stunning_fist"])
        slots = resolve_feat_slots(character, catalog)

        assert slots.class_bonus_details[0].granted == 2
        assert slots.class_bonus_details[0].remaining == 1
        assert slots.eligible_feat_categories() is None

    def test_no_pool_before_level(self, catalog, make_character):
        """Pools appear once their first level is reached."""
        slots = resolve_feat_slots(make_character(classes=[("fighter", 1)]), catalog)
        assert slots.class_bonus_details == ()
