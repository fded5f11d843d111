"""Tests for feat prerequisite evaluation."""

from sheetforge.character.models import CharacterFeatInstance
from sheetforge.engine.prerequisites import evaluate_prerequisites, prerequisites_met


def _evaluate(catalog, feat_id, character, **kwargs):
    return evaluate_prerequisites(catalog.feat(feat_id), character, catalog, **kwargs)


class TestEvaluatePrerequisites:
    """Tests for per-clause messages."""

    def test_no_prerequisites(self, catalog, make_character):
        """A feat without clauses yields no messages and is met."""
        messages = _evaluate(catalog, "toughness", make_character())
        assert messages == []
        assert prerequisites_met(messages)

    def test_one_message_per_clause(self, catalog, make_character):
        """Every declared clause produces exactly one message."""
        character = make_character()
        for feat in catalog.feats.values():
            messages = evaluate_prerequisites(feat, character, catalog)
            assert len(messages) == len(feat.prerequisites), feat.id

    def test_all_clauses_reported_when_unmet(self, catalog, make_character):
        """Missing clauses are all listed, not just the first."""
        messages = _evaluate(catalog, "mobility", make_character(abilities={"dexterity": 12}))

        assert [(m.text, m.is_met) for m in messages] == [
            ("Dexterity 13", False),
            ("Dodge", False),
        ]
        assert not prerequisites_met(messages)

    def test_met_is_and_of_clauses(self, catalog, make_character):
        """One failing clause fails the feat."""
        character = make_character(abilities={"dexterity": 13})
        messages = _evaluate(catalog, "mobility", character)
        assert [m.is_met for m in messages] == [True, False]
        assert not prerequisites_met(messages)

        character = make_character(abilities={"dexterity": 13}, feats=["dodge"])
        assert prerequisites_met(_evaluate(catalog, "mobility", character))

    def test_racial_ability_counts(self, catalog, make_character):
        """Ability clauses use final scores."""
        character = make_character(race_id="elf", abilities={"dexterity": 11}, feats=["dodge"])
        assert prerequisites_met(_evaluate(catalog, "mobility", character))

    def test_bab(self, catalog, make_character):
        """BAB clauses use the class tables."""
        assert not prerequisites_met(
            _evaluate(catalog, "weapon_focus", make_character(classes=[("wizard", 1)]))
        )
        messages = _evaluate(catalog, "weapon_focus", make_character())
        assert messages[0].text == "Base Attack Bonus +1"
        assert messages[0].is_met

    def test_skill_ranks(self, catalog, make_character):
        """Skill clauses compare raw ranks."""
        messages = _evaluate(catalog, "mounted_combat", make_character(skills={"ride": 0.5}))
        assert messages[0].text == "Ride 1 ranks"
        assert not messages[0].is_met
        assert prerequisites_met(
            _evaluate(catalog, "mounted_combat", make_character(skills={"ride": 1}))
        )

    def test_character_level(self, catalog, make_character):
        """Character level clauses use the total level."""
        character = make_character(classes=[("fighter", 3), ("rogue", 3)])
        assert prerequisites_met(_evaluate(catalog, "leadership", character))
        assert not prerequisites_met(_evaluate(catalog, "leadership", make_character()))

    def test_caster_level(self, catalog, make_character):
        """Caster level clauses use the best caster class."""
        assert prerequisites_met(
            _evaluate(catalog, "scribe_scroll", make_character(classes=[("wizard", 1)]))
        )
        assert not prerequisites_met(
            _evaluate(catalog, "scribe_scroll", make_character(classes=[("paladin", 3)]))
        )

    def test_alignment(self, catalog, make_character):
        """Alignment clauses match whole words, ignoring case."""
        assert prerequisites_met(
            _evaluate(catalog, "holy_zeal", make_character(alignment="Lawful Good"))
        )
        assert not prerequisites_met(
            _evaluate(catalog, "holy_zeal", make_character(alignment="Neutral Good"))
        )
        assert not prerequisites_met(_evaluate(catalog, "holy_zeal", make_character()))


class TestSameSpecialization:
    """Tests for feat clauses that require the same specialization."""

    def test_matching_specialization(self, catalog, make_character):
        """Weapon Specialization needs Weapon Focus in the same weapon."""
        focus = CharacterFeatInstance(definition_id="weapon_focus", specialization_detail="Rapier")
        character = make_character(classes=[("fighter", 4)], feats=[focus])

        messages = _evaluate(
            catalog, "weapon_specialization", character, specialization_detail="rapier"
        )

        assert messages[0].text == "Weapon Focus (rapier)"
        assert prerequisites_met(messages)

    def test_other_specialization(self, catalog, make_character):
        """Focus in another weapon does not count."""
        focus = CharacterFeatInstance(definition_id="weapon_focus", specialization_detail="Rapier")
        character = make_character(classes=[("fighter", 4)], feats=[focus])

        messages = _evaluate(
            catalog, "weapon_specialization", character, specialization_detail="Longsword"
        )
        assert not messages[0].is_met


class TestSpecialClauses:
    """Tests for free-text special clauses."""

    def test_class_level_phrase(self, catalog, make_character):
        """'Fighter level 4' checks the fighter class level."""
        focus = CharacterFeatInstance(definition_id="weapon_focus", specialization_detail="Axe")
        low = make_character(classes=[("fighter", 3), ("rogue", 2)], feats=[focus])
        high = make_character(classes=[("fighter", 4)], feats=[focus])

        assert not _evaluate(catalog, "weapon_specialization", low, specialization_detail="Axe")[
            1
        ].is_met
        assert _evaluate(catalog, "weapon_specialization", high, specialization_detail="Axe")[
            1
        ].is_met

    def test_turn_undead_phrase(self, catalog, make_character):
        """'Ability to turn or rebuke undead' needs the turn undead feature."""
        assert not prerequisites_met(_evaluate(catalog, "extra_turning", make_character()))
        character = make_character(classes=[("paladin", 4)], feats=["turn_undead"])
        messages = _evaluate(catalog, "extra_turning", character)
        assert messages[0].is_met
        assert messages[0].is_recognized

    def test_unrecognized_phrase_met_but_flagged(self, catalog, make_character):
        """Unknown phrasing is met by default and marked unrecognized."""
        messages = _evaluate(catalog, "strange_gift", make_character())

        assert messages[0].text == "Must have been touched by a comet"
        assert messages[0].is_met
        assert not messages[0].is_recognized

    def test_unrecognized_phrase_policy(self, catalog, make_character):
        """The policy for unknown phrasing can be flipped."""
        messages = _evaluate(
            catalog, "strange_gift", make_character(), unmatched_special_is_met=False
        )
        assert not messages[0].is_met


class TestBundledSpecialClauses:
    """Tests for special clauses in the bundled feats."""

    def test_natural_spell_wild_shape(self, bundled_catalog, make_character):
        """Natural Spell recognizes druids with wild shape."""
        feat = bundled_catalog.feat("natural_spell")
        druid = make_character(classes=[("druid", 5)], abilities={"wisdom": 13})
        messages = evaluate_prerequisites(feat, druid, bundled_catalog)

        assert [m.is_recognized for m in messages] == [True, True]
        assert prerequisites_met(messages)

        young = make_character(classes=[("druid", 4)], abilities={"wisdom": 13})
        assert not prerequisites_met(evaluate_prerequisites(feat, young, bundled_catalog))

    def test_ordinal_class_level(self, bundled_catalog, make_character):
        """'8th-level fighter' checks the fighter class level."""
        feat = bundled_catalog.feat("greater_weapon_focus")
        focus = CharacterFeatInstance(definition_id="weapon_focus", specialization_detail="Axe")
        character = make_character(classes=[("fighter", 8)], feats=[focus])

        messages = evaluate_prerequisites(
            feat, character, bundled_catalog, specialization_detail="axe"
        )
        assert prerequisites_met(messages)
