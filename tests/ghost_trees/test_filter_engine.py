"""Tests for the filter engine — clamp-on-write and visible_features."""

import itertools

import pytest

from ghost_trees.filters import FilterEngine, FilterState, visible_features
from ghost_trees.layers import FeatureStore
from ghost_trees.session import SessionState


@pytest.fixture
def state():
    return SessionState()


@pytest.fixture
def engine(state):
    return FilterEngine(state)


def _load(raw_features):
    return FeatureStore().load({"features": raw_features}).features


@pytest.mark.unit
class TestMutationProtocol:
    """Setting a bound past the other pulls the other along."""

    def test_start_after_end_raises_end(self, engine, state):
        """A start past the end pulls the end up."""
        engine.set_end_year(2019)
        engine.set_start_year(2021)
        assert (state.filters.start_year, state.filters.end_year) == (2021, 2021)

    def test_end_before_start_lowers_start(self, engine, state):
        """An end before the start pulls the start down."""
        engine.set_start_year("2020")
        engine.set_end_year("2019")
        assert (state.filters.start_year, state.filters.end_year) == (2019, 2019)

    def test_consistent_bounds_untouched(self, engine, state):
        """Ordered bounds are stored as given."""
        engine.set_start_year(2018)
        engine.set_end_year(2021)
        assert (state.filters.start_year, state.filters.end_year) == (2018, 2021)

    def test_clearing_a_bound(self, engine, state):
        """None clears one bound and keeps the other."""
        engine.set_start_year(2018)
        engine.set_end_year(2021)
        engine.set_start_year(None)
        assert state.filters.start_year is None
        assert state.filters.end_year == 2021

    def test_empty_string_clears(self, engine, state):
        """An empty string clears the bound."""
        engine.set_start_year(2018)
        engine.set_start_year("")
        assert state.filters.start_year is None

    def test_min_trees_replaced(self, engine, state):
        """Each set replaces min_trees; None clears it."""
        engine.set_min_trees(5)
        engine.set_min_trees(8)
        assert state.filters.min_trees == 8
        engine.set_min_trees(None)
        assert state.filters.min_trees is None

    def test_min_trees_clamped_to_one(self, engine, state):
        """Values below 1 become 1."""
        engine.set_min_trees(0)
        assert state.filters.min_trees == 1

    @pytest.mark.parametrize("setter,value", [
        ("set_start_year", 2020),
        ("set_end_year", 2020),
        ("set_min_trees", 3),
    ])
    def test_every_mutation_clears_focus(self, engine, state, setter, value):
        """Any setter clears the focused record."""
        state.focused_id = "12"
        getattr(engine, setter)(value)
        assert state.focused_id is None

    def test_apply_only_touches_present_keys(self, engine, state):
        """Partial updates leave absent keys alone."""
        engine.set_min_trees(4)
        engine.apply({"start_year": 2019})
        assert state.filters.start_year == 2019
        assert state.filters.min_trees == 4

    def test_apply_order_start_then_end(self, engine, state):
        """apply sets start before end."""
        engine.apply({"start_year": "2020", "end_year": "2019"})
        assert (state.filters.start_year, state.filters.end_year) == (2019, 2019)

    def test_reset(self, engine, state):
        """reset clears all filters."""
        engine.apply({"start_year": 2019, "min_trees": 3})
        engine.reset()
        assert state.filters == FilterState()

    def test_clamp_invariant_over_sequences(self, engine, state):
        """start <= end holds after any sequence of bound mutations."""
        years = [None, 2018, 2019, 2020, 2021]
        for ops in itertools.product(["start", "end"], repeat=3):
            for values in itertools.product(years, repeat=3):
                engine.reset()
                for op, value in zip(ops, values):
                    if op == "start":
                        engine.set_start_year(value)
                    else:
                        engine.set_end_year(value)
                f = state.filters
                if f.start_year is not None and f.end_year is not None:
                    assert f.start_year <= f.end_year


@pytest.mark.unit
class TestVisibleFeatures:
    """Year and tree-count tests combine with AND."""

    def test_no_filters_pass_everything(self, tree_document):
        """No filters, everything visible."""
        features = FeatureStore().load(tree_document).features
        assert visible_features(features, FilterState()) == features

    def test_year_range_inclusive(self, tree_document):
        """Both bounds are inclusive."""
        features = FeatureStore().load(tree_document).features
        visible = visible_features(features, FilterState(start_year=2020, end_year=2021))
        assert [f.feature_id for f in visible] == ["1", "2", "4"]

    def test_missing_year_excluded_when_any_bound_set(self, tree_document):
        """Records without a year fail any year bound."""
        features = FeatureStore().load(tree_document).features
        visible = visible_features(features, FilterState(start_year=1900))
        assert "3" not in [f.feature_id for f in visible]

    def test_start_only(self, tree_document):
        """A start bound alone is one-sided."""
        features = FeatureStore().load(tree_document).features
        visible = visible_features(features, FilterState(start_year=2021))
        assert [f.feature_id for f in visible] == ["2"]

    def test_end_only(self, tree_document):
        """An end bound alone is one-sided."""
        features = FeatureStore().load(tree_document).features
        visible = visible_features(features, FilterState(end_year=2019))
        assert [f.feature_id for f in visible] == ["0"]

    def test_min_trees_excludes_unparseable(self, tree_document):
        """Unparseable tree counts fail min_trees."""
        features = FeatureStore().load(tree_document).features
        visible = visible_features(features, FilterState(min_trees=1))
        assert "4" not in [f.feature_id for f in visible]

    def test_tree_count_scenario(self, feature_factory):
        """"7" passes at 5 and fails at 8."""
        features = _load([feature_factory(Num_of_Trees="7")])
        assert len(visible_features(features, FilterState(min_trees=5))) == 1
        assert visible_features(features, FilterState(min_trees=8)) == []

    def test_missing_tree_count_excluded(self, feature_factory):
        """Records without a tree count fail min_trees."""
        features = _load([feature_factory(Year="2020")])
        assert visible_features(features, FilterState(min_trees=1)) == []

    def test_combined(self, tree_document):
        """Year and tree tests must both pass."""
        features = FeatureStore().load(tree_document).features
        visible = visible_features(features, FilterState(start_year=2020, min_trees=10))
        assert [f.feature_id for f in visible] == ["2"]

    def test_idempotent(self, tree_document):
        """Filtering twice gives the same result."""
        features = FeatureStore().load(tree_document).features
        state = FilterState(start_year=2019, end_year=2020, min_trees=2)
        assert visible_features(features, state) == visible_features(features, state)

    def test_min_trees_monotonic(self, tree_document):
        """Raising min_trees never adds records."""
        features = FeatureStore().load(tree_document).features
        sizes = [
            len(visible_features(features, FilterState(min_trees=n)))
            for n in range(1, 15)
        ]
        assert sizes == sorted(sizes, reverse=True)

    def test_three_year_scenario(self, feature_factory):
        """start 2020 then end 2019 leaves 2019..2019 and one feature."""
        features = _load([
            feature_factory(Year="2019"),
            feature_factory(Year="2020"),
            feature_factory(Year="2021"),
        ])
        state = SessionState()
        engine = FilterEngine(state)
        engine.set_start_year("2020")
        engine.set_end_year("2019")
        visible = visible_features(features, state.filters)
        assert [f.year for f in visible] == ["2019"]
