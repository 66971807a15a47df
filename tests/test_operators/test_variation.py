"""Tests for tree creators, crossover and mutation."""

import pytest

from symforge.errors import ConfigurationError
from symforge.expression import FULL, Node, NodeType, PrimitiveSet, Tree
from symforge.operators import (
    BalancedTreeCreator,
    ChangeFunctionMutation,
    ChangeVariableMutation,
    GrowTreeCreator,
    InsertSubtreeMutation,
    MultiMutation,
    NormalCoefficientInitializer,
    OnePointMutation,
    RemoveSubtreeMutation,
    ReplaceSubtreeMutation,
    SubtreeCrossover,
    UniformCoefficientInitializer,
    UniformTreeInitializer,
)
from symforge.operators.base import Creator, Crossover, Mutator


@pytest.fixture
def pset():
    pset = PrimitiveSet(FULL)
    pset.set_arity(NodeType.ADD, 1, 4)
    pset.set_arity(NodeType.MUL, 2, 3)
    return pset


@pytest.fixture
def variables(regression_problem):
    return regression_problem.input_variables


def random_trees(rng, pset, variables, n=50, max_length=30, max_depth=10):
    creator = BalancedTreeCreator(max_length=max_length, max_depth=max_depth)
    return [
        creator(rng, pset, variables, max_length=rng.randint(1, max_length))
        for _ in range(n)
    ]


class TestCreators:
    """Test random tree construction."""

    @pytest.mark.parametrize("creator_cls", [BalancedTreeCreator, GrowTreeCreator])
    def test_limits_and_validity(self, rng, pset, variables, creator_cls):
        creator = creator_cls(max_length=20, max_depth=6)
        assert isinstance(creator, Creator)
        for _ in range(200):
            tree = creator(rng, pset, variables)
            tree.validate()
            assert 1 <= len(tree) <= 20
            assert tree.depth <= 6

    def test_variables_come_from_inputs(self, rng, pset, variables):
        hashes = {v.hash for v in variables}
        for tree in random_trees(rng, pset, variables):
            assert all(n.hash_value in hashes for n in tree if n.is_variable)

    def test_balanced_reaches_target_length(self, rng, variables):
        """With binary functions only, odd targets are hit exactly."""
        pset = PrimitiveSet()
        creator = BalancedTreeCreator()
        for length in (1, 3, 9, 21):
            assert len(creator(rng, pset, variables, max_length=length)) == length

    def test_variables_required(self, rng):
        pset = PrimitiveSet(NodeType.VARIABLE)
        with pytest.raises(ConfigurationError):
            BalancedTreeCreator()(rng, pset, [], max_length=1)

    def test_uniform_initializer(self, rng, pset, variables):
        initializer = UniformTreeInitializer(BalancedTreeCreator(), 3, 9, max_depth=5)
        lengths = [len(initializer(rng, pset, variables)) for _ in range(100)]
        assert max(lengths) <= 9

    def test_uniform_initializer_range(self):
        with pytest.raises(ConfigurationError):
            UniformTreeInitializer(BalancedTreeCreator(), 5, 2)


class TestCoefficientInitializers:
    """Test coefficient initialization."""

    def test_only_constants_change(self, rng, small_dataset, make_variable):
        tree = Tree([
            Node.constant(0.0),
            make_variable(small_dataset, "x1", 2.0),
            Node.function(NodeType.ADD),
        ])
        UniformCoefficientInitializer(5.0, 6.0)(rng, tree)
        assert 5.0 <= tree[0].value <= 6.0
        assert tree[1].value == 2.0

    def test_normal(self, rng):
        tree = Tree([Node.constant(0.0), Node.constant(0.0, optimize=False), Node.function(NodeType.ADD)])
        NormalCoefficientInitializer(10.0, 1e-9)(rng, tree)
        assert tree[0].value == pytest.approx(10.0)
        assert tree[1].value == 0.0


class TestCrossover:
    """Test subtree crossover."""

    def test_child_respects_limits(self, rng, pset, variables):
        crossover = SubtreeCrossover(0.9, max_depth=8, max_length=25)
        assert isinstance(crossover, Crossover)
        trees = random_trees(rng, pset, variables, max_length=25, max_depth=8)
        for _ in range(300):
            lhs, rhs = rng.choice(trees), rng.choice(trees)
            child = crossover(rng, lhs, rhs)
            child.validate()
            assert len(child) <= 25
            assert child.depth <= 8

    def test_parents_untouched(self, rng, pset, variables):
        lhs, rhs = random_trees(rng, pset, variables, n=2)
        before = (lhs.hash_key(True), rhs.hash_key(True))
        SubtreeCrossover()(rng, lhs, rhs)
        assert (lhs.hash_key(True), rhs.hash_key(True)) == before


class TestMutation:
    """Test mutation operators keep trees valid and parents intact."""

    @pytest.fixture
    def mutators(self, pset, variables):
        creator = BalancedTreeCreator()
        init = NormalCoefficientInitializer()
        return [
            OnePointMutation(),
            ChangeVariableMutation(variables),
            ChangeFunctionMutation(pset),
            ReplaceSubtreeMutation(creator, pset, variables, 8, 25, init),
            InsertSubtreeMutation(creator, pset, variables, 8, 25, init),
            RemoveSubtreeMutation(pset, variables),
        ]

    def test_validity_and_limits(self, rng, pset, variables, mutators):
        trees = random_trees(rng, pset, variables, max_length=25, max_depth=8)
        for mutator in mutators:
            assert isinstance(mutator, Mutator)
            for tree in trees:
                before = tree.hash_key(True)
                child = mutator(rng, tree)
                child.validate()
                assert len(child) <= 25
                assert child.depth <= 8
                assert tree.hash_key(True) == before

    def test_one_point_changes_a_coefficient(self, rng):
        tree = Tree([Node.constant(1.0)])
        child = OnePointMutation(0.0, 1.0)(rng, tree)
        assert child[0].value != 1.0
        assert tree[0].value == 1.0

    def test_change_function_keeps_arity(self, rng, pset):
        tree = Tree([Node.constant(1.0), Node.function(NodeType.SIN)])
        for _ in range(20):
            child = ChangeFunctionMutation(pset)(rng, tree)
            assert child.root.arity == 1
            assert child.root.type != NodeType.SIN

    def test_change_function_respects_grammar_arity(self, rng, pset):
        """Only kinds whose configured arity window admits 3 replace a ternary add."""
        tree = Tree([Node.constant(1.0), Node.constant(2.0), Node.constant(3.0), Node.function(NodeType.ADD, 3)])
        kinds = {ChangeFunctionMutation(pset)(rng, tree).root.type for _ in range(50)}
        assert kinds == {NodeType.MUL}

    def test_remove_respects_grammar_arity(self, rng):
        """A binary add never drops to one argument when the grammar requires two."""
        pset = PrimitiveSet(FULL)
        tree = Tree([Node.constant(1.0), Node.constant(2.0), Node.function(NodeType.SIN), Node.function(NodeType.ADD)])
        for _ in range(20):
            child = RemoveSubtreeMutation(pset)(rng, tree)
            child.validate()
            assert child.root.type == NodeType.ADD
            assert child.root.arity == 2

    def test_remove_drops_an_argument(self, rng, pset):
        """A ternary add loses one argument."""
        tree = Tree([Node.constant(1.0), Node.constant(2.0), Node.constant(3.0), Node.function(NodeType.ADD, 3)])
        child = RemoveSubtreeMutation(pset)(rng, tree)
        assert len(child) == 3
        assert child.root.arity == 2

    def test_insert_grows_the_tree(self, rng, variables):
        pset = PrimitiveSet()
        tree = Tree([Node.constant(1.0)])
        child = InsertSubtreeMutation(BalancedTreeCreator(), pset, variables, 10, 50)(rng, tree)
        assert len(child) >= 3
        assert child.root.arity == 2

    def test_multi_mutation_weights(self, rng):
        """A zero-weight mutator is never chosen."""
        calls = []

        def record(name):
            def mutate(rng, tree):
                calls.append(name)
                return tree.copy()
            return mutate

        multi = MultiMutation().add(record("a"), 1.0).add(record("b"), 0.0)
        tree = Tree([Node.constant(1.0)])
        for _ in range(50):
            multi(rng, tree)
        assert set(calls) == {"a"}
        assert len(multi) == 2

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            MultiMutation().add(OnePointMutation(), -1.0)
