"""Tests for primitive kinds and the primitive set."""

import random

import pytest

from symforge.errors import ConfigurationError
from symforge.expression import (
    ARITHMETIC,
    FULL,
    NodeType,
    PrimitiveSet,
    format_primitive_set,
    parse_primitive_set_config,
)


class TestPrimitiveSet:
    """Test enabling, frequencies and arity windows."""

    def test_default_is_arithmetic(self):
        pset = PrimitiveSet()
        assert pset.config == ARITHMETIC
        assert pset.is_enabled(NodeType.DIV)
        assert not pset.is_enabled(NodeType.SIN)

    def test_enable_disable(self):
        pset = PrimitiveSet()
        pset.enable(NodeType.EXP, frequency=2.0)
        pset.disable(NodeType.DIV)
        assert pset.is_enabled(NodeType.EXP)
        assert pset.frequency(NodeType.EXP) == 2.0
        assert not pset.is_enabled(NodeType.DIV)

    def test_function_arity_limits(self):
        pset = PrimitiveSet(ARITHMETIC | NodeType.SIN)
        assert pset.function_arity_limits() == (1, 2)
        pset.set_arity(NodeType.ADD, 2, 4)
        assert pset.function_arity_limits() == (1, 4)

    def test_leaves_only(self):
        pset = PrimitiveSet(NodeType.CONSTANT | NodeType.VARIABLE)
        assert pset.function_arity_limits() == (0, 0)

    def test_invalid_arity_window(self):
        pset = PrimitiveSet()
        with pytest.raises(ConfigurationError):
            pset.set_arity(NodeType.AQ, 1, 2)

    def test_negative_frequency(self):
        with pytest.raises(ConfigurationError):
            PrimitiveSet().set_frequency(NodeType.ADD, -1.0)

    def test_sampling_respects_arity(self):
        """Sampled symbols fall inside the requested arity range."""
        pset = PrimitiveSet(FULL)
        rng = random.Random(0)
        for _ in range(200):
            node = pset.sample_random_symbol(rng, 1, 1)
            assert node.arity == 1
        for _ in range(50):
            assert pset.sample_random_symbol(rng, 0, 0).is_leaf

    def test_zero_frequency_never_sampled(self):
        pset = PrimitiveSet()
        pset.set_frequency(NodeType.CONSTANT, 0.0)
        rng = random.Random(0)
        assert all(pset.sample_random_symbol(rng, 0, 0).is_variable for _ in range(50))

    def test_no_candidates(self):
        pset = PrimitiveSet(NodeType.CONSTANT | NodeType.VARIABLE)
        with pytest.raises(ConfigurationError):
            pset.sample_random_symbol(random.Random(0), 1, 2)


class TestParsing:
    """Test symbol list parsing and table rendering."""

    def test_parse(self):
        assert parse_primitive_set_config("sin, exp") == NodeType.SIN | NodeType.EXP

    def test_parse_unknown(self):
        with pytest.raises(ConfigurationError):
            parse_primitive_set_config("sin,bogus")

    def test_format_lists_every_symbol(self):
        table = format_primitive_set(PrimitiveSet())
        assert "aq" in table
        assert len(table.splitlines()) == 1 + len(list(NodeType))
