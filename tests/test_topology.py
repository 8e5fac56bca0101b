"""Tests for inheritance ordering and model selection."""

import pytest

from specgen.errors import CyclicInheritanceError
from specgen.models import SchemaDefinition
from specgen.naming import to_pascal_case
from specgen.topology import inheritance_depth, select_models, sort_models


def _schemas(**parents):
    """Build schemas where each keyword maps a name to its parent (or None)."""
    return {name: SchemaDefinition(name=name, parent=parent) for name, parent in parents.items()}


class TestInheritanceDepth:
    """Test parent chain length computation."""

    def test_root_has_depth_zero(self):
        schemas = _schemas(Animal=None)
        assert inheritance_depth("Animal", schemas) == 0

    def test_chain(self):
        schemas = _schemas(Animal=None, Dog="Animal", Puppy="Dog")
        assert inheritance_depth("Puppy", schemas) == 2

    def test_unknown_parent_ends_chain(self):
        """A parent not defined in the document does not add depth."""
        schemas = _schemas(Dog="Missing")
        assert inheritance_depth("Dog", schemas) == 0

    def test_first_interface_counts_as_parent(self):
        schemas = {
            "Named": SchemaDefinition(name="Named"),
            "Dated": SchemaDefinition(name="Dated"),
            "Doc": SchemaDefinition(name="Doc", interfaces=("Named", "Dated")),
        }
        assert inheritance_depth("Doc", schemas) == 1

    def test_cycle_raises(self):
        schemas = _schemas(A="B", B="C", C="A")
        with pytest.raises(CyclicInheritanceError) as excinfo:
            inheritance_depth("A", schemas)
        assert excinfo.value.chain == ["A", "B", "C", "A"]

    def test_cache_is_filled(self):
        schemas = _schemas(Animal=None, Dog="Animal")
        cache = {}
        inheritance_depth("Dog", schemas, cache)
        assert cache["Dog"] == 1


class TestSortModels:
    """Test that ancestors always come before descendants."""

    def test_parents_first(self):
        schemas = _schemas(Zebra=None, Puppy="Dog", Dog="Animal", Animal=None)
        order = sort_models(schemas, schemas, to_pascal_case)
        assert order.index("Animal") < order.index("Dog") < order.index("Puppy")

    def test_ties_broken_by_type_name(self):
        schemas = _schemas(zebra=None, Apple=None, mango=None)
        assert sort_models(schemas, schemas, to_pascal_case) == ["Apple", "mango", "zebra"]

    def test_deterministic_regardless_of_input_order(self):
        schemas = _schemas(B=None, A=None, C="A", D="C")
        forward = sort_models(list(schemas), schemas, to_pascal_case)
        backward = sort_models(list(reversed(list(schemas))), schemas, to_pascal_case)
        assert forward == backward == ["A", "B", "C", "D"]


class TestSelectModels:
    """Test allow-list and import-mapping exclusion."""

    def setup_method(self):
        self.schemas = _schemas(Pet=None, Money=None, Order=None)

    def test_import_mapped_models_excluded(self):
        selected = select_models(self.schemas, {"Money": "from decimal import Decimal"})
        assert selected == ["Pet", "Order"]

    def test_ignore_import_mapping_keeps_them(self):
        selected = select_models(self.schemas, {"Money": "x"}, ignore_import_mapping=True)
        assert selected == ["Pet", "Money", "Order"]

    def test_allow_list(self):
        selected = select_models(self.schemas, {}, allow=["Order"])
        assert selected == ["Order"]
