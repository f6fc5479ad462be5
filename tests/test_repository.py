# File: tests/test_repository.py
"""
TEST: MODEL REPOSITORY INTEGRITY AND LOCKING
===========================================

PURPOSE:
--------
The repository is the only mutable piece of the library. Everything the
solvers see goes through ``snapshot()``, which validates first. These tests
pin down what validation rejects and what the analysis lock forbids:

- duplicate ids (nodes, elements, ...)
- elements pointing at missing nodes, materials or sections
- zero-length elements
- edits while an analysis holds the model

A failing validation must name the offending element so the caller can
find it in a model with thousands of members.
"""

import pytest

from struct_core.errors import (
    DanglingReferenceError,
    DegenerateElementError,
    DuplicateIdError,
    ModelIntegrityError,
    ModelLockedError,
)
from struct_core.model import (
    FIXED,
    Element,
    Load,
    LoadCombination,
    LoadType,
    Material,
    Node,
    Section,
)
from struct_core.repository import ModelRepository


def _column_repo():
    """Single fixed-base column with one dead load case."""
    repo = ModelRepository()
    repo.add_material(Material('C30', 'concrete', 30e6, 25.7e9, 0.2, 2400.0))
    repo.add_section(Section('C40', width=0.4, height=0.4))
    repo.add_node(Node(0, 0.0, 0.0, 0.0, FIXED))
    repo.add_node(Node(1, 0.0, 0.0, 3.5))
    repo.add_element(Element('c1', 'column', 0, 1, 'C30', 'C40'))
    repo.add_load('dead', Load(-10e3, 'FZ', node_id=1), load_type='dead')
    repo.add_combination(LoadCombination('1.4D', (('dead', 1.4),)))
    return repo


def test_valid_model_snapshot():
    """
    A well-formed model validates and its snapshot mirrors what was added.
    """
    repo = _column_repo()
    repo.validate()
    model = repo.snapshot()

    assert model.node_ids == [0, 1]
    assert [e.id for e in model.elements] == ['c1']
    assert model.load_cases['dead'].load_type is LoadType.DEAD
    assert len(model.load_cases['dead'].loads) == 1
    assert model.combination('1.4D').factors == (('dead', 1.4),)
    assert model.restrained_node_ids == [0]
    assert model.story_levels() == [0.0, 3.5]

    print("✓ Snapshot mirrors the repository")


def test_snapshot_is_isolated_from_later_edits():
    """
    WHY DOES THIS MATTER?
    ---------------------
    A running analysis works on its snapshot. Adding to the repository
    after the snapshot was taken must not leak into it.
    """
    repo = _column_repo()
    model = repo.snapshot()
    repo.add_node(Node(2, 5.0, 0.0, 3.5))

    assert len(model.nodes) == 2
    assert repo.node_count == 3
    with pytest.raises(TypeError):
        model.nodes[3] = Node(3, 0.0, 0.0, 0.0)


def test_duplicate_node_id_rejected():
    repo = _column_repo()
    repo.add_node(Node(1, 4.0, 0.0, 3.5))

    with pytest.raises(DuplicateIdError) as info:
        repo.validate()
    assert info.value.node_id == 1


def test_duplicate_element_id_rejected():
    repo = _column_repo()
    repo.add_node(Node(2, 4.0, 0.0, 3.5))
    repo.add_element(Element('c1', 'beam', 1, 2, 'C30', 'C40'))

    with pytest.raises(DuplicateIdError) as info:
        repo.snapshot()
    assert info.value.element_id == 'c1'


def test_dangling_node_reference_names_element():
    """
    WHAT IS THIS TEST?
    ------------------
    Element 'b7' points at node 99, which was never added. The error must
    carry exactly that element id.
    """
    repo = _column_repo()
    repo.add_element(Element('b7', 'beam', 1, 99, 'C30', 'C40'))

    with pytest.raises(DanglingReferenceError) as info:
        repo.validate()
    assert info.value.element_id == 'b7'
    assert info.value.node_id == 99
    assert isinstance(info.value, ModelIntegrityError)

    print(f"✓ Dangling reference reported: {info.value}")


def test_dangling_material_and_section():
    repo = _column_repo()
    repo.add_node(Node(2, 4.0, 0.0, 3.5))
    repo.add_element(Element('b1', 'beam', 1, 2, 'S355', 'C40'))
    with pytest.raises(DanglingReferenceError) as info:
        repo.validate()
    assert info.value.element_id == 'b1'

    repo = _column_repo()
    repo.add_node(Node(2, 4.0, 0.0, 3.5))
    repo.add_element(Element('b1', 'beam', 1, 2, 'C30', 'W310'))
    with pytest.raises(DanglingReferenceError):
        repo.validate()


def test_load_on_missing_element_rejected():
    repo = _column_repo()
    repo.add_load('live', Load(-2e3, 'FZ', element_id='ghost', load_type='distributed'),
                  load_type='live')

    with pytest.raises(DanglingReferenceError) as info:
        repo.validate()
    assert info.value.element_id == 'ghost'


def test_zero_length_element_rejected():
    """Two distinct nodes at the same coordinates give a degenerate element."""
    repo = _column_repo()
    repo.add_node(Node(2, 0.0, 0.0, 3.5))
    repo.add_element(Element('stub', 'beam', 1, 2, 'C30', 'C40'))

    with pytest.raises(DegenerateElementError) as info:
        repo.validate()
    assert info.value.element_id == 'stub'


def test_same_start_and_end_node_rejected():
    repo = _column_repo()
    repo.add_element(Element('loop', 'beam', 1, 1, 'C30', 'C40'))

    with pytest.raises(DegenerateElementError):
        repo.validate()


def test_validate_does_not_mutate():
    """Validation is a pure check: calling it twice changes nothing."""
    repo = _column_repo()
    repo.validate()
    repo.validate()
    assert repo.node_count == 2
    assert repo.element_count == 1
    assert repo.get_node(1).z == 3.5
    assert repo.get_node(42) is None


def test_locked_repository_rejects_edits():
    """
    WHY DOES THIS MATTER?
    ---------------------
    While an analysis runs, its inputs must stay stable. Any add_* during
    that window raises ModelLockedError, and edits work again after release.
    """
    repo = _column_repo()

    with repo.locked_for_analysis():
        assert repo.locked
        with pytest.raises(ModelLockedError):
            repo.add_node(Node(5, 1.0, 1.0, 1.0))
        with pytest.raises(ModelLockedError):
            repo.add_load('dead', Load(-1.0, 'FZ', node_id=1))
        with pytest.raises(ModelLockedError):
            repo.add_combination(LoadCombination('D', (('dead', 1.0),)))

    assert not repo.locked
    repo.add_node(Node(5, 1.0, 1.0, 1.0))
    assert repo.node_count == 3


def test_lock_is_counted():
    """Two concurrent runs each hold the lock; edits resume after both release."""
    repo = _column_repo()
    repo.acquire()
    repo.acquire()
    repo.release()
    assert repo.locked
    repo.release()
    assert not repo.locked


def test_invalid_values_rejected_at_construction():
    with pytest.raises(ValueError):
        Material('bad', 'steel', 250e6, -1.0)
    with pytest.raises(ValueError):
        Section('bad', A=0.1, width=0.2, height=0.2)
    with pytest.raises(ValueError):
        Load(1.0, 'FZ')
    with pytest.raises(ValueError):
        Load(1.0, 'MX', element_id='b1')
    with pytest.raises(ValueError):
        LoadCombination('empty', ())
