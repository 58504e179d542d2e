import pytest

from bizzi.pipeline.pruning import CYCLE_MARKER, ELLIPSIS, prune, truncate_text


def test_long_string_is_cut_to_exact_length_with_ellipsis() -> None:
    out = truncate_text("x" * 50, 10)

    assert len(out) == 10
    assert out.endswith(ELLIPSIS)
    assert out[:9] == "x" * 9


def test_short_string_is_untouched() -> None:
    assert truncate_text("hello", 10) == "hello"
    assert truncate_text("0123456789", 10) == "0123456789"


def test_arrays_are_capped_and_nested_values_walked() -> None:
    bundle = {"rows": [{"note": "y" * 30} for _ in range(8)], "n": 3, "flag": None}

    out = prune(bundle, max_string=12, max_array=5)

    assert len(out["rows"]) == 5
    assert all(len(r["note"]) == 12 for r in out["rows"])
    assert out["n"] == 3
    assert out["flag"] is None


def test_tuples_and_sets_become_lists() -> None:
    out = prune({"t": (1, 2, 3), "s": {"a"}})

    assert out["t"] == [1, 2, 3]
    assert out["s"] == ["a"]


def test_self_reference_is_replaced_by_marker() -> None:
    node: dict = {"name": "root"}
    node["self"] = node
    items: list = [1]
    items.append(items)

    out = prune({"node": node, "items": items})

    assert out["node"]["self"] == CYCLE_MARKER
    assert out["items"] == [1, CYCLE_MARKER]


def test_shared_reference_is_not_a_cycle() -> None:
    shared = {"v": 1}

    out = prune({"a": shared, "b": shared})

    assert out == {"a": {"v": 1}, "b": {"v": 1}}


def test_input_is_not_mutated() -> None:
    bundle = {"rows": list(range(10)), "text": "z" * 20}

    prune(bundle, max_string=5, max_array=3)

    assert len(bundle["rows"]) == 10
    assert len(bundle["text"]) == 20


@pytest.mark.parametrize(
    "value",
    [
        {"a": "q" * 100, "b": list(range(300)), "c": {"d": ["r" * 9000]}},
        ["short", ("t" * 20,), {"k": {1, 2}}],
        "plain",
        42,
    ],
)
def test_prune_is_idempotent(value) -> None:
    once = prune(value, max_string=16, max_array=7)

    assert prune(once, max_string=16, max_array=7) == once
