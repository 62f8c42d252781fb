from __future__ import annotations

import pytest

from suitefix.structured import RemovalBatch, RemovalRequest, TestId


def test_test_id_marker_round_trip() -> None:
    test_id = TestId("org.ex.FooTest", "test07")

    assert str(test_id) == "org.ex.FooTest::test07"
    assert test_id.marker() == "--- org.ex.FooTest::test07"
    assert TestId.parse(test_id.marker()) == test_id


@pytest.mark.parametrize("value", ["org.ex.FooTest", "::test1", "org.ex.FooTest::", ""])
def test_test_id_parse_rejects_non_canonical(value: str) -> None:
    with pytest.raises(ValueError):
        TestId.parse(value)


def test_batch_deduplicates_and_merges_line_hints() -> None:
    batch = RemovalBatch()
    test_id = TestId("org.ex.FooTest", "test1")

    assert batch.add_method(test_id, [12]) is True
    assert batch.add_method(test_id, [15, 12]) is False

    (request,) = batch.methods()
    assert request.lines == (12, 15)
    assert len(batch) == 1


def test_class_request_subsumes_pending_and_later_methods() -> None:
    batch = RemovalBatch()
    batch.add_method(TestId("org.ex.FooTest", "test1"))
    batch.add_method(TestId("org.ex.FooTest", "test2"))
    batch.add_method(TestId("org.ex.BarTest", "test1"))

    assert batch.add_class("org.ex.FooTest") is True
    assert batch.add_method(TestId("org.ex.FooTest", "test3")) is False
    assert batch.add_class("org.ex.FooTest") is False

    assert batch.to_lines() == ["--- org.ex.BarTest::test1", "--- org.ex.FooTest"]
    assert "org.ex.FooTest" in batch
    assert TestId("org.ex.FooTest", "test1") not in batch


def test_discard_class_does_not_touch_prefix_siblings() -> None:
    batch = RemovalBatch(
        [
            RemovalRequest.for_method(TestId("org.ex.FooTest", "test1")),
            RemovalRequest.for_method(TestId("org.ex.FooTest2", "test1")),
        ]
    )

    assert batch.discard_class("org.ex.FooTest") == 1
    assert [request.key for request in batch] == ["org.ex.FooTest2::test1"]


def test_batch_from_lines_parses_markers_and_skips_blanks() -> None:
    batch = RemovalBatch.from_lines(
        ["--- org.ex.FooTest::test1", "", "--- org.ex.BarTest", "org.ex.BazTest::test4"]
    )

    assert [request.key for request in batch.methods()] == [
        "org.ex.FooTest::test1",
        "org.ex.BazTest::test4",
    ]
    assert [request.class_name for request in batch.classes()] == ["org.ex.BarTest"]
    assert batch.to_text().splitlines()[0] == "--- org.ex.FooTest::test1"
