"""
Resume store loading, validation and write-back.
"""
import json

import pytest

from flowtree import Document, Node, ResumeEntry, ResumeStore
from flowtree.errors import ResumeStateError
from flowtree.ordering import CompletionQueue
from flowtree.persistence import ResumeState


def _doc(**attrs):
    return Document(Node("root", attrs))


def test_empty_without_attribute():
    assert len(ResumeStore.load(_doc())) == 0


def test_loads_serialized_entries():
    store = ResumeStore.load(_doc(resumes=json.dumps({"/root/a": {"k": "v"}})))
    assert "/root/a" in store
    assert store.get("/root/a") == {"k": "v"}


def test_restart_ignores_entries():
    store = ResumeStore.load(_doc(resumes=json.dumps({"/root/a": {}})), restart=True)
    assert not store.contains("/root/a")


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"/root": {"n": 1}}', '{"/root": "x"}'])
def test_invalid_state_rejected(raw):
    with pytest.raises(ResumeStateError):
        ResumeStore.load(_doc(resumes=raw))


def test_get_returns_a_copy():
    store = ResumeStore({"/root": {"a": "1"}})
    store.get("/root")["a"] = "2"
    assert store.get("/root") == {"a": "1"}


def test_write_to_sets_and_clears_complete():
    doc = _doc()
    store = ResumeStore()
    store.apply(ResumeEntry("/root", {"x": "1"}))

    store.write_to(doc, complete=True)
    assert doc.complete
    assert ResumeState.from_json(doc.resumes).resumes == {"/root": {"x": "1"}}

    store.write_to(doc, complete=False)
    assert not doc.complete
    assert "complete" not in doc.root.attributes


def test_completion_queue_applies_in_order():
    store = ResumeStore()
    queue = CompletionQueue(store)
    queue.start()
    queue.push(ResumeEntry("/root/g", {"v": "inner"}))
    queue.push(ResumeEntry("/root/g", {"v": "outer"}))
    queue.push(ResumeEntry("/root", {}))
    queue.shutdown()
    queue.join()
    assert store.get("/root/g") == {"v": "outer"}
    assert list(store.paths()) == ["/root/g", "/root"]
