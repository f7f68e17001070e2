"""
Resume behaviour: completed nodes are skipped and their environment restored.
"""
import json

import pytest

from flowtree import parse
from flowtree.errors import ResumeStateError


TASKS = """
%root
  %mark(name="A")
  %mark(name="B")
  %check(name="C")
  %mark(name="D")
"""


def test_second_run_performs_nothing(make_engine, outputs, recorder):
    doc = parse("""
%root
  %group
    %env(color="red")
    %shell echo $color
  %mark(name="A")
""")
    engine = make_engine()
    assert engine.perform(doc).ok
    assert recorder.calls == ["A"]

    outputs.reset()
    engine.system_output, engine.command_output = outputs.system, outputs.command
    result = engine.perform(doc)

    assert result.ok
    assert doc.complete
    assert recorder.calls == ["A"]
    assert outputs.events("perform element") == []
    assert outputs.events("skip group") == ["/root"]
    assert outputs.command.getvalue() == "<command output>\n</command output>\n"


def test_resume_at_failed_node(make_engine, recorder):
    doc = parse(TASKS)
    recorder.failing.add("C")
    first = make_engine().perform(doc)

    assert first.has_error()
    assert recorder.calls == ["A", "B"]
    assert "complete" not in doc.root.attributes
    resumes = json.loads(doc.resumes)
    assert set(resumes) == {"/root/mark[1]", "/root/mark[2]"}

    recorder.failing.clear()
    second = make_engine().perform(doc)

    assert second.ok
    assert recorder.calls == ["A", "B", "C", "D"]
    assert doc.complete
    assert "/root" in json.loads(doc.resumes)


def test_skipped_nodes_restore_environment(make_engine, recorder):
    doc = parse("""
%root
  %env(color="red")
  %group
    %env(size="big")
  %check(name="C")
  %probe(name="p")
""")
    recorder.failing.add("C")
    assert make_engine().perform(doc).has_error()

    recorder.failing.clear()
    assert make_engine().perform(doc).ok
    # the group's own changes stay inside the group
    assert recorder.seen_env["p"] == {"color": "red"}


def test_failed_run_clears_stale_complete_flag(make_engine, recorder):
    doc = parse(TASKS)
    assert make_engine().perform(doc).ok
    assert doc.complete

    recorder.failing.add("C")
    assert make_engine().perform(doc, rerun=True).has_error()
    assert not doc.complete


def test_rerun_ignores_recorded_progress(make_engine, recorder):
    doc = parse(TASKS)
    make_engine().perform(doc)
    make_engine().perform(doc, rerun=True)
    assert recorder.calls == ["A", "B", "C", "D", "A", "B", "C", "D"]


def test_chdir_is_reapplied_when_skipped(make_engine, outputs, recorder, tmp_path):
    (tmp_path / "marker.txt").write_text("x")
    doc = parse(f"""
%root
  %chdir {tmp_path}
  %check(name="C")
  %shell echo *
""")
    recorder.failing.add("C")
    assert make_engine().perform(doc).has_error()

    recorder.failing.clear()
    outputs.reset()
    assert make_engine().perform(doc).ok
    assert "marker.txt" in outputs.command.getvalue()


def test_resume_state_survives_dump_and_parse(make_engine, recorder):
    from flowtree import dump

    doc = parse(TASKS)
    recorder.failing.add("C")
    make_engine().perform(doc)

    reparsed = parse(dump(doc))
    recorder.failing.clear()
    assert make_engine().perform(reparsed).ok
    assert recorder.calls == ["A", "B", "C", "D"]


def test_corrupt_resume_state_is_rejected(make_engine):
    doc = parse('%root(resumes="not json")\n  %mark(name="A")\n')
    with pytest.raises(ResumeStateError):
        make_engine().perform(doc)
