import threading

import pytest

from codetags.sync_core.index import TagIndex
from codetags.sync_core.models import Tag

pytestmark = pytest.mark.unit


def make_tag(tag_id, path, line=1, tag_type="TODO"):
    return Tag(
        id=tag_id,
        type=tag_type,
        content=f"content {tag_id}",
        absolute_path=path,
        relative_path=path.lstrip("/"),
        line_number=line,
        last_modified=0.0,
    )


def assert_consistent(index):
    tags = index.all_tags()
    assert len({t.id for t in tags}) == len(tags)
    for path in {t.absolute_path for t in tags} | set(index.files()):
        expected = {t.id for t in tags if t.absolute_path == path}
        assert index.ids_for_file(path) == expected


def test_upsert_and_remove_keep_mappings_in_step():
    index = TagIndex()
    index.upsert(make_tag("CT-00000001", "/r/a.py"))
    index.upsert(make_tag("CT-00000002", "/r/a.py", line=2))
    index.upsert(make_tag("CT-00000003", "/r/b.py"))
    assert index.ids_for_file("/r/a.py") == {"CT-00000001", "CT-00000002"}
    assert len(index) == 3

    index.remove("CT-00000001")
    index.remove("CT-DEADBEEF")  # absent: no-op
    assert index.ids_for_file("/r/a.py") == {"CT-00000002"}
    assert_consistent(index)

    index.remove("CT-00000002")
    assert "/r/a.py" not in index.files()
    assert_consistent(index)


def test_upsert_moves_id_between_files():
    index = TagIndex()
    index.upsert(make_tag("CT-00000001", "/r/a.py"))
    index.upsert(make_tag("CT-00000001", "/r/b.py"))
    assert index.ids_for_file("/r/a.py") == set()
    assert index.ids_for_file("/r/b.py") == {"CT-00000001"}
    assert index.get("CT-00000001").absolute_path == "/r/b.py"
    assert_consistent(index)


def test_remove_all_for_file_returns_removed_ids():
    index = TagIndex()
    index.upsert(make_tag("CT-00000001", "/r/a.py"))
    index.upsert(make_tag("CT-00000002", "/r/a.py", line=2))
    index.upsert(make_tag("CT-00000003", "/r/b.py"))
    assert index.remove_all_for_file("/r/a.py") == {"CT-00000001", "CT-00000002"}
    assert index.remove_all_for_file("/r/a.py") == set()
    assert [t.id for t in index.all_tags()] == ["CT-00000003"]
    assert_consistent(index)


def test_replace_file_swaps_whole_set():
    index = TagIndex()
    index.upsert(make_tag("CT-00000001", "/r/a.py"))
    index.upsert(make_tag("CT-00000002", "/r/a.py", line=2))
    index.replace_file("/r/a.py", [make_tag("CT-00000009", "/r/a.py", line=5)])
    assert index.ids_for_file("/r/a.py") == {"CT-00000009"}
    assert "CT-00000001" not in index
    assert_consistent(index)


def test_remove_all_under_respects_separator_boundary():
    index = TagIndex()
    index.upsert(make_tag("CT-0000000A", "foo/a.py"))
    index.upsert(make_tag("CT-0000000B", "foobar/b.py"))
    index.upsert(make_tag("CT-0000000C", "foo"))
    removed = index.remove_all_under(["foo"])
    assert removed == {"CT-0000000A", "CT-0000000C"}
    assert [t.id for t in index.all_tags()] == ["CT-0000000B"]
    assert_consistent(index)


def test_remove_all_under_multiple_prefixes_with_trailing_slash():
    index = TagIndex()
    index.upsert(make_tag("CT-00000001", "/r/build/x.c"))
    index.upsert(make_tag("CT-00000002", "/r/dist/y.c"))
    index.upsert(make_tag("CT-00000003", "/r/src/z.c"))
    index.remove_all_under(["/r/build/", "/r/dist"])
    assert [t.id for t in index.all_tags()] == ["CT-00000003"]


def test_snapshots_are_copies():
    index = TagIndex()
    index.upsert(make_tag("CT-00000001", "/r/a.py"))
    ids = index.ids_for_file("/r/a.py")
    ids.add("CT-FFFFFFFF")
    assert index.ids_for_file("/r/a.py") == {"CT-00000001"}


def test_concurrent_writers_leave_index_consistent():
    index = TagIndex()

    def writer(n):
        path = f"/r/f{n % 4}.py"
        for i in range(200):
            tag_id = f"CT-{n:02X}{i:06X}"
            index.upsert(make_tag(tag_id, path, line=i))
            if i % 3 == 0:
                index.remove(tag_id)
            if i % 50 == 0:
                index.replace_file(path, [make_tag(f"CT-{n:02X}FFFFFF", path)])

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert_consistent(index)


def test_readers_never_see_mappings_out_of_step():
    index = TagIndex()
    done = threading.Event()
    mismatches = []

    def writer():
        try:
            for i in range(2000):
                path = f"/r/pkg/f{i % 5}.py"
                index.replace_file(
                    path, [make_tag(f"CT-{i:06X}{j:02X}", path, line=j) for j in range(3)]
                )
                if i % 7 == 0:
                    index.remove_all_under(["/r/pkg"])
        finally:
            done.set()

    def reader():
        while not done.is_set():
            tags, by_file = index.snapshot()
            for path in {t.absolute_path for t in tags} | set(by_file):
                expected = {t.id for t in tags if t.absolute_path == path}
                if by_file.get(path, set()) != expected or not expected:
                    mismatches.append(path)

    threads = [threading.Thread(target=writer)] + [
        threading.Thread(target=reader) for _ in range(2)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)
    assert mismatches == []
    assert_consistent(index)
