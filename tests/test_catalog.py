from __future__ import annotations

import json
import os
import stat

import pytest
from werkzeug.datastructures import MultiDict

from catalog import Record, build_catalog, parse_form, serialize_catalog, write_document
from conftest import record_form
from errors import DuplicateKey, MalformedForm


def test_parse_form_zips_parallel_arrays():
    form = record_form(
        {"key": "p1", "name": "One", "rss": "http://one/rss", "category": "news"},
        {"key": "p2", "name": "Two", "description": "second"},
    )

    pairs = parse_form(form)

    assert pairs == [
        ("p1", Record(name="One", rss="http://one/rss", category="news")),
        ("p2", Record(name="Two", description="second")),
    ]


def test_parse_form_absent_field_reads_as_empty():
    form = MultiDict([("records[][key]", "alpha"), ("records[][name]", "Alpha Show")])
    assert parse_form(form) == [("alpha", Record(name="Alpha Show"))]


def test_parse_form_requires_keys():
    with pytest.raises(MalformedForm):
        parse_form(MultiDict())


def test_parse_form_rejects_ragged_arrays():
    form = MultiDict(
        [
            ("records[][key]", "a"),
            ("records[][key]", "b"),
            ("records[][name]", "only one"),
        ]
    )
    with pytest.raises(MalformedForm, match="'name'"):
        parse_form(form)


def test_build_catalog_rejects_duplicate_keys():
    pairs = [("abc", Record(name="first")), ("abc", Record(name="second"))]
    with pytest.raises(DuplicateKey) as exc_info:
        build_catalog(pairs)
    assert exc_info.value.key == "abc"
    assert "'abc'" in exc_info.value.message


def test_build_catalog_last_duplicate_wins_when_allowed():
    pairs = [("abc", Record(name="first")), ("x", Record()), ("abc", Record(name="second"))]
    catalog = build_catalog(pairs, reject_duplicates=False)
    assert list(catalog) == ["abc", "x"]
    assert catalog["abc"].name == "second"


def test_serialize_keeps_input_order_and_field_order():
    catalog = build_catalog([("zeta", Record(name="Z")), ("alpha", Record(name="Älpha"))])

    text = serialize_catalog(catalog).decode("utf-8")

    assert text.index('"zeta"') < text.index('"alpha"')
    assert "Älpha" in text
    assert '\n   "zeta": {\n      "name": "Z",' in text
    assert list(json.loads(text)["alpha"]) == ["name", "rss", "image", "description", "category"]


def test_write_document_replaces_content(document):
    write_document(document, b'{"new": {}}')

    assert document.read_bytes() == b'{"new": {}}'
    assert stat.S_IMODE(os.stat(document).st_mode) == 0o644
    assert [p.name for p in document.parent.iterdir() if p.name.endswith(".tmp")] == []


def test_write_document_failure_keeps_old_content(document, monkeypatch):
    def broken_replace(src, dst):
        raise OSError("disk on fire")

    monkeypatch.setattr(os, "replace", broken_replace)

    with pytest.raises(OSError):
        write_document(document, b'{"new": {}}')

    assert document.read_text() == "{}"
    assert [p.name for p in document.parent.iterdir() if p.name.endswith(".tmp")] == []
