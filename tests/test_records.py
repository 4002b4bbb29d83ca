"""Tests for ContactRecord, the CSV codec and the per-run RecordStore."""

import pytest

from mls_agents.records import (
    HEADERS,
    ContactRecord,
    RecordStore,
    decode,
    dedupe_first,
    dedupe_last,
    encode,
)


class TestCsvCodec:
    def test_header_order(self) -> None:
        assert HEADERS == ["Name", "Company", "Email", "Office", "DirectLine", "Cell", "Fax", "PersonalFax"]

    def test_encode_quotes_every_value(self) -> None:
        data = encode([ContactRecord(name="Doe, Jane", email="j@x.com")])
        lines = data.decode("utf-8").splitlines()
        assert lines[0] == '"Name","Company","Email","Office","DirectLine","Cell","Fax","PersonalFax"'
        assert lines[1] == '"Doe, Jane","","j@x.com","","","","",""'

    def test_encode_empty_dataset_has_header(self) -> None:
        assert decode(encode([])) == []
        assert encode([]).decode("utf-8").startswith('"Name"')

    def test_decode_preserves_values(self) -> None:
        record = ContactRecord(name="Jane", company='Acme "Best" Realty', email="j@x.com", cell="1, 2")
        assert decode(encode([record])) == [record]

    def test_decode_tolerates_bom_and_missing_columns(self) -> None:
        data = "\ufeffName,Email,Notes\nJane,j@x.com,ignored\n".encode("utf-8")
        assert decode(data) == [ContactRecord(name="Jane", email="j@x.com")]


class TestDedupe:
    def test_dedupe_last_keeps_later_record(self) -> None:
        """Two records with the same name shall collapse to the later one."""
        first = ContactRecord(name="Jane", email="old@x.com", cell="1")
        other = ContactRecord(name="Bob", email="b@x.com")
        later = ContactRecord(name=" Jane ", email="new@x.com")
        assert dedupe_last([first, other, later]) == [later, other]

    def test_dedupe_first_keeps_earlier_record(self) -> None:
        first = ContactRecord(name="Jane", email="old@x.com")
        later = ContactRecord(name="Jane", email="new@x.com")
        assert dedupe_first([first, later]) == [first]

    def test_names_are_case_sensitive(self) -> None:
        records = [ContactRecord(name="jane", email="a@x.com"), ContactRecord(name="Jane", email="b@x.com")]
        assert len(dedupe_last(records)) == 2


class TestRecordStore:
    def test_rejects_records_without_email(self) -> None:
        store = RecordStore()
        assert store.add(ContactRecord(name="Jane", email="   ")) is False
        assert store.add(ContactRecord(name="Bob", email="b@x.com")) is True
        assert len(store) == 1

    @pytest.mark.parametrize("name", ["", "   "])
    def test_rejects_records_without_name(self, name: str) -> None:
        store = RecordStore()
        assert store.add(ContactRecord(name=name, email="first@acme.com")) is False
        assert store.add(ContactRecord(name=name, email="second@beta.com")) is False
        assert store.batch() == []

    def test_batch_is_deduplicated_last_wins(self) -> None:
        store = RecordStore()
        store.add(ContactRecord(name="Jane", email="old@x.com", office="1"))
        store.add(ContactRecord(name="Jane", email="new@x.com", office="2"))
        assert len(store.records) == 2
        assert store.batch() == [ContactRecord(name="Jane", email="new@x.com", office="2")]
