"""Tests for the type conversion table."""

from enum import Enum

import pytest

from fieldsync.adapters.airtable import AIRTABLE_CONVERSIONS
from fieldsync.adapters.google_sheets import SHEETS_CONVERSIONS
from fieldsync.adapters.notion import NOTION_CONVERSIONS
from fieldsync.codes import DestinationType
from fieldsync.errors import ConversionTableError
from fieldsync.kernel.conversion import ConversionTable, kind_rank, types
from fieldsync.kernel.models import SourceProperty


class ToyKind(str, Enum):
    TEXT = "text"
    FORMULA = "formula"
    RICH = "rich"


def _table():
    return ConversionTable(
        source="toy",
        kinds=ToyKind,
        types_by_kind={"text": types("string", "formattedText"), "rich": types("formattedText")},
        computed_kinds=frozenset({"formula"}),
        unsupported_computed_results=frozenset({"rich"}),
    )


def _prop(kind, result_kind=None):
    result = SourceProperty(id="p", name="P", kind=result_kind) if result_kind else None
    return SourceProperty(id="p", name="P", kind=kind, result=result)


def test_destination_types_are_ordered_with_default_first():
    table = _table()
    assert table.destination_types_for("text") == [DestinationType.STRING, DestinationType.FORMATTED_TEXT]


def test_unknown_kind_has_no_types():
    table = _table()
    assert table.destination_types_for("mystery") == []
    assert table.destination_types_for(None) == []


def test_computed_property_uses_result_kind():
    table = _table()
    prop = _prop("formula", "text")
    assert table.effective_kind(prop) == "text"
    assert table.conversion_types(prop) == [DestinationType.STRING, DestinationType.FORMATTED_TEXT]
    assert table.is_computed(prop)


def test_computed_rich_text_is_unsupported_but_plain_rich_text_is_not():
    table = _table()
    assert table.conversion_types(_prop("formula", "rich")) == []
    assert table.conversion_types(_prop("rich")) == [DestinationType.FORMATTED_TEXT]


def test_computed_without_result_keeps_declared_kind():
    table = _table()
    assert table.effective_kind(_prop("formula")) == "formula"
    assert table.conversion_types(_prop("formula")) == []


def test_incomplete_table_raises_at_construction():
    with pytest.raises(ConversionTableError) as excinfo:
        ConversionTable(source="toy", kinds=ToyKind, types_by_kind={"text": types("string")})
    assert excinfo.value.missing == {"formula", "rich"}
    assert "formula, rich" in str(excinfo.value)


@pytest.mark.parametrize("table", [AIRTABLE_CONVERSIONS, NOTION_CONVERSIONS, SHEETS_CONVERSIONS])
def test_adapter_tables_cover_every_kind(table):
    declared = {member.value for member in table.kinds}
    assert declared <= set(table.types_by_kind) | set(table.computed_kinds)


def test_airtable_rows():
    assert AIRTABLE_CONVERSIONS.destination_types_for("multipleSelects") == [DestinationType.ENUM, DestinationType.STRING]
    assert AIRTABLE_CONVERSIONS.destination_types_for("multipleRecordLinks") == []
    prop = _prop("rollup", "richText")
    assert AIRTABLE_CONVERSIONS.conversion_types(prop) == []


def test_kind_rank_puts_unknown_kinds_last():
    order = ("title", "rich_text")
    assert kind_rank(order, "title") == 0
    assert kind_rank(order, "rich_text") == 1
    assert kind_rank(order, "number") == 2
