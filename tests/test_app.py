import importlib
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
from calc import convert_by_density, ConversionError, PriceState, ShoppingRow, Unit


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("CHEF_TOOLS_DATA_DIR", str(tmp_path))
    module = importlib.import_module("app")
    importlib.reload(module)
    return module


def test_session_seeded_with_sample_data(app):
    import streamlit as st
    assert st.session_state.planner["seats"] == 4
    assert st.session_state.densities["Cornmeal"] == 160


def test_shopping_csv(app):
    rows = [
        ShoppingRow(ingredient="Tomato", display_name="Tomato", total_amount=1.2000000000000002,
                    unit=Unit.POUNDS, unit_count=2, type_of_unit=Unit.POUNDS, price=3.0),
        ShoppingRow(ingredient="Tomato", display_name='Tomato "Roma" (Bag)', total_amount=2,
                    unit=Unit.BAG, type_of_unit=Unit.BAG, price_state=PriceState.DERIVED),
    ]
    lines = app.shopping_csv(rows).split("\n")
    assert lines[0] == '"Ingredient","Total Amount","Unit","Num Units","Type of Unit","Price"'
    assert lines[1] == '"Tomato","1.2","Pounds","2","Pounds","3.00"'
    assert lines[2] == '"Tomato ""Roma"" (Bag)","2","Bag","","Bag",""'


def test_conversion_text(app):
    assert app.conversion_text(convert_by_density(100, "g", 120)) == "0.833 cup(s) · 13.33 tbsp · 40.00 tsp (100.0 g)"
    assert app.conversion_text(ConversionError.UNKNOWN_DENSITY) == "Unknown density — add it below"


def test_conversions_csv_uses_override_name(app):
    rows = [
        {"ingredient": "All-Purpose Flour", "override": "  Flour   for bread ", "amount": "100", "unit": "g"},
        {"ingredient": "", "override": "", "amount": "", "unit": "g"},
    ]
    lines = app.conversions_csv(rows, {"All-Purpose Flour": 120}).split("\n")
    assert lines[1].startswith('"Flour for bread","100","g","0.833 cup(s)')
    assert lines[2] == '"","","g","Pick ingredient"'


def test_format_money_locale(app):
    import streamlit as st
    st.session_state["locale"] = "en_US"
    assert app.format_money(1234.5, "USD") == "$1,234.50"
    assert app.format_money(None) == "—"


def test_overflowing_amount_shows_message(app):
    rows = [{"ingredient": "All-Purpose Flour", "override": "", "amount": "1e308", "unit": "kg"}]
    lines = app.conversions_csv(rows, {"All-Purpose Flour": 120}).split("\n")
    assert lines[1] == '"All-Purpose Flour","1e308","kg","Enter amount"'
