# app.py
# =============================================================================
# Chef Tools — Menu Planner + Ingredient Converter
# =============================================================================

import logging
import os
from datetime import date
from typing import Dict, List

import streamlit as st
import matplotlib.pyplot as plt  # cost breakdown pie chart
from babel.numbers import format_currency, format_decimal

import storage
from calc import (
    ALL_UNITS,
    UNIT_NAMES,
    ConversionError,
    IngredientLine,
    InvalidInput,
    MetricUnit,
    ShoppingRow,
    convert_ingredient,
    edit_row_quantity,
    format_fixed,
    price_decimals,
    format_quantity,
    generate_shopping_list,
    priced_total,
    record_row_price,
    refresh_row_price,
)

# -----------------------------------------------------------------------------
# CONFIG
# -----------------------------------------------------------------------------
st.set_page_config(page_title="Chef Tools", layout="wide")

logging.basicConfig(
    level=os.environ.get("CHEF_TOOLS_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

UNIT_COUNT_CHOICES = [""] + list(range(0, 101))
METRIC_UNITS = [u.value for u in MetricUnit]

# -----------------------------------------------------------------------------
# STATE
# -----------------------------------------------------------------------------
if "planner" not in st.session_state:
    st.session_state.planner = storage.load_planner()
if "shopping" not in st.session_state:
    st.session_state.shopping = []
if "densities" not in st.session_state:
    st.session_state.densities = storage.load_densities()
if "converter_rows" not in st.session_state:
    st.session_state.converter_rows = storage.load_converter_rows()
if "locale" not in st.session_state:
    st.session_state["locale"] = "en_US"
if "currency" not in st.session_state:
    st.session_state["currency"] = "USD"


def save_planner():
    storage.save_planner(st.session_state.planner)


# -----------------------------------------------------------------------------
# FORMATTING / EXPORT
# -----------------------------------------------------------------------------
def format_money(x, cur=None):
    if x is None:
        return "—"
    locale = st.session_state.get("locale", "en_US")
    return format_currency(x, cur or st.session_state.get("currency", "USD"), locale=locale)


def format_number(x, decimals: int = 2) -> str:
    """Format a generic number following the current locale."""
    locale = st.session_state.get("locale", "en_US")
    pattern = f"#,##0.{ '0'*decimals }" if decimals > 0 else "#,##0"
    return format_decimal(x, format=pattern, locale=locale)


def _csv_line(values) -> str:
    return ",".join('"' + str(v).replace('"', '""') + '"' for v in values)


def shopping_csv(rows: List[ShoppingRow]) -> str:
    lines = [_csv_line(["Ingredient", "Total Amount", "Unit", "Num Units", "Type of Unit", "Price"])]
    for r in rows:
        lines.append(_csv_line([
            r.display_name,
            format_quantity(r.total_amount),
            r.unit.value,
            "" if r.unit_count is None else r.unit_count,
            "" if r.type_of_unit is None else r.type_of_unit.value,
            "" if r.price is None else format_fixed(r.price, 2),
        ]))
    return "\n".join(lines)


def conversion_text(result) -> str:
    if isinstance(result, ConversionError):
        return result.message
    return (
        f"{format_fixed(result.cups, 3)} cup(s) · {format_fixed(result.tbsp, 2)} tbsp · "
        f"{format_fixed(result.tsp, 2)} tsp ({result.grams:.1f} g)"
    )


def row_display_name(row: Dict[str, str]) -> str:
    name = (row.get("override") or "").strip() or row.get("ingredient") or ""
    return " ".join(name.split())


def conversions_csv(rows: List[Dict[str, str]], densities: Dict[str, float]) -> str:
    lines = [_csv_line(["Ingredient", "Amount", "Unit", "Conversions"])]
    for r in rows:
        result = convert_ingredient(r.get("ingredient", ""), r.get("amount", ""), r.get("unit") or "g", densities)
        lines.append(_csv_line([row_display_name(r), r.get("amount", ""), r.get("unit", ""), conversion_text(result)]))
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# SHOPPING LIST CALLBACKS
# -----------------------------------------------------------------------------
def _reset_shopping_widgets():
    for k in [k for k in st.session_state.keys() if str(k).startswith("shop_")]:
        del st.session_state[k]


def _sync_price_widget(idx: int):
    st.session_state[f"shop_price_{idx}"] = st.session_state.shopping[idx].price


def generate_list():
    planner = st.session_state.planner
    seats = int(st.session_state.get("planner_seats") or 1)
    planner["seats"] = max(seats, 1)
    lines = [IngredientLine.from_dict(d) for d in planner["ingredient_lines"]]
    _reset_shopping_widgets()
    st.session_state.shopping = generate_shopping_list(lines, planner["seats"])
    save_planner()
    logger.info("Shopping list generated: %d rows for %d seats", len(st.session_state.shopping), planner["seats"])


def clear_list():
    _reset_shopping_widgets()
    st.session_state.shopping = []


def on_quantity_change(idx: int):
    row = st.session_state.shopping[idx]
    count = st.session_state[f"shop_count_{idx}"]
    unit = st.session_state[f"shop_type_{idx}"]
    edit_row_quantity(row, st.session_state.planner["catalog"], unit_count=count, type_of_unit=unit)
    _sync_price_widget(idx)


def on_price_change(idx: int):
    row = st.session_state.shopping[idx]
    try:
        record_row_price(row, st.session_state.planner["catalog"], st.session_state[f"shop_price_{idx}"])
    except InvalidInput as e:
        st.session_state["shop_error"] = str(e)
        return
    save_planner()
    for j, other in enumerate(st.session_state.shopping):
        if j != idx and refresh_row_price(other, st.session_state.planner["catalog"]):
            _sync_price_widget(j)


def remove_row(idx: int):
    st.session_state.shopping.pop(idx)
    _reset_shopping_widgets()


# -----------------------------------------------------------------------------
# UI — sidebar navigation
# -----------------------------------------------------------------------------
sections = ["Menu Planner", "Ingredient Converter", "Settings"]
page = st.sidebar.selectbox("Navigate", sections, key="nav")

# -----------------------------------------------------------------------------
# MENU PLANNER
# -----------------------------------------------------------------------------
if page == "Menu Planner":
    planner = st.session_state.planner
    st.header("Menu Planner")
    tab_menu, tab_ing, tab_shop, tab_cat = st.tabs(["Menu", "Ingredients", "Shopping list", "Price catalog"])

    with tab_menu:
        st.subheader("Dishes 🍽️")
        for idx, dish in enumerate(list(planner["menu"])):
            c1, c2, c3 = st.columns([2, 3, 1])
            new_name = c1.text_input("Dish name", value=dish.get("name", ""), key=f"menu_name_{idx}")
            if new_name != dish.get("name", ""):
                storage.rename_dish(planner, idx, new_name)
            dish["description"] = c2.text_input("Description", value=dish.get("description", ""), key=f"menu_desc_{idx}")
            if c3.button("Remove", key=f"menu_rm_{idx}"):
                storage.remove_dish(planner, idx)
                save_planner()
                st.rerun()
        if st.button("Add dish ➕", key="menu_add"):
            planner["menu"].append({"name": "", "description": ""})
            save_planner()
            st.rerun()
        save_planner()

    with tab_ing:
        st.subheader("Ingredients per dish 🧾")
        dish_names = [d.get("name", "") for d in planner["menu"]]
        for idx, it in enumerate(list(planner["ingredient_lines"])):
            c1, c2, c3, c4, c5 = st.columns([2, 2, 1, 1, 1])
            options = dish_names or [""]
            if it.get("dish") not in options:
                it["dish"] = options[0]
            it["dish"] = c1.selectbox("Dish", options, index=options.index(it["dish"]), key=f"ing_dish_{idx}")
            it["ingredient"] = c2.text_input("Ingredient", value=it.get("ingredient", ""), key=f"ing_name_{idx}")
            amount = it.get("amount", "")
            amount = c3.number_input(
                "Amount", min_value=0.0, value=None if amount in ("", None) else float(amount),
                step=0.1, format="%.3f", key=f"ing_amt_{idx}",
            )
            it["amount"] = "" if amount is None else amount
            unit = it.get("unit") if it.get("unit") in UNIT_NAMES else UNIT_NAMES[0]
            it["unit"] = c4.selectbox("Unit", UNIT_NAMES, index=UNIT_NAMES.index(unit), key=f"ing_unit_{idx}")
            if c5.button("Remove", key=f"ing_rm_{idx}"):
                planner["ingredient_lines"].pop(idx)
                save_planner()
                st.rerun()
        if st.button("Add ingredient ➕", key="ing_add"):
            planner["ingredient_lines"].append({
                "dish": dish_names[0] if dish_names else "",
                "ingredient": "", "amount": "", "unit": ALL_UNITS[0].value,
            })
            save_planner()
            st.rerun()
        save_planner()

    with tab_shop:
        st.subheader("Shopping list 🛒")
        st.number_input("Expected seats", min_value=1, value=int(planner.get("seats") or 1), step=1, key="planner_seats")
        c1, c2 = st.columns([1, 1])
        c1.button("Generate shopping list", key="shop_generate_btn", on_click=generate_list)
        c2.button("Clear shopping list", key="shop_clear_btn", on_click=clear_list)

        if st.session_state.get("shop_error"):
            st.error(st.session_state.pop("shop_error"))

        rows = st.session_state.shopping
        if not rows:
            st.info("No shopping list yet. Press 'Generate shopping list'.")
        for idx, row in enumerate(rows):
            cols = st.columns([3, 1, 1, 1, 1, 1, 1])
            cols[0].write(row.display_name)
            cols[1].write(format_quantity(row.total_amount))
            cols[2].write(row.unit.value)
            cols[3].selectbox(
                "Num units", UNIT_COUNT_CHOICES,
                index=UNIT_COUNT_CHOICES.index(row.unit_count if row.unit_count is not None else ""),
                key=f"shop_count_{idx}", on_change=on_quantity_change, args=(idx,),
            )
            type_unit = row.type_of_unit.value if row.type_of_unit is not None else row.unit.value
            cols[4].selectbox(
                "Type of unit", UNIT_NAMES, index=UNIT_NAMES.index(type_unit),
                key=f"shop_type_{idx}", on_change=on_quantity_change, args=(idx,),
            )
            cols[5].number_input(
                "Price", min_value=0.0, value=row.price, step=0.01, format="%.2f",
                key=f"shop_price_{idx}", on_change=on_price_change, args=(idx,),
            )
            cols[6].button("Remove", key=f"shop_rm_{idx}", on_click=remove_row, args=(idx,))

        if rows:
            st.metric("Total (priced rows)", format_money(priced_total(rows)))
            st.download_button(
                "Export CSV", shopping_csv(rows), file_name=f"shopping_list_{date.today().isoformat()}.csv",
                mime="text/csv", key="shop_csv",
            )
            labels = [r.display_name for r in rows if r.price]
            vals = [r.price for r in rows if r.price]
            if sum(vals) > 0:
                fig, ax = plt.subplots()
                ax.pie(vals, labels=labels, autopct='%1.1f%%', startangle=90)
                ax.axis('equal')
                st.pyplot(fig)
                plt.close(fig)
                st.caption("Pie chart of cost distribution per ingredient")

    with tab_cat:
        st.subheader("Price catalog (price per 1 unit) 📒")
        catalog = planner["catalog"]
        if not catalog:
            st.info("No prices yet. Enter a price in the shopping list to record one.")
        for ingredient, units in catalog.items():
            for unit, price in units.items():
                c1, c2, c3, c4 = st.columns([3, 1, 1, 1])
                c1.write(ingredient)
                c2.write("1")
                c3.write(unit)
                c4.write(format_number(price, price_decimals(price)))

# -----------------------------------------------------------------------------
# INGREDIENT CONVERTER
# -----------------------------------------------------------------------------
if page == "Ingredient Converter":
    st.header("Ingredient Converter")
    st.caption("Metric amount → cups, tablespoons and teaspoons using density (g per cup).")
    densities = st.session_state.densities
    names = sorted(densities, key=str.lower)
    rows = st.session_state.converter_rows

    for idx, r in enumerate(list(rows)):
        c1, c2, c3, c4, c5, c6 = st.columns([2, 2, 1, 1, 3, 1])
        r["override"] = c1.text_input("Override name (optional)", value=r.get("override", ""), key=f"conv_override_{idx}")
        options = [""] + names
        current = r.get("ingredient", "") if r.get("ingredient", "") in options else ""
        r["ingredient"] = c2.selectbox(
            "Ingredient", options, index=options.index(current),
            format_func=lambda n: n or "— pick ingredient —", key=f"conv_ing_{idx}",
        )
        r["amount"] = c3.text_input("Amount", value=str(r.get("amount", "")), key=f"conv_amt_{idx}")
        unit = r.get("unit") if r.get("unit") in METRIC_UNITS else "g"
        r["unit"] = c4.selectbox("Unit", METRIC_UNITS, index=METRIC_UNITS.index(unit), key=f"conv_unit_{idx}")
        result = convert_ingredient(r["ingredient"], r["amount"], r["unit"], densities)
        c5.write(conversion_text(result))
        if c6.button("Remove", key=f"conv_rm_{idx}"):
            rows.pop(idx)
            storage.save_state("converter_rows", rows)
            st.rerun()
    storage.save_state("converter_rows", rows)

    c1, c2 = st.columns([1, 1])
    if c1.button("Add row ➕", key="conv_add"):
        rows.append({"ingredient": "", "override": "", "amount": "", "unit": "g"})
        storage.save_state("converter_rows", rows)
        st.rerun()
    c2.download_button(
        "Export CSV", conversions_csv(rows, densities),
        file_name=f"ingredient_conversions_{date.today().isoformat()}.csv", mime="text/csv", key="conv_csv",
    )

    st.divider()
    st.subheader(f"Densities (g per cup) — {len(densities)} ingredients")
    for name in names:
        d1, d2, d3 = st.columns([3, 1, 1])
        d1.write(name)
        new_val = d2.number_input(
            f"{name} density", min_value=0.0001, value=float(densities[name]), step=1.0,
            key=f"dens_{name}", label_visibility="collapsed",
        )
        if new_val != densities[name]:
            storage.set_density(densities, name, new_val)
            storage.save_state("densities", densities)
        if d3.button("Delete", key=f"dens_del_{name}"):
            storage.delete_density(densities, name)
            storage.save_state("densities", densities)
            st.rerun()

    with st.form("add_density_form"):
        new_name = st.text_input("Ingredient name", key="dens_new_name")
        new_dens = st.number_input("Density (g per cup)", min_value=0.0, value=0.0, step=1.0, key="dens_new_val")
        if st.form_submit_button("Add ingredient"):
            try:
                storage.set_density(densities, new_name, new_dens)
            except InvalidInput as e:
                st.error(str(e))
            else:
                storage.save_state("densities", densities)
                st.success(f"Saved density for '{new_name.strip()}'.")
                st.rerun()

# -----------------------------------------------------------------------------
# SETTINGS
# -----------------------------------------------------------------------------
if page == "Settings":
    st.header("Settings")

    st.subheader("Locale")
    st.session_state["locale"] = st.selectbox("Interface locale", ["en_US", "it_IT"], key="settings_locale")
    st.session_state["currency"] = st.selectbox("Currency", ["USD", "EUR"], key="settings_currency")
    st.caption(f"Example: {format_money(1234.5)} · {format_number(1234.5678, 3)}")

    st.markdown("---")
    if st.button("Reset density list to defaults", key="settings_reset_dens"):
        st.session_state.densities = storage.reset_densities()
        storage.save_state("densities", st.session_state.densities)
        st.rerun()
    if st.button("Clear saved densities and converter rows", key="settings_clear_conv"):
        st.session_state.densities = storage.clear_converter()
        st.session_state.converter_rows = []
        st.rerun()
    if st.button("Reset menu planner to sample data", key="settings_reset_planner"):
        storage.clear_state("menu", "ingredient_lines", "catalog", "seats")
        st.session_state.planner = storage.load_planner()
        clear_list()
        st.rerun()
