# Overview: Pytest coverage for production runs and recipe scaling.

"""
Production Executor Tests

Verifies:
- A run debits every component and credits the result
- A short component aborts the run with nothing changed (all or nothing)
- Components resolve to the outlet's own rows by id, else by name
- Recipes scale linearly and round to 3 decimals
- Cashiers only see cashier-operated recipes
"""

from decimal import Decimal

import pytest

from app.errors import InsufficientStockError, NotFoundError
from app.models import ProductionRecord
from app.services import production_service


def D(value) -> Decimal:
    return Decimal(str(value))


@pytest.fixture
def kitchen(make_staff, outlet):
    return make_staff("joko", "KITCHEN", [outlet])


@pytest.fixture
def syrup_recipe(db_session, outlet, make_item):
    """1000 ml Syrup from 600 gr Gula and 500 ml Air."""
    sugar = make_item(outlet, "Gula", quantity=1000)
    water = make_item(outlet, "Air", quantity=2000, unit="ml")
    syrup = make_item(outlet, "Syrup", quantity=0, unit="ml", type="WIP")
    recipe = production_service.create_recipe(
        "Syrup Gula",
        syrup.id,
        1000,
        [
            {"inventory_item_id": sugar.id, "quantity": 600},
            {"inventory_item_id": water.id, "quantity": 500},
        ],
        outlet_ids=[outlet.id],
        is_cashier_operated=True,
    )
    db_session.commit()
    return recipe, sugar, water, syrup


class TestExecuteProduction:

    def test_debits_components_and_credits_result(self, db_session, outlet, kitchen, syrup_recipe, at):
        _, sugar, water, syrup = syrup_recipe

        record = production_service.execute_production(
            outlet.id, kitchen.id, syrup.id, 1000,
            [
                {"inventory_item_id": sugar.id, "quantity": 600},
                {"inventory_item_id": water.id, "quantity": 500},
            ],
            now=at(9),
        )
        db_session.commit()

        assert sugar.quantity == D(400)
        assert water.quantity == D(1500)
        assert syrup.quantity == D(1000)
        assert record.result_item_name == "Syrup"
        assert {c.item_name: c.quantity for c in record.components} == {"Gula": D(600), "Air": D(500)}
        assert record.occurred_at == at(9)

    def test_short_component_changes_nothing(self, db_session, outlet, kitchen, syrup_recipe, at):
        _, sugar, water, syrup = syrup_recipe

        with pytest.raises(InsufficientStockError) as exc:
            production_service.execute_production(
                outlet.id, kitchen.id, syrup.id, 1000,
                [
                    {"inventory_item_id": water.id, "quantity": 500},
                    {"inventory_item_id": sugar.id, "quantity": 1200},
                ],
                now=at(9),
            )

        assert exc.value.item_name == "Gula"
        assert exc.value.to_dict()["code"] == "INSUFFICIENT_STOCK"
        db_session.rollback()
        assert sugar.quantity == D(1000)
        assert water.quantity == D(2000)
        assert syrup.quantity == D(0)
        assert db_session.query(ProductionRecord).count() == 0

    def test_repeated_component_is_checked_in_total(self, db_session, outlet, kitchen, syrup_recipe, at):
        _, sugar, _, syrup = syrup_recipe

        with pytest.raises(InsufficientStockError):
            production_service.execute_production(
                outlet.id, kitchen.id, syrup.id, 10,
                [
                    {"inventory_item_id": sugar.id, "quantity": 600},
                    {"inventory_item_id": sugar.id, "quantity": 600},
                ],
                now=at(9),
            )
        db_session.rollback()
        assert sugar.quantity == D(1000)

    def test_component_by_name(self, db_session, outlet, kitchen, syrup_recipe, at):
        _, sugar, _, syrup = syrup_recipe

        production_service.execute_production(
            outlet.id, kitchen.id, syrup.id, 100,
            [{"item_name": "Gula", "quantity": "60"}],
            now=at(9),
        )
        db_session.commit()

        assert sugar.quantity == D(940)

    def test_component_id_from_other_outlet_resolves_locally(
        self, db_session, outlet, second_outlet, make_staff, make_item, at
    ):
        """Ids templated against another outlet's row fall back to the local row of that name."""
        remote_sugar = make_item(second_outlet, "Gula", quantity=50)
        local_sugar = make_item(outlet, "Gula", quantity=500)
        syrup = make_item(outlet, "Syrup", quantity=0, unit="ml", type="WIP")
        staff = make_staff("joko", "KITCHEN", [outlet])

        production_service.execute_production(
            outlet.id, staff.id, syrup.id, 100,
            [{"inventory_item_id": remote_sugar.id, "quantity": 200}],
            now=at(9),
        )
        db_session.commit()

        assert local_sugar.quantity == D(300)
        assert remote_sugar.quantity == D(50)

    def test_unknown_component(self, db_session, outlet, kitchen, syrup_recipe, at):
        _, _, _, syrup = syrup_recipe

        with pytest.raises(NotFoundError):
            production_service.execute_production(
                outlet.id, kitchen.id, syrup.id, 100,
                [{"item_name": "Madu", "quantity": 1}],
                now=at(9),
            )

    @pytest.mark.parametrize("quantity", [0, -5, "abc"])
    def test_rejects_bad_result_quantity(self, db_session, outlet, kitchen, syrup_recipe, quantity, at):
        _, sugar, _, syrup = syrup_recipe

        with pytest.raises(ValueError):
            production_service.execute_production(
                outlet.id, kitchen.id, syrup.id, quantity,
                [{"inventory_item_id": sugar.id, "quantity": 1}],
                now=at(9),
            )

    def test_duplicate_calls_double_consume(self, db_session, outlet, kitchen, syrup_recipe, at):
        recipe, sugar, _, syrup = syrup_recipe

        production_service.execute_recipe(recipe.id, outlet.id, kitchen.id, 500, now=at(9))
        production_service.execute_recipe(recipe.id, outlet.id, kitchen.id, 500, now=at(9, 1))
        db_session.commit()

        assert sugar.quantity == D(400)
        assert syrup.quantity == D(1000)


class TestRecipes:

    def test_scale_recipe_rounds_to_three_places(self, db_session, outlet, make_item):
        sugar = make_item(outlet, "Gula", quantity=0)
        syrup = make_item(outlet, "Syrup", quantity=0, unit="ml", type="WIP")
        recipe = production_service.create_recipe(
            "Syrup Pekat", syrup.id, 3, [{"inventory_item_id": sugar.id, "quantity": 1}],
        )

        scaled = production_service.scale_recipe(recipe, 2)

        assert scaled == [{"inventory_item_id": sugar.id, "item_name": "Gula", "quantity": D("0.667")}]

    def test_scale_recipe_linear(self, db_session, syrup_recipe):
        recipe, sugar, water, _ = syrup_recipe

        scaled = {c["item_name"]: c["quantity"] for c in production_service.scale_recipe(recipe, 1500)}

        assert scaled == {"Gula": D(900), "Air": D(750)}

    def test_execute_recipe_uses_scaled_components(self, db_session, outlet, kitchen, syrup_recipe, at):
        recipe, sugar, water, syrup = syrup_recipe

        record = production_service.execute_recipe(recipe.id, outlet.id, kitchen.id, 250, now=at(9))
        db_session.commit()

        assert record.recipe_id == recipe.id
        assert sugar.quantity == D(850)
        assert water.quantity == D(1875)
        assert syrup.quantity == D(250)

    def test_recipe_not_assigned_to_outlet(self, db_session, second_outlet, make_staff, syrup_recipe, at):
        recipe, *_ = syrup_recipe
        staff = make_staff("joko", "KITCHEN", [second_outlet])

        with pytest.raises(NotFoundError):
            production_service.execute_recipe(recipe.id, second_outlet.id, staff.id, 100, now=at(9))

    def test_cashier_sees_only_cashier_operated(self, db_session, outlet, make_item, syrup_recipe):
        _, sugar, _, _ = syrup_recipe
        dough = make_item(outlet, "Adonan", quantity=0, type="WIP")
        production_service.create_recipe(
            "Adonan Roti", dough.id, 1, [{"inventory_item_id": sugar.id, "quantity": 1}],
        )
        db_session.commit()

        cashier_view = [r.name for r in production_service.list_recipes(outlet.id, "CASHIER")]
        manager_view = [r.name for r in production_service.list_recipes(outlet.id, "MANAGER")]

        assert cashier_view == ["Syrup Gula"]
        assert manager_view == ["Adonan Roti", "Syrup Gula"]
