"""
Tests for atlas/balance.py — capacity totals, generation mix and the annual balance.
"""
import pytest

from atlas.balance import BalanceCalculator, EnergyBalance
from atlas.profiles import US_STATE_PROFILES, EnergySource, RegionEnergyProfile, RegionProfileStore


@pytest.fixture
def calc():
    return BalanceCalculator()


class TestTexasScenario:
    """Worked example for Texas."""

    def test_total_capacity(self, calc):
        """Texas nameplate capacity is 152,408 MW."""
        assert calc.total_capacity("TX") == 152408

    def test_balance(self, calc):
        """Generation, surplus and self-sufficiency for Texas."""
        bal = calc.energy_balance("TX")
        assert bal.annual_generation_mwh == 667_547_040
        assert bal.consumption_mwh == 478_000_000
        assert bal.surplus_mwh == 189_547_040
        assert bal.self_sufficiency_percent == pytest.approx(139.65, abs=0.01)
        assert bal.is_surplus
        assert bal.deficit_status == "Surplus"

    def test_renewable_percentage(self, calc):
        """Hydro + wind + solar + geothermal + biomass share of capacity."""
        assert calc.renewable_percentage("TX") == pytest.approx(44715 / 152408 * 100)


class TestInvariants:
    """Properties that hold across every profile."""

    @pytest.mark.parametrize("region", sorted(US_STATE_PROFILES))
    def test_mix_sums_to_100(self, calc, region):
        """The eight mix percentages sum to 100 for regions with capacity."""
        assert sum(calc.generation_mix(region).values()) == pytest.approx(100.0, abs=1e-6)

    @pytest.mark.parametrize("region", sorted(US_STATE_PROFILES))
    def test_self_sufficiency_identity(self, calc, region):
        """Self-sufficiency equals generation / consumption × 100 exactly."""
        bal = calc.energy_balance(region)
        assert bal.self_sufficiency_percent == bal.annual_generation_mwh / bal.consumption_mwh * 100


class TestEdgeCases:
    """Unknown regions, zero consumption and configuration bounds."""

    def test_unknown_region(self, calc):
        """An absent region has zero capacity, an all-zero mix and zero generation."""
        assert calc.total_capacity("ZZ") == 0
        assert all(v == 0.0 for v in calc.generation_mix("ZZ").values())
        assert len(calc.generation_mix("ZZ")) == 8
        bal = calc.energy_balance("ZZ")
        assert bal.annual_generation_mwh == 0
        assert bal.self_sufficiency_percent is None
        assert bal.deficit_status == "No Demand"
        assert calc.renewable_percentage("ZZ") == 0.0

    def test_zero_consumption_with_capacity(self):
        """Zero consumption leaves self-sufficiency undefined rather than infinite."""
        store = RegionProfileStore({"XX": RegionEnergyProfile("XX", {EnergySource.SOLAR: 100}, 0.0)})
        bal = BalanceCalculator(store).energy_balance("XX")
        assert bal.annual_generation_mwh == 438_000
        assert bal.self_sufficiency_percent is None
        assert bal.to_dict()["self_sufficiency_percent"] is None

    @pytest.mark.parametrize("factor", [0.0, -0.1, 1.5])
    def test_capacity_factor_bounds(self, factor):
        """The capacity factor must lie in (0, 1]."""
        with pytest.raises(ValueError):
            BalanceCalculator(capacity_factor=factor)

    def test_custom_capacity_factor(self):
        """Generation scales with the configured capacity factor."""
        assert BalanceCalculator(capacity_factor=1.0).energy_balance("TX").annual_generation_mwh == 152408 * 8760


class TestDeficitStatus:
    """Qualitative balance bands."""

    @pytest.mark.parametrize(
        "generation, consumption, expected",
        [
            (150.0, 100.0, "Surplus"),
            (103.0, 100.0, "Balanced"),
            (96.0, 100.0, "Balanced"),
            (80.0, 100.0, "Deficit"),
            (50.0, 100.0, "Critical Deficit"),
        ],
    )
    def test_bands(self, generation, consumption, expected):
        """Status follows surplus size and self-sufficiency."""
        bal = EnergyBalance(
            region="XX",
            total_capacity_mw=0.0,
            annual_generation_mwh=generation,
            consumption_mwh=consumption,
            surplus_mwh=generation - consumption,
            self_sufficiency_percent=generation / consumption * 100,
        )
        assert bal.deficit_status == expected
