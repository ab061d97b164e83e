"""
Shared fixtures: a vault wired to in-memory collaborators on a manual clock.
"""
import pytest

from staking_vault.simulation import build_simulated_vault

ETHER = 10**18


@pytest.fixture
def deployment():
    """Vault at 1% a year, 2 ETH minimum stake, market paying no interest."""
    return build_simulated_vault(annual_rate_bp=100, min_stake=2 * ETHER, start=1_700_000_000)


@pytest.fixture
def earning_deployment():
    """Same vault, but the lending market pays 5% a year and 1000 protocol-reward units a second."""
    return build_simulated_vault(
        annual_rate_bp=100,
        min_stake=2 * ETHER,
        market_rate_bp=500,
        reward_per_second=1000,
        start=1_700_000_000,
    )
