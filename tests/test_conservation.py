from hypothesis import settings
from hypothesis import strategies as st
from hypothesis.stateful import RuleBasedStateMachine, invariant, precondition, rule, run_state_machine_as_test

from staking_vault.errors import BelowMinimumStake, ExceedsBalance
from staking_vault.simulation import build_simulated_vault

ETHER = 10**18
USERS = ["0x" + f"{i:02x}" * 20 for i in range(1, 6)]


class StatefulStakingVault(RuleBasedStateMachine):
    user_id = st.integers(min_value=0, max_value=len(USERS) - 1)
    deposit_amount = st.integers(min_value=1, max_value=50 * ETHER)
    withdraw_fraction = st.integers(min_value=1, max_value=100)
    time_advance = st.integers(min_value=0, max_value=86400 * 90)

    def __init__(self):
        super().__init__()
        self.sim = build_simulated_vault(
            annual_rate_bp=100,
            min_stake=2 * ETHER,
            market_rate_bp=300,
            reward_per_second=1,
            start=1_700_000_000,
        )
        self.vault = self.sim.vault
        self.expected = {u: 0 for u in USERS}
        self.rewards_paid = 0

    @rule(uid=user_id, amount=deposit_amount)
    def deposit(self, uid, amount):
        user = USERS[uid]
        self.sim.asset.credit(user, amount)
        before = self.vault.accrued_reward(user)
        if self.expected[user] + amount < self.vault.min_stake:
            try:
                self.vault.deposit(user, amount)
            except BelowMinimumStake:
                return
            raise AssertionError("deposit below the minimum stake was accepted")
        self.vault.deposit(user, amount)
        self.expected[user] += amount
        # settling does not change what the account is owed
        assert self.vault.accrued_reward(user) == before

    @rule(uid=user_id, pct=withdraw_fraction)
    def withdraw(self, uid, pct):
        user = USERS[uid]
        balance = self.expected[user]
        amount = balance * pct // 100
        if amount == 0:
            try:
                self.vault.withdraw(user, 1)
            except ExceedsBalance:
                return
            raise AssertionError("withdrawal from an empty account was accepted")
        remaining = balance - amount
        if 0 < remaining < self.vault.min_stake:
            try:
                self.vault.withdraw(user, amount)
            except BelowMinimumStake:
                return
            raise AssertionError("withdrawal stranding dust was accepted")

        owed = self.vault.accrued_reward(user)
        held = self.sim.asset.balance_of(user)
        assert self.vault.withdraw(user, amount) == owed
        self.expected[user] = remaining
        self.rewards_paid += owed
        assert self.sim.asset.balance_of(user) == held + amount
        assert self.vault.accrued_reward(user) == 0

    @rule(seconds=time_advance)
    def advance(self, seconds):
        self.sim.clock.advance(seconds)

    @precondition(lambda self: self.vault.total_staked() > 0)
    @rule()
    def skim(self):
        self.vault.skim_external_interest(self.vault.owner, self.vault.owner)
        assert self.sim.market.current_underlying_balance(self.vault.address) == self.vault.total_staked()

    @rule()
    def claim(self):
        self.vault.claim_external_protocol_reward(self.vault.owner, self.vault.owner)

    @invariant()
    def principal_is_conserved(self):
        balances = {u: self.vault.staked_balance(u) for u in USERS}
        assert balances == self.expected
        assert sum(balances.values()) == self.vault.total_staked()

    @invariant()
    def no_dust_accounts(self):
        for acct in self.vault.accounts().values():
            assert acct.staked_balance == 0 or acct.staked_balance >= self.vault.min_stake

    @invariant()
    def market_covers_principal(self):
        assert self.sim.market.current_underlying_balance(self.vault.address) >= self.vault.total_staked()

    @invariant()
    def custody_holds_nothing_between_operations(self):
        assert self.sim.asset.balance_of(self.vault.address) == 0

    @invariant()
    def minted_matches_paid_rewards(self):
        assert self.vault.reward_token.total_supply() == self.rewards_paid


def test_stateful_staking_vault():
    StatefulStakingVault.TestCase.settings = settings(max_examples=50, stateful_step_count=40, deadline=None)
    run_state_machine_as_test(StatefulStakingVault)
