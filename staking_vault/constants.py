"""Constants and configuration for the staking vault."""

from decimal import Decimal

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

WEI_PER_ETH = Decimal(10**18)
TOTAL_BASIS_POINTS = 100_00
SECONDS_PER_YEAR = 365 * 24 * 60 * 60
MAX_UINT256 = 2**256 - 1

DEFAULT_ANNUAL_RATE_BP = 100  # 1% per year
DEFAULT_MIN_STAKE_WEI = 2 * 10**18

# Compound reports balanceOfUnderlying with exchange-rate rounding; allow this much drift
# between the market balance and total staked before flagging it.
DEFAULT_MARKET_TOLERANCE_WEI = 10**15

REWARD_TOKEN_NAME = "devUSDC"
REWARD_TOKEN_SYMBOL = "dUSDC"
REWARD_TOKEN_DECIMALS = 18

# Per-chain defaults for the lending market and the ETH/USD feed.
# Goerli deployment.
GOERLI_CHAIN_ID = 5
DEFAULT_NETWORK_ADDRESSES: dict[int, dict[str, str]] = {
    GOERLI_CHAIN_ID: {
        "ctoken": "0x64078a6189Bf45f80091c6Ff2fCEe1B15Ac8dbde",
        "price_feed": "0xD4a33860578De61DBAbDc8BFdb98FD742fA7028e",
    },
}

# Minimal ABI for Compound v2 cEther - only the functions the vault needs.
# Source: https://docs.compound.finance/v2/ctokens/
COMPOUND_CETHER_MIN_ABI: list[dict] = [
    {
        "inputs": [],
        "name": "mint",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "redeemAmount", "type": "uint256"}],
        "name": "redeemUnderlying",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        # Non-view on-chain (accrues interest first); always invoked as a static call.
        "inputs": [{"internalType": "address", "name": "owner", "type": "address"}],
        "name": "balanceOfUnderlying",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "comptroller",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# Minimal ABI for the Compound v2 Comptroller.
# Source: https://docs.compound.finance/v2/comptroller/
COMPOUND_COMPTROLLER_MIN_ABI: list[dict] = [
    {
        "inputs": [{"internalType": "address", "name": "holder", "type": "address"}],
        "name": "claimComp",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getCompAddress",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# Minimal ERC-20 ABI for moving claimed COMP.
ERC20_MIN_ABI: list[dict] = [
    {
        "inputs": [{"internalType": "address", "name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

# Minimal ABI for a Chainlink AggregatorV3 price feed.
# Source: https://docs.chain.link/data-feeds/api-reference
CHAINLINK_AGGREGATOR_MIN_ABI: list[dict] = [
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"internalType": "uint8", "name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "latestRoundData",
        "outputs": [
            {"internalType": "uint80", "name": "roundId", "type": "uint80"},
            {"internalType": "int256", "name": "answer", "type": "int256"},
            {"internalType": "uint256", "name": "startedAt", "type": "uint256"},
            {"internalType": "uint256", "name": "updatedAt", "type": "uint256"},
            {"internalType": "uint80", "name": "answeredInRound", "type": "uint80"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

# Seconds to wait for a transaction receipt before treating the call as failed.
DEFAULT_TX_TIMEOUT = 120
DEFAULT_RPC_TIMEOUT = 30

# State persistence configuration
STATE_DIR_NAME = "staking_vault"
STATE_VERSION = 1  # Increment when the persisted layout changes
# Seconds a live command waits for another command on the same vault to finish
DEFAULT_STATE_LOCK_TIMEOUT = 60
