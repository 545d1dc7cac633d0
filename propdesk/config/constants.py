DEFAULT_ENV = "configs/.env"

# (starting capital, challenge fee)
ACCOUNT_TIERS = [
    (10_000, 89),
    (25_000, 199),
    (50_000, 299),
    (100_000, 499),
    (200_000, 899),
]

PHASE_CONFIG = {
    1: {"profit_target": 8.0, "duration_days": 30, "label": "Challenge"},
    2: {"profit_target": 5.0, "duration_days": 60, "label": "Verification"},
}

MAX_DAILY_LOSS_PCT = 5.0
MAX_TOTAL_LOSS_PCT = 10.0
MIN_TRADING_DAYS = 10
DEFAULT_MARKET = "SOL-PERP"

PNL_HISTORY_CAP = 10_000
SHARPE_ANNUALIZATION = 8760.0
FALLBACK_DEVIATION = 0.5

SECONDS_PER_DAY = 24 * 3600
