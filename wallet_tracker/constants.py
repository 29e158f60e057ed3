# Display/calculation precision
SHARE_PRECISION: int = 5
CURRENCY_PRECISION: int = 2
PERCENT_PRECISION: int = 2
TP_PRECISION: int = 4  # Target prices and wallet key prices

# Epsilon values for zero-checking, two places finer than the display precision
SHARE_EPSILON: float = 1 / (10 ** (SHARE_PRECISION + 2))
CURRENCY_EPSILON: float = 1 / (10 ** (CURRENCY_PRECISION + 2))
PERCENT_EPSILON: float = 1 / (10 ** (PERCENT_PRECISION + 2))

# Tolerance when checking that allocation percents add up to 100
ALLOCATION_TOLERANCE: float = 0.01

# %-to-target colour bands
TARGET_HIT_THRESHOLD: float = -0.005
TARGET_NEAR_THRESHOLD: float = -1.0

# Number of most recent closes considered for the five-day dip
FIVE_DAY_WINDOW: int = 5
