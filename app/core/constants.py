"""
Core constants used across the application. Keep these simple and documented.
"""

# Per-user recommendation limits
DEFAULT_RECOMMENDATION_LIMIT: int = 10
MAX_RECOMMENDATION_LIMIT: int = 50

# Bounded inputs fed to the scoring engine
WATCH_HISTORY_LIMIT: int = 50
CANDIDATE_POOL_SIZE: int = 100

# Batch endpoint bounds
DEFAULT_BATCH_PAGE_SIZE: int = 20
MAX_BATCH_PAGE_SIZE: int = 100
MAX_BATCH_PAGE: int = 10000

# Scoring weights (sum to 1.0)
WEIGHT_POPULARITY: float = 0.40
WEIGHT_GENRE: float = 0.35
WEIGHT_RECENCY: float = 0.15
WEIGHT_NOISE: float = 0.10

# Weight given to a genre the user has never watched (exploration floor)
UNSEEN_GENRE_WEIGHT: float = 0.1
# Raw noise is drawn from [-NOISE_AMPLITUDE, NOISE_AMPLITUDE] before weighting
NOISE_AMPLITUDE: float = 0.05
RECENCY_HALF_LIFE_DAYS: float = 365.0

# Cache keys
RECOMMENDATION_KEY: str = "rec:user:{user_id}:limit:{limit}"
RECOMMENDATION_USER_PATTERN: str = "rec:user:{user_id}:limit:*"
# Bumped on every watch-history mutation; a write computed under an older value is discarded
RECOMMENDATION_GENERATION_KEY: str = "rec:user:{user_id}:gen"
