"""Maps a call count to the analysis tier that fits it into one model context."""

from ..config import get_settings
from ..errors import ConfigurationError
from ..models import AnalysisTier

# A sampled run keeps direct_max calls, always including the first and last
MIN_DIRECT_MAX = 2


class TierSelector:
    """Chooses direct, sampled or hierarchical analysis from call volume."""

    def __init__(self, direct_max: int | None = None, sampling_max: int | None = None):
        settings = get_settings()
        self.direct_max = direct_max if direct_max is not None else settings.direct_analysis_max
        self.sampling_max = sampling_max if sampling_max is not None else settings.sampling_max

        if self.direct_max < MIN_DIRECT_MAX or self.direct_max >= self.sampling_max:
            raise ConfigurationError(
                "analysis tiers",
                f"direct_analysis_max ({self.direct_max}) must be at least {MIN_DIRECT_MAX} "
                f"and below sampling_max ({self.sampling_max})",
            )

    def select_tier(self, record_count: int) -> AnalysisTier:
        if record_count < 0:
            raise ValueError(f"record_count must be non-negative, got {record_count}")
        if record_count <= self.direct_max:
            return AnalysisTier.DIRECT
        if record_count <= self.sampling_max:
            return AnalysisTier.SAMPLED
        return AnalysisTier.HIERARCHICAL
